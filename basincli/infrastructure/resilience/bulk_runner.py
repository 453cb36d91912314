"""Bounded-concurrency fan-out for multi-identifier commands.

A fixed number of worker coroutines pull the next identifier index from a
shared counter. Each outcome is written into a pre-allocated slot, so the
output order always matches the input order whatever the completion order.
"""

import asyncio
import inspect
import logging
import re
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar, Union

from basincli.domain.errors import ValidationError
from basincli.domain.models.api import BulkResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONCURRENCY = 5

BulkOperation = Callable[[str], Union[Awaitable[T], T]]
ProgressCallback = Callable[[BulkResult, int, int], None]

_ID_SEPARATORS = re.compile(r"[,\s]+")


def chunk_array(items: Sequence[T], size: int) -> List[List[T]]:
    """Splits items into ordered chunks of `size`; the last chunk may be shorter.

    Raises:
        ValidationError: If size is less than 1.
    """
    if size < 1:
        raise ValidationError("Chunk size must be a positive integer", field="size")
    items = list(items)
    return [items[i:i + size] for i in range(0, len(items), size)]


def parse_bulk_ids(value: Union[str, Iterable[str], None]) -> List[str]:
    """Parses '1,2 3' (or a list of such strings) into unique ids, first-seen order.

    Raises:
        ValidationError: If no identifier remains after parsing.
    """
    if value is None:
        raw: List[str] = []
    elif isinstance(value, str):
        raw = [value]
    else:
        raw = list(value)

    ids: List[str] = []
    for chunk in raw:
        ids.extend(part for part in _ID_SEPARATORS.split(str(chunk)) if part)
    ids = list(dict.fromkeys(ids))
    if not ids:
        raise ValidationError("At least one identifier is required", field="ids")
    return ids


async def _invoke(op: BulkOperation, item_id: str) -> Any:
    result = op(item_id)
    if inspect.isawaitable(result):
        result = await result
    return result


async def run_bulk(
    ids: Sequence[str],
    op: BulkOperation,
    concurrency: int = DEFAULT_CONCURRENCY,
    fail_fast: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> List[BulkResult]:
    """Runs `op` for every identifier with at most `concurrency` in flight.

    Per-item failures are captured into that item's BulkResult and never
    abort siblings. With fail_fast, no new item is started once any item
    has failed; items already started finish and are kept.

    Args:
        ids: Identifiers, in the order results must be returned.
        op: Sync or async callable taking one identifier.
        concurrency: Maximum number of outstanding invocations.
        fail_fast: Stop scheduling new items after the first failure.
        on_progress: Called as (result, completed, total) after each item.

    Returns:
        One BulkResult per identifier in input order; with fail_fast, the
        contiguous prefix of identifiers that were started.

    Raises:
        ValidationError: If concurrency is less than 1.
    """
    if concurrency < 1:
        raise ValidationError("Concurrency must be at least 1", field="concurrency")

    ids = list(ids)
    total = len(ids)
    slots: List[Optional[BulkResult]] = [None] * total
    next_index = 0
    completed = 0
    halted = False

    async def worker() -> None:
        nonlocal next_index, completed, halted
        while next_index < total and not halted:
            index = next_index
            next_index += 1
            item_id = ids[index]
            try:
                result = BulkResult.ok(item_id, await _invoke(op, item_id))
            except Exception as e:
                logger.debug(f"Bulk item {item_id} failed: {e}")
                result = BulkResult.failed(item_id, e)
                if fail_fast and not halted:
                    halted = True
                    logger.info(f"Fail-fast: item {item_id} failed, not scheduling remaining items.")
            slots[index] = result
            completed += 1
            if on_progress is not None:
                on_progress(result, completed, total)

    workers = min(concurrency, total)
    await asyncio.gather(*(worker() for _ in range(workers)))

    # Every index below next_index was started, and gather waited for all of them.
    return [slot for slot in slots[:next_index] if slot is not None]
