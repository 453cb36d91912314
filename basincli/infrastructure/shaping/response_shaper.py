"""Response size reduction for list/read results."""

import json
import logging
from typing import Any, Optional

from basincli.domain.models.api import ShapingOptions
from basincli.domain.models.common import ResponseEnvelope

logger = logging.getLogger(__name__)

DEFAULT_WARN_THRESHOLD = 50_000


def shape_response(value: ResponseEnvelope, options: Optional[ShapingOptions]) -> ResponseEnvelope:
    """Applies count, then limit, then field projection.

    Args:
        value: Parsed JSON value from a successful read.
        options: Shaping options; None or empty options return value unchanged.

    Returns:
        `{"count": n}` when count is set, otherwise the limited/projected value.
    """
    if options is None or options.is_empty:
        return value

    if options.count:
        if isinstance(value, list):
            return {"count": len(value)}
        return {"count": 0 if value is None else 1}

    if options.limit is not None and isinstance(value, list):
        value = value[:options.limit]

    if options.fields:
        if isinstance(value, list):
            value = [_project(item, options.fields) for item in value]
        else:
            value = _project(value, options.fields)
    return value


def _project(item: Any, fields) -> Any:
    if not isinstance(item, dict):
        return item
    return {name: item[name] for name in fields if name in item}


def payload_size(value: Any) -> int:
    """Length of the serialized JSON, in characters."""
    return len(json.dumps(value, default=str))


def oversize_warning(value: Any, threshold: int = DEFAULT_WARN_THRESHOLD) -> Optional[str]:
    """Returns a warning message when the payload is larger than threshold, else None."""
    if threshold <= 0:
        return None
    size = payload_size(value)
    if size <= threshold:
        return None
    logger.info(f"Response payload is {size} characters (threshold {threshold}).")
    return (
        f"Large response ({size:,} characters). "
        "Use --count, --fields or --limit to reduce output size."
    )
