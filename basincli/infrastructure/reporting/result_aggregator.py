"""Human-readable reports and aggregate failure for bulk runs."""

from typing import List, Sequence, Tuple

from basincli.domain.errors import BulkOperationError
from basincli.domain.models.api import BulkResult


def pluralize(label: str, count: int) -> str:
    return label if count == 1 else f"{label}s"


def summarize_results(results: Sequence[BulkResult]) -> Tuple[int, int]:
    """Returns (succeeded, failed) counts."""
    succeeded = sum(1 for result in results if result.success)
    return succeeded, len(results) - succeeded


def format_results(results: Sequence[BulkResult], resource_label: str) -> str:
    """Renders a success block then a failure block, one bullet per identifier.

    Example:
        Successfully processed 2 connectors:
          - 1
          - 3

        Failed to process 1 connector:
          - 2: Item not found (404)
    """
    succeeded = [result for result in results if result.success]
    failed = [result for result in results if not result.success]

    lines: List[str] = []
    if succeeded:
        lines.append(f"Successfully processed {len(succeeded)} {pluralize(resource_label, len(succeeded))}:")
        lines.extend(f"  - {result.id}" for result in succeeded)

    if failed:
        if lines:
            lines.append("")
        lines.append(f"Failed to process {len(failed)} {pluralize(resource_label, len(failed))}:")
        for result in failed:
            message = result.error.message if result.error else "Unknown error"
            line = f"  - {result.id}: {message}"
            if result.error and result.error.status_code is not None:
                line += f" ({result.error.status_code})"
            lines.append(line)

    return "\n".join(lines)


def raise_if_any_failed(results: Sequence[BulkResult], resource_label: str) -> None:
    """Raises BulkOperationError when at least one result failed."""
    failed_ids = [result.id for result in results if not result.success]
    if not failed_ids:
        return
    raise BulkOperationError(
        f"Failed to process {len(failed_ids)} {pluralize(resource_label, len(failed_ids))} "
        f"({', '.join(failed_ids)})\n\n{format_results(results, resource_label)}",
        failed_ids,
    )
