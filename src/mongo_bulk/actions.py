"""
Actions - the per-batch behaviour of bulk delete and bulk update.

A ``BatchAction`` bundles what differs between the two operations (the
mutation itself and how its results are reported) so that the executor
never branches on the operation type.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

from .types import BatchResult

if TYPE_CHECKING:
    from .collection import Collection
    from .types import Update

logger = logging.getLogger(__name__)

__all__ = [
    "BatchAction",
    "NON_IDEMPOTENT_OPERATORS",
    "delete_action",
    "non_idempotent_operators",
    "update_action",
]

#: Update operators whose repeated application changes the result.
NON_IDEMPOTENT_OPERATORS = frozenset({"$inc", "$mul", "$push", "$pull", "$pullAll", "$bit"})

ExecuteFn = Callable[["Collection", Sequence[Any]], Awaitable[BatchResult]]
BatchLogFn = Callable[[int, int, int, BatchResult, float], str]
SummaryFn = Callable[[int, BatchResult, float, float], str]


@dataclass(frozen=True)
class BatchAction:
    """
    Capability bundle driven by the batch executor.

    Attributes:
        name: Operation name used in headers and errors, e.g. ``"bulk-delete"``.
        dry_run_message: Notice printed instead of mutating in dry-run mode.
        execute: Apply the mutation to one batch of ids.
        batch_log: Format the audit line for a completed batch from
            ``(batch_num, processed, total, cumulative, speed)``.
        summary: Format the final summary from
            ``(processed, cumulative, elapsed_seconds, avg_speed)``.
        update: The parsed update document, for updates only.
    """

    name: str
    dry_run_message: str
    execute: ExecuteFn
    batch_log: BatchLogFn
    summary: SummaryFn
    update: Update | None = None


def delete_action() -> BatchAction:
    """Build the bulk delete action."""

    async def execute(collection: Collection, ids: Sequence[Any]) -> BatchResult:
        result = await collection.delete_by_ids(ids)
        return BatchResult(primary=result.deleted_count)

    def batch_log(
        batch_num: int, processed: int, total: int, cum: BatchResult, speed: float
    ) -> str:
        return (
            f"Batch #{batch_num} completed: processed={processed}/{total} "
            f"deleted={cum.primary} speed={speed:.0f} docs/sec"
        )

    def summary(processed: int, cum: BatchResult, elapsed: float, speed: float) -> str:
        return (
            f"Bulk delete done: processed={processed} deleted={cum.primary} "
            f"elapsed={elapsed:.3f}s avgSpeed={speed:.0f} docs/sec"
        )

    return BatchAction(
        name="bulk-delete",
        dry_run_message="[DRY-RUN] Count only, no actual delete.",
        execute=execute,
        batch_log=batch_log,
        summary=summary,
    )


def update_action(update: Update) -> BatchAction:
    """
    Build the bulk update action.

    Args:
        update: Parsed, non-empty update document.
    """

    async def execute(collection: Collection, ids: Sequence[Any]) -> BatchResult:
        result = await collection.update_by_ids(ids, update)
        return BatchResult(primary=result.matched_count, secondary=result.modified_count)

    def batch_log(
        batch_num: int, processed: int, total: int, cum: BatchResult, speed: float
    ) -> str:
        return (
            f"Batch #{batch_num} completed: processed={processed}/{total} "
            f"matched={cum.primary} modified={cum.secondary} speed={speed:.0f} docs/sec"
        )

    def summary(processed: int, cum: BatchResult, elapsed: float, speed: float) -> str:
        return (
            f"Bulk update done: processed={processed} matched={cum.primary} "
            f"modified={cum.secondary} elapsed={elapsed:.3f}s avgSpeed={speed:.0f} docs/sec"
        )

    return BatchAction(
        name="bulk-update",
        dry_run_message="[DRY-RUN] Count only, no actual update.",
        execute=execute,
        batch_log=batch_log,
        summary=summary,
        update=update,
    )


def non_idempotent_operators(update: Update) -> list[str]:
    """
    List the top-level operators in ``update`` that are not idempotent.

    A cursor retry re-reads the matching set from scratch, so documents that
    still match after an update may be updated a second time.
    """
    return sorted(op for op in update if op in NON_IDEMPOTENT_OPERATORS)
