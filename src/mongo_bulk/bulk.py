"""
Bulk - entry points for bulk delete and bulk update jobs.

Example:
    async with MongoClient("https://mongo.do") as client:
        job = BatchJob(
            "mydb",
            "orders",
            filter='{status: "pending", created: {$lt: ISODate("2024-01-01T00:00:00Z")}}',
            update='{$set: {status: "archived"}}',
            batch_size=1000,
            pause_ms=100,
        )
        report = await bulk_update(client, job)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from .actions import BatchAction, delete_action, update_action
from .executor import BatchExecutor
from .extjson import parse_document
from .types import JobValidationError

if TYPE_CHECKING:
    from .client import MongoClient
    from .types import BatchJob, BulkReport

__all__ = ["Operation", "build_action", "bulk_delete", "bulk_update", "run_bulk"]

Operation = Literal["delete", "update"]


def build_action(job: BatchJob, operation: Operation) -> BatchAction:
    """
    Build the batch action for ``operation``.

    Args:
        job: The job; its update text is parsed for updates.
        operation: ``"delete"`` or ``"update"``.

    Returns:
        The matching BatchAction.

    Raises:
        JobValidationError: If the operation is unknown or an update job has
            no (or an empty) update.
        ExpressionSyntaxError: If the update text cannot be parsed.
    """
    if operation == "delete":
        return delete_action()

    if operation == "update":
        if job.update is None or not job.update.strip():
            raise JobValidationError("update is required for bulk-update")
        update = parse_document(job.update)
        if not update:
            raise JobValidationError("update cannot be empty")
        return update_action(update)

    raise JobValidationError(f"unknown operation {operation!r}, expected 'delete' or 'update'")


async def run_bulk(
    client: MongoClient,
    job: BatchJob,
    operation: Operation,
    **options: Any,
) -> BulkReport:
    """
    Run one bulk job.

    Args:
        client: Connected MongoClient.
        job: What to mutate and how fast.
        operation: ``"delete"`` or ``"update"``.
        **options: Keyword arguments for ``BatchExecutor``
            (cursor_retries, retry_sleep, sleeper, signal_handler, out).

    Returns:
        BulkReport with the counts.
    """
    action = build_action(job, operation)
    return await BatchExecutor(client, **options).run(job, action)


async def bulk_delete(client: MongoClient, job: BatchJob, **options: Any) -> BulkReport:
    """Delete every document matching ``job.filter`` in batches."""
    return await run_bulk(client, job, "delete", **options)


async def bulk_update(client: MongoClient, job: BatchJob, **options: Any) -> BulkReport:
    """Apply ``job.update`` to every document matching ``job.filter`` in batches."""
    return await run_bulk(client, job, "update", **options)
