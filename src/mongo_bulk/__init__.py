"""
mongo-bulk - safe, resumable batch delete and update for MongoDB services.

This package deletes or updates every document matching a filter in
fixed-size batches, with:
- Mongo shell syntax for filters and updates (ISODate, ObjectId, unquoted keys)
- A throttling pause between batches
- Automatic cursor retry on transient server and network faults
- A live progress line and an optional append-only audit log
- Graceful Ctrl+C handling at batch boundaries

Example usage:
    from mongo_bulk import BatchJob, MongoClient, bulk_delete

    async def main():
        async with MongoClient("https://mongo.do") as client:
            job = BatchJob(
                "myapp",
                "sessions",
                filter='{expires: {$lt: ISODate("2024-01-01T00:00:00Z")}}',
                batch_size=2000,
                pause_ms=50,
                output="cleanup.log",
            )
            report = await bulk_delete(client, job)
            print(report.processed, report.result.primary)

    import asyncio
    asyncio.run(main())
"""

from __future__ import annotations

__version__ = "0.1.0"

from .actions import BatchAction, delete_action, update_action
from .bulk import bulk_delete, bulk_update, run_bulk
from .client import MongoClient
from .collection import Collection
from .database import Database
from .executor import BatchExecutor
from .extjson import parse_document, shell_to_extjson
from .types import (
    BatchExecutionError,
    BatchJob,
    BatchResult,
    BulkOperationError,
    BulkReport,
    ConnectionError,
    CursorError,
    DeleteResult,
    ExpressionSyntaxError,
    JobValidationError,
    MongoError,
    OperationFailure,
    QueryError,
    UpdateResult,
    WriteError,
)

__all__ = [
    # Entry points
    "run_bulk",
    "bulk_delete",
    "bulk_update",
    "BatchExecutor",
    "BatchAction",
    "delete_action",
    "update_action",
    # Client classes
    "MongoClient",
    "Database",
    "Collection",
    # Expression parsing
    "shell_to_extjson",
    "parse_document",
    # Job and result types
    "BatchJob",
    "BatchResult",
    "BulkReport",
    "DeleteResult",
    "UpdateResult",
    # Exceptions
    "MongoError",
    "ConnectionError",
    "QueryError",
    "ExpressionSyntaxError",
    "WriteError",
    "OperationFailure",
    "CursorError",
    "JobValidationError",
    "BulkOperationError",
    "BatchExecutionError",
    # Version
    "__version__",
]
