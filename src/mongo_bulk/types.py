"""
Type definitions for mongo-bulk.

Provides the result types returned by the collection's batch mutations,
the records exchanged with the batch executor, and the exception
hierarchy shared by the client and the bulk engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

#: Upper bound on ids per batch; keeps the ``$in`` filter well below the
#: 16MB BSON document limit.
MAX_BATCH_SIZE = 50000


@dataclass
class UpdateResult:
    """
    Result of an update_by_ids operation.

    Attributes:
        matched_count: Number of documents matched.
        modified_count: Number of documents modified.
        acknowledged: Whether the write was acknowledged.
    """

    matched_count: int = 0
    modified_count: int = 0
    acknowledged: bool = True

    @property
    def raw_result(self) -> dict[str, Any]:
        """Return raw result dict for compatibility."""
        return {
            "n": self.matched_count,
            "nModified": self.modified_count,
            "ok": 1.0 if self.acknowledged else 0.0,
        }


@dataclass
class DeleteResult:
    """
    Result of a delete_by_ids operation.

    Attributes:
        deleted_count: Number of documents deleted.
        acknowledged: Whether the write was acknowledged.
    """

    deleted_count: int = 0
    acknowledged: bool = True

    @property
    def raw_result(self) -> dict[str, Any]:
        """Return raw result dict for compatibility."""
        return {
            "n": self.deleted_count,
            "ok": 1.0 if self.acknowledged else 0.0,
        }


@dataclass
class BatchResult:
    """
    Counters produced by one batch, or accumulated over a whole job.

    Attributes:
        primary: Deleted count for deletes, matched count for updates.
        secondary: Modified count for updates, unused for deletes.
    """

    primary: int = 0
    secondary: int = 0

    def __add__(self, other: BatchResult) -> BatchResult:
        return BatchResult(
            primary=self.primary + other.primary,
            secondary=self.secondary + other.secondary,
        )


@dataclass(frozen=True)
class BatchJob:
    """
    Immutable description of one bulk delete or update.

    Attributes:
        database: Target database name.
        collection: Target collection name.
        filter: Match expression text (JSON, Extended JSON or shell syntax).
        update: Mutation expression text, required for updates.
        batch_size: Number of ids per mutation call (1..50000).
        pause_ms: Pause between batches in milliseconds.
        dry_run: Only count matches, never mutate.
        output: Optional audit log path, opened in append mode.

    Raises:
        JobValidationError: If any field is out of range.
    """

    database: str
    collection: str
    filter: str = "{}"
    update: str | None = None
    batch_size: int = 1000
    pause_ms: int = 100
    dry_run: bool = False
    output: Path | None = None

    def __post_init__(self) -> None:
        if not self.database:
            raise JobValidationError("database is required")
        if not self.collection:
            raise JobValidationError("collection is required")
        if self.batch_size <= 0:
            raise JobValidationError(
                f"batch size must be greater than 0, got {self.batch_size}"
            )
        if self.batch_size > MAX_BATCH_SIZE:
            raise JobValidationError(
                f"batch size must be less than or equal to {MAX_BATCH_SIZE}, "
                f"got {self.batch_size}"
            )
        if self.pause_ms < 0:
            raise JobValidationError(
                f"pause must be greater than or equal to 0, got {self.pause_ms}"
            )
        if self.output is not None and not isinstance(self.output, Path):
            object.__setattr__(self, "output", Path(self.output))

    @property
    def namespace(self) -> str:
        """Get the full collection name (database.collection)."""
        return f"{self.database}.{self.collection}"


@dataclass(frozen=True)
class BulkReport:
    """
    Outcome of one executor run.

    Attributes:
        action: Action name, e.g. ``"bulk-delete"``.
        total: Number of documents counted before the run.
        processed: Number of ids submitted in successful batches.
        result: Cumulative batch counters.
        batches: Number of successful batches.
        elapsed: Wall time in seconds spent streaming and mutating.
        speed: Average throughput in documents per second.
        dry_run: Whether the run only counted.
        cancelled: Whether the operator interrupted the run.
    """

    action: str
    total: int
    processed: int = 0
    result: BatchResult = field(default_factory=BatchResult)
    batches: int = 0
    elapsed: float = 0.0
    speed: float = 0.0
    dry_run: bool = False
    cancelled: bool = False


# Type aliases for clarity
Document = Mapping[str, Any]
MutableDocument = dict[str, Any]
Filter = Mapping[str, Any]
Update = Mapping[str, Any]


class MongoError(Exception):
    """Base exception for MongoDB operations."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConnectionError(MongoError):
    """Error raised when connection to MongoDB fails."""

    pass


class QueryError(MongoError):
    """Error raised when a query fails."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message, code)
        self.suggestion = suggestion


class ExpressionSyntaxError(QueryError):
    """Error raised when a filter or update expression cannot be parsed."""

    def __init__(
        self,
        message: str,
        original: str,
        converted: str,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message, suggestion=suggestion)
        self.original = original
        self.converted = converted


class WriteError(MongoError):
    """Error raised when a write operation fails."""

    pass


class OperationFailure(MongoError):
    """Error raised when an operation fails on the server."""

    pass


class CursorError(OperationFailure):
    """Error raised when a cursor yields something that is not a document id."""

    pass


class JobValidationError(MongoError):
    """Error raised when a bulk job is configured with invalid options."""

    pass


class BulkOperationError(MongoError):
    """Error raised when a bulk job stops before processing every match."""

    def __init__(self, message: str, processed: int, total: int) -> None:
        super().__init__(message)
        self.processed = processed
        self.total = total


class BatchExecutionError(BulkOperationError):
    """Error raised when a single batch mutation fails."""

    def __init__(
        self,
        message: str,
        batch_num: int,
        processed: int,
        total: int,
    ) -> None:
        super().__init__(message, processed, total)
        self.batch_num = batch_num
