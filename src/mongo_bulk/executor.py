"""
Executor - drives one bulk delete or update to completion.

The executor counts the matching documents, then streams their ids from a
cursor in fixed-size batches and hands each batch to a ``BatchAction``.
Transient cursor faults reopen the cursor (the matching set is simply
re-read); a failing batch stops the job at once. Operators may interrupt
with Ctrl+C, which takes effect at the next batch boundary.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, TextIO

from .actions import non_idempotent_operators
from .audit import AuditLog
from .errors import is_retryable_cursor_error
from .extjson import parse_document
from .progress import ProgressTracker
from .retry import DEFAULT_SLEEP, Condition, Sleeper, retry_condition
from .signals import setup_signal_handler
from .types import (
    BatchExecutionError,
    BatchResult,
    BulkOperationError,
    BulkReport,
    CursorError,
)

if TYPE_CHECKING:
    from .actions import BatchAction
    from .client import MongoClient
    from .collection import Collection
    from .types import BatchJob, Filter

logger = logging.getLogger(__name__)

__all__ = ["BatchExecutor", "BatchProgress", "OperationCancelled", "DEFAULT_CURSOR_RETRIES"]

DEFAULT_CURSOR_RETRIES = 3

SignalHandler = Callable[[], tuple[threading.Event, Callable[[], None]]]


class OperationCancelled(Exception):
    """Raised inside the executor when the operator interrupts a job."""


@dataclass
class BatchProgress:
    """Mutable counters for the job in flight."""

    total: int
    processed: int = 0
    result: BatchResult = field(default_factory=BatchResult)
    batch_num: int = 0


class BatchExecutor:
    """
    Runs bulk jobs against a connected client.

    Example:
        executor = BatchExecutor(client)
        job = BatchJob("mydb", "users", filter='{status: "inactive"}', batch_size=500)
        report = await executor.run(job, delete_action())
        print(report.processed, report.result.primary)
    """

    __slots__ = (
        "_client",
        "_cursor_retries",
        "_retry_sleep",
        "_sleeper",
        "_signal_handler",
        "_out",
    )

    def __init__(
        self,
        client: MongoClient,
        *,
        cursor_retries: int = DEFAULT_CURSOR_RETRIES,
        retry_sleep: float = DEFAULT_SLEEP,
        sleeper: Sleeper = asyncio.sleep,
        signal_handler: SignalHandler = setup_signal_handler,
        out: TextIO | None = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            client: Connected MongoClient.
            cursor_retries: Cursor attempts before a transient fault is fatal.
            retry_sleep: Base backoff in seconds between cursor attempts.
            sleeper: Coroutine used for inter-batch pauses and backoff.
            signal_handler: Factory returning ``(cancel_flag, stop)``.
            out: Stream for the summary, progress line and notices
                 (default: stdout).
        """
        self._client = client
        self._cursor_retries = cursor_retries
        self._retry_sleep = retry_sleep
        self._sleeper = sleeper
        self._signal_handler = signal_handler
        self._out = out

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def _echo(self, message: str) -> None:
        self.out.write(message + "\n")
        self.out.flush()

    async def run(self, job: BatchJob, action: BatchAction) -> BulkReport:
        """
        Execute ``action`` over every document matching ``job.filter``.

        Args:
            job: What to mutate and how fast.
            action: The delete or update behaviour.

        Returns:
            BulkReport with the counts. An interrupted job returns normally
            with ``cancelled=True``.

        Raises:
            ExpressionSyntaxError: If the filter cannot be parsed.
            OperationFailure: If counting fails.
            BatchExecutionError: If a batch mutation fails.
            BulkOperationError: If the cursor fails for good.
        """
        filter = parse_document(job.filter)
        collection = self._client[job.database][job.collection]

        total = await collection.count_documents(filter)
        self._print_summary(job, action, total)

        if total == 0:
            self._echo("No matching documents, nothing to do.")
            return BulkReport(action=action.name, total=0, dry_run=job.dry_run)

        if job.dry_run:
            self._echo(action.dry_run_message)
            return BulkReport(action=action.name, total=total, dry_run=True)

        if action.update is not None:
            operators = non_idempotent_operators(action.update)
            if operators:
                logger.warning(
                    "update uses non-idempotent operators %s; if the cursor is "
                    "reopened after a transient error, documents that still match "
                    "the filter will be updated again",
                    ", ".join(operators),
                )

        audit = AuditLog(job.output)
        try:
            audit.open()
        except OSError as e:
            raise BulkOperationError(f"failed to open log file: {e}", 0, total) from e

        try:
            cancelled, stop_signal = self._signal_handler()
            try:
                return await self._process(
                    job, action, collection, filter, total, audit, cancelled
                )
            finally:
                stop_signal()
        finally:
            audit.close()

    async def _process(
        self,
        job: BatchJob,
        action: BatchAction,
        collection: Collection,
        filter: Filter,
        total: int,
        audit: AuditLog,
        cancelled: threading.Event,
    ) -> BulkReport:
        tracker = ProgressTracker(total, out=self._out)
        progress = BatchProgress(total)
        ids: list[Any] = []

        async def execute_batch() -> None:
            if cancelled.is_set():
                tracker.halt()
                self._echo(
                    f"Interrupt received, exited safely. Processed: {progress.processed}/{total}"
                )
                audit.write(
                    f"User interrupted, exited safely. Processed: {progress.processed}/{total}"
                )
                raise OperationCancelled()

            progress.batch_num += 1
            try:
                result = await action.execute(collection, ids)
            except Exception as e:
                tracker.halt()
                message = (
                    f"batch #{progress.batch_num} execution failed: {e} "
                    f"(completed: {progress.processed}/{total})"
                )
                logger.error(message)
                audit.write(message)
                raise BatchExecutionError(
                    f"{action.name} failed at {progress.processed}/{total}: {e}",
                    progress.batch_num,
                    progress.processed,
                    total,
                ) from e

            progress.processed += len(ids)
            progress.result += result
            tracker.update(progress.processed)
            audit.write(
                action.batch_log(
                    progress.batch_num,
                    progress.processed,
                    total,
                    progress.result,
                    tracker.speed(),
                )
            )

            ids.clear()
            if job.pause_ms > 0:
                await self._sleeper(job.pause_ms / 1000)

        async def iterate() -> tuple[Condition, Exception | None]:
            async with collection.find_ids(filter, batch_size=job.batch_size) as cursor:
                # a partial batch from a failed attempt is re-read by the new cursor
                ids.clear()

                while True:
                    try:
                        doc = await cursor.next()
                    except StopAsyncIteration:
                        break
                    except Exception as e:
                        if is_retryable_cursor_error(e):
                            logger.warning(
                                "retryable cursor error encountered, will retry: %s", e
                            )
                            audit.write(
                                f"retryable cursor error, retrying: {e} "
                                f"(processed so far: {progress.processed}/{total})"
                            )
                            return Condition.CONTINUE, e
                        return Condition.TERMINATE, e

                    if not isinstance(doc, dict) or "_id" not in doc:
                        return Condition.TERMINATE, CursorError(
                            f"failed to decode document: {doc!r}"
                        )
                    ids.append(doc["_id"])

                    if len(ids) >= job.batch_size:
                        await execute_batch()

                if ids:
                    await execute_batch()

            return Condition.TERMINATE, None

        try:
            await retry_condition(
                iterate,
                self._cursor_retries,
                self._retry_sleep,
                sleeper=self._sleeper,
            )
        except OperationCancelled:
            return self._report(action, progress, tracker, cancelled=True)
        except BatchExecutionError:
            raise
        except Exception as e:
            tracker.halt()
            message = f"{action.name} failed at {progress.processed}/{total}: {e}"
            logger.error(message)
            audit.write(message)
            raise BulkOperationError(message, progress.processed, total) from e

        tracker.finish()
        report = self._report(action, progress, tracker)
        summary = action.summary(report.processed, report.result, report.elapsed, report.speed)
        self._echo(summary)
        audit.write(summary)
        return report

    def _report(
        self,
        action: BatchAction,
        progress: BatchProgress,
        tracker: ProgressTracker,
        cancelled: bool = False,
    ) -> BulkReport:
        elapsed = tracker.elapsed()
        return BulkReport(
            action=action.name,
            total=progress.total,
            processed=progress.processed,
            result=progress.result,
            batches=progress.batch_num,
            elapsed=elapsed,
            speed=progress.processed / elapsed if elapsed > 0 else 0.0,
            cancelled=cancelled,
        )

    def _print_summary(self, job: BatchJob, action: BatchAction, total: int) -> None:
        header = f"========== {action.name} Summary =========="
        lines = [
            header,
            f"  Database:   {job.database}",
            f"  Collection: {job.collection}",
            f"  Filter:     {job.filter}",
        ]
        if action.update is not None:
            lines.append(f"  Update:     {job.update}")
        lines += [
            f"  Matched:    {total}",
            f"  Batch size: {job.batch_size}",
            f"  Pause:      {job.pause_ms}ms",
        ]
        if job.dry_run:
            lines.append("  Mode:       DRY-RUN")
        lines.append("=" * len(header))
        for line in lines:
            self._echo(line)
