"""Command line interface: ``mongo-bulk delete`` and ``mongo-bulk update``."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

import typer

from .bulk import Operation, run_bulk
from .client import MongoClient
from .retry import retry
from .settings import BulkSettings, get_settings
from .types import BatchJob, BulkReport, MongoError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"

#: Exit status for an operator interrupt (128 + SIGINT).
EXIT_CANCELLED = 130

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Batch delete or update MongoDB documents matching a filter, safely and resumably.",
)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        force=True,
    )


async def _execute(settings: BulkSettings, uri: str, job: BatchJob, operation: Operation) -> BulkReport:
    client = MongoClient(uri, timeout=settings.timeout)
    try:
        await retry(client.connect, settings.connect_retries, settings.retry_sleep)
        return await run_bulk(
            client,
            job,
            operation,
            cursor_retries=settings.cursor_retries,
            retry_sleep=settings.retry_sleep,
        )
    finally:
        await client.close()


def _run(
    operation: Operation,
    *,
    uri: Optional[str],
    database: str,
    collection: str,
    filter: str,
    update: Optional[str],
    batch_size: Optional[int],
    pause_ms: Optional[int],
    dry_run: bool,
    output: Optional[Path],
    debug: bool,
) -> None:
    _configure_logging(debug)
    settings = get_settings()
    start = time.monotonic()

    try:
        job = BatchJob(
            database,
            collection,
            filter=filter,
            update=update,
            batch_size=batch_size if batch_size is not None else settings.batch_size,
            pause_ms=pause_ms if pause_ms is not None else settings.pause_ms,
            dry_run=dry_run,
            output=output,
        )
        report = asyncio.run(_execute(settings, uri or settings.uri, job, operation))
    except MongoError as e:
        logger.debug("bulk %s failed", operation, exc_info=True)
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e

    typer.echo(f"Total cost: {time.monotonic() - start:.3f}s")
    if report.cancelled:
        raise typer.Exit(code=EXIT_CANCELLED)


@app.command()
def delete(
    database: str = typer.Option(..., "--database", "-d", help="Database name."),
    collection: str = typer.Option(..., "--collection", "-c", help="Collection name."),
    filter: str = typer.Option("{}", "--filter", "-f", help="Query filter in mongo shell syntax or Extended JSON."),
    uri: Optional[str] = typer.Option(None, "--uri", help="MongoDB service URI (default: MONGO_BULK_URI or MONGO_URL)."),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", help="Documents per batch (1-50000)."),
    pause_ms: Optional[int] = typer.Option(None, "--pause-ms", help="Pause between batches in milliseconds."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Count matching documents without deleting."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Append an audit log to this file."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Delete every document matching the filter, in batches."""

    _run(
        "delete",
        uri=uri,
        database=database,
        collection=collection,
        filter=filter,
        update=None,
        batch_size=batch_size,
        pause_ms=pause_ms,
        dry_run=dry_run,
        output=output,
        debug=debug,
    )


@app.command()
def update(
    database: str = typer.Option(..., "--database", "-d", help="Database name."),
    collection: str = typer.Option(..., "--collection", "-c", help="Collection name."),
    update: str = typer.Option(..., "--update", "-u", help="Update document, e.g. '{$set: {status: \"archived\"}}'."),
    filter: str = typer.Option("{}", "--filter", "-f", help="Query filter in mongo shell syntax or Extended JSON."),
    uri: Optional[str] = typer.Option(None, "--uri", help="MongoDB service URI (default: MONGO_BULK_URI or MONGO_URL)."),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", help="Documents per batch (1-50000)."),
    pause_ms: Optional[int] = typer.Option(None, "--pause-ms", help="Pause between batches in milliseconds."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Count matching documents without updating."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Append an audit log to this file."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Apply an update to every document matching the filter, in batches."""

    _run(
        "update",
        uri=uri,
        database=database,
        collection=collection,
        filter=filter,
        update=update,
        batch_size=batch_size,
        pause_ms=pause_ms,
        dry_run=dry_run,
        output=output,
        debug=debug,
    )


if __name__ == "__main__":  # pragma: no cover
    app()
