"""
Audit log - append-only record of a bulk job.

Each event becomes one line, ``[YYYY-MM-DD HH:MM:SS] message``. The file is
buffered and only flushed on close; write failures are logged and never
interrupt the job.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import TextIO

logger = logging.getLogger(__name__)

__all__ = ["AuditLog", "TIMESTAMP_FORMAT"]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class AuditLog:
    """
    Buffered, append-mode audit sink.

    A log created without a path accepts writes and discards them, so
    callers never need to check whether auditing is enabled.

    Example:
        with AuditLog(Path("bulk.log")) as audit:
            audit.write("Batch #1 completed")
    """

    __slots__ = ("_path", "_file")

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._file: TextIO | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def enabled(self) -> bool:
        return self._path is not None

    def open(self) -> AuditLog:
        """
        Open the log file in append mode.

        Raises:
            OSError: If the file cannot be opened.
        """
        if self._path is not None and self._file is None:
            self._file = open(self._path, "a", encoding="utf-8")
            logger.info("Log output to: %s", self._path)
        return self

    def write(self, message: str) -> None:
        """Append one timestamped line."""
        if self._file is None:
            return

        line = f"[{datetime.now().strftime(TIMESTAMP_FORMAT)}] {message}\n"
        try:
            self._file.write(line)
        except OSError as e:
            logger.warning("failed to write to log file: %s", e)

    def close(self) -> None:
        """Flush and close the file. Safe to call more than once."""
        if self._file is None:
            return

        f, self._file = self._file, None
        try:
            f.flush()
        except OSError as e:
            logger.warning("failed to flush log buffer: %s", e)
        try:
            f.close()
        except OSError as e:
            logger.warning("failed to close log file: %s", e)

    def __enter__(self) -> AuditLog:
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"AuditLog({str(self._path)!r})" if self._path else "AuditLog(None)"
