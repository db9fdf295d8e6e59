"""
Errors - classification of cursor faults.

A cursor fault is retryable when a fresh cursor is likely to succeed: the
server cursor expired, the node stepped down or is shutting down, or the
network dropped. Cancellation and deadlines are never retried.
"""

from __future__ import annotations

import asyncio

from pymongo.errors import AutoReconnect

__all__ = ["RETRYABLE_CODES", "RETRYABLE_KEYWORDS", "is_retryable_cursor_error"]

RETRYABLE_CODES = frozenset(
    {
        43,  # CursorNotFound
        91,  # ShutdownInProgress
        189,  # PrimarySteppedDown
        262,  # ExceededTimeLimit
        11600,  # InterruptedAtShutdown
        11602,  # InterruptedDueToReplStateChange
    }
)

RETRYABLE_KEYWORDS = (
    "connection reset",
    "connection refused",
    "i/o timeout",
    "broken pipe",
    "no reachable servers",
    "EOF",
    "socket was unexpectedly closed",
    "server selection timeout",
)

_NETWORK_ERRORS = (
    ConnectionResetError,
    ConnectionRefusedError,
    ConnectionAbortedError,
    BrokenPipeError,
)


def is_retryable_cursor_error(error: BaseException | None) -> bool:
    """
    Decide whether a cursor error is transient.

    Args:
        error: The exception raised while opening or advancing a cursor.

    Returns:
        True for expired cursors, replica set state changes, time limit
        overruns and network faults; False otherwise, including for task
        cancellation and deadline (``TimeoutError``) errors.
    """
    if error is None:
        return False

    if isinstance(error, (asyncio.CancelledError, TimeoutError)):
        return False

    if isinstance(error, (AutoReconnect, *_NETWORK_ERRORS)):
        return True

    if getattr(error, "code", None) in RETRYABLE_CODES:
        return True

    message = str(error)
    return any(keyword in message for keyword in RETRYABLE_KEYWORDS)
