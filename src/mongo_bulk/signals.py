"""
Signals - cooperative cancellation on SIGINT/SIGTERM.
"""

from __future__ import annotations

import logging
import signal
import threading
from types import FrameType
from typing import Any, Callable

logger = logging.getLogger(__name__)

__all__ = ["setup_signal_handler"]

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def setup_signal_handler() -> tuple[threading.Event, Callable[[], None]]:
    """
    Register SIGINT/SIGTERM handlers that set a one-shot cancellation flag.

    Returns:
        ``(flag, stop)``: the flag is set once a signal arrives; ``stop``
        restores the previous handlers and may be called more than once.

    Note:
        The handler only sets the flag and logs a notice. Callers poll the
        flag at safe points; in-flight calls are never interrupted.
        Handlers can only be installed from the main thread; elsewhere a
        warning is logged and the flag simply never fires.
    """
    cancelled = threading.Event()
    previous: dict[int, Any] = {}

    def handle(signum: int, frame: FrameType | None) -> None:
        if cancelled.is_set():
            return
        cancelled.set()
        logger.warning(
            "Interrupt received (%s), will exit safely after current batch completes...",
            signal.Signals(signum).name,
        )

    try:
        for sig in _SIGNALS:
            previous[sig] = signal.signal(sig, handle)
    except ValueError as e:
        logger.warning("cannot install signal handlers: %s", e)

    stopped = False

    def stop() -> None:
        nonlocal stopped
        if stopped:
            return
        stopped = True
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)

    return cancelled, stop
