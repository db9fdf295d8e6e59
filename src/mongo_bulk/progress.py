"""
Progress - single-line terminal progress with throughput and ETA.
"""

from __future__ import annotations

import sys
import time
from typing import Callable, TextIO

__all__ = ["ProgressTracker", "format_duration"]

DEFAULT_BAR_WIDTH = 40


def format_duration(seconds: float) -> str:
    """
    Format a duration as a short human readable string.

    Args:
        seconds: Duration in seconds.

    Returns:
        ``"<1s"`` below one second, otherwise ``"45s"`` or ``"1m30s"``.
    """
    if seconds < 1:
        return "<1s"

    total = int(seconds)
    minutes, secs = divmod(total, 60)
    if minutes > 0:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


class ProgressTracker:
    """
    Terminal progress line for a job with a known (approximate) total.

    The line is redrawn in place with a carriage return; ``finish`` and
    ``halt`` terminate it so that later output starts on a fresh line.

    Example:
        tracker = ProgressTracker(total=2500)
        tracker.update(1000)
        tracker.update(2000)
        tracker.finish()
    """

    __slots__ = ("total", "current", "_out", "_width", "_clock", "_start")

    def __init__(
        self,
        total: int,
        out: TextIO | None = None,
        width: int = DEFAULT_BAR_WIDTH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the tracker and record the start time.

        Args:
            total: Number of documents expected.
            out: Stream to render to (default: stdout).
            width: Bar width in characters.
            clock: Monotonic clock returning seconds.
        """
        self.total = total
        self.current = 0
        self._out = out
        self._width = width
        self._clock = clock
        self._start = clock()

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def elapsed(self) -> float:
        """Seconds since the tracker was created."""
        return self._clock() - self._start

    def speed(self) -> float:
        """Processed documents per second, 0 before any time has passed."""
        elapsed = self.elapsed()
        if elapsed <= 0:
            return 0.0
        return self.current / elapsed

    def eta(self) -> str:
        """Estimated time remaining, or ``"N/A"`` without throughput."""
        speed = self.speed()
        if speed <= 0:
            return "N/A"
        return format_duration((self.total - self.current) / speed)

    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return self.current / self.total * 100

    def render(self) -> str:
        """Build the status line for the current state."""
        percent = self.percent()
        filled = min(int(percent / 100 * self._width), self._width)
        bar = "█" * filled + "░" * (self._width - filled)
        return (
            f"\r[{bar}]  {percent:.1f}%  {self.current}/{self.total}  |  "
            f"{self.speed():.0f} docs/sec  |  ETA: {self.eta()}    "
        )

    def update(self, current: int) -> None:
        """
        Record progress and redraw the line.

        Args:
            current: Documents processed so far. A value above the total
                     raises the total instead of overflowing the bar.
        """
        self.current = current
        if current > self.total:
            self.total = current

        self.out.write(self.render())
        self.out.flush()

    def halt(self) -> None:
        """Redraw the current state and end the line without completing."""
        self.update(self.current)
        self.out.write("\n")
        self.out.flush()

    def finish(self) -> None:
        """Draw the completed state and end the line."""
        self.update(self.total)
        self.out.write("\n")
        self.out.flush()
