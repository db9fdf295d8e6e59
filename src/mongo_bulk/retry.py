"""
Retry - bounded exponential backoff with jitter.

Two forms are provided. ``retry`` re-awaits a coroutine function until it
stops raising. ``retry_condition`` lets the callable decide, per attempt,
whether the loop should terminate or continue.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]

#: Base sleep in seconds used when none (or a non-positive one) is given.
DEFAULT_SLEEP = 1.0

#: Upper bound in seconds for a single backoff sleep.
MAX_BACKOFF = 30.0

__all__ = [
    "Condition",
    "DEFAULT_SLEEP",
    "MAX_BACKOFF",
    "next_backoff",
    "retry",
    "retry_condition",
]


class Condition(enum.Enum):
    """Outcome reported by a conditional retry attempt."""

    TERMINATE = "terminate"
    CONTINUE = "continue"


def next_backoff(sleep: float) -> float:
    """
    Add jitter to the current sleep and clamp it.

    Args:
        sleep: Current sleep in seconds.

    Returns:
        ``sleep`` plus up to half of itself, capped at ``MAX_BACKOFF``.
    """
    sleep += random.uniform(0, sleep) / 2
    return min(sleep, MAX_BACKOFF)


async def retry(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 3,
    sleep: float = DEFAULT_SLEEP,
    *,
    sleeper: Sleeper = asyncio.sleep,
) -> T:
    """
    Await ``fn`` until it succeeds or ``attempts`` is exhausted.

    Args:
        fn: Zero-argument coroutine function.
        attempts: Total number of attempts, including the first.
        sleep: Base sleep in seconds before the second attempt.
        sleeper: Coroutine used to wait between attempts.

    Returns:
        The first successful result.

    Raises:
        Exception: The last error raised by ``fn`` once attempts run out.
    """
    if sleep <= 0:
        sleep = DEFAULT_SLEEP
    attempts = max(attempts, 1)

    last_error: Exception | None = None
    for attempt in range(attempts):
        try:
            return await fn()
        except Exception as e:
            last_error = e

        if attempt == attempts - 1:
            break

        sleep = next_backoff(sleep)
        logger.debug(
            "attempt %d/%d failed: %s; retrying in %.2fs",
            attempt + 1,
            attempts,
            last_error,
            sleep,
        )
        await sleeper(sleep)
        sleep *= 2

    assert last_error is not None
    raise last_error


async def retry_condition(
    fn: Callable[[], Awaitable[tuple[Condition, Exception | None]]],
    attempts: int = 3,
    sleep: float = DEFAULT_SLEEP,
    *,
    sleeper: Sleeper = asyncio.sleep,
) -> None:
    """
    Await ``fn`` until it reports ``Condition.TERMINATE`` or attempts run out.

    Args:
        fn: Zero-argument coroutine function returning ``(condition, error)``.
        attempts: Total number of attempts, including the first.
        sleep: Base sleep in seconds before the second attempt.
        sleeper: Coroutine used to wait between attempts.

    Raises:
        Exception: The error paired with ``TERMINATE``, or the last error
            paired with ``CONTINUE`` once attempts run out. Anything ``fn``
            raises itself propagates unchanged.
    """
    if sleep <= 0:
        sleep = DEFAULT_SLEEP
    attempts = max(attempts, 1)

    error: Exception | None = None
    for attempt in range(attempts):
        condition, error = await fn()

        if condition is Condition.TERMINATE:
            if error is not None:
                raise error
            return

        if attempt == attempts - 1:
            break

        sleep = next_backoff(sleep)
        logger.debug(
            "attempt %d/%d asked to continue: %s; retrying in %.2fs",
            attempt + 1,
            attempts,
            error,
            sleep,
        )
        await sleeper(sleep)
        sleep *= 2

    if error is not None:
        raise error
