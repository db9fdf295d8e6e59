"""
Tests for the retry helpers.
"""

from __future__ import annotations

import pytest


@pytest.fixture
def max_jitter(monkeypatch):
    """Make jitter deterministic: always add half the sleep."""
    monkeypatch.setattr("mongo_bulk.retry.random.uniform", lambda a, b: b)


class TestNextBackoff:
    """Tests for next_backoff."""

    def test_adds_up_to_half(self, max_jitter):
        """Test that jitter adds at most half of the sleep."""
        from mongo_bulk.retry import next_backoff

        assert next_backoff(2.0) == 3.0

    def test_capped(self, max_jitter):
        """Test that a single sleep never exceeds the cap."""
        from mongo_bulk.retry import MAX_BACKOFF, next_backoff

        assert next_backoff(25.0) == MAX_BACKOFF
        assert next_backoff(1000.0) == MAX_BACKOFF

    def test_random_range(self):
        """Test that jitter stays within bounds."""
        from mongo_bulk.retry import next_backoff

        for _ in range(50):
            assert 1.0 <= next_backoff(1.0) <= 1.5


class TestRetry:
    """Tests for retry."""

    async def test_first_attempt_succeeds(self, sleeper, sleeps):
        """Test that a successful call does not sleep."""
        from mongo_bulk.retry import retry

        async def fn():
            return "ok"

        assert await retry(fn, 3, 1.0, sleeper=sleeper) == "ok"
        assert sleeps == []

    async def test_succeeds_after_failures(self, sleeper, sleeps, max_jitter):
        """Test recovery with doubling backoff."""
        from mongo_bulk.retry import retry

        calls = []

        async def fn():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionResetError("connection reset")
            return 42

        assert await retry(fn, 3, 1.0, sleeper=sleeper) == 42
        assert len(calls) == 3
        assert sleeps == [1.5, 4.5]

    async def test_exhausted_raises_last_error(self, sleeper, sleeps):
        """Test that the last error propagates and no sleep follows it."""
        from mongo_bulk.retry import retry

        errors = [OSError(f"failure {i}") for i in range(3)]
        calls = []

        async def fn():
            calls.append(1)
            raise errors[len(calls) - 1]

        with pytest.raises(OSError) as exc_info:
            await retry(fn, 3, 1.0, sleeper=sleeper)

        assert exc_info.value is errors[2]
        assert len(calls) == 3
        assert len(sleeps) == 2

    async def test_non_positive_sleep_uses_default(self, sleeper, sleeps, max_jitter):
        """Test that zero or negative base sleep falls back to one second."""
        from mongo_bulk.retry import retry

        async def fn():
            raise OSError("down")

        for base in (0, -5):
            sleeps.clear()
            with pytest.raises(OSError):
                await retry(fn, 2, base, sleeper=sleeper)
            assert sleeps == [1.5]

    async def test_zero_attempts_tries_once(self, sleeper, sleeps):
        """Test that at least one attempt is made."""
        from mongo_bulk.retry import retry

        calls = []

        async def fn():
            calls.append(1)
            raise OSError("down")

        with pytest.raises(OSError):
            await retry(fn, 0, sleeper=sleeper)

        assert len(calls) == 1
        assert sleeps == []

    async def test_backoff_never_exceeds_cap(self, sleeper, sleeps):
        """Test that long retry chains stay under the cap."""
        from mongo_bulk.retry import MAX_BACKOFF, retry

        async def fn():
            raise OSError("down")

        with pytest.raises(OSError):
            await retry(fn, 10, 5.0, sleeper=sleeper)

        assert len(sleeps) == 9
        assert all(s <= MAX_BACKOFF for s in sleeps)


class TestRetryCondition:
    """Tests for retry_condition."""

    async def test_terminate_without_error(self, sleeper, sleeps):
        """Test that TERMINATE with no error returns at once."""
        from mongo_bulk.retry import Condition, retry_condition

        calls = []

        async def fn():
            calls.append(1)
            return Condition.TERMINATE, None

        await retry_condition(fn, 3, 1.0, sleeper=sleeper)
        assert len(calls) == 1
        assert sleeps == []

    async def test_terminate_with_error(self, sleeper, sleeps):
        """Test that TERMINATE with an error raises it without retrying."""
        from mongo_bulk.retry import Condition, retry_condition

        error = ValueError("fatal")
        calls = []

        async def fn():
            calls.append(1)
            return Condition.TERMINATE, error

        with pytest.raises(ValueError) as exc_info:
            await retry_condition(fn, 3, 1.0, sleeper=sleeper)

        assert exc_info.value is error
        assert len(calls) == 1

    async def test_continue_then_terminate(self, sleeper, sleeps, max_jitter):
        """Test recovery after CONTINUE."""
        from mongo_bulk.retry import Condition, retry_condition

        outcomes = [
            (Condition.CONTINUE, OSError("transient")),
            (Condition.TERMINATE, None),
        ]

        async def fn():
            return outcomes.pop(0)

        await retry_condition(fn, 3, 2.0, sleeper=sleeper)
        assert sleeps == [3.0]

    async def test_continue_exhausted(self, sleeper, sleeps):
        """Test that exhausting attempts raises the last error."""
        from mongo_bulk.retry import Condition, retry_condition

        errors = [OSError(f"transient {i}") for i in range(4)]
        calls = []

        async def fn():
            calls.append(1)
            return Condition.CONTINUE, errors[len(calls) - 1]

        with pytest.raises(OSError) as exc_info:
            await retry_condition(fn, 4, 1.0, sleeper=sleeper)

        assert exc_info.value is errors[3]
        assert len(calls) == 4
        assert len(sleeps) == 3

    async def test_raised_exception_propagates(self, sleeper, sleeps):
        """Test that an exception raised by the callable is not retried."""
        from mongo_bulk.retry import retry_condition

        async def fn():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await retry_condition(fn, 3, 1.0, sleeper=sleeper)

        assert sleeps == []
