"""Tests for the bounded retry helper and the database connect loop."""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from docanchor.core.database import connect_with_retry, create_engine
from docanchor.core.retry import RetryExhausted, fixed_delay, linear_backoff, retry_async
from docanchor.services.exceptions import DatabaseUnavailableError


class Flaky:
    """Fails ``failures`` times with ``error``, then returns ``result``."""

    def __init__(self, failures: int, error: Exception, result: str = "ok"):
        self.failures = failures
        self.error = error
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def test_backoff_strategies():
    assert [linear_backoff(1.5)(n) for n in (1, 2, 3)] == [1.5, 3.0, 4.5]
    assert [fixed_delay(3.0)(n) for n in (1, 2)] == [3.0, 3.0]


@pytest.mark.asyncio
async def test_succeeds_after_transient_failures():
    operation = Flaky(failures=2, error=ConnectionError("reset"))
    sleep = SleepRecorder()

    result = await retry_async(
        operation, max_attempts=3, delay=linear_backoff(1.0), sleep=sleep
    )

    assert result == "ok"
    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_after_max_attempts():
    error = ConnectionError("still down")
    operation = Flaky(failures=10, error=error)
    sleep = SleepRecorder()

    with pytest.raises(RetryExhausted) as exc_info:
        await retry_async(
            operation,
            max_attempts=3,
            delay=fixed_delay(0.5),
            operation_name="pinata.pin_file",
            sleep=sleep,
        )

    assert operation.calls == 3
    assert exc_info.value.attempts == 3
    assert exc_info.value.last_error is error
    assert exc_info.value.__cause__ is error
    assert "pinata.pin_file" in str(exc_info.value)
    # No sleep after the final attempt
    assert sleep.delays == [0.5, 0.5]


@pytest.mark.asyncio
async def test_non_retryable_error_propagates_immediately():
    operation = Flaky(failures=5, error=KeyError("bad"))

    with pytest.raises(KeyError):
        await retry_async(
            operation,
            max_attempts=3,
            delay=fixed_delay(0),
            retry_on=(ConnectionError,),
            sleep=SleepRecorder(),
        )

    assert operation.calls == 1


@pytest.mark.asyncio
async def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        await retry_async(Flaky(0, ValueError()), max_attempts=0, delay=fixed_delay(0))


@pytest.mark.asyncio
async def test_connect_with_retry_reaches_sqlite():
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    try:
        await connect_with_retry(engine, max_attempts=1, sleep=SleepRecorder())
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_connect_with_retry_gives_up(tmp_path):
    # Parent directory does not exist, so every connection attempt fails
    missing = tmp_path / "missing" / "db.sqlite"
    engine = create_async_engine(f"sqlite+aiosqlite:///{missing}")
    sleep = SleepRecorder()

    try:
        with pytest.raises(DatabaseUnavailableError):
            await connect_with_retry(engine, max_attempts=3, delay_seconds=3.0, sleep=sleep)
    finally:
        await engine.dispose()

    assert sleep.delays == [3.0, 3.0]
