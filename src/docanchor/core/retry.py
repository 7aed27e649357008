"""Bounded retry with pluggable backoff.

Shared by the pinning gateway (linear backoff between Pinata attempts) and the
database connect loop (fixed delay between connection attempts). The sleep function
is injectable so callers and tests can run the loop without real waiting.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

DelayStrategy = Callable[[int], float]
SleepFunc = Callable[[float], Awaitable[None]]


def linear_backoff(base_seconds: float) -> DelayStrategy:
    """Delay grows with the attempt number: base, 2*base, 3*base, ..."""

    def _delay(attempt: int) -> float:
        return base_seconds * attempt

    return _delay


def fixed_delay(seconds: float) -> DelayStrategy:
    """Same delay after every failed attempt."""

    def _delay(attempt: int) -> float:
        return seconds

    return _delay


class RetryExhausted(Exception):
    """Raised when every attempt failed with a retryable error.

    The last underlying error is available as ``last_error`` and as ``__cause__``.
    """

    def __init__(self, operation: str, attempts: int, last_error: BaseException):
        super().__init__(f"{operation} failed after {attempts} attempt(s): {last_error}")
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    delay: DelayStrategy,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    operation_name: str = "operation",
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or ``max_attempts`` is reached.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt so every
            attempt is an independent request.
        max_attempts: Total attempts including the first one (>= 1).
        delay: Maps the number of the attempt that just failed (1-based) to seconds.
        retry_on: Exception types that trigger another attempt. Anything else
            propagates immediately.
        operation_name: Used in log events and in the RetryExhausted message.
        sleep: Awaitable sleep, ``asyncio.sleep`` by default.

    Returns:
        Result of the first successful attempt.

    Raises:
        RetryExhausted: All attempts failed with a retryable error.
        ValueError: max_attempts < 1.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except retry_on as e:
            if attempt >= max_attempts:
                logger.warning(
                    "retry.exhausted",
                    operation=operation_name,
                    attempts=attempt,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                raise RetryExhausted(operation_name, attempt, e) from e

            wait_seconds = delay(attempt)
            logger.info(
                "retry.scheduled",
                operation=operation_name,
                attempt=attempt,
                max_attempts=max_attempts,
                retry_in_seconds=wait_seconds,
                error_type=type(e).__name__,
                error=str(e),
            )
            await sleep(wait_seconds)
