"""Retry executor for store operations with capped exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Awaitable, Callable, Iterator, TypeVar

from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    PyMongoError,
    WriteError,
    WTimeoutError,
)

from pyseek.utils.exceptions import PyseekError

logger = logging.getLogger(__name__)

R = TypeVar("R")

_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    ConnectionFailure,
    ExecutionTimeout,
    WTimeoutError,
    ConnectionError,
    TimeoutError,
)

_TERMINAL_TYPES: tuple[type[BaseException], ...] = (
    PyseekError,
    DuplicateKeyError,
    WriteError,
    ValueError,
    TypeError,
    LookupError,
)

_TRANSIENT_LABELS = ("RetryableWriteError", "TransientTransactionError")

_TRANSIENT_MESSAGE = re.compile(
    r"ECONNREFUSED|ECONNRESET|ETIMEDOUT|ENETUNREACH|EHOSTUNREACH|EAI_AGAIN"
    r"|connection (?:refused|reset|closed)"
    r"|timed?[ _-]?out"
    r"|network (?:is )?unreachable"
    r"|network error",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings for one call site.

    Delays are in milliseconds. ``max_elapsed_ms`` caps the wall-clock time
    spent across all attempts; ``attempt_timeout_ms`` bounds each attempt.
    """

    max_retries: int = 3
    initial_delay_ms: float = 100.0
    backoff_multiplier: float = 2.0
    max_delay_ms: float = 5000.0
    max_elapsed_ms: float | None = 30000.0
    attempt_timeout_ms: float | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_ms < 0:
            raise ValueError("initial_delay_ms must be >= 0")
        if self.backoff_multiplier <= 1:
            raise ValueError("backoff_multiplier must be > 1")
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must be >= initial_delay_ms")
        if self.max_elapsed_ms is not None and self.max_elapsed_ms <= 0:
            raise ValueError("max_elapsed_ms must be > 0")
        if self.attempt_timeout_ms is not None and self.attempt_timeout_ms <= 0:
            raise ValueError("attempt_timeout_ms must be > 0")

    def delay_for(self, retry_number: int) -> float:
        """Delay in ms before retry ``retry_number`` (1-based)."""
        if retry_number < 1:
            raise ValueError("retry_number must be >= 1")
        delay = self.initial_delay_ms * self.backoff_multiplier ** (retry_number - 1)
        return min(delay, self.max_delay_ms)

    def delays(self) -> Iterator[float]:
        """Yield the full backoff schedule."""
        for retry_number in range(1, self.max_retries + 1):
            yield self.delay_for(retry_number)


DEFAULT_RETRY_POLICY = RetryPolicy()


def is_retryable(exc: BaseException) -> bool:
    """Classify an error as transient (retry) or terminal (fail fast)."""
    if isinstance(exc, _TERMINAL_TYPES):
        return False
    if isinstance(exc, _TRANSIENT_TYPES):
        return True
    if isinstance(exc, PyMongoError) and any(
        exc.has_error_label(label) for label in _TRANSIENT_LABELS
    ):
        return True
    return bool(_TRANSIENT_MESSAGE.search(str(exc)))


async def _attempt(operation: Callable[[], Awaitable[R]], policy: RetryPolicy) -> R:
    if policy.attempt_timeout_ms is None:
        return await operation()
    return await asyncio.wait_for(operation(), timeout=policy.attempt_timeout_ms / 1000)


async def execute_with_retry(
    operation: Callable[[], Awaitable[R]],
    policy: RetryPolicy | None = None,
    *,
    operation_name: str = "operation",
    on_retry: Callable[[int, BaseException, float], Any] | None = None,
) -> R:
    """Run ``operation`` and retry it on transient failures.

    Terminal errors propagate on the first attempt. When retries or the
    elapsed-time budget run out the last error is re-raised as is.

    Args:
        operation: Zero-argument coroutine function
        policy: Backoff settings (defaults to DEFAULT_RETRY_POLICY)
        operation_name: Name used in log messages only
        on_retry: Called as ``on_retry(retry_number, error, delay_ms)`` before
            each backoff sleep

    Returns:
        Whatever the operation returns
    """
    policy = policy or DEFAULT_RETRY_POLICY
    start = time.monotonic()
    retries = 0

    while True:
        try:
            result = await _attempt(operation, policy)
        except Exception as e:
            if not is_retryable(e):
                logger.debug("%s failed with non-retryable error: %s", operation_name, e)
                raise

            if retries >= policy.max_retries:
                logger.error(
                    "%s failed after %d attempts: %s", operation_name, retries + 1, e
                )
                raise

            retries += 1
            delay_ms = policy.delay_for(retries)
            elapsed_ms = (time.monotonic() - start) * 1000
            if policy.max_elapsed_ms is not None and elapsed_ms + delay_ms > policy.max_elapsed_ms:
                logger.error(
                    "%s gave up after %.0fms (budget %.0fms): %s",
                    operation_name,
                    elapsed_ms,
                    policy.max_elapsed_ms,
                    e,
                )
                raise

            logger.warning(
                "Retrying %s in %.0fms (retry %d/%d): %s",
                operation_name,
                delay_ms,
                retries,
                policy.max_retries,
                e,
            )
            if on_retry is not None:
                on_retry(retries, e, delay_ms)
            await asyncio.sleep(delay_ms / 1000)
            continue

        if retries:
            logger.info("%s succeeded after %d retries", operation_name, retries)
        return result


def retrying(
    policy: RetryPolicy | None = None, operation_name: str | None = None
) -> Callable[[Callable[..., Awaitable[R]]], Callable[..., Awaitable[R]]]:
    """Decorator form of execute_with_retry for async functions."""

    def decorator(func: Callable[..., Awaitable[R]]) -> Callable[..., Awaitable[R]]:
        name = operation_name or func.__qualname__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> R:
            return await execute_with_retry(
                lambda: func(*args, **kwargs), policy, operation_name=name
            )

        return wrapper

    return decorator
