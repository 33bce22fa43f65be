"""
Retry Helper

Exponential backoff for fallible remote calls (embedding generation,
agent matching, source sync).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar, Union

from .config import RetryConfig

logger = logging.getLogger("cortex.common.retry")

T = TypeVar("T")

RetryOn = Union[
    Tuple[Type[BaseException], ...],
    Callable[[BaseException], bool],
]


def _is_retryable(error: Exception, retry_on: RetryOn) -> bool:
    if isinstance(retry_on, type):
        retry_on = (retry_on,)
    if callable(retry_on) and not isinstance(retry_on, tuple):
        return bool(retry_on(error))
    if not retry_on:
        return True
    return isinstance(error, retry_on)


async def with_retry_for(
    operation: Callable[[], Awaitable[T]],
    *,
    retry_on: RetryOn = (),
    max_attempts: int = 3,
    initial_delay: float = 0.1,
    max_delay: float = 2.0,
    factor: float = 2.0,
) -> T:
    """
    Run ``operation`` and retry only failures matching ``retry_on``.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        retry_on: Exception classes or a predicate; empty retries everything
        max_attempts: Total attempts including the first one
        initial_delay: Delay before the first retry (seconds)
        max_delay: Upper bound for any single delay
        factor: Multiplier applied to the delay after each retry

    Returns:
        The first successful result

    Raises:
        The last failure once attempts are exhausted, or immediately any
        failure that ``retry_on`` does not match.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    current_delay = initial_delay
    last_error: Exception | None = None

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not _is_retryable(e, retry_on):
                raise

            last_error = e
            if attempt < max_attempts - 1:
                logger.warning(
                    "Attempt %d/%d failed: %s, retrying in %.3fs",
                    attempt + 1, max_attempts, e, current_delay,
                )
                await asyncio.sleep(current_delay)
                current_delay = min(current_delay * factor, max_delay)

    raise last_error


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 0.1,
    max_delay: float = 2.0,
    factor: float = 2.0,
) -> T:
    """Run ``operation`` with exponential backoff, retrying any failure."""
    return await with_retry_for(
        operation,
        retry_on=(),
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        factor=factor,
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings bound to a callable, built from RetryConfig"""
    max_attempts: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0
    factor: float = 2.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            initial_delay=config.initial_delay,
            max_delay=config.max_delay,
            factor=config.factor,
        )

    async def run(self, operation: Callable[[], Awaitable[T]], retry_on: RetryOn = ()) -> T:
        return await with_retry_for(
            operation,
            retry_on=retry_on,
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            factor=self.factor,
        )
