"""Bounded retry for operations that can hit a not-ready remote.

The policy itself is a plain value (attempt count and delay sequence); the
async helper below is one way to drive it. Callers with other scheduling
needs can iterate ``RetryPolicy.delays()`` themselves.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from termdeck.errors import NotReadyError
from termdeck.logging import get_logger

if TYPE_CHECKING:
    from termdeck.config.schema import RetryConfig

log = get_logger("retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Linear backoff: the delay before attempt n+1 is ``base_delay * n``.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay: Seconds; the first retry waits this long.
    """

    max_attempts: int = 5
    base_delay: float = 0.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(max_attempts=config.max_attempts, base_delay=config.base_delay)

    def delays(self) -> Iterator[float]:
        """Delays to wait between attempts (``max_attempts - 1`` values)."""
        for attempt in range(1, self.max_attempts):
            yield self.base_delay * attempt


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (NotReadyError,),
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates immediately. After the last attempt the final error is
    re-raised unchanged.
    """
    delays = policy.delays()
    attempt = 1
    while True:
        try:
            return await operation()
        except retry_on as e:
            delay = next(delays, None)
            if delay is None:
                log.warning("%s failed after %d attempts: %s", description, attempt, e)
                raise
            log.info(
                "%s not ready (attempt %d/%d), retrying in %.1fs",
                description,
                attempt,
                policy.max_attempts,
                delay,
            )
            await sleep(delay)
            attempt += 1
