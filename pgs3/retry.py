# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bounded retry with exponential backoff.

Attempt n (counted from 1) that fails is followed by a sleep of
base_sleep ** n seconds, with no jitter. After the last attempt the
last exception propagates unchanged. The wrapped operation must be
safe to repeat; nothing from a failed attempt is rolled back.
"""

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Tuple, Type, TypeVar

import structlog

if TYPE_CHECKING:
    from pgs3.config import RunConfiguration

logger = structlog.get_logger()

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


def backoff_seconds(attempt: int, base_sleep: float) -> float:
    """Sleep after the given failed attempt (1-based)."""
    return base_sleep ** attempt


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_sleep: float = 2,
    description: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """
    Run operation, retrying on failure up to attempts times in total.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        attempts: Total attempt budget (>= 1)
        base_sleep: Backoff base in seconds
        description: Label used in retry log lines
        retry_on: Exception types that trigger a retry
        sleep: Awaitable sleep, injectable for tests

    Returns:
        The operation's result

    Raises:
        The last exception raised by operation once the budget is spent
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except retry_on as e:
            if attempt >= attempts:
                logger.error(
                    "retry_exhausted",
                    operation=description,
                    attempts=attempts,
                    error=str(e),
                )
                raise

            delay = backoff_seconds(attempt, base_sleep)
            logger.info(
                "retry_scheduled",
                operation=description,
                attempt=attempt,
                attempts=attempts,
                sleep_seconds=delay,
                error=str(e),
            )
            await sleep(delay)
            attempt += 1


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff base shared by a run's network calls."""

    attempts: int = 3
    base_sleep: float = 2
    sleep: SleepFunc = asyncio.sleep

    @classmethod
    def from_config(cls, config: "RunConfiguration", sleep: SleepFunc = asyncio.sleep) -> "RetryPolicy":
        return cls(
            attempts=config.retry_attempts,
            base_sleep=config.retry_base_sleep,
            sleep=sleep,
        )

    async def run(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        return await retry_async(
            operation,
            attempts=self.attempts,
            base_sleep=self.base_sleep,
            description=description,
            sleep=self.sleep,
        )
