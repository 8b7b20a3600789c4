"""
Retry Scheduler — bounded, fixed-delay retries around one logical request.

The wrapped operation is awaited up to policy.attempts times. Between
attempts the scheduler sleeps delay_ms (no backoff). Only retry-eligible
kinds (Network, Server, RateLimited) are retried; everything else is raised
on the spot. Without a policy exactly one attempt is made.

Both the request and the sleep are await points, so cancelling the calling
task stops the loop before the next attempt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from recall.core.classify import (
    classify_response,
    classify_transport_error,
    is_retry_eligible,
)
from recall.core.config import RetryPolicy
from recall.core.errors import ErrorKind, MemoryOperationError, describe

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[httpx.Response]]
Sleeper = Callable[[float], Awaitable[None]]


class RetryScheduler:
    """
    Runs an operation under a RetryPolicy.

    Usage:
        scheduler = RetryScheduler(RetryPolicy(attempts=3, delay_ms=200))
        response = await scheduler.execute(
            lambda: client.get(url), key="user/1", operation_name="get"
        )

    Returns the first 2xx response. Raises MemoryOperationError with the
    final classified kind; per-attempt errors are never accumulated.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._policy = policy
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self._policy.attempts if self._policy else 1

    @property
    def delay_seconds(self) -> float:
        return self._policy.delay_ms / 1000 if self._policy else 0.0

    async def execute(
        self,
        operation: Operation,
        key: str | None = None,
        operation_name: str = "",
    ) -> httpx.Response:
        attempt = 0
        while True:
            attempt += 1
            kind: ErrorKind
            try:
                response = await operation()
            except httpx.RequestError as e:
                kind = classify_transport_error(e)
            else:
                if response.is_success:
                    if attempt > 1:
                        logger.debug(f"{operation_name} succeeded on attempt {attempt}")
                    return response
                kind = classify_response(response, key=key)

            if not is_retry_eligible(kind):
                raise MemoryOperationError(kind, operation=operation_name)

            if attempt >= self.max_attempts:
                if self.max_attempts > 1:
                    logger.warning(
                        f"{operation_name} gave up after {attempt} attempts: {describe(kind)}"
                    )
                raise MemoryOperationError(kind, operation=operation_name)

            logger.warning(
                f"{operation_name} attempt {attempt}/{self.max_attempts} failed "
                f"({describe(kind)}), retrying in {self.delay_seconds:.3f}s"
            )
            await self._sleep(self.delay_seconds)
