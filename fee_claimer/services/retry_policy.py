"""
Exponential backoff for RPC-throttled operations.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from fee_claimer.core.exceptions import RpcFailureKind, classify_rpc_failure


logger = structlog.get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

RETRYABLE_KINDS = (RpcFailureKind.ACCESS_DENIED, RpcFailureKind.RATE_LIMITED)


class RetryPolicy:
    """
    Retry an async operation while it fails with access-denied or
    rate-limited errors.

    Attempt ``i`` (zero based) that fails retryably is followed by a sleep of
    ``base_delay * 2**i``. After ``max_retries`` attempts in total, or on any
    other error, the error propagates immediately.
    """

    def __init__(self, max_retries: int = 3, base_delay: float = 1.0, sleep: Sleep = asyncio.sleep):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep
        self.logger = logger.bind(service="retry_policy")

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        return classify_rpc_failure(error) in RETRYABLE_KINDS

    def delay_for(self, attempt_index: int) -> float:
        return self.base_delay * (2 ** attempt_index)

    def should_retry(self, error: BaseException, attempt_index: int) -> bool:
        return self.is_retryable(error) and attempt_index + 1 < self.max_retries

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        on_retry: Optional[Callable[[int, BaseException], None]] = None
    ) -> T:
        """
        Run ``operation`` under the policy.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            on_retry: Called with (attempt_index, error) before each backoff

        Returns:
            The first successful result
        """
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                if not self.should_retry(e, attempt):
                    raise

                delay = self.delay_for(attempt)
                self.logger.warning(
                    "Retryable RPC failure, backing off",
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay=delay,
                    error=str(e)
                )
                if on_retry is not None:
                    on_retry(attempt, e)

                await self._sleep(delay)
                attempt += 1
