"""
Per-tier retry with exponential backoff.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from tierwise.config.schema import RetryConfig
from tierwise.resilience.errors import TierCallError, TierExhausted
from tierwise.resilience.trace import DecisionTrace, RetryEvent
from tierwise.tiers import Tier

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


def backoff_delay_ms(attempt: int, base_delay_ms: int) -> int:
    """Delay before `attempt` (1-based retry index): base * 2^(attempt-1)."""
    if attempt <= 0:
        return 0
    return base_delay_ms * (2 ** (attempt - 1))


class RetryExecutor:
    """
    Runs one tier call with up to `max_retries` retries.

    Attempt 0 runs immediately; attempt k waits base_delay_ms * 2^(k-1)
    first. Only TierCallError with a retryable kind is retried. Any other
    exception propagates on the spot. When every attempt fails with a
    retryable error, TierExhausted is raised carrying the last error.

    The sleep function is injectable so tests can record delays instead of
    waiting on them.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        sleep: SleepFn | None = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_config(cls, config: RetryConfig, sleep: SleepFn | None = None) -> "RetryExecutor":
        return cls(max_retries=config.max_retries, base_delay_ms=config.base_delay_ms, sleep=sleep)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def execute(
        self,
        tier: Tier,
        request_fn: Callable[[], Awaitable[T]],
        trace: DecisionTrace | None = None,
    ) -> T:
        """
        Call `request_fn` until it succeeds or the retry budget is spent.

        Args:
            tier: Tier being called (for logging and the trace).
            request_fn: Zero-argument coroutine factory; called once per attempt.
            trace: Optional decision trace that receives a RetryEvent per retry.

        Returns:
            Whatever `request_fn` returns on its first success.
        """
        last_error: TierCallError | None = None

        for attempt in range(self.max_attempts):
            if attempt > 0:
                delay_ms = backoff_delay_ms(attempt, self.base_delay_ms)
                reason = last_error.kind.value if last_error else "unknown"
                logger.warning(
                    f"{tier.value} retry {attempt}/{self.max_retries} after {reason}, "
                    f"waiting {delay_ms}ms"
                )
                if trace is not None:
                    trace.record_retry(RetryEvent(tier=tier, attempt=attempt, delay_ms=delay_ms, reason=reason))
                await self._sleep(delay_ms / 1000)

            try:
                return await request_fn()
            except TierCallError as e:
                if not e.retryable:
                    logger.error(
                        f"{tier.value} attempt {attempt} failed ({e.kind.value}), not retrying: {e}"
                    )
                    raise
                last_error = e

        assert last_error is not None
        raise TierExhausted(tier, self.max_attempts, last_error)
