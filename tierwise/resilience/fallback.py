"""
Fallback chain: walk down the tiers when one runs out of retries.
"""

from typing import Awaitable, Callable, TypeVar

from loguru import logger

from tierwise.resilience.errors import NoFallbackAvailable, TierCallError, TierExhausted
from tierwise.resilience.retry import RetryExecutor
from tierwise.resilience.trace import DecisionTrace, FallbackEvent
from tierwise.tiers import DEFAULT_FALLBACK_CHAIN, Tier, validate_fallback_chain

T = TypeVar("T")

TierCall = Callable[[Tier], Awaitable[T]]


class FallbackChain:
    """
    Serve a request starting at some tier, degrading along the fallback
    edges when a tier is exhausted.

    Each tier gets a full retry budget from the executor. Non-retryable
    errors are not absorbed here: they propagate from the tier where they
    happened without any further fallback, with the trace so far recorded
    (and attached to the error when it is a TierCallError).
    """

    def __init__(
        self,
        executor: RetryExecutor | None = None,
        edges: dict[Tier, Tier | None] | None = None,
    ):
        self.executor = executor or RetryExecutor()
        self.edges = dict(edges) if edges is not None else dict(DEFAULT_FALLBACK_CHAIN)
        validate_fallback_chain(self.edges)

    def next_tier(self, tier: Tier) -> Tier | None:
        return self.edges.get(tier)

    @staticmethod
    def _path(trace: DecisionTrace) -> str:
        return " -> ".join(t.value for t in trace.tiers_tried)

    async def run(
        self,
        start_tier: Tier,
        call_tier: TierCall,
        trace: DecisionTrace | None = None,
    ) -> tuple[T, Tier]:
        """
        Serve the request, falling back as needed.

        Args:
            start_tier: Tier chosen by the selector.
            call_tier: Coroutine function performing one call on a given tier.
            trace: Decision trace; one is created if not given.

        Returns:
            (response, served_tier)

        Raises:
            NoFallbackAvailable: the terminal tier was exhausted too.
            TierCallError: a non-retryable failure; `trace` is attached.
        """
        trace = trace if trace is not None else DecisionTrace()
        if trace.requested_tier is None:
            trace.requested_tier = start_tier
        tier = start_tier

        while True:
            try:
                response = await self.executor.execute(tier, lambda: call_tier(tier), trace)
            except TierExhausted as exc:
                destination = self.next_tier(tier)
                if destination is None:
                    trace.terminal_error = str(exc)
                    logger.error(
                        f"No fallback available after {tier.value} "
                        f"(tried {self._path(trace)}): {exc.last_error}"
                    )
                    raise NoFallbackAvailable(tier, exc.last_error, trace) from exc.last_error

                event = FallbackEvent(source=tier, destination=destination, reason=exc.reason)
                trace.record_fallback(event)
                logger.warning(
                    f"Falling back {tier.value} -> {destination.value} "
                    f"after {exc.attempts} attempts ({exc.reason})"
                )
                tier = destination
                continue
            except TierCallError as exc:
                trace.terminal_error = str(exc)
                exc.trace = trace
                logger.error(f"Request failed on {tier.value} (tried {self._path(trace)}): {exc}")
                raise
            except Exception as exc:
                trace.terminal_error = f"{tier.value} {type(exc).__name__}: {exc}"
                logger.error(f"Request failed on {tier.value} (tried {self._path(trace)}): {exc!r}")
                raise

            trace.served_tier = tier
            return response, tier
