"""
Tiered router for tierwise.

Routes a request to a service tier and serves it. Supports:
- Complexity and mood based tier selection
- Budget-driven emergency capping
- Per-tier retry with fallback down the tier chain
- Usage tracking against the daily budget
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from tierwise.config.schema import Config
from tierwise.providers.base import TierRequest, TierResponse, TokenUsage
from tierwise.providers.registry import HandlerRegistry
from tierwise.resilience.fallback import FallbackChain
from tierwise.resilience.retry import RetryExecutor, SleepFn
from tierwise.resilience.trace import DecisionTrace
from tierwise.routing.classifier import ComplexityClassifier, ComplexityScore
from tierwise.routing.emotion import EmotionalContext, EmotionalContextAdviser
from tierwise.routing.selector import SelectionRules, TierSelector
from tierwise.tiers import Tier
from tierwise.tracking.budget import BudgetGovernor, BudgetSnapshot
from tierwise.tracking.reporting import AlertReporter
from tierwise.tracking.usage import UsageTracker


@dataclass
class RoutingDecision:
    """Which tier a request starts on, and why."""
    tier: Tier
    classification: ComplexityScore
    emotional_context: EmotionalContext
    budget: BudgetSnapshot

    @property
    def emergency(self) -> bool:
        return self.budget.emergency_mode


@dataclass
class RoutedResult:
    """A served request. `served_tier` may be lower than `requested_tier`."""
    content: str | None
    tokens: TokenUsage
    cost: float
    model: str
    requested_tier: Tier
    served_tier: Tier
    classification: ComplexityScore
    emotional_context: EmotionalContext
    emergency: bool
    trace: DecisionTrace = field(default_factory=DecisionTrace)

    @property
    def downgraded(self) -> bool:
        return self.served_tier != self.requested_tier

    def metadata(self) -> dict[str, Any]:
        return {
            "requested_tier": self.requested_tier.value,
            "served_tier": self.served_tier.value,
            "downgraded": self.downgraded,
            "emergency": self.emergency,
            "model": self.model,
            "tokens": self.tokens.to_dict(),
            "cost": self.cost,
            "score": self.classification.score,
            "mood": self.emotional_context.mood,
            "trace": self.trace.to_dict(),
        }


class TieredRouter:
    """
    Routes requests to tier handlers.

    Every collaborator is injected; the router owns no global state. The
    governor passed in is the single source of truth for emergency mode.
    """

    def __init__(
        self,
        handlers: HandlerRegistry,
        governor: BudgetGovernor,
        usage: UsageTracker | None = None,
        classifier: ComplexityClassifier | None = None,
        adviser: EmotionalContextAdviser | None = None,
        selector: TierSelector | None = None,
        fallback: FallbackChain | None = None,
    ):
        self.handlers = handlers
        self.governor = governor
        self.usage = usage or UsageTracker(governor)
        self.classifier = classifier or ComplexityClassifier()
        self.adviser = adviser or EmotionalContextAdviser()
        self.selector = selector or TierSelector()
        self.fallback = fallback or FallbackChain()

    def route(self, text: str, timestamp: datetime | None = None) -> RoutingDecision:
        """
        Decide the starting tier without calling any handler.

        Args:
            text: User message.
            timestamp: Arrival time for the emotional context; defaults to now.
        """
        score = self.classifier.classify(text)
        mood = self.adviser.advise(text, timestamp or self.governor.now())
        budget = self.governor.snapshot()
        tier = self.selector.select(score, mood, budget)

        logger.info(
            f"Routing: score={score.score:g} recommended={score.tier.value} "
            f"mood={mood.mood}/{mood.time_of_day} budget={budget.status.value} -> {tier.value}"
        )
        return RoutingDecision(tier=tier, classification=score, emotional_context=mood, budget=budget)

    async def handle(
        self,
        text: str,
        context: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
        timeout: float | None = None,
    ) -> RoutedResult:
        """
        Route and serve one request.

        Args:
            text: User message.
            context: Extra request context passed through to the handler.
            timestamp: Arrival time; defaults to the governor's clock.
            timeout: Overall deadline in seconds. On expiry the request and
                any pending backoff sleep are cancelled and
                asyncio.TimeoutError is raised.

        Returns:
            RoutedResult with the content and which tier served it.

        Raises:
            NoFallbackAvailable: every tier down to L1 was exhausted.
            TierCallError: a non-retryable failure.
        """
        if timeout is None:
            return await self._handle(text, context, timestamp)
        try:
            return await asyncio.wait_for(self._handle(text, context, timestamp), timeout)
        except asyncio.TimeoutError:
            logger.error(f"Request timed out after {timeout}s")
            raise

    async def _handle(
        self,
        text: str,
        context: dict[str, Any] | None,
        timestamp: datetime | None,
    ) -> RoutedResult:
        decision = self.route(text, timestamp)
        request = TierRequest(text=text, context=dict(context or {}))
        trace = DecisionTrace(requested_tier=decision.tier)

        async def call_tier(tier: Tier) -> TierResponse:
            return await self.handlers.get(tier).generate(request)

        response, served = await self.fallback.run(decision.tier, call_tier, trace)

        self.usage.track_usage(
            served,
            response.tokens.total,
            response.cost,
            model=response.model,
        )

        if served != decision.tier:
            logger.info(f"Served by {served.value} (requested {decision.tier.value})")

        return RoutedResult(
            content=response.content,
            tokens=response.tokens,
            cost=response.cost,
            model=response.model,
            requested_tier=decision.tier,
            served_tier=served,
            classification=decision.classification,
            emotional_context=decision.emotional_context,
            emergency=decision.emergency,
            trace=trace,
        )


def create_router_from_config(
    config: Config,
    handlers: HandlerRegistry | None = None,
    governor: BudgetGovernor | None = None,
    sleep: SleepFn | None = None,
    restore_usage: bool = True,
) -> TieredRouter:
    """
    Create a TieredRouter from configuration.

    Args:
        config: Loaded configuration.
        handlers: Handler registry; built from config (LiteLLM) if not given.
        governor: Budget governor; a fresh one if not given.
        sleep: Backoff sleep override (tests).
        restore_usage: Replay today's usage log into the governor.

    Returns:
        Configured TieredRouter instance.
    """
    governor = governor or BudgetGovernor(config.budget)
    reporter = AlertReporter.from_config(config.reporting)
    usage = UsageTracker.from_config(governor, config.usage, reporter=reporter)
    if restore_usage:
        usage.restore()

    return TieredRouter(
        handlers=handlers or HandlerRegistry.from_config(config),
        governor=governor,
        usage=usage,
        classifier=ComplexityClassifier(config.classifier),
        adviser=EmotionalContextAdviser(config.emotion),
        selector=TierSelector(SelectionRules.from_config(config.budget, config.emotion)),
        fallback=FallbackChain(
            RetryExecutor.from_config(config.retry, sleep=sleep),
            config.fallback_chain,
        ),
    )
