"""
Static Tier -> handler table.

Handlers are built once at startup from a table of factories, so the
fallback chain can look up the next tier's handler without any module
importing another tier's code.
"""

from typing import Callable, Mapping

from tierwise.config.schema import Config, TierModelConfig
from tierwise.providers.base import TierHandler
from tierwise.providers.litellm_provider import LiteLLMTierHandler
from tierwise.tiers import Tier

HandlerFactory = Callable[[Tier, TierModelConfig], TierHandler]


class HandlerRegistry:
    """Resolved handlers, one per tier."""

    def __init__(self, handlers: Mapping[Tier, TierHandler]):
        missing = [t.value for t in Tier if t not in handlers]
        if missing:
            raise ValueError(f"No handler registered for tiers: {', '.join(missing)}")
        self._handlers = dict(handlers)

    @classmethod
    def from_config(
        cls,
        config: Config,
        factories: Mapping[Tier, HandlerFactory] | None = None,
    ) -> "HandlerRegistry":
        """
        Build every tier's handler.

        Args:
            config: Loaded configuration.
            factories: Per-tier overrides; tiers not listed use LiteLLMTierHandler.
        """
        factories = factories or {}
        return cls({
            tier: factories.get(tier, LiteLLMTierHandler)(tier, config.tiers[tier])
            for tier in Tier
        })

    def get(self, tier: Tier) -> TierHandler:
        return self._handlers[tier]

    def __getitem__(self, tier: Tier) -> TierHandler:
        return self._handlers[tier]
