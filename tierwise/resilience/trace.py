"""
Decision trace: the observable record of one request's path through the
retry loop and the fallback chain.
"""

import time
from dataclasses import dataclass, field
from typing import Any

from tierwise.tiers import Tier


@dataclass(frozen=True)
class RetryEvent:
    """A retry about to happen on a tier."""
    tier: Tier
    attempt: int  # Index of the attempt being retried into (1..max_retries)
    delay_ms: int
    reason: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class FallbackEvent:
    """A downgrade from one tier to the next."""
    source: Tier
    destination: Tier
    reason: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class DecisionTrace:
    """Everything needed to reconstruct how a request was served (or not)."""
    requested_tier: Tier | None = None
    served_tier: Tier | None = None
    retries: list[RetryEvent] = field(default_factory=list)
    fallbacks: list[FallbackEvent] = field(default_factory=list)
    terminal_error: str = ""

    def record_retry(self, event: RetryEvent) -> None:
        self.retries.append(event)

    def record_fallback(self, event: FallbackEvent) -> None:
        self.fallbacks.append(event)

    @property
    def total_delay_ms(self) -> int:
        return sum(e.delay_ms for e in self.retries)

    @property
    def tiers_tried(self) -> list[Tier]:
        tried = [self.requested_tier] if self.requested_tier else []
        tried.extend(e.destination for e in self.fallbacks)
        return tried

    def to_dict(self) -> dict[str, Any]:
        return {
            "requested_tier": self.requested_tier.value if self.requested_tier else None,
            "served_tier": self.served_tier.value if self.served_tier else None,
            "tiers_tried": [t.value for t in self.tiers_tried],
            "retries": [
                {"tier": e.tier.value, "attempt": e.attempt, "delay_ms": e.delay_ms, "reason": e.reason}
                for e in self.retries
            ],
            "fallbacks": [
                {"from": e.source.value, "to": e.destination.value, "reason": e.reason}
                for e in self.fallbacks
            ],
            "terminal_error": self.terminal_error,
        }
