"""
Error taxonomy for routed calls.

- TierCallError(kind in RETRYABLE_KINDS): transient, absorbed by retry
- TierExhausted: retries used up on one tier, consumed by the fallback chain
- NoFallbackAvailable: terminal, surfaced to the caller with its cause
- TierCallError(kind=OTHER) and anything else: non-retryable, surfaced at once
"""

from enum import Enum
from typing import TYPE_CHECKING

from tierwise.tiers import Tier

if TYPE_CHECKING:
    from tierwise.resilience.trace import DecisionTrace


class FailureKind(str, Enum):
    """Normalized provider failure categories."""
    RATE_LIMIT = "rate_limit"
    OVERLOADED = "overloaded"
    NETWORK = "network"
    OTHER = "other"


RETRYABLE_KINDS = frozenset({FailureKind.RATE_LIMIT, FailureKind.OVERLOADED, FailureKind.NETWORK})


class RoutingError(Exception):
    """Base class for routing failures."""


class TierCallError(RoutingError):
    """A tier handler call failed; `kind` says whether it is worth retrying."""

    def __init__(
        self,
        kind: FailureKind,
        message: str = "",
        tier: Tier | None = None,
        cause: BaseException | None = None,
    ):
        self.kind = kind
        self.tier = tier
        self.cause = cause
        # Set by the fallback chain when this error ends the request
        self.trace: "DecisionTrace | None" = None
        super().__init__(message or kind.value)

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def __str__(self) -> str:
        where = f"{self.tier.value} " if self.tier else ""
        return f"{where}{self.kind.value}: {self.args[0]}"


class TierExhausted(RoutingError):
    """Every attempt on a tier failed with a retryable error."""

    def __init__(self, tier: Tier, attempts: int, last_error: BaseException):
        self.tier = tier
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{tier.value} exhausted after {attempts} attempts: {last_error}")

    @property
    def reason(self) -> str:
        kind = getattr(self.last_error, "kind", None)
        return kind.value if isinstance(kind, FailureKind) else type(self.last_error).__name__


class NoFallbackAvailable(RoutingError):
    """The lowest tier was exhausted; there is nowhere left to fall back to."""

    def __init__(
        self,
        tier: Tier,
        cause: BaseException,
        trace: "DecisionTrace | None" = None,
    ):
        self.tier = tier
        self.cause = cause
        self.trace = trace
        super().__init__(f"No fallback available after {tier.value}: {cause}")
