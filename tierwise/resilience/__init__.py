"""Retry, fallback and the error taxonomy they share."""

from tierwise.resilience.errors import (
    RETRYABLE_KINDS,
    FailureKind,
    NoFallbackAvailable,
    RoutingError,
    TierCallError,
    TierExhausted,
)
from tierwise.resilience.fallback import FallbackChain
from tierwise.resilience.retry import RetryExecutor, backoff_delay_ms
from tierwise.resilience.trace import DecisionTrace, FallbackEvent, RetryEvent

__all__ = [
    "RETRYABLE_KINDS",
    "FailureKind",
    "RoutingError",
    "TierCallError",
    "TierExhausted",
    "NoFallbackAvailable",
    "RetryExecutor",
    "backoff_delay_ms",
    "FallbackChain",
    "DecisionTrace",
    "RetryEvent",
    "FallbackEvent",
]
