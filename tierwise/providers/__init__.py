"""Tier handler abstraction module."""

from tierwise.providers.base import TierHandler, TierRequest, TierResponse, TokenUsage
from tierwise.providers.litellm_provider import LiteLLMTierHandler, classify_failure
from tierwise.providers.registry import HandlerRegistry

__all__ = [
    "TierHandler",
    "TierRequest",
    "TierResponse",
    "TokenUsage",
    "LiteLLMTierHandler",
    "classify_failure",
    "HandlerRegistry",
]
