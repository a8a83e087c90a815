"""Base tier handler interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from tierwise.tiers import Tier


@dataclass(frozen=True)
class TierRequest:
    """Normalized request handed to a tier handler."""
    text: str
    context: dict[str, Any] = field(default_factory=dict)
    system_prompt: str | None = None

    def to_messages(self) -> list[dict[str, Any]]:
        """Build an OpenAI-style message list."""
        messages: list[dict[str, Any]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        history = self.context.get("history") or []
        messages.extend(history)
        messages.append({"role": "user", "content": self.text})
        return messages


@dataclass(frozen=True)
class TokenUsage:
    input: int = 0
    output: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"input": self.input, "output": self.output, "total": self.total}


@dataclass(frozen=True)
class TierResponse:
    """What a tier handler returns. `content` is opaque to the router."""
    content: str | None
    tokens: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0
    model: str = ""


class TierHandler(ABC):
    """
    Abstract base class for tier handlers.

    Implementations must report every failure as TierCallError with a
    normalized FailureKind; the retry and fallback layers never look at
    provider-specific exceptions.
    """

    def __init__(self, tier: Tier):
        self.tier = tier

    @abstractmethod
    async def generate(self, request: TierRequest) -> TierResponse:
        """
        Serve one request on this tier.

        Args:
            request: The normalized request.

        Returns:
            TierResponse with content, token usage and cost.

        Raises:
            TierCallError: on any provider failure.
        """
        pass

    def describe(self) -> str:
        """Short human readable description (model name for LLM handlers)."""
        return type(self).__name__
