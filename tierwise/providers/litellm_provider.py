"""LiteLLM tier handler and provider failure normalization."""

import asyncio
import errno
import socket
from typing import Any

import httpx
import litellm
from litellm import acompletion
from loguru import logger

from tierwise.config.schema import TierModelConfig
from tierwise.providers.base import TierHandler, TierRequest, TierResponse, TokenUsage
from tierwise.resilience.errors import FailureKind, TierCallError
from tierwise.tiers import Tier


OVERLOADED_STATUS_CODES = {503, 529}
RATE_LIMIT_STATUS_CODES = {429}
NETWORK_ERRNOS = {errno.ECONNRESET, errno.ETIMEDOUT, errno.ECONNREFUSED}


def classify_failure(exc: BaseException) -> FailureKind:
    """
    Map any provider/transport exception onto a FailureKind.

    Order matters: litellm's own exception classes first, then a generic
    HTTP status code, then transport level errors. Anything unrecognized
    (auth failures, bad requests, programmer errors) is OTHER.
    """
    if isinstance(exc, TierCallError):
        return exc.kind

    if isinstance(exc, litellm.RateLimitError):
        return FailureKind.RATE_LIMIT
    if isinstance(exc, (litellm.Timeout, litellm.APIConnectionError)):
        return FailureKind.NETWORK

    status = getattr(exc, "status_code", None)
    if status in RATE_LIMIT_STATUS_CODES:
        return FailureKind.RATE_LIMIT
    if status in OVERLOADED_STATUS_CODES:
        return FailureKind.OVERLOADED
    if isinstance(exc, litellm.ServiceUnavailableError):
        return FailureKind.OVERLOADED

    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException)):
        return FailureKind.NETWORK
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, socket.gaierror)):
        return FailureKind.NETWORK
    if isinstance(exc, (ConnectionResetError, ConnectionRefusedError)):
        return FailureKind.NETWORK
    if isinstance(exc, OSError) and exc.errno in NETWORK_ERRNOS:
        return FailureKind.NETWORK

    return FailureKind.OTHER


class LiteLLMTierHandler(TierHandler):
    """
    Tier handler backed by LiteLLM.

    One instance per tier; the model, key, base URL and sampling settings
    come from that tier's TierModelConfig.
    """

    def __init__(self, tier: Tier, config: TierModelConfig):
        super().__init__(tier)
        self.config = config

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True

    def describe(self) -> str:
        return self.config.model

    async def generate(self, request: TierRequest) -> TierResponse:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": request.to_messages(),
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            kind = classify_failure(e)
            logger.debug(f"{self.tier.value} ({self.config.model}) call failed: {kind.value}: {e}")
            raise TierCallError(kind, str(e), tier=self.tier, cause=e) from e

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> TierResponse:
        """Parse a LiteLLM response into a TierResponse."""
        choice = response.choices[0]

        usage = TokenUsage()
        if hasattr(response, "usage") and response.usage:
            prompt = response.usage.prompt_tokens or 0
            completion = response.usage.completion_tokens or 0
            usage = TokenUsage(
                input=prompt,
                output=completion,
                total=response.usage.total_tokens or prompt + completion,
            )

        return TierResponse(
            content=choice.message.content,
            tokens=usage,
            cost=self._estimate_cost(response, usage),
            model=getattr(response, "model", None) or self.config.model,
        )

    def _estimate_cost(self, response: Any, usage: TokenUsage) -> float:
        """Configured flat rate if set, otherwise litellm's price table."""
        if self.config.cost_per_1k_tokens is not None:
            return usage.total / 1000 * self.config.cost_per_1k_tokens
        try:
            return float(litellm.completion_cost(completion_response=response) or 0.0)
        except Exception as e:
            logger.warning(f"No price for {self.config.model}, recording cost 0: {e}")
            return 0.0
