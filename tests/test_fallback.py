"""
Tests for the fallback chain and tier tables.
"""

import pytest
from loguru import logger

from tierwise.resilience.errors import FailureKind, NoFallbackAvailable, TierCallError
from tierwise.resilience.fallback import FallbackChain
from tierwise.resilience.retry import RetryExecutor
from tierwise.resilience.trace import DecisionTrace
from tierwise.tiers import DEFAULT_FALLBACK_CHAIN, Tier, fallback_path, validate_fallback_chain


class TestFallbackTable:
    """Static edge table invariants."""

    @pytest.mark.parametrize("start", list(Tier))
    def test_terminates_at_l1_within_four_hops(self, start):
        path = fallback_path(start)
        assert path[-1] == Tier.L1
        assert len(path) - 1 <= 4
        assert len(set(path)) == len(path)

    def test_default_chain_is_valid(self):
        validate_fallback_chain(DEFAULT_FALLBACK_CHAIN)

    def test_cycle_rejected(self):
        chain = dict(DEFAULT_FALLBACK_CHAIN)
        chain[Tier.L2] = Tier.L4
        with pytest.raises(ValueError):
            validate_fallback_chain(chain)

    def test_extra_terminal_rejected(self):
        chain = dict(DEFAULT_FALLBACK_CHAIN)
        chain[Tier.L3] = None
        with pytest.raises(ValueError, match="terminate only at L1"):
            validate_fallback_chain(chain)

    def test_missing_tier_rejected(self):
        chain = dict(DEFAULT_FALLBACK_CHAIN)
        del chain[Tier.L4]
        with pytest.raises(ValueError, match="missing"):
            validate_fallback_chain(chain)


def failing_tiers(*tiers: Tier, kind: FailureKind = FailureKind.OVERLOADED):
    """call_tier that fails on the given tiers and succeeds elsewhere."""
    calls: list[Tier] = []

    async def call_tier(tier: Tier) -> str:
        calls.append(tier)
        if tier in tiers:
            raise TierCallError(kind, f"{tier.value} down", tier=tier)
        return f"served by {tier.value}"

    return call_tier, calls


class TestFallbackChain:
    """Walking down the tiers."""

    @pytest.mark.asyncio
    async def test_no_failure_serves_requested_tier(self, recording_sleep):
        chain = FallbackChain(RetryExecutor(sleep=recording_sleep))
        call_tier, calls = failing_tiers()

        response, served = await chain.run(Tier.L4, call_tier)

        assert (response, served) == ("served by L4", Tier.L4)
        assert calls == [Tier.L4]

    @pytest.mark.asyncio
    async def test_falls_back_one_tier(self, recording_sleep):
        chain = FallbackChain(RetryExecutor(max_retries=3, sleep=recording_sleep))
        call_tier, calls = failing_tiers(Tier.L5)
        trace = DecisionTrace()

        response, served = await chain.run(Tier.L5, call_tier, trace)

        assert served == Tier.L4
        assert calls == [Tier.L5] * 4 + [Tier.L4]
        assert len(trace.fallbacks) == 1
        event = trace.fallbacks[0]
        assert (event.source, event.destination, event.reason) == (Tier.L5, Tier.L4, "overloaded")
        assert trace.requested_tier == Tier.L5
        assert trace.served_tier == Tier.L4
        assert len(trace.retries) == 3

    @pytest.mark.asyncio
    async def test_each_tier_gets_full_retry_budget(self, recording_sleep):
        chain = FallbackChain(RetryExecutor(max_retries=2, base_delay_ms=10, sleep=recording_sleep))
        call_tier, calls = failing_tiers(Tier.L3, Tier.L2)

        _, served = await chain.run(Tier.L3, call_tier)

        assert served == Tier.L1
        assert calls.count(Tier.L3) == 3
        assert calls.count(Tier.L2) == 3
        assert recording_sleep.total_ms == 2 * (10 + 20)

    @pytest.mark.asyncio
    async def test_all_tiers_down_raises_terminal_error(self, recording_sleep):
        chain = FallbackChain(RetryExecutor(max_retries=1, sleep=recording_sleep))
        call_tier, calls = failing_tiers(*Tier, kind=FailureKind.NETWORK)
        trace = DecisionTrace()

        with pytest.raises(NoFallbackAvailable) as exc_info:
            await chain.run(Tier.L5, call_tier, trace)

        err = exc_info.value
        assert err.tier == Tier.L1
        assert isinstance(err.cause, TierCallError)
        assert err.cause.tier == Tier.L1
        assert err.__cause__ is err.cause
        assert err.trace is trace
        assert [e.destination for e in trace.fallbacks] == [Tier.L4, Tier.L3, Tier.L2, Tier.L1]
        assert trace.served_tier is None
        assert trace.terminal_error

    @pytest.mark.asyncio
    async def test_non_retryable_does_not_fall_back(self, recording_sleep):
        chain = FallbackChain(RetryExecutor(sleep=recording_sleep))
        call_tier, calls = failing_tiers(Tier.L4, kind=FailureKind.OTHER)
        trace = DecisionTrace()

        with pytest.raises(TierCallError):
            await chain.run(Tier.L4, call_tier, trace)

        assert calls == [Tier.L4]
        assert trace.fallbacks == []

    @pytest.mark.asyncio
    async def test_non_retryable_after_fallback_keeps_trace(self, recording_sleep):
        chain = FallbackChain(RetryExecutor(max_retries=3, sleep=recording_sleep))
        calls: list[Tier] = []

        async def call_tier(tier: Tier) -> str:
            calls.append(tier)
            if tier == Tier.L5:
                raise TierCallError(FailureKind.RATE_LIMIT, "slow down", tier=tier)
            raise TierCallError(FailureKind.OTHER, "401 auth", tier=tier)

        trace = DecisionTrace()
        messages: list[str] = []
        sink_id = logger.add(lambda m: messages.append(str(m)), level="DEBUG", format="{message}")
        try:
            with pytest.raises(TierCallError) as exc_info:
                await chain.run(Tier.L5, call_tier, trace)
        finally:
            logger.remove(sink_id)

        err = exc_info.value
        assert err.kind == FailureKind.OTHER
        assert err.trace is trace
        assert calls == [Tier.L5] * 4 + [Tier.L4]
        assert len(trace.retries) == 3
        assert [(e.source, e.destination) for e in trace.fallbacks] == [(Tier.L5, Tier.L4)]
        assert "401 auth" in trace.terminal_error
        assert trace.served_tier is None
        assert trace.tiers_tried == [Tier.L5, Tier.L4]
        assert trace.to_dict()["tiers_tried"] == ["L5", "L4"]
        assert any("401 auth" in m and "L4" in m for m in messages)

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_recorded(self, recording_sleep):
        chain = FallbackChain(RetryExecutor(sleep=recording_sleep))

        async def call_tier(tier: Tier) -> str:
            raise KeyError("choices")

        trace = DecisionTrace()
        with pytest.raises(KeyError):
            await chain.run(Tier.L3, call_tier, trace)

        assert "KeyError" in trace.terminal_error
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_starting_at_l1_has_nowhere_to_go(self, recording_sleep):
        chain = FallbackChain(RetryExecutor(max_retries=0, sleep=recording_sleep))
        call_tier, calls = failing_tiers(Tier.L1)

        with pytest.raises(NoFallbackAvailable):
            await chain.run(Tier.L1, call_tier)
        assert calls == [Tier.L1]

    def test_invalid_edges_rejected(self):
        edges = dict(DEFAULT_FALLBACK_CHAIN)
        edges[Tier.L1] = Tier.L5
        with pytest.raises(ValueError):
            FallbackChain(edges=edges)
