"""
Pytest configuration and shared fixtures for tierwise tests.
"""

import pytest
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tierwise.providers.base import TierHandler, TierRequest, TierResponse, TokenUsage
from tierwise.providers.registry import HandlerRegistry
from tierwise.tiers import Tier


class FakeClock:
    """Settable wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Async sleep stand-in that records requested delays and returns at once."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total_ms(self) -> int:
        return round(sum(self.calls) * 1000)


def make_response(content: str = "ok", total: int = 100, cost: float = 0.01, model: str = "fake") -> TierResponse:
    return TierResponse(
        content=content,
        tokens=TokenUsage(input=total // 2, output=total - total // 2, total=total),
        cost=cost,
        model=model,
    )


class ScriptedHandler(TierHandler):
    """
    Tier handler that plays back a script of outcomes.

    Each entry is either an exception to raise or a TierResponse to return.
    Once the script runs out, the last entry repeats.
    """

    def __init__(self, tier: Tier, script: list | None = None):
        super().__init__(tier)
        self.script = list(script) if script else [make_response(content=f"from {tier.value}")]
        self.requests: list[TierRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: TierRequest) -> TierResponse:
        self.requests.append(request)
        outcome = self.script[min(len(self.requests), len(self.script)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def clock():
    """A Wednesday afternoon."""
    return FakeClock(datetime(2026, 3, 4, 14, 0))


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def handlers():
    """One healthy scripted handler per tier."""
    return {tier: ScriptedHandler(tier) for tier in Tier}


@pytest.fixture
def registry(handlers):
    return HandlerRegistry(handlers)


@pytest.fixture
def config_dir(tmp_path):
    """Create a temporary config directory."""
    config = tmp_path / "config"
    config.mkdir()
    return config
