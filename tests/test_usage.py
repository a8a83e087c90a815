"""
Tests for usage tracking and the usage log.
"""

import json
from datetime import timedelta

import pytest
from loguru import logger

from tierwise.config.schema import BudgetConfig, UsageLogConfig
from tierwise.tiers import Tier
from tierwise.tracking.budget import BudgetGovernor
from tierwise.tracking.usage import UsageRecord, UsageTracker


@pytest.fixture
def governor(clock):
    return BudgetGovernor(BudgetConfig(daily_budget=10.0), clock=clock)


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "usage" / "usage.jsonl"


class TestTrackUsage:
    """Recording calls."""

    def test_records_and_forwards_to_governor(self, governor, clock):
        tracker = UsageTracker(governor)

        record = tracker.track_usage(Tier.L3, 1200, 0.25, model="glm-4-plus")

        assert record == UsageRecord(
            timestamp=clock.now, tier=Tier.L3, tokens=1200, cost=0.25, model="glm-4-plus"
        )
        assert tracker.records == [record]
        snap = governor.snapshot()
        assert snap.cumulative_tokens == 1200
        assert snap.cumulative_cost == pytest.approx(0.25)

    def test_summary_by_tier(self, governor):
        tracker = UsageTracker(governor)
        tracker.track_usage(Tier.L1, 100, 0.01)
        tracker.track_usage(Tier.L1, 50, 0.02)
        tracker.track_usage(Tier.L5, 1000, 1.0)

        summary = tracker.summary()

        assert summary.request_count == 3
        assert summary.tokens == 1150
        assert summary.cost == pytest.approx(1.03)
        assert summary.percentage == pytest.approx(0.103)
        assert not summary.emergency_mode
        assert summary.by_tier[Tier.L1].requests == 2
        assert summary.by_tier[Tier.L1].tokens == 150
        assert summary.by_tier[Tier.L5].cost == pytest.approx(1.0)
        assert summary.to_dict()["by_tier"]["L5"]["requests"] == 1

    def test_summary_after_rollover_is_empty(self, governor, clock):
        tracker = UsageTracker(governor)
        tracker.track_usage(Tier.L4, 100, 9.5)
        clock.advance(days=1)

        summary = tracker.summary()
        assert summary.request_count == 0
        assert summary.by_tier == {}
        assert not summary.emergency_mode

    def test_memory_cap(self, governor):
        tracker = UsageTracker(governor, max_records=3)
        for i in range(5):
            tracker.track_usage(Tier.L1, i, 0.0)

        assert [r.tokens for r in tracker.records] == [2, 3, 4]
        assert governor.snapshot().request_count == 5

    def test_rejects_negative(self, governor):
        with pytest.raises(ValueError):
            UsageTracker(governor).track_usage(Tier.L1, -5, 0.0)

    def test_alerts_go_to_reporter(self, governor):
        class Reporter:
            def __init__(self):
                self.batches = []

            def report(self, alerts):
                self.batches.append(alerts)

        reporter = Reporter()
        tracker = UsageTracker(governor, reporter=reporter)
        tracker.track_usage(Tier.L1, 10, 1.0)
        tracker.track_usage(Tier.L5, 10, 8.5)

        assert len(reporter.batches) == 1
        assert [a.threshold for a in reporter.batches[0]] == [0.70, 0.90]


class TestLogSampling:
    """Deterministic log levels."""

    def test_every_nth_record_at_info(self, governor):
        levels = []
        sink_id = logger.add(lambda m: levels.append(m.record["level"].name), level="DEBUG",
                             filter=lambda r: r["message"].startswith("Usage:"))
        try:
            tracker = UsageTracker(governor, log_sample_every=3)
            for _ in range(6):
                tracker.track_usage(Tier.L1, 1, 0.0)
        finally:
            logger.remove(sink_id)

        assert levels == ["DEBUG", "DEBUG", "INFO", "DEBUG", "DEBUG", "INFO"]

    def test_invalid_sample_rate(self, governor):
        with pytest.raises(ValueError):
            UsageTracker(governor, log_sample_every=0)


class TestUsageLog:
    """JSONL persistence and restore."""

    def test_appends_json_lines(self, governor, log_path):
        tracker = UsageTracker(governor, log_path=log_path)
        tracker.track_usage(Tier.L2, 10, 0.1, model="deepseek/deepseek-chat")
        tracker.track_usage(Tier.L4, 20, 0.2)

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["tier"] == "L2"
        assert first["model"] == "deepseek/deepseek-chat"
        assert UsageRecord.from_dict(json.loads(lines[1])).tokens == 20

    def test_restore_replays_today_only(self, clock, log_path):
        first = BudgetGovernor(BudgetConfig(daily_budget=10.0), clock=clock)
        writer = UsageTracker(first, log_path=log_path)
        writer.track_usage(Tier.L5, 100, 3.0, timestamp=clock.now - timedelta(days=1))
        writer.track_usage(Tier.L5, 100, 9.2)

        received = []
        fresh = BudgetGovernor(BudgetConfig(daily_budget=10.0), clock=clock, on_alert=received.append)
        reader = UsageTracker(fresh, log_path=log_path)

        assert reader.restore() == 1
        snap = fresh.snapshot()
        assert snap.cumulative_cost == pytest.approx(9.2)
        assert snap.emergency_mode
        assert received == []
        assert reader.summary().by_tier[Tier.L5].requests == 1

    def test_restore_skips_corrupt_lines(self, governor, clock, log_path):
        log_path.parent.mkdir(parents=True)
        good = UsageRecord(timestamp=clock.now, tier=Tier.L1, tokens=5, cost=0.5)
        log_path.write_text(
            "not json\n" + json.dumps(good.to_dict()) + "\n" + '{"tier": "L9"}\n',
            encoding="utf-8",
        )

        tracker = UsageTracker(governor, log_path=log_path)
        assert tracker.restore() == 1
        assert governor.snapshot().cumulative_cost == pytest.approx(0.5)

    def test_restore_missing_file(self, governor, log_path):
        assert UsageTracker(governor, log_path=log_path).restore() == 0

    def test_from_config_expands_path(self, governor, tmp_path):
        config = UsageLogConfig(log_path=str(tmp_path / "u.jsonl"), max_records=7, log_sample_every=2)
        tracker = UsageTracker.from_config(governor, config)
        assert tracker.log_path == tmp_path / "u.jsonl"
        assert tracker.log_sample_every == 2
