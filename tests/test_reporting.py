"""
Tests for alert reporting and the dashboard sink.
"""

import asyncio
from datetime import date

import pytest

from tierwise.config.schema import ReportingConfig
from tierwise.tracking.budget import AlertSeverity, BudgetAlert
from tierwise.tracking.reporting import AlertReporter, MarkdownDashboardSink


def alert(severity: AlertSeverity = AlertSeverity.WARNING, threshold: float = 0.7) -> BudgetAlert:
    return BudgetAlert(
        severity=severity,
        threshold=threshold,
        percentage=threshold + 0.01,
        cumulative_cost=threshold * 5 + 0.05,
        daily_budget=5.0,
        request_count=12,
        date=date(2026, 3, 4),
    )


class FakeMonotonic:
    def __init__(self):
        self.t = 1000.0

    def __call__(self) -> float:
        return self.t


class TestAlertReporter:
    """Throttled delivery."""

    def test_delivers_most_severe_of_batch(self):
        lines = []
        reporter = AlertReporter(lines.append)

        assert reporter.report([alert(), alert(AlertSeverity.CRITICAL, 0.9)])
        assert len(lines) == 1
        assert "CRITICAL" in lines[0]

    def test_throttled_within_interval(self):
        lines = []
        clock = FakeMonotonic()
        reporter = AlertReporter(lines.append, min_interval_seconds=3600, clock=clock)

        assert reporter.report([alert()])
        clock.t += 1800
        assert not reporter.report([alert(AlertSeverity.CRITICAL, 0.9)])
        clock.t += 1800
        assert reporter.report([alert(AlertSeverity.CRITICAL, 0.9)])
        assert len(lines) == 2

    def test_empty_batch_is_noop(self):
        lines = []
        reporter = AlertReporter(lines.append)
        assert not reporter.report([])
        assert lines == []

    def test_sync_sink_failure_is_contained(self):
        def broken(line):
            raise OSError("disk full")

        reporter = AlertReporter(broken)
        assert reporter(alert())

    @pytest.mark.asyncio
    async def test_async_sink_is_fire_and_forget(self):
        started = asyncio.Event()
        release = asyncio.Event()
        lines = []

        async def slow_sink(line):
            started.set()
            await release.wait()
            lines.append(line)

        reporter = AlertReporter(slow_sink)
        assert reporter.report([alert()])
        # report() returned before the sink finished
        assert lines == []

        await started.wait()
        release.set()
        await reporter.drain()
        assert len(lines) == 1

    @pytest.mark.asyncio
    async def test_async_sink_failure_is_contained(self):
        async def broken(line):
            raise RuntimeError("webhook down")

        reporter = AlertReporter(broken)
        reporter.report([alert()])
        await reporter.drain()

    def test_from_config(self, tmp_path):
        assert AlertReporter.from_config(ReportingConfig()) is None
        reporter = AlertReporter.from_config(
            ReportingConfig(enabled=True, dashboard_path=str(tmp_path / "d.md"), min_interval_seconds=60)
        )
        assert isinstance(reporter.sink, MarkdownDashboardSink)
        assert reporter.min_interval_seconds == 60


class TestMarkdownDashboardSink:
    """Dashboard file updates."""

    def test_creates_file(self, tmp_path):
        path = tmp_path / "dash" / "dashboard.md"
        MarkdownDashboardSink(path)(alert().render())

        content = path.read_text(encoding="utf-8")
        assert content.startswith("### ⚠️ **Budget alert (WARNING)**")

    def test_inserts_at_top(self, tmp_path):
        path = tmp_path / "dashboard.md"
        path.write_text("# Today\n\n- item\n", encoding="utf-8")

        MarkdownDashboardSink(path)(alert().render())

        lines = path.read_text(encoding="utf-8").splitlines()
        assert "Budget alert" in lines[0]
        assert lines[1] == ""
        assert lines[2:] == ["# Today", "", "- item"]

    def test_replaces_existing_alert(self, tmp_path):
        path = tmp_path / "dashboard.md"
        sink = MarkdownDashboardSink(path)
        path.write_text("# Today\n", encoding="utf-8")

        sink(alert().render())
        sink(alert(AlertSeverity.CRITICAL, 0.9).render())

        content = path.read_text(encoding="utf-8")
        assert content.count("Budget alert") == 1
        assert "CRITICAL" in content
        assert "# Today" in content
