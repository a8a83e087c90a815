"""
Usage tracking.

Tracks:
- One immutable record per completed call
- Per-tier daily totals
- An append-only JSONL usage log that survives restarts
"""

import json
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from tierwise.config.schema import UsageLogConfig
from tierwise.tiers import Tier
from tierwise.tracking.budget import BudgetGovernor

if TYPE_CHECKING:
    from tierwise.tracking.reporting import AlertReporter


@dataclass(frozen=True)
class UsageRecord:
    """One completed call. Never mutated once written."""
    timestamp: datetime
    tier: Tier
    tokens: int
    cost: float
    model: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "tier": self.tier.value,
            "tokens": self.tokens,
            "cost": self.cost,
            "model": self.model,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UsageRecord":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            tier=Tier.parse(data["tier"]),
            tokens=int(data["tokens"]),
            cost=float(data["cost"]),
            model=data.get("model", ""),
        )


@dataclass(frozen=True)
class TierTotals:
    requests: int = 0
    tokens: int = 0
    cost: float = 0.0


@dataclass(frozen=True)
class UsageSummary:
    """Today's usage as reported to callers."""
    date: date
    cost: float
    tokens: int
    request_count: int
    percentage: float
    emergency_mode: bool
    daily_budget: float
    by_tier: dict[Tier, TierTotals] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "cost": self.cost,
            "tokens": self.tokens,
            "request_count": self.request_count,
            "percentage": self.percentage,
            "emergency_mode": self.emergency_mode,
            "daily_budget": self.daily_budget,
            "by_tier": {
                tier.value: {"requests": t.requests, "tokens": t.tokens, "cost": t.cost}
                for tier, t in self.by_tier.items()
            },
        }


class UsageTracker:
    """
    Records usage and feeds it to the budget governor.

    The in-memory record list is capped at `max_records`; the JSONL log is
    append-only and never truncated. Every `log_sample_every`-th record is
    logged at INFO, the rest at DEBUG.
    """

    def __init__(
        self,
        governor: BudgetGovernor,
        log_path: Path | None = None,
        max_records: int | None = 10_000,
        log_sample_every: int = 1,
        reporter: "AlertReporter | None" = None,
    ):
        if log_sample_every < 1:
            raise ValueError("log_sample_every must be >= 1")
        self.governor = governor
        self.log_path = log_path
        self.log_sample_every = log_sample_every
        self.reporter = reporter

        self._records: deque[UsageRecord] = deque(maxlen=max_records)
        self._by_tier: dict[Tier, TierTotals] = {}
        self._by_tier_date: date | None = None
        self._count = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        governor: BudgetGovernor,
        config: UsageLogConfig,
        reporter: "AlertReporter | None" = None,
    ) -> "UsageTracker":
        log_path = Path(config.log_path).expanduser() if config.log_path else None
        return cls(
            governor,
            log_path=log_path,
            max_records=config.max_records,
            log_sample_every=config.log_sample_every,
            reporter=reporter,
        )

    @property
    def records(self) -> list[UsageRecord]:
        with self._lock:
            return list(self._records)

    def track_usage(
        self,
        tier: Tier,
        tokens: int,
        cost: float,
        timestamp: datetime | None = None,
        model: str = "",
    ) -> UsageRecord:
        """
        Record one completed call.

        Args:
            tier: Tier that actually served the call.
            tokens: Total tokens used.
            cost: Cost in USD.
            timestamp: Completion time; defaults to the governor's clock.
            model: Model identifier, for the log.

        Returns:
            The stored UsageRecord.
        """
        if tokens < 0 or cost < 0:
            raise ValueError(f"tokens and cost must be non-negative (got {tokens}, {cost})")

        record = UsageRecord(
            timestamp=timestamp or self.governor.now(),
            tier=tier,
            tokens=tokens,
            cost=cost,
            model=model,
        )
        alerts = self.governor.track_usage(tier, tokens, cost, at=record.timestamp)

        with self._lock:
            self._store(record)
            self._count += 1
            count = self._count

        self._append_to_log(record)

        level = "INFO" if count % self.log_sample_every == 0 else "DEBUG"
        logger.log(
            level,
            f"Usage: {tier.value} {tokens} tokens ${cost:.4f}"
            + (f" ({model})" if model else ""),
        )

        if alerts and self.reporter:
            self.reporter.report(alerts)

        return record

    def summary(self) -> UsageSummary:
        """Today's totals, consistent with the governor's snapshot."""
        snap = self.governor.snapshot()
        with self._lock:
            by_tier = dict(self._by_tier) if self._by_tier_date == snap.date else {}
        return UsageSummary(
            date=snap.date,
            cost=snap.cumulative_cost,
            tokens=snap.cumulative_tokens,
            request_count=snap.request_count,
            percentage=snap.percentage,
            emergency_mode=snap.emergency_mode,
            daily_budget=snap.daily_budget,
            by_tier=by_tier,
        )

    def restore(self, path: Path | None = None) -> int:
        """
        Replay today's records from a usage log into the governor.

        Alerts are re-derived (so emergency mode comes back after a restart)
        but not re-sent. Corrupt lines are skipped with a warning.

        Returns:
            Number of records replayed.
        """
        path = path or self.log_path
        if not path or not path.exists():
            return 0

        today = self.governor.snapshot().date
        restored = 0
        with open(path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = UsageRecord.from_dict(json.loads(line))
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning(f"Skipping corrupt usage log line {path}:{lineno}: {e}")
                    continue
                if record.timestamp.date() != today:
                    continue
                self.governor.track_usage(
                    record.tier, record.tokens, record.cost, at=record.timestamp, notify=False
                )
                with self._lock:
                    self._store(record)
                restored += 1

        if restored:
            snap = self.governor.snapshot()
            logger.info(
                f"Restored {restored} usage records for {today.isoformat()} "
                f"(${snap.cumulative_cost:.4f}, emergency={snap.emergency_mode})"
            )
        return restored

    def _store(self, record: UsageRecord) -> None:
        """Append to memory and per-tier totals. Caller holds the lock."""
        self._records.append(record)
        day = record.timestamp.date()
        if self._by_tier_date is None or day > self._by_tier_date:
            self._by_tier = {}
            self._by_tier_date = day
        elif day < self._by_tier_date:
            return
        t = self._by_tier.get(record.tier, TierTotals())
        self._by_tier[record.tier] = TierTotals(
            requests=t.requests + 1,
            tokens=t.tokens + record.tokens,
            cost=t.cost + record.cost,
        )

    def _append_to_log(self, record: UsageRecord) -> None:
        if not self.log_path:
            return
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")

