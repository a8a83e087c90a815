"""
Daily budget governor.

Owns the day's cumulative cost/token/request counters, fires threshold
alerts at most once per day, and flips emergency mode once the emergency
threshold is crossed. Everything resets at calendar-date rollover.
"""

import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable

from loguru import logger

from tierwise.config.schema import BudgetConfig
from tierwise.tiers import Tier


class AlertSeverity(str, Enum):
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class BudgetStatus(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    EMERGENCY = "emergency"


@dataclass
class DailyBudgetState:
    """Mutable per-day counters. Only BudgetGovernor touches these."""
    date: date
    cumulative_cost: float = 0.0
    cumulative_tokens: int = 0
    request_count: int = 0
    fired_thresholds: set[float] = field(default_factory=set)
    emergency_mode: bool = False


@dataclass(frozen=True)
class BudgetSnapshot:
    """Read-only view of the budget state handed to readers."""
    date: date
    cumulative_cost: float
    cumulative_tokens: int
    request_count: int
    fired_thresholds: frozenset[float]
    emergency_mode: bool
    daily_budget: float

    @property
    def percentage(self) -> float:
        """Fraction of the daily budget spent (0.5 == 50%)."""
        return self.cumulative_cost / self.daily_budget

    @property
    def status(self) -> BudgetStatus:
        if self.emergency_mode:
            return BudgetStatus.EMERGENCY
        if self.fired_thresholds:
            return BudgetStatus.WARNING
        return BudgetStatus.NORMAL

    @property
    def remaining(self) -> float:
        return max(self.daily_budget - self.cumulative_cost, 0.0)


@dataclass(frozen=True)
class BudgetAlert:
    """A newly crossed budget threshold."""
    severity: AlertSeverity
    threshold: float
    percentage: float
    cumulative_cost: float
    daily_budget: float
    request_count: int
    date: date

    def render(self) -> str:
        """One-line alert suitable for a dashboard or chat message."""
        icon = "🚨" if self.severity == AlertSeverity.CRITICAL else "⚠️"
        return (
            f"### {icon} **Budget alert ({self.severity.value})** "
            f"{self.percentage * 100:.0f}% "
            f"(${self.cumulative_cost:.2f}/${self.daily_budget:.2f}, "
            f"{self.request_count} requests, {self.date.isoformat()})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "threshold": self.threshold,
            "percentage": self.percentage,
            "cumulative_cost": self.cumulative_cost,
            "daily_budget": self.daily_budget,
            "request_count": self.request_count,
            "date": self.date.isoformat(),
        }


class BudgetGovernor:
    """
    Single-writer owner of DailyBudgetState.

    State machine per day: NORMAL -> WARNING (>= first threshold) ->
    EMERGENCY (>= emergency threshold). A single update may jump straight
    from NORMAL to EMERGENCY. Date rollover returns to NORMAL.

    All mutations happen under one lock; no await happens while it is held,
    so it is safe for both threads and asyncio tasks. Alert callbacks run
    after the lock is released.
    """

    def __init__(
        self,
        config: BudgetConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        on_alert: Callable[[BudgetAlert], Any] | None = None,
    ):
        self.config = config or BudgetConfig()
        self._clock = clock or datetime.now
        self._on_alert = on_alert
        self._lock = threading.Lock()
        self._state = DailyBudgetState(date=self._today())

    @property
    def daily_budget(self) -> float:
        return self.config.daily_budget

    def set_alert_callback(self, callback: Callable[[BudgetAlert], Any] | None) -> None:
        self._on_alert = callback

    def track_usage(
        self,
        tier: Tier,
        tokens: int,
        cost: float,
        at: datetime | None = None,
        notify: bool = True,
    ) -> list[BudgetAlert]:
        """
        Record one completed call and re-evaluate thresholds.

        Args:
            tier: Tier that served the call.
            tokens: Total tokens used.
            cost: Cost in USD.
            at: When the call completed; defaults to the governor's clock.
            notify: Deliver newly fired alerts to the alert callback.

        Returns:
            Alerts newly fired by this update, in ascending threshold order.
        """
        if tokens < 0 or cost < 0:
            raise ValueError(f"tokens and cost must be non-negative (got {tokens}, {cost})")

        day = (at or self._clock()).date()
        alerts: list[BudgetAlert] = []
        entered_emergency = False

        with self._lock:
            state = self._state
            if day < state.date:
                logger.debug(f"Ignoring usage dated {day} (budget day is {state.date})")
                return []
            if day != state.date:
                state = self._reset(day)

            state.cumulative_cost += cost
            state.cumulative_tokens += tokens
            state.request_count += 1

            percentage = state.cumulative_cost / self.config.daily_budget
            for threshold in sorted(self.config.thresholds):
                if threshold in state.fired_thresholds or percentage < threshold:
                    continue
                state.fired_thresholds.add(threshold)
                alerts.append(BudgetAlert(
                    severity=self._severity(threshold),
                    threshold=threshold,
                    percentage=percentage,
                    cumulative_cost=state.cumulative_cost,
                    daily_budget=self.config.daily_budget,
                    request_count=state.request_count,
                    date=state.date,
                ))

            if self.config.emergency_threshold in state.fired_thresholds and not state.emergency_mode:
                state.emergency_mode = True
                entered_emergency = True

        for alert in alerts:
            logger.warning(
                f"Budget {alert.severity.value}: {alert.percentage * 100:.0f}% of "
                f"${alert.daily_budget:.2f} used (threshold {alert.threshold:.0%}, tier {tier.value})"
            )
        if entered_emergency:
            logger.warning("Emergency mode activated - L4/L5 capped until date rollover")

        if notify and self._on_alert:
            for alert in alerts:
                self._on_alert(alert)

        return alerts

    def snapshot(self) -> BudgetSnapshot:
        """
        Current state as an immutable snapshot.

        A state left over from a previous day reads as a fresh NORMAL day;
        the actual reset happens on the next track_usage call.
        """
        today = self._today()
        with self._lock:
            state = self._state
            if state.date < today:
                return BudgetSnapshot(
                    date=today,
                    cumulative_cost=0.0,
                    cumulative_tokens=0,
                    request_count=0,
                    fired_thresholds=frozenset(),
                    emergency_mode=False,
                    daily_budget=self.config.daily_budget,
                )
            return BudgetSnapshot(
                date=state.date,
                cumulative_cost=state.cumulative_cost,
                cumulative_tokens=state.cumulative_tokens,
                request_count=state.request_count,
                fired_thresholds=frozenset(state.fired_thresholds),
                emergency_mode=state.emergency_mode,
                daily_budget=self.config.daily_budget,
            )

    @property
    def emergency_mode(self) -> bool:
        return self.snapshot().emergency_mode

    def _reset(self, day: date) -> DailyBudgetState:
        """Start a new budget day. Caller holds the lock."""
        was_emergency = self._state.emergency_mode
        self._state = DailyBudgetState(date=day)
        if was_emergency:
            logger.info(f"Emergency mode auto-disabled for new day {day.isoformat()}")
        else:
            logger.debug(f"Budget counters reset for {day.isoformat()}")
        return self._state

    def _severity(self, threshold: float) -> AlertSeverity:
        if threshold >= self.config.emergency_threshold:
            return AlertSeverity.CRITICAL
        return AlertSeverity.WARNING

    def now(self) -> datetime:
        return self._clock()

    def _today(self) -> date:
        return self._clock().date()
