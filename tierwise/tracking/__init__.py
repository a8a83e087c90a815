"""
Usage and budget tracking for tierwise.

Provides:
- Daily budget governor with threshold alerts and emergency mode
- Usage records and the JSONL usage log
- Throttled alert reporting
"""

from tierwise.tracking.budget import (
    AlertSeverity,
    BudgetAlert,
    BudgetGovernor,
    BudgetSnapshot,
    BudgetStatus,
    DailyBudgetState,
)
from tierwise.tracking.reporting import AlertReporter, MarkdownDashboardSink
from tierwise.tracking.usage import TierTotals, UsageRecord, UsageSummary, UsageTracker

__all__ = [
    "AlertSeverity",
    "BudgetAlert",
    "BudgetGovernor",
    "BudgetSnapshot",
    "BudgetStatus",
    "DailyBudgetState",
    "AlertReporter",
    "MarkdownDashboardSink",
    "TierTotals",
    "UsageRecord",
    "UsageSummary",
    "UsageTracker",
]
