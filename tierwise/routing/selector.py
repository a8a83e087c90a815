"""
Tier selection.

Combines the classifier's recommendation, the emotional context and a
budget snapshot into the tier a request should start on.
"""

from dataclasses import dataclass, field

from tierwise.config.schema import BudgetConfig, EmotionConfig
from tierwise.routing.classifier import ComplexityScore
from tierwise.routing.emotion import EmotionalContext
from tierwise.tiers import DEFAULT_EMERGENCY_CAP, Tier
from tierwise.tracking.budget import BudgetSnapshot


@dataclass(frozen=True)
class SelectionRules:
    """Static tables consulted by select_tier."""
    emergency_cap: dict[Tier, Tier] = field(default_factory=lambda: dict(DEFAULT_EMERGENCY_CAP))
    emotion_enabled: bool = True
    distress_moods: tuple[str, ...] = ("stressed",)
    gentle_moods: tuple[str, ...] = ("tired",)
    gentle_time_buckets: tuple[str, ...] = ("night",)
    gentle_substitutions: dict[Tier, Tier] = field(default_factory=lambda: {Tier.L2: Tier.L3})

    @classmethod
    def from_config(cls, budget: BudgetConfig, emotion: EmotionConfig) -> "SelectionRules":
        return cls(
            emergency_cap=dict(budget.emergency_cap),
            emotion_enabled=emotion.enabled,
            distress_moods=tuple(emotion.distress_moods),
            gentle_moods=tuple(emotion.gentle_moods),
            gentle_time_buckets=tuple(emotion.gentle_time_buckets),
            gentle_substitutions=dict(emotion.gentle_substitutions),
        )


def select_tier(
    score: ComplexityScore,
    emotional_context: EmotionalContext,
    budget: BudgetSnapshot,
    rules: SelectionRules | None = None,
) -> Tier:
    """
    Pick the starting tier for a request. Pure: reads, never mutates.

    Rule order:
    1. Emergency mode caps the tier (L4/L5 -> L3, L1-L3 unchanged).
    2. A late-night bucket or gentle mood applies the substitution table
       to the recommended tier (tiers not in the table pass through).
    3. Otherwise a distress mood forces the top tier.
    """
    rules = rules or SelectionRules()
    tier = score.tier

    if budget.emergency_mode:
        return rules.emergency_cap.get(tier, tier)

    if not rules.emotion_enabled:
        return tier

    if (
        emotional_context.time_of_day in rules.gentle_time_buckets
        or emotional_context.mood in rules.gentle_moods
    ):
        return rules.gentle_substitutions.get(tier, tier)

    if emotional_context.mood in rules.distress_moods:
        return Tier.highest()

    return tier


class TierSelector:
    """Holds the selection rules loaded at startup."""

    def __init__(self, rules: SelectionRules | None = None):
        self.rules = rules or SelectionRules()

    def select(
        self,
        score: ComplexityScore,
        emotional_context: EmotionalContext,
        budget: BudgetSnapshot,
    ) -> Tier:
        return select_tier(score, emotional_context, budget, self.rules)
