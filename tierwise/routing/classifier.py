"""
Complexity classifier for tiered model routing.

Scores an incoming message and recommends a tier using:
1. Keyword detection against every tier's trigger phrases (max-wins)
2. Length bonuses for long messages

Deterministic, no external state, no side effects.
"""

from dataclasses import dataclass, field

from tierwise.config.schema import ClassifierConfig
from tierwise.tiers import Tier, max_tier


@dataclass(frozen=True)
class ComplexityScore:
    """Result of complexity classification."""
    score: float
    tier: Tier  # Recommended tier
    matched: dict[Tier, list[str]] = field(default_factory=dict)
    length_bonus: float = 0.0
    reasoning: list[str] = field(default_factory=list)

    @property
    def highest_match(self) -> Tier | None:
        """Highest tier whose trigger phrases matched, if any."""
        if not self.matched:
            return None
        return max_tier(*self.matched)


class ComplexityClassifier:
    """
    Keyword/length heuristic that maps text to a recommended tier.

    Every tier's phrase set is tested (no short-circuit). The score is the
    base weight of the highest matched tier plus cumulative length bonuses,
    and the recommended tier is the highest tier whose score threshold is
    met, never lower than the highest matched tier.
    """

    def __init__(self, config: ClassifierConfig | None = None):
        self.config = config or ClassifierConfig()
        # Lowercased once; matching is case-insensitive substring search
        self._phrases: dict[Tier, list[str]] = {
            tier: [p.lower() for p in phrases if p.strip()]
            for tier, phrases in self.config.keywords.items()
        }

    def classify(self, message: str) -> ComplexityScore:
        """
        Classify a message.

        Args:
            message: The user message to classify.

        Returns:
            ComplexityScore with score, recommended tier and matched signals.
        """
        text = (message or "").lower()
        reasoning: list[str] = []

        matched: dict[Tier, list[str]] = {}
        for tier, phrases in self._phrases.items():
            hits = [p for p in phrases if p in text]
            if hits:
                matched[tier] = hits

        base = 0.0
        top_match: Tier | None = None
        if matched:
            top_match = max_tier(*matched)
            base = self.config.tier_weights.get(top_match, 0.0)
            for tier in sorted(matched, key=lambda t: t.rank, reverse=True):
                reasoning.append(f"{tier.value} keywords: {', '.join(matched[tier][:3])}")

        length = len(message or "")
        bonus = 0.0
        for rule in self.config.length_bonus_rules:
            if length > rule.min_length:
                bonus += rule.bonus
        if bonus:
            reasoning.append(f"Length {length} chars: +{bonus:g}")

        score = base + bonus
        tier = self._tier_for_score(score)
        if top_match is not None:
            tier = max_tier(tier, top_match)

        reasoning.append(f"Score {score:g} -> {tier.value}")

        return ComplexityScore(
            score=score,
            tier=tier,
            matched=matched,
            length_bonus=bonus,
            reasoning=reasoning,
        )

    def _tier_for_score(self, score: float) -> Tier:
        """Highest tier whose minimum score is met; L1 otherwise."""
        best = Tier.L1
        for tier, minimum in self.config.tier_thresholds.items():
            if score >= minimum and tier.rank > best.rank:
                best = tier
        return best


def classify_complexity(
    message: str,
    classifier: ComplexityClassifier | None = None,
) -> ComplexityScore:
    """
    Convenience function to classify a message.

    Args:
        message: The user message.
        classifier: Optional classifier instance.

    Returns:
        ComplexityScore with tier recommendation.
    """
    if classifier is None:
        classifier = ComplexityClassifier()

    return classifier.classify(message)
