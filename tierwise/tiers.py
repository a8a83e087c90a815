"""
Service tiers and the static tables that move requests between them.
"""

from enum import Enum


class Tier(str, Enum):
    """Five ordered service tiers, cheapest first."""
    L1 = "L1"
    L2 = "L2"
    L3 = "L3"
    L4 = "L4"
    L5 = "L5"

    @property
    def rank(self) -> int:
        return int(self.value[1:])

    @classmethod
    def highest(cls) -> "Tier":
        return cls.L5

    @classmethod
    def parse(cls, value: "str | Tier") -> "Tier":
        """Parse 'L3', 'l3' or a Tier into a Tier."""
        if isinstance(value, Tier):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown tier: {value!r}") from None


# Staffing role names shown next to tier labels
TIER_ROLES = {
    Tier.L1: "engineer",
    Tier.L2: "gatekeeper",
    Tier.L3: "secretary",
    Tier.L4: "writer",
    Tier.L5: "editor-in-chief",
}

DEFAULT_FALLBACK_CHAIN: dict[Tier, Tier | None] = {
    Tier.L5: Tier.L4,
    Tier.L4: Tier.L3,
    Tier.L3: Tier.L2,
    Tier.L2: Tier.L1,
    Tier.L1: None,
}

# Budget emergency: L4/L5 are capped at L3, L1-L3 pass through
DEFAULT_EMERGENCY_CAP: dict[Tier, Tier] = {
    Tier.L5: Tier.L3,
    Tier.L4: Tier.L3,
    Tier.L3: Tier.L3,
    Tier.L2: Tier.L2,
    Tier.L1: Tier.L1,
}


def max_tier(*tiers: Tier) -> Tier:
    """Return the highest of the given tiers."""
    return max(tiers, key=lambda t: t.rank)


def tier_label(tier: Tier) -> str:
    """Human readable label, e.g. 'L3 (secretary)'."""
    return f"{tier.value} ({TIER_ROLES[tier]})"


def validate_fallback_chain(chain: dict[Tier, Tier | None]) -> None:
    """
    Check that a fallback table forms a single acyclic chain ending at L1.

    Raises:
        ValueError: If a tier is missing, a cycle exists, or the chain has
            anything other than exactly one terminal tier (L1).
    """
    missing = [t.value for t in Tier if t not in chain]
    if missing:
        raise ValueError(f"Fallback chain is missing tiers: {', '.join(missing)}")

    terminals = [t for t, nxt in chain.items() if nxt is None]
    if terminals != [Tier.L1]:
        names = ", ".join(t.value for t in terminals) or "none"
        raise ValueError(f"Fallback chain must terminate only at L1 (terminal tiers: {names})")

    for start in Tier:
        seen = {start}
        current = chain[start]
        while current is not None:
            if current in seen:
                raise ValueError(f"Fallback chain has a cycle through {current.value}")
            seen.add(current)
            current = chain[current]


def fallback_path(start: Tier, chain: dict[Tier, Tier | None] | None = None) -> list[Tier]:
    """All tiers visited from start until the chain terminates, start included."""
    chain = chain or DEFAULT_FALLBACK_CHAIN
    path = [start]
    current = chain[start]
    while current is not None:
        path.append(current)
        current = chain[current]
    return path
