"""
tierwise - budget-aware five-tier model routing.

Routes each request to one of five ordered service tiers (L1 cheapest ... L5
most capable), retries a tier with exponential backoff, downgrades along a
fixed fallback chain when a tier is exhausted, and forces traffic onto cheaper
tiers when the daily budget runs low.
"""

__version__ = "0.3.0"
__logo__ = "🪜"
