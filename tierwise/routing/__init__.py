"""
Tiered routing for tierwise.

Routes each request to one of five service tiers:
- L1/L2: cheap models for simple and everyday requests
- L3: mid-range model, also the ceiling in budget emergency mode
- L4/L5: premium models for complex or high-stakes requests
"""

from tierwise.routing.classifier import (
    ComplexityClassifier,
    ComplexityScore,
    classify_complexity,
)
from tierwise.routing.emotion import EmotionalContext, EmotionalContextAdviser
from tierwise.routing.selector import SelectionRules, TierSelector, select_tier
from tierwise.routing.router import (
    RoutedResult,
    RoutingDecision,
    TieredRouter,
    create_router_from_config,
)

__all__ = [
    "ComplexityClassifier",
    "ComplexityScore",
    "classify_complexity",
    "EmotionalContext",
    "EmotionalContextAdviser",
    "SelectionRules",
    "TierSelector",
    "select_tier",
    "RoutedResult",
    "RoutingDecision",
    "TieredRouter",
    "create_router_from_config",
]
