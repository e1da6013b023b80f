"""Read-only selectors."""

from market_kernel.selectors.integrity_selector import IntegrityReport, IntegritySelector
from market_kernel.selectors.standing_selector import (
    StandingPolicies,
    StandingSelector,
    UserStanding,
)

__all__ = [
    "StandingSelector",
    "StandingPolicies",
    "UserStanding",
    "IntegritySelector",
    "IntegrityReport",
]
