"""
market_engines.restriction -- Pure restriction engine.

Restriction is binary per user: either every restrictable action is
blocked or none is.  Severity order, first match wins: administrative
override, RESTRICTED trust status, active disputes at or over the
threshold.  Computed on demand; it never mutates user state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from market_engines.counters import sanitize_count
from market_engines.tracer import traced_engine
from market_engines.trust import TrustStatus


class RestrictedAction(str, Enum):
    CREATE_LISTING = "CREATE_LISTING"
    REQUEST_EXCHANGE = "REQUEST_EXCHANGE"
    REQUEST_CONTACT = "REQUEST_CONTACT"


ALL_BLOCKED_ACTIONS: tuple[RestrictedAction, ...] = tuple(RestrictedAction)


@dataclass(frozen=True)
class RestrictionInput:
    trust_status: TrustStatus | str
    active_disputes: Any = 0
    admin_override: bool = False


@dataclass(frozen=True)
class RestrictionPolicy:
    dispute_threshold: int = 3


@dataclass(frozen=True)
class RestrictionResult:
    is_restricted: bool
    blocked_actions: tuple[RestrictedAction, ...] = ()
    reasons: tuple[str, ...] = ()

    def blocks(self, action: RestrictedAction | str) -> bool:
        return RestrictedAction(action) in self.blocked_actions


DEFAULT_RESTRICTION_POLICY = RestrictionPolicy()


def _restricted(reason: str) -> RestrictionResult:
    return RestrictionResult(
        is_restricted=True,
        blocked_actions=ALL_BLOCKED_ACTIONS,
        reasons=(reason,),
    )


@traced_engine("restriction", "1.0", fingerprint_fields=("inputs", "policy"))
def compute_restriction(
    inputs: RestrictionInput,
    policy: RestrictionPolicy = DEFAULT_RESTRICTION_POLICY,
) -> RestrictionResult:
    active_disputes = sanitize_count(inputs.active_disputes)

    if bool(inputs.admin_override):
        return _restricted("Administrative override in effect.")

    if inputs.trust_status == TrustStatus.RESTRICTED:
        return _restricted("Account trust status is RESTRICTED.")

    if active_disputes >= policy.dispute_threshold:
        return _restricted(
            f"Active disputes ({active_disputes}) meet or exceed threshold "
            f"({policy.dispute_threshold})."
        )

    return RestrictionResult(is_restricted=False)
