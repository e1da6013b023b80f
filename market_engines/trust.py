"""
market_engines.trust -- Pure trust status engine.

Responsibility:
    Derive a user's trust status (``GOOD_STANDING``, ``REVIEW_REQUIRED``,
    ``RESTRICTED``) and the reasons for it from stored behavioral
    counters.  Trust is a classification, not a score, and is never
    persisted.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock.

Invariants enforced:
    - Counters are sanitized before evaluation (``sanitize_count``).
    - Evaluation order: admin flags short-circuit to RESTRICTED; dispute,
      cancellation and new-account ratio rules each append a reason; any
      reason means REVIEW_REQUIRED.
    - Deterministic: identical input and policy give an equal result.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from market_engines.counters import sanitize_count
from market_engines.tracer import traced_engine


class TrustStatus(str, Enum):
    GOOD_STANDING = "GOOD_STANDING"
    REVIEW_REQUIRED = "REVIEW_REQUIRED"
    RESTRICTED = "RESTRICTED"


@dataclass(frozen=True)
class TrustInput:
    """Raw counters.  Any value is accepted; sanitization happens in the engine."""

    completed_exchanges: Any = 0
    cancelled_requests: Any = 0
    disputes: Any = 0
    admin_flags: Any = 0
    account_age_days: Any = 0


@dataclass(frozen=True)
class TrustPolicy:
    admin_flag_minimum: int = 1
    dispute_limit: int = 2
    cancelled_limit: int = 3
    new_account_days: int = 30
    cancel_ratio_limit: float = 0.5


@dataclass(frozen=True)
class TrustResult:
    status: TrustStatus
    reasons: tuple[str, ...] = ()

    @property
    def is_good_standing(self) -> bool:
        return self.status is TrustStatus.GOOD_STANDING


DEFAULT_TRUST_POLICY = TrustPolicy()


@traced_engine("trust", "1.0", fingerprint_fields=("counters", "policy"))
def compute_trust(counters: TrustInput, policy: TrustPolicy = DEFAULT_TRUST_POLICY) -> TrustResult:
    """Compute the trust status for one user.

    Args:
        counters: Behavioral counters from the store.
        policy: Thresholds.

    Returns:
        A fresh ``TrustResult``.
    """
    completed = sanitize_count(counters.completed_exchanges)
    cancelled = sanitize_count(counters.cancelled_requests)
    disputes = sanitize_count(counters.disputes)
    admin_flags = sanitize_count(counters.admin_flags)
    age_days = sanitize_count(counters.account_age_days)

    if admin_flags >= policy.admin_flag_minimum:
        return TrustResult(
            status=TrustStatus.RESTRICTED,
            reasons=(f"Account has {admin_flags} admin flag(s). Automatically restricted.",),
        )

    reasons: list[str] = []

    if disputes > policy.dispute_limit:
        reasons.append(
            f"Dispute count ({disputes}) exceeds threshold ({policy.dispute_limit})."
        )

    if cancelled > policy.cancelled_limit:
        reasons.append(
            f"Cancelled requests ({cancelled}) exceed threshold ({policy.cancelled_limit})."
        )

    if age_days < policy.new_account_days and completed > 0:
        ratio = cancelled / completed
        if ratio > policy.cancel_ratio_limit:
            reasons.append(
                f"New account ({age_days} days) with high cancel/complete ratio "
                f"({ratio:.2f} > {policy.cancel_ratio_limit:.2f})."
            )

    if reasons:
        return TrustResult(status=TrustStatus.REVIEW_REQUIRED, reasons=tuple(reasons))

    if age_days >= policy.new_account_days:
        return TrustResult(
            status=TrustStatus.GOOD_STANDING,
            reasons=("Account age provides additional trust stability.",),
        )
    return TrustResult(status=TrustStatus.GOOD_STANDING)
