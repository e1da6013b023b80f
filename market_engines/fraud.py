"""
market_engines.fraud -- Pure fraud heuristics.

Responsibility:
    Flag suspicious activity patterns for human review.  Four independent
    rules each add a flag when their counter is strictly greater than the
    threshold.  Risk is derived from the flag count alone: 0 LOW,
    1 MEDIUM, 2 or more HIGH.

Architecture position:
    Engines -- pure, zero I/O.  This engine never restricts anyone.  A
    HIGH result only tells the caller to raise a review record
    (``AuditorService.record_fraud_review``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from market_engines.counters import sanitize_count
from market_engines.tracer import traced_engine


class FraudRiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class FraudFlag(str, Enum):
    LISTING_SPIKE = "LISTING_SPIKE"
    CANCELLATION_SPIKE = "CANCELLATION_SPIKE"
    DISPUTE_SPIKE = "DISPUTE_SPIKE"
    NEW_ACCOUNT_LISTING_SPIKE = "NEW_ACCOUNT_LISTING_SPIKE"


@dataclass(frozen=True)
class FraudHeuristicInput:
    recent_listings: Any = 0  # last 24 hours
    recent_cancellations: Any = 0  # last 7 days
    recent_disputes: Any = 0  # against the user, last 30 days
    account_age_days: Any = 0


@dataclass(frozen=True)
class FraudPolicy:
    listing_spike: int = 5
    cancellation_spike: int = 4
    dispute_spike: int = 2
    new_account_days: int = 14
    new_account_listing_limit: int = 3


@dataclass(frozen=True)
class FraudHeuristicResult:
    risk_level: FraudRiskLevel
    flags: tuple[FraudFlag, ...] = ()
    messages: tuple[str, ...] = ()

    @property
    def requires_review(self) -> bool:
        return self.risk_level is FraudRiskLevel.HIGH


DEFAULT_FRAUD_POLICY = FraudPolicy()


def _risk_for(flag_count: int) -> FraudRiskLevel:
    if flag_count == 0:
        return FraudRiskLevel.LOW
    if flag_count == 1:
        return FraudRiskLevel.MEDIUM
    return FraudRiskLevel.HIGH


@traced_engine("fraud", "1.0", fingerprint_fields=("counters", "policy"))
def evaluate_fraud_heuristics(
    counters: FraudHeuristicInput,
    policy: FraudPolicy = DEFAULT_FRAUD_POLICY,
) -> FraudHeuristicResult:
    listings = sanitize_count(counters.recent_listings)
    cancellations = sanitize_count(counters.recent_cancellations)
    disputes = sanitize_count(counters.recent_disputes)
    age_days = sanitize_count(counters.account_age_days)

    flags: list[FraudFlag] = []
    messages: list[str] = []

    if listings > policy.listing_spike:
        flags.append(FraudFlag.LISTING_SPIKE)
        messages.append(
            f"High listing volume: {listings} listings in last 24h "
            f"(threshold: {policy.listing_spike})."
        )

    if cancellations > policy.cancellation_spike:
        flags.append(FraudFlag.CANCELLATION_SPIKE)
        messages.append(
            f"Elevated cancellations: {cancellations} in last 7 days "
            f"(threshold: {policy.cancellation_spike})."
        )

    if disputes > policy.dispute_spike:
        flags.append(FraudFlag.DISPUTE_SPIKE)
        messages.append(
            f"Repeated disputes: {disputes} in last 30 days "
            f"(threshold: {policy.dispute_spike})."
        )

    if age_days < policy.new_account_days and listings > policy.new_account_listing_limit:
        flags.append(FraudFlag.NEW_ACCOUNT_LISTING_SPIKE)
        messages.append(
            f"New account ({age_days} days) with {listings} listings "
            f"(new account threshold: {policy.new_account_listing_limit})."
        )

    return FraudHeuristicResult(
        risk_level=_risk_for(len(flags)),
        flags=tuple(flags),
        messages=tuple(messages),
    )
