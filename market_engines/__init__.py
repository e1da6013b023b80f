"""
Module: market_engines
Responsibility:
    Package entrypoint re-exporting the pure policy engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Imports nothing from
    the kernel, config or services packages.

Invariants enforced:
    - Purity: engines never read the clock, the database or the
      environment.  Account age is passed in as a counter.
    - Determinism: identical inputs always produce equal outputs.
    - Fresh frozen result objects on every call.
"""

from market_engines.counters import sanitize_count
from market_engines.fraud import (
    FraudFlag,
    FraudHeuristicInput,
    FraudHeuristicResult,
    FraudPolicy,
    FraudRiskLevel,
    evaluate_fraud_heuristics,
)
from market_engines.restriction import (
    ALL_BLOCKED_ACTIONS,
    RestrictedAction,
    RestrictionInput,
    RestrictionPolicy,
    RestrictionResult,
    compute_restriction,
)
from market_engines.trust import (
    TrustInput,
    TrustPolicy,
    TrustResult,
    TrustStatus,
    compute_trust,
)

__all__ = [
    "sanitize_count",
    "TrustStatus",
    "TrustInput",
    "TrustPolicy",
    "TrustResult",
    "compute_trust",
    "RestrictedAction",
    "ALL_BLOCKED_ACTIONS",
    "RestrictionInput",
    "RestrictionPolicy",
    "RestrictionResult",
    "compute_restriction",
    "FraudRiskLevel",
    "FraudFlag",
    "FraudHeuristicInput",
    "FraudPolicy",
    "FraudHeuristicResult",
    "evaluate_fraud_heuristics",
]
