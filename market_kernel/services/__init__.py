"""Kernel services."""

from market_kernel.services.account_service import AccountService
from market_kernel.services.auditor_service import SYSTEM_ACTOR_ID, AuditorService, AuditTrace
from market_kernel.services.dispute_service import DisputeService
from market_kernel.services.exchange_request_service import ExchangeRequestService
from market_kernel.services.idempotency_service import (
    IdempotencyClaim,
    IdempotencyService,
    IdempotentResponse,
)
from market_kernel.services.listing_service import ListingService
from market_kernel.services.policy_gate import PolicyGate
from market_kernel.services.transition_coordinator import (
    TransitionCoordinator,
    TransitionOutcome,
)

__all__ = [
    "AccountService",
    "AuditorService",
    "AuditTrace",
    "SYSTEM_ACTOR_ID",
    "DisputeService",
    "ExchangeRequestService",
    "ListingService",
    "PolicyGate",
    "IdempotencyService",
    "IdempotencyClaim",
    "IdempotentResponse",
    "TransitionCoordinator",
    "TransitionOutcome",
]
