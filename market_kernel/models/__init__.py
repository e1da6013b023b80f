"""ORM models.  Importing this package registers every table on Base.metadata."""

from market_kernel.models.account import UserAccount
from market_kernel.models.audit_record import AuditAction, AuditRecord
from market_kernel.models.dispute import Dispute
from market_kernel.models.exchange_request import ExchangeRequest
from market_kernel.models.idempotency_key import IdempotencyKey, IdempotencyState
from market_kernel.models.listing import Listing

__all__ = [
    "UserAccount",
    "Listing",
    "ExchangeRequest",
    "Dispute",
    "AuditRecord",
    "AuditAction",
    "IdempotencyKey",
    "IdempotencyState",
]
