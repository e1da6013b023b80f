"""
Module: market_kernel.models.audit_record
Responsibility: ORM persistence for the append-only audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: ORM listeners (db/immutability.py) reject UPDATE and
      DELETE of any AuditRecord.
    - Exactly one record per committed transition, written in the same
      transaction as the status/version change.

Audit relevance:
    Shape is ``{actor_id, action, entity_type, entity_id, from_status,
    to_status, event, occurred_at}`` plus the entity version the
    record produced plus an optional JSON payload.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from market_kernel.db.base import Base, UTCDateTime, UUIDString


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Listing lifecycle
    LISTING_CREATE = "listing_create"
    LISTING_STATUS_UPDATE = "listing_status_update"

    # Request lifecycle
    REQUEST_CREATE = "request_create"
    REQUEST_EVENT = "request_event"

    # Dispute lifecycle
    DISPUTE_CREATE = "dispute_create"
    DISPUTE_STATUS_UPDATE = "dispute_status_update"

    # Accounts and moderation
    ACCOUNT_CREATE = "account_create"
    ADMIN_USER_FLAG = "admin_user_flag"
    FRAUD_REVIEW_RAISED = "fraud_review_raised"


class AuditRecord(Base):
    __tablename__ = "audit_records"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_actor", "actor_id"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(16), nullable=False)
    event: Mapped[str | None] = mapped_column(String(50), nullable=True)
    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    entity_version: Mapped[int | None] = mapped_column(Integer, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AuditRecord {self.action} {self.entity_type}:{self.entity_id} "
            f"{self.from_status}->{self.to_status}>"
        )
