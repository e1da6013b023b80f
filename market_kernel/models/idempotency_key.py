"""
Module: market_kernel.models.idempotency_key
Responsibility: ORM persistence for the idempotency response cache.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - key is UNIQUE.  The unique constraint is the atomic claim primitive:
      of N concurrent inserts for one key exactly one succeeds.
    - state is "processing" (sentinel) or "completed" (cached response).
    - Server-fault responses are never stored; the row is deleted instead.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from market_kernel.db.base import Base, UTCDateTime, UUIDString


class IdempotencyState(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"


class IdempotencyKey(Base):
    __tablename__ = "idempotency_keys"

    __table_args__ = (UniqueConstraint("key", name="uq_idempotency_key"),)

    key: Mapped[str] = mapped_column(String(256), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    state: Mapped[str] = mapped_column(String(16), nullable=False)
    response_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_body: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)

    @property
    def is_processing(self) -> bool:
        return self.state == IdempotencyState.PROCESSING.value

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def __repr__(self) -> str:
        return f"<IdempotencyKey {self.key} {self.state}>"
