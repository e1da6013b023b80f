"""
Module: market_kernel.models.exchange_request
Responsibility: ORM persistence for exchange requests between a buyer and
    the owner (seller) of a listing.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - buyer_id != seller_id (enforced by ExchangeRequestService).
    - status/version are written only by the TransitionCoordinator after
      creation.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from market_kernel.db.base import TrackedBase, UUIDString, VersionedLifecycleMixin


class ExchangeRequest(VersionedLifecycleMixin, TrackedBase):
    __tablename__ = "exchange_requests"

    __table_args__ = (
        Index("idx_request_buyer_status", "buyer_id", "status"),
        Index("idx_request_status_updated", "status", "updated_at"),
    )

    listing_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("listings.id"), nullable=False, index=True
    )
    buyer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("user_accounts.id"), nullable=False
    )
    seller_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("user_accounts.id"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<ExchangeRequest {self.id} {self.status} v{self.version}>"
