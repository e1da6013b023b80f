"""
Module: market_kernel.models.dispute
Responsibility: ORM persistence for disputes raised by one user against
    another, optionally tied to an exchange request and a listing.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from market_kernel.db.base import TrackedBase, UUIDString, VersionedLifecycleMixin


class Dispute(VersionedLifecycleMixin, TrackedBase):
    __tablename__ = "disputes"

    __table_args__ = (
        Index("idx_dispute_against_status", "against_id", "status"),
        Index("idx_dispute_raiser_request", "raised_by_id", "request_id"),
    )

    request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("exchange_requests.id"), nullable=True
    )
    listing_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("listings.id"), nullable=True
    )
    raised_by_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("user_accounts.id"), nullable=False
    )
    against_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("user_accounts.id"), nullable=False
    )
    dispute_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Dispute {self.id} {self.status} v{self.version}>"
