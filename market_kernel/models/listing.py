"""
Module: market_kernel.models.listing
Responsibility: ORM persistence for marketplace listings.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - status is always a key of the listing StatusMap.
    - version increases by exactly 1 per committed transition; only the
      TransitionCoordinator writes status and version after creation.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from market_kernel.db.base import TrackedBase, UUIDString, VersionedLifecycleMixin


class Listing(VersionedLifecycleMixin, TrackedBase):
    """An item offered for exchange by its owner."""

    __tablename__ = "listings"

    __table_args__ = (Index("idx_listing_owner_status", "owner_id", "status"),)

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("user_accounts.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    def __repr__(self) -> str:
        return f"<Listing {self.id} {self.status} v{self.version}>"
