"""
Module: market_kernel.models.account
Responsibility: ORM persistence for marketplace user accounts and the
    behavioral counters the policy engines consume.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - email is unique.
    - Counters are maintained by the store; they are never negative.
    - role ADMIN is only ever granted by AccountService against the
      configured admin registry.
"""

from datetime import datetime

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from market_kernel.db.base import Base, UTCDateTime


class UserAccount(Base):
    """
    A registered marketplace user.

    Contract:
        ``completed_exchanges``, ``cancelled_requests`` and ``admin_flags``
        are the stored counters fed to the trust engine.
        ``restriction_override`` is the administrative hard block fed to the
        restriction engine.
    """

    __tablename__ = "user_accounts"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="STUDENT")

    completed_exchanges: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cancelled_requests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    admin_flags: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    restriction_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    def __repr__(self) -> str:
        return f"<UserAccount {self.email} {self.role}>"
