"""
BaseService -- abstract base for session-scoped kernel services.

Responsibility:
    Common constructor for services that write inside a transaction owned
    by their caller.  They use ``session.flush()`` and never commit.

Architecture position:
    Kernel > Services.  The TransitionCoordinator and IdempotencyService
    are the exceptions: each owns its own atomic unit and therefore takes
    a session factory instead of a session.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from market_kernel.db.base import Base
from market_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and persists
        changes with ``flush()`` inside the caller's transaction.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT provide read-only queries (see ``selectors/``).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
