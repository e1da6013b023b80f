"""
TransitionCoordinator -- the single commit path for lifecycle transitions.

Responsibility:
    Given ``(entity_type, entity_id, event, actor_id, actor_role)``,
    produce exactly one validated, versioned, audited status change, or a
    typed failure with no side effects.

Architecture position:
    Kernel > Services -- imperative shell.  Owns its own transaction
    boundary: it takes a session factory and opens one atomic unit per
    call.  Route handlers and the maintenance sweep call it; nothing else
    writes ``status`` or ``version`` after creation.

Invariants enforced:
    - Per-entity serialization: the row is locked (``SELECT ... FOR
      UPDATE``; ``BEGIN IMMEDIATE`` on SQLite) for the whole
      read-validate-write-audit sequence.  Other entities are unaffected.
    - A waiter re-reads the committed status after the lock is granted,
      so a stale read never produces a stale write.
    - ``version`` increases by exactly 1 per committed transition; the
      write is conditional on the version that was read.
    - Status, version and audit record commit together or not at all.

Failure modes:
    - TransitionCancelledError: caller cancelled before the lock request.
    - LockContentionError: lock not granted within ``lock_timeout_seconds``.
    - EntityNotFoundError, UnmappedStatusError, VersionConflictError,
      ForbiddenError, InvalidTransitionError (in that check order).
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import select, text, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from market_kernel.domain.clock import Clock, SystemClock
from market_kernel.domain.fsm import MachineSnapshot, create_machine, state_name
from market_kernel.domain.lifecycle import EntityLifecycle, lifecycle_for
from market_kernel.exceptions import (
    EntityNotFoundError,
    LockContentionError,
    MarketKernelError,
    TransitionCancelledError,
    VersionConflictError,
)
from market_kernel.logging_config import LogContext, get_logger
from market_kernel.models.dispute import Dispute
from market_kernel.models.exchange_request import ExchangeRequest
from market_kernel.models.listing import Listing
from market_kernel.services.auditor_service import AuditorService

logger = get_logger("services.transition_coordinator")

ENTITY_MODELS = {
    "listing": Listing,
    "request": ExchangeRequest,
    "dispute": Dispute,
}

_LOCK_FAILURE_MARKERS = ("database is locked", "lock timeout", "could not obtain lock")
_PG_LOCK_NOT_AVAILABLE = "55P03"


def _is_lock_failure(exc: OperationalError) -> bool:
    if getattr(exc.orig, "pgcode", None) == _PG_LOCK_NOT_AVAILABLE:
        return True
    text_ = str(exc.orig).lower()
    return any(marker in text_ for marker in _LOCK_FAILURE_MARKERS)


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of one committed transition."""

    entity_type: str
    entity_id: UUID
    event: str
    from_status: str
    to_status: str
    version: int
    audit_record_id: UUID
    occurred_at: datetime

    @property
    def previous_version(self) -> int:
        return self.version - 1


class TransitionCoordinator:
    """
    Contract:
        ``transition()`` either commits one transition and returns a
        ``TransitionOutcome``, or raises a ``MarketKernelError`` subclass
        after rolling back everything it did.

    Non-goals:
        - Does NOT cascade to related entities (listing status when a
          request completes, counters).  That belongs to the caller.
        - Does NOT evaluate policy engines.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        lock_timeout_seconds: float = 5.0,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._lock_timeout_seconds = lock_timeout_seconds

    def transition(
        self,
        entity_type: Any,
        entity_id: UUID,
        event: Any,
        actor_id: UUID,
        actor_role: Any,
        expected_version: int | None = None,
        cancellation: threading.Event | None = None,
        reason: str | None = None,
    ) -> TransitionOutcome:
        """
        Apply ``event`` to the entity under its row lock.

        Args:
            entity_type: ``listing``, ``request`` or ``dispute``.
            entity_id: Primary key of the entity row.
            event: Machine event (enum member or its string value).
            actor_id: Who requests the transition.
            actor_role: ``STUDENT`` or ``ADMIN``.
            expected_version: Optional optimistic check against the
                version the caller last observed.
            cancellation: Checked once, before the lock is requested.
            reason: Free text stored in the audit payload.

        Raises:
            MarketKernelError: see module docstring.
        """
        lifecycle = lifecycle_for(entity_type)
        event_name = state_name(event)

        with LogContext.bind(
            entity_type=lifecycle.entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id),
        ):
            if cancellation is not None and cancellation.is_set():
                logger.info("entity_transition_cancelled", extra={"event": event_name})
                raise TransitionCancelledError(lifecycle.entity_type, entity_id)

            try:
                outcome = self._apply(
                    lifecycle,
                    entity_id,
                    event_name,
                    actor_id,
                    state_name(actor_role),
                    expected_version,
                    reason,
                )
            except MarketKernelError as exc:
                logger.info(
                    "entity_transition_rejected",
                    extra={"event": event_name, "error_code": exc.code},
                )
                raise

            logger.info(
                "entity_transition_committed",
                extra={
                    "event": event_name,
                    "from_status": outcome.from_status,
                    "to_status": outcome.to_status,
                    "version": outcome.version,
                },
            )
            return outcome

    def available_events(self, entity_type: Any, entity_id: UUID) -> tuple[str, ...]:
        """Events the machine accepts from the entity's current status (read only)."""
        lifecycle = lifecycle_for(entity_type)
        model = ENTITY_MODELS[lifecycle.entity_type]
        with self._session_factory() as session:
            status = session.execute(
                select(model.status).where(model.id == entity_id)
            ).scalar_one_or_none()
        if status is None:
            raise EntityNotFoundError(lifecycle.entity_type, entity_id)
        state = lifecycle.status_map.to_state(status)
        return create_machine(lifecycle.definition, MachineSnapshot(state=state)).available_events()

    # Internals

    def _apply(
        self,
        lifecycle: EntityLifecycle,
        entity_id: UUID,
        event_name: str,
        actor_id: UUID,
        actor_role: str,
        expected_version: int | None,
        reason: str | None,
    ) -> TransitionOutcome:
        model = ENTITY_MODELS[lifecycle.entity_type]

        with self._session_factory() as session, session.begin():
            row = self._lock_row(session, model, lifecycle.entity_type, entity_id)
            if row is None:
                raise EntityNotFoundError(lifecycle.entity_type, entity_id)

            from_status = row.status
            from_state = lifecycle.status_map.to_state(from_status)
            read_version = row.version

            if expected_version is not None and expected_version != read_version:
                raise VersionConflictError(
                    lifecycle.entity_type, entity_id, expected_version, read_version
                )

            lifecycle.authorize(event_name, actor_id, actor_role, row)

            machine = create_machine(lifecycle.definition, MachineSnapshot(state=from_state))
            next_machine = machine.send(event_name)
            to_status = lifecycle.status_map.to_status(next_machine.state)

            now = self._clock.now()
            result = session.execute(
                update(model)
                .where(model.id == entity_id, model.version == read_version)
                .values(status=to_status, version=model.version + 1, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise VersionConflictError(
                    lifecycle.entity_type, entity_id, read_version, None
                )

            record = AuditorService(session, self._clock).record_transition(
                entity_type=lifecycle.entity_type,
                entity_id=entity_id,
                action=lifecycle.status_action,
                actor_id=actor_id,
                actor_role=actor_role,
                event=event_name,
                from_status=from_status,
                to_status=to_status,
                entity_version=read_version + 1,
                occurred_at=now,
                reason=reason,
            )

            return TransitionOutcome(
                entity_type=lifecycle.entity_type,
                entity_id=entity_id,
                event=event_name,
                from_status=from_status,
                to_status=to_status,
                version=read_version + 1,
                audit_record_id=record.id,
                occurred_at=now,
            )

    def _lock_row(self, session: Session, model: type, entity_type: str, entity_id: UUID):
        try:
            if session.get_bind().dialect.name == "postgresql":
                timeout_ms = int(self._lock_timeout_seconds * 1000)
                session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
            return session.execute(
                select(model).where(model.id == entity_id).with_for_update()
            ).scalar_one_or_none()
        except OperationalError as exc:
            if _is_lock_failure(exc):
                logger.warning(
                    "entity_lock_contention",
                    extra={"timeout_seconds": self._lock_timeout_seconds},
                )
                raise LockContentionError(
                    entity_type, entity_id, self._lock_timeout_seconds
                ) from exc
            raise
