"""
AuditorService -- append-only audit trail.

Responsibility:
    Creates immutable audit records for every committed transition and
    every entity creation, and reads them back as ordered traces.

Architecture position:
    Kernel > Services -- called by the TransitionCoordinator (inside its
    atomic unit) and by the entity services.

Invariants enforced:
    - Append-only: records are never modified or deleted (ORM listeners
      on ``AuditRecord``).
    - A transition's audit record is flushed in the same transaction as
      the status/version change it describes.

Non-goals:
    - No global hash chain.  Chaining every record to its predecessor
      would serialize all transitions system-wide, and transitions on
      different entities must proceed in parallel.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from market_kernel.domain.clock import Clock, SystemClock
from market_kernel.logging_config import get_logger
from market_kernel.models.audit_record import AuditAction, AuditRecord

logger = get_logger("services.auditor")

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")


@dataclass(frozen=True)
class AuditTraceEntry:
    action: str
    occurred_at: datetime
    actor_id: UUID
    event: str | None
    from_status: str | None
    to_status: str | None
    payload: dict[str, Any]


@dataclass(frozen=True)
class AuditTrace:
    """All audit records of one entity in chronological order."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def statuses(self) -> tuple[str | None, ...]:
        return tuple(e.to_status for e in self.entries)

    @property
    def last_action(self) -> str | None:
        return self.entries[-1].action if self.entries else None


class AuditorService:
    """
    Contract:
        Writes ``AuditRecord`` rows with ``session.add`` + ``flush``.  The
        caller owns commit/rollback.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _create_record(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction | str,
        actor_id: UUID,
        actor_role: str,
        event: str | None = None,
        from_status: str | None = None,
        to_status: str | None = None,
        entity_version: int | None = None,
        payload: dict[str, Any] | None = None,
        occurred_at: datetime | None = None,
    ) -> AuditRecord:
        action_value = action.value if isinstance(action, AuditAction) else str(action)
        record = AuditRecord(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action_value,
            actor_id=actor_id,
            actor_role=str(actor_role.value if hasattr(actor_role, "value") else actor_role),
            event=event,
            from_status=from_status,
            to_status=to_status,
            entity_version=entity_version,
            occurred_at=occurred_at or self._clock.now(),
            payload=payload or {},
        )
        self._session.add(record)
        self._session.flush()

        logger.info(
            "audit_record_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action_value,
                "from_status": from_status,
                "to_status": to_status,
            },
        )
        return record

    # Recording methods

    def record_transition(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction | str,
        actor_id: UUID,
        actor_role: str,
        event: str,
        from_status: str,
        to_status: str,
        entity_version: int,
        occurred_at: datetime,
        reason: str | None = None,
    ) -> AuditRecord:
        payload = {"reason": reason} if reason else None
        return self._create_record(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            actor_role=actor_role,
            event=event,
            from_status=from_status,
            to_status=to_status,
            entity_version=entity_version,
            payload=payload,
            occurred_at=occurred_at,
        )

    def record_creation(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        actor_role: str,
        status: str | None,
        payload: dict[str, Any] | None = None,
    ) -> AuditRecord:
        return self._create_record(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            actor_role=actor_role,
            to_status=status,
            entity_version=0 if status is not None else None,
            payload=payload,
        )

    def record_account_flagged(
        self,
        user_id: UUID,
        admin_id: UUID,
        admin_flags: int,
        reason: str | None = None,
    ) -> AuditRecord:
        return self._create_record(
            entity_type="user",
            entity_id=user_id,
            action=AuditAction.ADMIN_USER_FLAG,
            actor_id=admin_id,
            actor_role="ADMIN",
            payload={"admin_flags": admin_flags, "reason": reason},
        )

    def record_fraud_review(
        self,
        user_id: UUID,
        risk_level: str,
        flags: Iterable[str],
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> AuditRecord:
        """Raise a review record for a human moderator (HIGH fraud risk)."""
        return self._create_record(
            entity_type="user",
            entity_id=user_id,
            action=AuditAction.FRAUD_REVIEW_RAISED,
            actor_id=actor_id,
            actor_role="ADMIN",
            payload={"risk_level": str(risk_level), "flags": [str(f) for f in flags]},
        )

    # Queries

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        records = self._session.execute(
            select(AuditRecord)
            .where(
                AuditRecord.entity_type == entity_type,
                AuditRecord.entity_id == entity_id,
            )
            .order_by(AuditRecord.occurred_at, AuditRecord.entity_version)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    action=r.action,
                    occurred_at=r.occurred_at,
                    actor_id=r.actor_id,
                    event=r.event,
                    from_status=r.from_status,
                    to_status=r.to_status,
                    payload=r.payload or {},
                )
                for r in records
            ),
        )
