"""
ORM-level enforcement of append-only persistence.

Audit records are written once per committed transition (or creation) and
are never updated or deleted.  These mapper listeners turn any attempt to
flush an UPDATE or DELETE of an ``AuditRecord`` into an
``ImmutabilityViolationError`` before SQL is emitted.

Call ``register_immutability_listeners()`` once at startup, after models
are imported.  Tests that need to bypass the guard may call
``unregister_immutability_listeners()``.
"""

from sqlalchemy import event

from market_kernel.exceptions import ImmutabilityViolationError
from market_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_audit_record_immutability(mapper, connection, target):
    """Prevent any updates to AuditRecord rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditRecord",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditRecord",
        entity_id=str(target.id),
        reason="Audit records are immutable and cannot be modified",
    )


def _check_audit_record_delete(mapper, connection, target):
    """Prevent deletion of AuditRecord rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditRecord",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditRecord",
        entity_id=str(target.id),
        reason="Audit records cannot be deleted",
    )


def register_immutability_listeners() -> None:
    """Register the append-only guards (idempotent)."""
    from market_kernel.models.audit_record import AuditRecord

    if not event.contains(AuditRecord, "before_update", _check_audit_record_immutability):
        event.listen(AuditRecord, "before_update", _check_audit_record_immutability)
    if not event.contains(AuditRecord, "before_delete", _check_audit_record_delete):
        event.listen(AuditRecord, "before_delete", _check_audit_record_delete)


def unregister_immutability_listeners() -> None:
    """
    Remove the append-only guards.

    WARNING: Only use this in tests that intentionally violate the rule.
    """
    from market_kernel.models.audit_record import AuditRecord

    if event.contains(AuditRecord, "before_update", _check_audit_record_immutability):
        event.remove(AuditRecord, "before_update", _check_audit_record_immutability)
    if event.contains(AuditRecord, "before_delete", _check_audit_record_delete):
        event.remove(AuditRecord, "before_delete", _check_audit_record_delete)
