"""
Typed exception hierarchy for the market kernel.

Every error the kernel raises is a ``MarketKernelError`` subclass carrying:
  - a ``code`` class attribute (machine readable, API safe)
  - an ``http_status`` class attribute for HTTP collaborators
  - structured instance attributes (never parse the message)

    MarketKernelError (base)
    |
    +-- EntityNotFoundError                       404 NOT_FOUND
    |
    +-- ForbiddenError                            403 FORBIDDEN
    |   +-- ActionRestrictedError                 403 ACTION_RESTRICTED
    |
    +-- InvalidTransitionError                    422 INVALID_TRANSITION
    |
    +-- ConflictError                             409 CONFLICT
    |   +-- VersionConflictError                  409 VERSION_CONFLICT
    |   +-- LockContentionError                   409 LOCK_CONTENTION
    |   +-- UnmappedStatusError                   409 UNMAPPED_STATUS
    |   +-- IdempotencyInProgressError            409 IDEMPOTENCY_PROCESSING
    |   +-- DuplicateActiveError                  409 DUPLICATE_ACTIVE
    |   +-- TransitionCancelledError              409 TRANSITION_CANCELLED
    |
    +-- ValidationError                           400 VALIDATION_ERROR
    |   +-- IdempotencyKeyError                   400 INVALID_IDEMPOTENCY_KEY
    |
    +-- ImmutabilityViolationError                409 IMMUTABILITY_VIOLATION

``InvalidTransitionError`` ("the entity is in the wrong state") and the
``ConflictError`` family ("someone else got there first") map to different
status codes so clients can tell a permanent rejection from a race that a
retry may resolve.  ``LockContentionError`` and ``TransitionCancelledError``
are ``retryable``: nothing was written, and a retry may succeed.
"""

from typing import Any


class MarketKernelError(Exception):
    """
    Base exception for all market kernel errors.

    All subclasses must have ``code`` and ``http_status`` class attributes.
    """

    code: str = "MARKET_KERNEL_ERROR"
    http_status: int = 500
    retryable: bool = False

    def details(self) -> dict[str, Any] | None:
        """Structured, client-safe details for the error body."""
        return None


class EntityNotFoundError(MarketKernelError):
    """Entity with the given ID does not exist."""

    code: str = "NOT_FOUND"
    http_status: int = 404

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} '{entity_id}' not found")


# Authorization


class ForbiddenError(MarketKernelError):
    """Actor is not permitted to perform the operation."""

    code: str = "FORBIDDEN"
    http_status: int = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class ActionRestrictedError(ForbiddenError):
    """Actor is blocked from an action by the restriction engine."""

    code: str = "ACTION_RESTRICTED"

    def __init__(self, actor_id: Any, action: str, reasons: tuple[str, ...] = ()):
        self.actor_id = str(actor_id)
        self.action = action
        self.reasons = tuple(reasons)
        detail = " ".join(self.reasons) if self.reasons else "account restricted"
        super().__init__(f"Action '{action}' restricted: {detail}")

    def details(self) -> dict[str, Any]:
        return {"action": self.action, "reasons": list(self.reasons)}


# State machine


class InvalidTransitionError(MarketKernelError):
    """
    The state machine rejects ``event`` in ``from_state``.

    Raised by ``MachineInstance.send`` and propagated unchanged by the
    transition coordinator.
    """

    code: str = "INVALID_TRANSITION"
    http_status: int = 422

    def __init__(self, machine_id: str, from_state: str, event: str):
        self.machine_id = machine_id
        self.from_state = str(from_state)
        self.event = str(event)
        super().__init__(
            f"[{machine_id}] Cannot apply \"{self.event}\" in state \"{self.from_state}\""
        )

    def details(self) -> dict[str, Any]:
        return {
            "machine": self.machine_id,
            "from_state": self.from_state,
            "event": self.event,
        }


# Conflicts


class ConflictError(MarketKernelError):
    """Base exception for races and state conflicts."""

    code: str = "CONFLICT"
    http_status: int = 409

    def __init__(self, message: str = "Resource conflict"):
        super().__init__(message)


class VersionConflictError(ConflictError):
    """The entity version observed by the caller is no longer current."""

    code: str = "VERSION_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        expected_version: int,
        actual_version: int | None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on {entity_type} {entity_id}: expected version "
            f"{expected_version}, found {actual_version}"
        )

    def details(self) -> dict[str, Any]:
        return {
            "expected_version": self.expected_version,
            "actual_version": self.actual_version,
        }


class LockContentionError(ConflictError):
    """The entity row lock could not be acquired within the timeout."""

    code: str = "LOCK_CONTENTION"
    retryable: bool = True

    def __init__(self, entity_type: str, entity_id: Any, timeout_seconds: float):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Could not lock {entity_type} {entity_id} within {timeout_seconds}s"
        )


class UnmappedStatusError(ConflictError):
    """A persisted status has no counterpart in the state machine."""

    code: str = "UNMAPPED_STATUS"

    def __init__(self, entity_type: str, status: str):
        self.entity_type = entity_type
        self.status = status
        super().__init__(f"Unknown {entity_type} status: {status}")


class IdempotencyInProgressError(ConflictError):
    """Another request holding the same idempotency key is still running."""

    code: str = "IDEMPOTENCY_PROCESSING"

    def __init__(self, composite_key: str):
        self.composite_key = composite_key
        super().__init__("A request with this idempotency key is already processing")


class DuplicateActiveError(ConflictError):
    """An equivalent active record already exists."""

    code: str = "DUPLICATE_ACTIVE"

    def __init__(self, entity_type: str, message: str):
        self.entity_type = entity_type
        super().__init__(message)


class TransitionCancelledError(ConflictError):
    """The caller cancelled the transition before the row lock was taken."""

    code: str = "TRANSITION_CANCELLED"
    retryable: bool = True

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"Transition on {entity_type} {entity_id} cancelled")


# Validation


class ValidationError(MarketKernelError):
    """Malformed input."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400

    def __init__(self, message: str = "Validation failed", fields: dict[str, list[str]] | None = None):
        self.fields = dict(fields or {})
        super().__init__(message)

    def details(self) -> dict[str, Any] | None:
        return self.fields or None


class IdempotencyKeyError(ValidationError):
    """Client-supplied idempotency key is empty or too long."""

    code: str = "INVALID_IDEMPOTENCY_KEY"

    def __init__(self, reason: str, max_length: int):
        self.reason = reason
        self.max_length = max_length
        super().__init__(
            f"Invalid idempotency key: {reason}",
            {"idempotency_key": [reason]},
        )


# Immutability


class ImmutabilityViolationError(MarketKernelError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"
    http_status: int = 409

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


def serialize_error(error: BaseException) -> tuple[int, dict[str, Any]]:
    """
    Serialize any error into ``(http_status, body)``.

    Kernel errors keep their message, code and details.  Anything else is
    reported as a generic 500 so storage or driver errors never leak.
    """
    if isinstance(error, MarketKernelError):
        body: dict[str, Any] = {"error": str(error), "code": error.code}
        details = error.details()
        if details:
            body["details"] = details
        return error.http_status, body

    return 500, {"error": "Internal server error", "code": "INTERNAL_ERROR"}
