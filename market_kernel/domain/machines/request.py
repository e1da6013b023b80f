"""
Exchange request lifecycle machine.

A buyer sends a request, the seller accepts or declines, both parties
schedule and confirm a meeting.  Failure states (declined, expired,
cancelled, withdrawn) return to ``idle`` only through an explicit
``RETRY``.  A dispute can be opened only on a completed exchange.
``resolved`` is the sole terminal state.
"""

from enum import Enum

from market_kernel.domain.fsm import MachineDefinition, MachineInstance, MachineSnapshot, create_machine


class RequestState(str, Enum):
    IDLE = "idle"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    MEETING_SCHEDULED = "meeting_scheduled"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    WITHDRAWN = "withdrawn"
    DISPUTED = "disputed"
    RESOLVED = "resolved"


class RequestEvent(str, Enum):
    SEND = "SEND"
    ACCEPT = "ACCEPT"
    DECLINE = "DECLINE"
    EXPIRE = "EXPIRE"
    WITHDRAW = "WITHDRAW"
    SCHEDULE = "SCHEDULE"
    CANCEL = "CANCEL"
    CONFIRM = "CONFIRM"
    DISPUTE = "DISPUTE"
    RESOLVE = "RESOLVE"
    RETRY = "RETRY"


S = RequestState
E = RequestEvent

REQUEST_MACHINE = MachineDefinition(
    machine_id="request",
    initial_state=S.IDLE,
    states=tuple(RequestState),
    transitions={
        S.IDLE: {E.SEND: S.SENT},
        S.SENT: {
            E.ACCEPT: S.ACCEPTED,
            E.DECLINE: S.DECLINED,
            E.EXPIRE: S.EXPIRED,
            E.WITHDRAW: S.WITHDRAWN,
        },
        S.ACCEPTED: {E.SCHEDULE: S.MEETING_SCHEDULED, E.CANCEL: S.CANCELLED},
        S.MEETING_SCHEDULED: {E.CONFIRM: S.COMPLETED, E.CANCEL: S.CANCELLED},
        S.COMPLETED: {E.DISPUTE: S.DISPUTED},
        S.DISPUTED: {E.RESOLVE: S.RESOLVED},
        S.DECLINED: {E.RETRY: S.IDLE},
        S.EXPIRED: {E.RETRY: S.IDLE},
        S.CANCELLED: {E.RETRY: S.IDLE},
        S.WITHDRAWN: {E.RETRY: S.IDLE},
        S.RESOLVED: {},
    },
)

del S, E

_ACTIVE = frozenset(
    s.value
    for s in (RequestState.SENT, RequestState.ACCEPTED, RequestState.MEETING_SCHEDULED)
)
_FAILED = frozenset(
    s.value
    for s in (
        RequestState.DECLINED,
        RequestState.EXPIRED,
        RequestState.CANCELLED,
        RequestState.WITHDRAWN,
    )
)

ACTIVE_REQUEST_STATES = _ACTIVE


def create_request_machine(state: RequestState | str | None = None) -> MachineInstance:
    if state is None:
        return create_machine(REQUEST_MACHINE)
    return create_machine(REQUEST_MACHINE, MachineSnapshot(state=state))


def is_request_active(state: RequestState | str) -> bool:
    """In flight: sent, accepted or meeting scheduled."""
    return RequestState(state).value in _ACTIVE


def is_request_failed(state: RequestState | str) -> bool:
    return RequestState(state).value in _FAILED


def can_retry_request(state: RequestState | str) -> bool:
    return REQUEST_MACHINE.target(state, RequestEvent.RETRY) is not None
