"""
Dispute lifecycle machine.

Acyclic: ``OPEN -> UNDER_REVIEW -> RESOLVED | REJECTED | ESCALATED``.
No event ever leads back to ``OPEN``.
"""

from enum import Enum

from market_kernel.domain.fsm import MachineDefinition, MachineInstance, MachineSnapshot, create_machine


class DisputeState(str, Enum):
    OPEN = "OPEN"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"
    ESCALATED = "ESCALATED"


class DisputeEvent(str, Enum):
    BEGIN_REVIEW = "BEGIN_REVIEW"
    RESOLVE = "RESOLVE"
    REJECT = "REJECT"
    ESCALATE = "ESCALATE"


class DisputeType(str, Enum):
    NO_SHOW = "NO_SHOW"
    ITEM_NOT_AS_DESCRIBED = "ITEM_NOT_AS_DESCRIBED"
    PAYMENT_ISSUE = "PAYMENT_ISSUE"
    SAFETY_CONCERN = "SAFETY_CONCERN"
    OTHER = "OTHER"


DISPUTE_MACHINE = MachineDefinition(
    machine_id="dispute",
    initial_state=DisputeState.OPEN,
    states=tuple(DisputeState),
    transitions={
        DisputeState.OPEN: {DisputeEvent.BEGIN_REVIEW: DisputeState.UNDER_REVIEW},
        DisputeState.UNDER_REVIEW: {
            DisputeEvent.RESOLVE: DisputeState.RESOLVED,
            DisputeEvent.REJECT: DisputeState.REJECTED,
            DisputeEvent.ESCALATE: DisputeState.ESCALATED,
        },
        DisputeState.RESOLVED: {},
        DisputeState.REJECTED: {},
        DisputeState.ESCALATED: {},
    },
)

ACTIVE_DISPUTE_STATES = frozenset(
    {DisputeState.OPEN.value, DisputeState.UNDER_REVIEW.value}
)


def create_dispute_machine(state: DisputeState | str | None = None) -> MachineInstance:
    if state is None:
        return create_machine(DISPUTE_MACHINE)
    return create_machine(DISPUTE_MACHINE, MachineSnapshot(state=state))


def is_dispute_terminal(state: DisputeState | str) -> bool:
    return DisputeState(state).value in DISPUTE_MACHINE.terminal_states


def is_dispute_active(state: DisputeState | str) -> bool:
    return DisputeState(state).value in ACTIVE_DISPUTE_STATES


def is_dispute_resolved(state: DisputeState | str) -> bool:
    return DisputeState(state) is DisputeState.RESOLVED
