"""
Listing lifecycle machine.

The moderated workflow is ``draft -> pending_review -> approved|rejected``.
Every other persisted status is reached through an explicit event as
well, so there is no status a listing can hold that the table does not
account for.  ``archived`` is the only terminal state.
"""

from enum import Enum

from market_kernel.domain.fsm import MachineDefinition, MachineInstance, MachineSnapshot, create_machine


class ListingState(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    INTEREST_RECEIVED = "interest_received"
    IN_TRANSACTION = "in_transaction"
    COMPLETED = "completed"
    EXPIRED = "expired"
    FLAGGED = "flagged"
    ARCHIVED = "archived"
    REMOVED = "removed"


class ListingEvent(str, Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RESUBMIT = "RESUBMIT"
    RECEIVE_INTEREST = "RECEIVE_INTEREST"
    ACCEPT_REQUEST = "ACCEPT_REQUEST"
    DECLINE_REQUEST = "DECLINE_REQUEST"
    CONFIRM_EXCHANGE = "CONFIRM_EXCHANGE"
    CANCEL_TRANSACTION = "CANCEL_TRANSACTION"
    EXPIRE = "EXPIRE"
    FLAG = "FLAG"
    RESOLVE_FLAG = "RESOLVE_FLAG"
    REMOVE = "REMOVE"
    RELIST = "RELIST"
    ARCHIVE = "ARCHIVE"


S = ListingState
E = ListingEvent

LISTING_MACHINE = MachineDefinition(
    machine_id="listing",
    initial_state=S.DRAFT,
    states=tuple(ListingState),
    transitions={
        S.DRAFT: {E.SUBMIT: S.PENDING_REVIEW},
        S.PENDING_REVIEW: {E.APPROVE: S.APPROVED, E.REJECT: S.REJECTED},
        S.REJECTED: {E.RESUBMIT: S.PENDING_REVIEW},
        S.APPROVED: {
            E.RECEIVE_INTEREST: S.INTEREST_RECEIVED,
            E.EXPIRE: S.EXPIRED,
            E.FLAG: S.FLAGGED,
            E.REMOVE: S.REMOVED,
        },
        S.INTEREST_RECEIVED: {
            E.ACCEPT_REQUEST: S.IN_TRANSACTION,
            E.DECLINE_REQUEST: S.APPROVED,
            E.EXPIRE: S.EXPIRED,
            E.FLAG: S.FLAGGED,
        },
        S.IN_TRANSACTION: {
            E.CONFIRM_EXCHANGE: S.COMPLETED,
            E.CANCEL_TRANSACTION: S.APPROVED,
            E.FLAG: S.FLAGGED,
        },
        S.COMPLETED: {E.ARCHIVE: S.ARCHIVED},
        S.EXPIRED: {E.RELIST: S.DRAFT, E.ARCHIVE: S.ARCHIVED},
        S.FLAGGED: {E.RESOLVE_FLAG: S.APPROVED, E.REMOVE: S.REMOVED},
        S.REMOVED: {E.ARCHIVE: S.ARCHIVED},
        S.ARCHIVED: {},
    },
)

del S, E

_VISIBLE = frozenset({ListingState.APPROVED.value, ListingState.INTEREST_RECEIVED.value})
_AWAITING_ADMIN = frozenset({ListingState.PENDING_REVIEW.value, ListingState.FLAGGED.value})


def create_listing_machine(state: ListingState | str | None = None) -> MachineInstance:
    if state is None:
        return create_machine(LISTING_MACHINE)
    return create_machine(LISTING_MACHINE, MachineSnapshot(state=state))


def is_listing_visible(state: ListingState | str) -> bool:
    """Listings buyers can browse and send requests against."""
    return ListingState(state).value in _VISIBLE


def is_listing_awaiting_admin(state: ListingState | str) -> bool:
    return ListingState(state).value in _AWAITING_ADMIN
