"""
Exhaustive transition checks for the listing, request and dispute machines.

Every (state, event) pair is sent through a fresh instance: pairs in the
expected table must land on the listed target, every other pair must
raise InvalidTransitionError.
"""

import pytest

from market_kernel.domain.fsm import create_machine, MachineSnapshot, reachable_states
from market_kernel.domain.machines import (
    ACTIVE_DISPUTE_STATES,
    ACTIVE_REQUEST_STATES,
    DISPUTE_MACHINE,
    LISTING_MACHINE,
    REQUEST_MACHINE,
    DisputeState,
    ListingState,
    RequestEvent,
    RequestState,
    can_retry_request,
    create_dispute_machine,
    create_listing_machine,
    create_request_machine,
    is_dispute_active,
    is_dispute_resolved,
    is_dispute_terminal,
    is_listing_awaiting_admin,
    is_listing_visible,
    is_request_active,
    is_request_failed,
)
from market_kernel.exceptions import InvalidTransitionError

LISTING_TABLE = {
    ("draft", "SUBMIT"): "pending_review",
    ("pending_review", "APPROVE"): "approved",
    ("pending_review", "REJECT"): "rejected",
    ("rejected", "RESUBMIT"): "pending_review",
    ("approved", "RECEIVE_INTEREST"): "interest_received",
    ("approved", "EXPIRE"): "expired",
    ("approved", "FLAG"): "flagged",
    ("approved", "REMOVE"): "removed",
    ("interest_received", "ACCEPT_REQUEST"): "in_transaction",
    ("interest_received", "DECLINE_REQUEST"): "approved",
    ("interest_received", "EXPIRE"): "expired",
    ("interest_received", "FLAG"): "flagged",
    ("in_transaction", "CONFIRM_EXCHANGE"): "completed",
    ("in_transaction", "CANCEL_TRANSACTION"): "approved",
    ("in_transaction", "FLAG"): "flagged",
    ("completed", "ARCHIVE"): "archived",
    ("expired", "RELIST"): "draft",
    ("expired", "ARCHIVE"): "archived",
    ("flagged", "RESOLVE_FLAG"): "approved",
    ("flagged", "REMOVE"): "removed",
    ("removed", "ARCHIVE"): "archived",
}

REQUEST_TABLE = {
    ("idle", "SEND"): "sent",
    ("sent", "ACCEPT"): "accepted",
    ("sent", "DECLINE"): "declined",
    ("sent", "EXPIRE"): "expired",
    ("sent", "WITHDRAW"): "withdrawn",
    ("accepted", "SCHEDULE"): "meeting_scheduled",
    ("accepted", "CANCEL"): "cancelled",
    ("meeting_scheduled", "CONFIRM"): "completed",
    ("meeting_scheduled", "CANCEL"): "cancelled",
    ("completed", "DISPUTE"): "disputed",
    ("disputed", "RESOLVE"): "resolved",
    ("declined", "RETRY"): "idle",
    ("expired", "RETRY"): "idle",
    ("cancelled", "RETRY"): "idle",
    ("withdrawn", "RETRY"): "idle",
}

DISPUTE_TABLE = {
    ("OPEN", "BEGIN_REVIEW"): "UNDER_REVIEW",
    ("UNDER_REVIEW", "RESOLVE"): "RESOLVED",
    ("UNDER_REVIEW", "REJECT"): "REJECTED",
    ("UNDER_REVIEW", "ESCALATE"): "ESCALATED",
}

MACHINES = [
    pytest.param(LISTING_MACHINE, LISTING_TABLE, id="listing"),
    pytest.param(REQUEST_MACHINE, REQUEST_TABLE, id="request"),
    pytest.param(DISPUTE_MACHINE, DISPUTE_TABLE, id="dispute"),
]


class TestExhaustiveMatrix:
    @pytest.mark.parametrize("definition,table", MACHINES)
    def test_every_state_event_pair(self, definition, table):
        for state in definition.states:
            for event in definition.events:
                machine = create_machine(definition, MachineSnapshot(state=state))
                expected = table.get((state, event))
                if expected is None:
                    with pytest.raises(InvalidTransitionError):
                        machine.send(event)
                else:
                    assert machine.send(event).state == expected, (state, event)

    @pytest.mark.parametrize("definition,table", MACHINES)
    def test_table_has_no_extra_rows(self, definition, table):
        actual = {
            (state, event): target
            for state, row in definition.transitions.items()
            for event, target in row.items()
        }
        assert actual == table


class TestListingMachine:
    def test_initial_state_is_draft(self):
        assert create_listing_machine().state == "draft"

    def test_moderated_happy_path(self):
        machine = create_listing_machine()
        for event in ("SUBMIT", "APPROVE", "RECEIVE_INTEREST", "ACCEPT_REQUEST", "CONFIRM_EXCHANGE", "ARCHIVE"):
            machine = machine.send(event)
        assert machine.state == "archived"
        assert machine.is_terminal

    def test_only_archived_is_terminal(self):
        assert LISTING_MACHINE.terminal_states == frozenset({"archived"})

    def test_visibility_helpers(self):
        assert is_listing_visible(ListingState.APPROVED)
        assert is_listing_visible("interest_received")
        assert not is_listing_visible("draft")
        assert is_listing_awaiting_admin("pending_review")
        assert is_listing_awaiting_admin(ListingState.FLAGGED)
        assert not is_listing_awaiting_admin("approved")


class TestRequestMachine:
    def test_initial_state_is_idle(self):
        assert create_request_machine().state == "idle"

    def test_only_resolved_is_terminal(self):
        assert REQUEST_MACHINE.terminal_states == frozenset({"resolved"})

    @pytest.mark.parametrize("failed", ["declined", "expired", "cancelled", "withdrawn"])
    def test_failure_states_retry_to_idle_and_send_again(self, failed):
        machine = create_request_machine(failed)

        assert is_request_failed(failed)
        assert can_retry_request(failed)
        assert machine.send(RequestEvent.RETRY).send(RequestEvent.SEND).state == "sent"

    def test_retry_rejected_outside_failure_states(self):
        for state in ("idle", "sent", "accepted", "meeting_scheduled", "completed", "disputed", "resolved"):
            assert not can_retry_request(state)

    def test_dispute_only_after_completion(self):
        assert create_request_machine("completed").can("DISPUTE")
        assert not create_request_machine("meeting_scheduled").can("DISPUTE")

    def test_active_states(self):
        assert ACTIVE_REQUEST_STATES == frozenset({"sent", "accepted", "meeting_scheduled"})
        assert is_request_active(RequestState.ACCEPTED)
        assert not is_request_active("completed")


class TestDisputeMachine:
    def test_initial_state_is_open(self):
        assert create_dispute_machine().state == "OPEN"

    def test_acyclic_never_returns_to_open(self):
        for state in DISPUTE_MACHINE.states:
            assert state not in reachable_states(DISPUTE_MACHINE, state)
        assert "OPEN" not in reachable_states(DISPUTE_MACHINE, "OPEN")

    def test_terminal_states(self):
        assert DISPUTE_MACHINE.terminal_states == frozenset({"RESOLVED", "REJECTED", "ESCALATED"})
        assert is_dispute_terminal(DisputeState.ESCALATED)
        assert not is_dispute_terminal("UNDER_REVIEW")

    def test_helpers(self):
        assert ACTIVE_DISPUTE_STATES == frozenset({"OPEN", "UNDER_REVIEW"})
        assert is_dispute_active("OPEN")
        assert not is_dispute_active("REJECTED")
        assert is_dispute_resolved("RESOLVED")
        assert not is_dispute_resolved("REJECTED")
