"""
Tests for the sealed state machine engine.

Covers:
- Definition validation (undeclared states, initial state)
- create_machine / send / can / available_events
- Immutability of instances and history
- Graph helpers (next_states, is_terminal, reachable_states)
"""

from enum import Enum

import pytest

from market_kernel.domain.fsm import (
    MachineDefinition,
    MachineSnapshot,
    TransitionRecord,
    create_machine,
    is_terminal,
    next_states,
    reachable_states,
    state_name,
)
from market_kernel.exceptions import InvalidTransitionError


class Light(str, Enum):
    RED = "red"
    GREEN = "green"
    YELLOW = "yellow"
    OFF = "off"


TRAFFIC = MachineDefinition(
    machine_id="traffic",
    initial_state=Light.RED,
    states=tuple(Light),
    transitions={
        Light.RED: {"GO": Light.GREEN, "POWER_OFF": Light.OFF},
        Light.GREEN: {"SLOW": Light.YELLOW},
        Light.YELLOW: {"STOP": Light.RED},
    },
)


class TestMachineDefinition:
    def test_enum_members_are_normalised_to_strings(self):
        assert TRAFFIC.initial_state == "red"
        assert TRAFFIC.states == frozenset({"red", "green", "yellow", "off"})
        assert TRAFFIC.transitions["red"]["GO"] == "green"

    def test_declared_state_without_row_is_terminal(self):
        assert TRAFFIC.terminal_states == frozenset({"off"})
        assert dict(TRAFFIC.transitions["off"]) == {}

    def test_events_collects_every_row(self):
        assert TRAFFIC.events == frozenset({"GO", "POWER_OFF", "SLOW", "STOP"})

    def test_undeclared_target_rejected(self):
        with pytest.raises(ValueError, match="undeclared"):
            MachineDefinition(
                machine_id="bad",
                initial_state="a",
                states=("a",),
                transitions={"a": {"X": "b"}},
            )

    def test_undeclared_initial_state_rejected(self):
        with pytest.raises(ValueError, match="initial state"):
            MachineDefinition(
                machine_id="bad",
                initial_state="z",
                transitions={"a": {"X": "b"}},
            )

    def test_states_derived_from_table_when_not_declared(self):
        definition = MachineDefinition(
            machine_id="derived",
            initial_state="a",
            transitions={"a": {"X": "b"}},
        )
        assert definition.states == frozenset({"a", "b"})
        assert definition.terminal_states == frozenset({"b"})

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            TRAFFIC.transitions["red"]["GO"] = "off"

    def test_target_lookup(self):
        assert TRAFFIC.target(Light.GREEN, "SLOW") == "yellow"
        assert TRAFFIC.target(Light.GREEN, "STOP") is None
        assert TRAFFIC.target("nowhere", "STOP") is None


class TestMachineInstance:
    def test_create_starts_at_initial_state_with_empty_history(self):
        machine = create_machine(TRAFFIC)

        assert machine.state == "red"
        assert machine.history == ()
        assert machine.machine_id == "traffic"

    def test_send_returns_new_instance(self):
        machine = create_machine(TRAFFIC)
        moved = machine.send("GO")

        assert moved.state == "green"
        assert machine.state == "red"
        assert machine.history == ()
        assert moved.history == (TransitionRecord("GO", "red", "green"),)

    def test_history_accumulates_in_order(self):
        machine = create_machine(TRAFFIC).send("GO").send("SLOW").send("STOP")

        assert [r.event for r in machine.history] == ["GO", "SLOW", "STOP"]
        assert machine.state == "red"

    def test_illegal_event_raises_with_context(self):
        machine = create_machine(TRAFFIC)

        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.send("SLOW")

        err = exc_info.value
        assert err.machine_id == "traffic"
        assert err.from_state == "red"
        assert err.event == "SLOW"
        assert str(err) == '[traffic] Cannot apply "SLOW" in state "red"'

    def test_unknown_event_raises(self):
        with pytest.raises(InvalidTransitionError):
            create_machine(TRAFFIC).send("TELEPORT")

    def test_terminal_state_rejects_everything(self):
        machine = create_machine(TRAFFIC).send("POWER_OFF")

        assert machine.is_terminal
        assert machine.available_events() == ()
        for event in TRAFFIC.events:
            with pytest.raises(InvalidTransitionError):
                machine.send(event)

    def test_can_and_available_events(self):
        machine = create_machine(TRAFFIC)

        assert machine.can("GO")
        assert machine.can("POWER_OFF")
        assert not machine.can("STOP")
        assert set(machine.available_events()) == {"GO", "POWER_OFF"}

    def test_instance_is_frozen(self):
        machine = create_machine(TRAFFIC)
        with pytest.raises(AttributeError):
            machine.state = "green"


class TestSnapshots:
    def test_resume_from_snapshot(self):
        machine = create_machine(TRAFFIC, MachineSnapshot(state=Light.YELLOW))

        assert machine.state == "yellow"
        assert machine.send("STOP").state == "red"

    def test_snapshot_history_accepts_tuples(self):
        machine = create_machine(
            TRAFFIC,
            MachineSnapshot(state="green", history=(("GO", "red", "green"),)),
        )

        assert machine.history == (TransitionRecord("GO", "red", "green"),)

    def test_unknown_snapshot_state_rejected(self):
        with pytest.raises(ValueError, match="unknown snapshot state"):
            create_machine(TRAFFIC, MachineSnapshot(state="blue"))


class TestGraphHelpers:
    def test_next_states_deduplicated_in_table_order(self):
        definition = MachineDefinition(
            machine_id="dup",
            initial_state="a",
            transitions={"a": {"X": "b", "Y": "b", "Z": "c"}},
        )
        assert next_states(definition, "a") == ("b", "c")

    def test_is_terminal(self):
        assert is_terminal(TRAFFIC, "off")
        assert not is_terminal(TRAFFIC, "red")

    def test_reachable_states_follows_cycles(self):
        assert reachable_states(TRAFFIC, "green") == frozenset({"yellow", "red", "green", "off"})
        assert reachable_states(TRAFFIC, "off") == frozenset()

    def test_state_name(self):
        assert state_name(Light.RED) == "red"
        assert state_name("plain") == "plain"
