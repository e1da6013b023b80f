"""
Sealed finite-state machine engine (``market_kernel.domain.fsm``).

Responsibility
--------------
Pure value objects for entity lifecycles.  A ``MachineDefinition`` is a
map-of-maps transition table; a ``MachineInstance`` is an immutable
``{state, history}`` value produced only by ``create_machine`` and
``send``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Sealed table: any (state, event) pair absent from the table is illegal.
  ``send`` raises ``InvalidTransitionError`` -- it never stays put or
  silently no-ops.
* Every source and target state is declared; ``initial_state`` is declared.
* Definitions and instances are immutable; ``send`` returns a new
  instance and the old one is left untouched.
* History is append-only and for observability only.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from market_kernel.exceptions import InvalidTransitionError


def state_name(value: Any) -> str:
    """Normalise a state/event (plain str or str-valued Enum) to ``str``."""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


@dataclass(frozen=True)
class TransitionRecord:
    """One applied transition: ``(event, from_state, to_state)``."""

    event: str
    from_state: str
    to_state: str


@dataclass(frozen=True, eq=False)
class MachineDefinition:
    """A sealed transition table.

    Contract: frozen; ``transitions[state][event] -> next_state``.
    ``states`` may list states that have no outgoing row (terminal states);
    when given, every state used in the table must be among them.
    """

    machine_id: str
    initial_state: str
    transitions: Mapping[Any, Mapping[Any, Any]]
    states: Iterable[Any] = ()

    def __post_init__(self) -> None:
        table: dict[str, Mapping[str, str]] = {}
        used: set[str] = set()
        for state, row in self.transitions.items():
            source = state_name(state)
            frozen_row = {state_name(event): state_name(target) for event, target in row.items()}
            table[source] = MappingProxyType(frozen_row)
            used.add(source)
            used.update(frozen_row.values())

        declared = {state_name(s) for s in self.states}
        if declared:
            undeclared = used - declared
            if undeclared:
                raise ValueError(
                    f"[{self.machine_id}] transition table uses undeclared "
                    f"states: {sorted(undeclared)}"
                )
        else:
            declared = used

        initial = state_name(self.initial_state)
        if initial not in declared:
            raise ValueError(
                f"[{self.machine_id}] initial state '{initial}' is not declared"
            )

        for state in declared:
            table.setdefault(state, MappingProxyType({}))

        object.__setattr__(self, "initial_state", initial)
        object.__setattr__(self, "transitions", MappingProxyType(table))
        object.__setattr__(self, "states", frozenset(declared))

    @property
    def events(self) -> frozenset[str]:
        return frozenset(e for row in self.transitions.values() for e in row)

    @property
    def terminal_states(self) -> frozenset[str]:
        return frozenset(s for s, row in self.transitions.items() if not row)

    def target(self, state: Any, event: Any) -> str | None:
        """Look up ``transitions[state][event]``; None when illegal."""
        row = self.transitions.get(state_name(state))
        if row is None:
            return None
        return row.get(state_name(event))


@dataclass(frozen=True)
class MachineSnapshot:
    """Persisted position of a machine, used to resume it."""

    state: Any
    history: tuple = ()


@dataclass(frozen=True)
class MachineInstance:
    """Immutable ``{state, history}`` value bound to a definition."""

    definition: MachineDefinition
    state: str
    history: tuple[TransitionRecord, ...] = ()

    @property
    def machine_id(self) -> str:
        return self.definition.machine_id

    @property
    def is_terminal(self) -> bool:
        return not self.definition.transitions[self.state]

    def can(self, event: Any) -> bool:
        return state_name(event) in self.definition.transitions[self.state]

    def available_events(self) -> tuple[str, ...]:
        return tuple(self.definition.transitions[self.state])

    def send(self, event: Any) -> MachineInstance:
        """Apply ``event`` and return the resulting instance.

        Raises:
            InvalidTransitionError: ``event`` has no row entry in the
                current state.
        """
        name = state_name(event)
        target = self.definition.transitions[self.state].get(name)
        if target is None:
            raise InvalidTransitionError(self.definition.machine_id, self.state, name)
        record = TransitionRecord(event=name, from_state=self.state, to_state=target)
        return MachineInstance(
            definition=self.definition,
            state=target,
            history=self.history + (record,),
        )


def _to_record(entry: Any) -> TransitionRecord:
    if isinstance(entry, TransitionRecord):
        return entry
    event, from_state, to_state = entry
    return TransitionRecord(state_name(event), state_name(from_state), state_name(to_state))


def create_machine(
    definition: MachineDefinition,
    snapshot: MachineSnapshot | None = None,
) -> MachineInstance:
    """Create an instance at the initial state, or resume from ``snapshot``.

    Raises:
        ValueError: the snapshot state is not declared by the definition.
    """
    if snapshot is None:
        return MachineInstance(definition=definition, state=definition.initial_state)

    state = state_name(snapshot.state)
    if state not in definition.states:
        raise ValueError(
            f"[{definition.machine_id}] unknown snapshot state '{state}'"
        )
    history = tuple(_to_record(entry) for entry in snapshot.history)
    return MachineInstance(definition=definition, state=state, history=history)


def next_states(definition: MachineDefinition, state: Any) -> tuple[str, ...]:
    """Distinct states reachable from ``state`` in one event, in table order."""
    seen: dict[str, None] = {}
    for target in definition.transitions.get(state_name(state), {}).values():
        seen.setdefault(target, None)
    return tuple(seen)


def is_terminal(definition: MachineDefinition, state: Any) -> bool:
    return not next_states(definition, state)


def reachable_states(definition: MachineDefinition, state: Any) -> frozenset[str]:
    """Every state reachable from ``state`` by one or more events."""
    found: set[str] = set()
    queue = deque(next_states(definition, state))
    while queue:
        current = queue.popleft()
        if current in found:
            continue
        found.add(current)
        queue.extend(next_states(definition, current))
    return frozenset(found)
