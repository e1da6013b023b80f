"""
Persisted status <-> FSM state translation.

Every entity table stores its lifecycle position as a ``status`` string.
A ``StatusMap`` is the bijective table between those strings and the
states of the entity's machine.

Invariants enforced:
    - Bijective: no two statuses map to the same state.
    - Total: every state of the machine has exactly one status.
    - A status outside the table is data corruption, reported as
      ``UnmappedStatusError`` (a Conflict) and never as an FSM rejection.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from market_kernel.domain.fsm import MachineDefinition, state_name
from market_kernel.exceptions import UnmappedStatusError


@dataclass(frozen=True, eq=False)
class StatusMap:
    entity_type: str
    definition: MachineDefinition
    mapping: Mapping[str, Any]

    def __post_init__(self) -> None:
        forward = {str(status): state_name(state) for status, state in self.mapping.items()}

        states = list(forward.values())
        duplicates = sorted({s for s in states if states.count(s) > 1})
        if duplicates:
            raise ValueError(
                f"{self.entity_type} status map is not bijective: "
                f"states {duplicates} have more than one status"
            )
        unknown = set(states) - self.definition.states
        if unknown:
            raise ValueError(
                f"{self.entity_type} status map names unknown states {sorted(unknown)}"
            )
        missing = self.definition.states - set(states)
        if missing:
            raise ValueError(
                f"{self.entity_type} status map does not cover states {sorted(missing)}"
            )

        object.__setattr__(self, "mapping", MappingProxyType(forward))
        object.__setattr__(
            self, "_inverse", MappingProxyType({v: k for k, v in forward.items()})
        )

    @property
    def statuses(self) -> frozenset[str]:
        return frozenset(self.mapping)

    def to_state(self, status: str) -> str:
        """Translate a persisted status to its machine state.

        Raises:
            UnmappedStatusError: status is not in the table.
        """
        try:
            return self.mapping[status]
        except KeyError:
            raise UnmappedStatusError(self.entity_type, status) from None

    def to_status(self, state: Any) -> str:
        return self._inverse[state_name(state)]


def upper_case_status_map(entity_type: str, definition: MachineDefinition) -> StatusMap:
    """Statuses are the upper-cased state names (``pending_review`` -> ``PENDING_REVIEW``)."""
    return StatusMap(
        entity_type=entity_type,
        definition=definition,
        mapping={state.upper(): state for state in definition.states},
    )


def identity_status_map(entity_type: str, definition: MachineDefinition) -> StatusMap:
    return StatusMap(
        entity_type=entity_type,
        definition=definition,
        mapping={state: state for state in definition.states},
    )
