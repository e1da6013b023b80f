"""Pure domain layer: FSM engine, lifecycle machines, status maps, clock."""

from market_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from market_kernel.domain.fsm import (
    MachineDefinition,
    MachineInstance,
    MachineSnapshot,
    TransitionRecord,
    create_machine,
    is_terminal,
    next_states,
    reachable_states,
)
from market_kernel.domain.lifecycle import (
    DISPUTE_LIFECYCLE,
    LIFECYCLES,
    LISTING_LIFECYCLE,
    REQUEST_LIFECYCLE,
    ActorRole,
    EntityLifecycle,
    EntityType,
    lifecycle_for,
)
from market_kernel.domain.status_map import StatusMap

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "MachineDefinition",
    "MachineInstance",
    "MachineSnapshot",
    "TransitionRecord",
    "create_machine",
    "next_states",
    "is_terminal",
    "reachable_states",
    "StatusMap",
    "EntityLifecycle",
    "EntityType",
    "ActorRole",
    "LIFECYCLES",
    "LISTING_LIFECYCLE",
    "REQUEST_LIFECYCLE",
    "DISPUTE_LIFECYCLE",
    "lifecycle_for",
]
