"""
EntityLifecycle -- per-entity bundle of machine, status map and
authorization rules.

Responsibility:
    Everything the TransitionCoordinator needs to know about one entity
    type that is not storage: which machine validates its events, how its
    persisted statuses map to states, which audit action records a status
    change, and which parties may issue which events.

Architecture position:
    Kernel > Domain -- pure.  No I/O, no ORM imports.  Party identifiers
    are read from the loaded row by attribute name so that this module
    never imports a model.

Invariants enforced:
    - Every event of the machine has an authorization rule.
    - Admins bypass party checks; everyone else must be one of the parties
      named by the rule for that event.  Non-parties are forbidden.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from market_kernel.domain.fsm import MachineDefinition, state_name
from market_kernel.domain.machines import (
    DISPUTE_MACHINE,
    LISTING_MACHINE,
    REQUEST_MACHINE,
    DisputeEvent,
    ListingEvent,
    RequestEvent,
)
from market_kernel.domain.status_map import (
    StatusMap,
    identity_status_map,
    upper_case_status_map,
)
from market_kernel.exceptions import ForbiddenError


class ActorRole(str, Enum):
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class EntityType(str, Enum):
    LISTING = "listing"
    REQUEST = "request"
    DISPUTE = "dispute"


ADMIN_ONLY: frozenset[str] = frozenset()


@dataclass(frozen=True, eq=False)
class EntityLifecycle:
    """
    Contract:
        ``party_fields`` maps a party name (``owner``, ``buyer``...) to the
        attribute of the persisted row holding that party's user id.
        ``event_parties`` maps every event to the party names allowed to
        issue it; an empty set means admin only.
    """

    entity_type: str
    definition: MachineDefinition
    status_map: StatusMap
    status_action: str
    party_fields: Mapping[str, str]
    event_parties: Mapping[Any, frozenset[str]]

    def __post_init__(self) -> None:
        rules = {state_name(event): frozenset(p) for event, p in self.event_parties.items()}
        missing = self.definition.events - set(rules)
        if missing:
            raise ValueError(
                f"{self.entity_type} lifecycle has no authorization rule for {sorted(missing)}"
            )
        for parties in rules.values():
            unknown = parties - set(self.party_fields)
            if unknown:
                raise ValueError(
                    f"{self.entity_type} lifecycle names unknown parties {sorted(unknown)}"
                )
        object.__setattr__(self, "event_parties", MappingProxyType(rules))
        object.__setattr__(self, "party_fields", MappingProxyType(dict(self.party_fields)))

    def parties_of(self, row: Any) -> dict[str, UUID | None]:
        return {name: getattr(row, attr) for name, attr in self.party_fields.items()}

    def authorize(self, event: Any, actor_id: UUID, actor_role: Any, row: Any) -> None:
        """Raise ForbiddenError unless ``actor_id`` may issue ``event`` on ``row``.

        Events the machine does not know are left for the machine to reject
        as an invalid transition.
        """
        if state_name(actor_role) == ActorRole.ADMIN.value:
            return
        name = state_name(event)
        if name not in self.event_parties:
            return
        allowed = self.event_parties[name]
        parties = self.parties_of(row)
        if any(parties.get(p) == actor_id for p in allowed):
            return
        if not allowed:
            raise ForbiddenError(f"Only an administrator may {name} a {self.entity_type}")
        raise ForbiddenError(
            f"Actor is not permitted to {name} this {self.entity_type}"
        )


LE = ListingEvent
_OWNER = frozenset({"owner"})

LISTING_LIFECYCLE = EntityLifecycle(
    entity_type=EntityType.LISTING.value,
    definition=LISTING_MACHINE,
    status_map=upper_case_status_map(EntityType.LISTING.value, LISTING_MACHINE),
    status_action="listing_status_update",
    party_fields={"owner": "owner_id"},
    event_parties={
        LE.SUBMIT: _OWNER,
        LE.RESUBMIT: _OWNER,
        LE.RELIST: _OWNER,
        LE.ARCHIVE: _OWNER,
        LE.RECEIVE_INTEREST: _OWNER,
        LE.ACCEPT_REQUEST: _OWNER,
        LE.DECLINE_REQUEST: _OWNER,
        LE.CONFIRM_EXCHANGE: _OWNER,
        LE.CANCEL_TRANSACTION: _OWNER,
        LE.APPROVE: ADMIN_ONLY,
        LE.REJECT: ADMIN_ONLY,
        LE.FLAG: ADMIN_ONLY,
        LE.RESOLVE_FLAG: ADMIN_ONLY,
        LE.REMOVE: ADMIN_ONLY,
        LE.EXPIRE: ADMIN_ONLY,
    },
)

RE = RequestEvent
_BUYER = frozenset({"buyer"})
_SELLER = frozenset({"seller"})
_EITHER = frozenset({"buyer", "seller"})

REQUEST_LIFECYCLE = EntityLifecycle(
    entity_type=EntityType.REQUEST.value,
    definition=REQUEST_MACHINE,
    status_map=upper_case_status_map(EntityType.REQUEST.value, REQUEST_MACHINE),
    status_action="request_event",
    party_fields={"buyer": "buyer_id", "seller": "seller_id"},
    event_parties={
        RE.SEND: _BUYER,
        RE.WITHDRAW: _BUYER,
        RE.DISPUTE: _BUYER,
        RE.RETRY: _BUYER,
        RE.ACCEPT: _SELLER,
        RE.DECLINE: _SELLER,
        RE.SCHEDULE: _EITHER,
        RE.CONFIRM: _EITHER,
        RE.CANCEL: _EITHER,
        RE.RESOLVE: ADMIN_ONLY,
        RE.EXPIRE: ADMIN_ONLY,
    },
)

DISPUTE_LIFECYCLE = EntityLifecycle(
    entity_type=EntityType.DISPUTE.value,
    definition=DISPUTE_MACHINE,
    status_map=identity_status_map(EntityType.DISPUTE.value, DISPUTE_MACHINE),
    status_action="dispute_status_update",
    party_fields={"raised_by": "raised_by_id", "against": "against_id"},
    event_parties={event: ADMIN_ONLY for event in DisputeEvent},
)

del LE, RE

LIFECYCLES: Mapping[str, EntityLifecycle] = MappingProxyType(
    {
        lifecycle.entity_type: lifecycle
        for lifecycle in (LISTING_LIFECYCLE, REQUEST_LIFECYCLE, DISPUTE_LIFECYCLE)
    }
)


def lifecycle_for(entity_type: Any) -> EntityLifecycle:
    """Raises KeyError for an entity type with no lifecycle."""
    return LIFECYCLES[state_name(entity_type)]
