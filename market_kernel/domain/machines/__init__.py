"""Concrete lifecycle machines for listings, exchange requests and disputes."""

from market_kernel.domain.machines.dispute import (
    ACTIVE_DISPUTE_STATES,
    DISPUTE_MACHINE,
    DisputeEvent,
    DisputeState,
    DisputeType,
    create_dispute_machine,
    is_dispute_active,
    is_dispute_resolved,
    is_dispute_terminal,
)
from market_kernel.domain.machines.listing import (
    LISTING_MACHINE,
    ListingEvent,
    ListingState,
    create_listing_machine,
    is_listing_awaiting_admin,
    is_listing_visible,
)
from market_kernel.domain.machines.request import (
    ACTIVE_REQUEST_STATES,
    REQUEST_MACHINE,
    RequestEvent,
    RequestState,
    can_retry_request,
    create_request_machine,
    is_request_active,
    is_request_failed,
)

__all__ = [
    "LISTING_MACHINE",
    "ListingState",
    "ListingEvent",
    "create_listing_machine",
    "is_listing_visible",
    "is_listing_awaiting_admin",
    "REQUEST_MACHINE",
    "RequestState",
    "RequestEvent",
    "ACTIVE_REQUEST_STATES",
    "create_request_machine",
    "is_request_active",
    "is_request_failed",
    "can_retry_request",
    "DISPUTE_MACHINE",
    "DisputeState",
    "DisputeEvent",
    "DisputeType",
    "ACTIVE_DISPUTE_STATES",
    "create_dispute_machine",
    "is_dispute_terminal",
    "is_dispute_active",
    "is_dispute_resolved",
]
