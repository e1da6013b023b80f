"""
ExchangeRequestService -- opening exchange requests.

Responsibility:
    Creates a request from a buyer against a visible listing.  Requests
    start at SENT, version 0.  Later events go through the
    TransitionCoordinator.

Invariants enforced:
    - The listing is visible (approved or interest received).
    - A buyer cannot request their own listing.
    - At most one active request per (buyer, listing).  The listing row is
      locked while checking, so two concurrent opens by the same buyer
      cannot both pass.
    - Gated by the restriction engine (``REQUEST_EXCHANGE``).
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from market_engines.restriction import RestrictedAction
from market_kernel.domain.clock import Clock
from market_kernel.domain.lifecycle import LISTING_LIFECYCLE, REQUEST_LIFECYCLE
from market_kernel.domain.machines import (
    ACTIVE_REQUEST_STATES,
    RequestState,
    is_listing_visible,
)
from market_kernel.exceptions import ConflictError, DuplicateActiveError, EntityNotFoundError
from market_kernel.logging_config import get_logger
from market_kernel.models.account import UserAccount
from market_kernel.models.audit_record import AuditAction
from market_kernel.models.exchange_request import ExchangeRequest
from market_kernel.models.listing import Listing
from market_kernel.selectors.standing_selector import StandingPolicies
from market_kernel.services.auditor_service import AuditorService
from market_kernel.services.base import BaseService
from market_kernel.services.policy_gate import PolicyGate

logger = get_logger("services.exchange_request")


class ExchangeRequestService(BaseService[ExchangeRequest]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policies: StandingPolicies | None = None,
    ):
        super().__init__(session, clock)
        self._gate = PolicyGate(session, self.clock, policies)
        self._auditor = AuditorService(session, self.clock)

    def open_request(self, listing_id: UUID, buyer_id: UUID, message: str = "") -> ExchangeRequest:
        """
        Raises:
            EntityNotFoundError: unknown listing or buyer.
            ConflictError: own listing, or listing not available.
            DuplicateActiveError: buyer already has an active request here.
            ActionRestrictedError: the buyer may not request exchanges.
        """
        buyer = self.session.get(UserAccount, buyer_id)
        if buyer is None:
            raise EntityNotFoundError("user", buyer_id)

        listing = self.session.execute(
            select(Listing).where(Listing.id == listing_id).with_for_update()
        ).scalar_one_or_none()
        if listing is None:
            raise EntityNotFoundError("listing", listing_id)
        if listing.owner_id == buyer_id:
            raise ConflictError("You cannot request your own listing")
        if not is_listing_visible(LISTING_LIFECYCLE.status_map.to_state(listing.status)):
            raise ConflictError("Listing is not available for requests")

        self._gate.require(buyer_id, RestrictedAction.REQUEST_EXCHANGE)

        active_statuses = [
            REQUEST_LIFECYCLE.status_map.to_status(s) for s in sorted(ACTIVE_REQUEST_STATES)
        ]
        active = self.session.execute(
            select(func.count(ExchangeRequest.id)).where(
                ExchangeRequest.listing_id == listing_id,
                ExchangeRequest.buyer_id == buyer_id,
                ExchangeRequest.status.in_(active_statuses),
            )
        ).scalar_one()
        if active:
            raise DuplicateActiveError(
                REQUEST_LIFECYCLE.entity_type,
                "You already have an active request for this listing",
            )

        now = self.clock.now()
        status = REQUEST_LIFECYCLE.status_map.to_status(RequestState.SENT)
        request = ExchangeRequest(
            listing_id=listing_id,
            buyer_id=buyer_id,
            seller_id=listing.owner_id,
            message=message or "",
            status=status,
            version=0,
            created_at=now,
            updated_at=now,
            created_by_id=buyer_id,
        )
        self.session.add(request)
        self.session.flush()

        self._auditor.record_creation(
            entity_type=REQUEST_LIFECYCLE.entity_type,
            entity_id=request.id,
            action=AuditAction.REQUEST_CREATE,
            actor_id=buyer_id,
            actor_role=buyer.role,
            status=status,
            payload={"listing_id": str(listing_id)},
        )
        logger.info(
            "exchange_request_opened",
            extra={"request_id": str(request.id), "listing_id": str(listing_id)},
        )
        return request
