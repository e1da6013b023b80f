"""
ListingService -- listing creation.

New listings start in DRAFT at version 0.  Every later status change goes
through the TransitionCoordinator.  Creation is gated by the restriction
engine (``CREATE_LISTING``).
"""

from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy.orm import Session

from market_engines.restriction import RestrictedAction
from market_kernel.domain.clock import Clock
from market_kernel.domain.lifecycle import LISTING_LIFECYCLE
from market_kernel.domain.machines import ListingState
from market_kernel.exceptions import EntityNotFoundError, ValidationError
from market_kernel.logging_config import get_logger
from market_kernel.models.account import UserAccount
from market_kernel.models.audit_record import AuditAction
from market_kernel.models.listing import Listing
from market_kernel.selectors.standing_selector import StandingPolicies
from market_kernel.services.auditor_service import AuditorService
from market_kernel.services.base import BaseService
from market_kernel.services.policy_gate import PolicyGate

logger = get_logger("services.listing")

MAX_TITLE_LENGTH = 200


def _parse_price(value) -> Decimal | None:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price < 0:
        return None
    return price.quantize(Decimal("0.01"))


class ListingService(BaseService[Listing]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policies: StandingPolicies | None = None,
    ):
        super().__init__(session, clock)
        self._gate = PolicyGate(session, self.clock, policies)
        self._auditor = AuditorService(session, self.clock)

    def create_listing(
        self,
        owner_id: UUID,
        title: str,
        category: str,
        price,
        description: str = "",
    ) -> Listing:
        """
        Raises:
            ValidationError: empty title or category, invalid price.
            EntityNotFoundError: unknown owner.
            ActionRestrictedError: the owner may not create listings.
        """
        errors: dict[str, list[str]] = {}
        title = (title or "").strip()
        if not title:
            errors["title"] = ["must not be empty"]
        elif len(title) > MAX_TITLE_LENGTH:
            errors["title"] = [f"must be at most {MAX_TITLE_LENGTH} characters"]
        if not (category or "").strip():
            errors["category"] = ["must not be empty"]
        parsed_price = _parse_price(price)
        if parsed_price is None:
            errors["price"] = ["must be a non-negative amount"]
        if errors:
            raise ValidationError("Invalid listing data", errors)

        owner = self.session.get(UserAccount, owner_id)
        if owner is None:
            raise EntityNotFoundError("user", owner_id)

        self._gate.require(owner_id, RestrictedAction.CREATE_LISTING)

        now = self.clock.now()
        status = LISTING_LIFECYCLE.status_map.to_status(ListingState.DRAFT)
        listing = Listing(
            owner_id=owner_id,
            title=title,
            description=description or "",
            category=category.strip(),
            price=parsed_price,
            status=status,
            version=0,
            created_at=now,
            updated_at=now,
            created_by_id=owner_id,
        )
        self.session.add(listing)
        self.session.flush()

        self._auditor.record_creation(
            entity_type=LISTING_LIFECYCLE.entity_type,
            entity_id=listing.id,
            action=AuditAction.LISTING_CREATE,
            actor_id=owner_id,
            actor_role=owner.role,
            status=status,
            payload={"title": title, "category": listing.category},
        )
        logger.info("listing_created", extra={"listing_id": str(listing.id)})
        return listing
