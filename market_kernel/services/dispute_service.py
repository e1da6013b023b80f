"""
DisputeService -- filing disputes.

Disputes start OPEN at version 0; review events are admin-only and go
through the TransitionCoordinator.  Filing is never gated by restriction,
so restricted users can still report problems.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from market_kernel.domain.clock import Clock
from market_kernel.domain.lifecycle import DISPUTE_LIFECYCLE
from market_kernel.domain.machines import ACTIVE_DISPUTE_STATES, DisputeState, DisputeType
from market_kernel.exceptions import (
    ConflictError,
    DuplicateActiveError,
    EntityNotFoundError,
    ForbiddenError,
    ValidationError,
)
from market_kernel.logging_config import get_logger
from market_kernel.models.account import UserAccount
from market_kernel.models.audit_record import AuditAction
from market_kernel.models.dispute import Dispute
from market_kernel.models.exchange_request import ExchangeRequest
from market_kernel.models.listing import Listing
from market_kernel.services.auditor_service import AuditorService
from market_kernel.services.base import BaseService

logger = get_logger("services.dispute")


class DisputeService(BaseService[Dispute]):
    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._auditor = AuditorService(session, self.clock)

    def file_dispute(
        self,
        raised_by_id: UUID,
        against_id: UUID,
        dispute_type: DisputeType | str,
        description: str,
        request_id: UUID | None = None,
        listing_id: UUID | None = None,
    ) -> Dispute:
        """
        Raises:
            ValidationError: unknown dispute type or empty description.
            EntityNotFoundError: unknown user, request or listing.
            ConflictError: dispute against oneself.
            ForbiddenError: raiser is not a party of the request.
            DuplicateActiveError: an active dispute already exists.
        """
        errors: dict[str, list[str]] = {}
        try:
            kind = DisputeType(dispute_type)
        except ValueError:
            errors["dispute_type"] = [f"must be one of {[t.value for t in DisputeType]}"]
        if not (description or "").strip():
            errors["description"] = ["must not be empty"]
        if errors:
            raise ValidationError("Invalid dispute data", errors)

        raiser = self.session.get(UserAccount, raised_by_id)
        if raiser is None:
            raise EntityNotFoundError("user", raised_by_id)
        if self.session.get(UserAccount, against_id) is None:
            raise EntityNotFoundError("user", against_id)
        if raised_by_id == against_id:
            raise ConflictError("You cannot raise a dispute against yourself")

        if request_id is not None:
            request = self.session.get(ExchangeRequest, request_id)
            if request is None:
                raise EntityNotFoundError("request", request_id)
            if raised_by_id not in (request.buyer_id, request.seller_id):
                raise ForbiddenError("You are not a party to this request")
            listing_id = listing_id or request.listing_id

        if listing_id is not None and self.session.get(Listing, listing_id) is None:
            raise EntityNotFoundError("listing", listing_id)

        duplicate = select(func.count(Dispute.id)).where(
            Dispute.raised_by_id == raised_by_id,
            Dispute.against_id == against_id,
            Dispute.status.in_(ACTIVE_DISPUTE_STATES),
        )
        if request_id is not None:
            duplicate = duplicate.where(Dispute.request_id == request_id)
        elif listing_id is not None:
            duplicate = duplicate.where(Dispute.listing_id == listing_id)
        if self.session.execute(duplicate).scalar_one():
            raise DuplicateActiveError(
                DISPUTE_LIFECYCLE.entity_type,
                "You already have an active dispute for this",
            )

        now = self.clock.now()
        status = DISPUTE_LIFECYCLE.status_map.to_status(DisputeState.OPEN)
        dispute = Dispute(
            request_id=request_id,
            listing_id=listing_id,
            raised_by_id=raised_by_id,
            against_id=against_id,
            dispute_type=kind.value,
            description=description.strip(),
            status=status,
            version=0,
            created_at=now,
            updated_at=now,
            created_by_id=raised_by_id,
        )
        self.session.add(dispute)
        self.session.flush()

        self._auditor.record_creation(
            entity_type=DISPUTE_LIFECYCLE.entity_type,
            entity_id=dispute.id,
            action=AuditAction.DISPUTE_CREATE,
            actor_id=raised_by_id,
            actor_role=raiser.role,
            status=status,
            payload={"dispute_type": kind.value, "against_id": str(against_id)},
        )
        logger.info("dispute_filed", extra={"dispute_id": str(dispute.id)})
        return dispute
