"""
Module: market_kernel.selectors.standing_selector
Responsibility: Gather a user's behavioral counters from the store and run
    the trust, restriction and fraud engines over them.
Architecture position: Kernel > Selectors.  Read-only.  The engines it
    calls are pure; any write that follows from the result (a fraud review
    record) belongs to the caller.

Counter sources:
    - disputes:             disputes filed against the user (all time)
    - active_disputes:      disputes against the user in OPEN/UNDER_REVIEW
    - recent_listings:      listings the user created in the last 24 hours
    - recent_cancellations: the user's requests cancelled or withdrawn in
                            the last 7 days
    - recent_disputes:      disputes against the user in the last 30 days
    - completed_exchanges, cancelled_requests, admin_flags,
      restriction_override: stored on the account row
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from market_engines.fraud import (
    DEFAULT_FRAUD_POLICY,
    FraudHeuristicInput,
    FraudHeuristicResult,
    FraudPolicy,
    FraudRiskLevel,
    evaluate_fraud_heuristics,
)
from market_engines.restriction import (
    DEFAULT_RESTRICTION_POLICY,
    RestrictionInput,
    RestrictionPolicy,
    RestrictionResult,
    compute_restriction,
)
from market_engines.trust import (
    DEFAULT_TRUST_POLICY,
    TrustInput,
    TrustPolicy,
    TrustResult,
    TrustStatus,
    compute_trust,
)
from market_kernel.domain.clock import Clock, SystemClock
from market_kernel.domain.lifecycle import REQUEST_LIFECYCLE
from market_kernel.domain.machines import ACTIVE_DISPUTE_STATES, RequestState
from market_kernel.exceptions import EntityNotFoundError
from market_kernel.models.account import UserAccount
from market_kernel.models.dispute import Dispute
from market_kernel.models.exchange_request import ExchangeRequest
from market_kernel.models.listing import Listing
from market_kernel.selectors.base import BaseSelector

_CANCELLED_REQUEST_STATUSES = tuple(
    REQUEST_LIFECYCLE.status_map.to_status(s)
    for s in (RequestState.CANCELLED, RequestState.WITHDRAWN)
)


@dataclass(frozen=True)
class StandingPolicies:
    """Thresholds for the three engines, injected from configuration."""

    trust: TrustPolicy = DEFAULT_TRUST_POLICY
    restriction: RestrictionPolicy = DEFAULT_RESTRICTION_POLICY
    fraud: FraudPolicy = DEFAULT_FRAUD_POLICY


@dataclass(frozen=True)
class UserStanding:
    user_id: UUID
    trust: TrustResult
    restriction: RestrictionResult
    fraud: FraudHeuristicResult
    account_age_days: int


class StandingSelector(BaseSelector[UserAccount]):
    """
    Contract:
        ``standing_for(user_id)`` returns the three engine results for one
        user.  Administrators are exempt from behavioral evaluation.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policies: StandingPolicies | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policies = policies or StandingPolicies()

    def standing_for(self, user_id: UUID) -> UserStanding:
        user = self.session.get(UserAccount, user_id)
        if user is None:
            raise EntityNotFoundError("user", user_id)

        now = self._clock.now()
        age_days = max((now - user.created_at).days, 0)

        if user.is_admin:
            return UserStanding(
                user_id=user_id,
                trust=TrustResult(
                    status=TrustStatus.GOOD_STANDING,
                    reasons=("Administrators are exempt from trust evaluation.",),
                ),
                restriction=RestrictionResult(is_restricted=False),
                fraud=FraudHeuristicResult(risk_level=FraudRiskLevel.LOW),
                account_age_days=age_days,
            )

        trust = compute_trust(
            TrustInput(
                completed_exchanges=user.completed_exchanges,
                cancelled_requests=user.cancelled_requests,
                disputes=self._disputes_against(user_id),
                admin_flags=user.admin_flags,
                account_age_days=age_days,
            ),
            self._policies.trust,
        )
        restriction = compute_restriction(
            RestrictionInput(
                trust_status=trust.status,
                active_disputes=self._disputes_against(user_id, active_only=True),
                admin_override=user.restriction_override,
            ),
            self._policies.restriction,
        )
        fraud = evaluate_fraud_heuristics(
            FraudHeuristicInput(
                recent_listings=self._listings_since(user_id, now - timedelta(hours=24)),
                recent_cancellations=self._cancellations_since(user_id, now - timedelta(days=7)),
                recent_disputes=self._disputes_against(user_id, since=now - timedelta(days=30)),
                account_age_days=age_days,
            ),
            self._policies.fraud,
        )
        return UserStanding(
            user_id=user_id,
            trust=trust,
            restriction=restriction,
            fraud=fraud,
            account_age_days=age_days,
        )

    def _disputes_against(
        self,
        user_id: UUID,
        active_only: bool = False,
        since: datetime | None = None,
    ) -> int:
        stmt = select(func.count(Dispute.id)).where(Dispute.against_id == user_id)
        if active_only:
            stmt = stmt.where(Dispute.status.in_(ACTIVE_DISPUTE_STATES))
        if since is not None:
            stmt = stmt.where(Dispute.created_at >= since)
        return self.session.execute(stmt).scalar_one()

    def _listings_since(self, user_id: UUID, since: datetime) -> int:
        return self.session.execute(
            select(func.count(Listing.id)).where(
                Listing.owner_id == user_id,
                Listing.created_at >= since,
            )
        ).scalar_one()

    def _cancellations_since(self, user_id: UUID, since: datetime) -> int:
        return self.session.execute(
            select(func.count(ExchangeRequest.id)).where(
                or_(
                    ExchangeRequest.buyer_id == user_id,
                    ExchangeRequest.seller_id == user_id,
                ),
                ExchangeRequest.status.in_(_CANCELLED_REQUEST_STATUSES),
                ExchangeRequest.updated_at >= since,
            )
        ).scalar_one()
