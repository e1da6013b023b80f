"""
PolicyGate -- apply the restriction decision before a gated action.

Responsibility:
    Evaluates a user's standing through ``StandingSelector`` and refuses
    the action when the restriction engine blocks it.  When the fraud
    heuristics report HIGH risk, raises a review record for a moderator.

The review record is independent of the gated action.  It is queued on
the caller's session and written in its own short transaction once the
caller's unit of work ends, whether that unit commits or rolls back
(a blocked action rolls back).  A failure to write it is logged and never
reaches the caller.
"""

from uuid import UUID

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction

from market_engines.restriction import RestrictedAction
from market_kernel.domain.clock import Clock, SystemClock
from market_kernel.exceptions import ActionRestrictedError
from market_kernel.logging_config import get_logger
from market_kernel.selectors.standing_selector import (
    StandingPolicies,
    StandingSelector,
    UserStanding,
)
from market_kernel.services.auditor_service import AuditorService

logger = get_logger("services.policy_gate")

_PENDING_REVIEWS = "market_kernel.pending_fraud_reviews"


class PolicyGate:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policies: StandingPolicies | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._selector = StandingSelector(session, self._clock, policies)

    def require(self, user_id: UUID, action: RestrictedAction) -> UserStanding:
        """
        Raises:
            ActionRestrictedError: ``action`` is blocked for ``user_id``.
            EntityNotFoundError: unknown user.
        """
        standing = self._selector.standing_for(user_id)

        if standing.fraud.requires_review:
            self._queue_fraud_review(standing)

        if standing.restriction.blocks(action):
            logger.info(
                "action_restricted",
                extra={"user_id": str(user_id), "action": action.value},
            )
            raise ActionRestrictedError(user_id, action.value, standing.restriction.reasons)
        return standing

    def _queue_fraud_review(self, standing: UserStanding) -> None:
        pending = self._session.info.get(_PENDING_REVIEWS)
        if pending is None:
            pending = self._session.info[_PENDING_REVIEWS] = []
            event.listen(self._session, "after_transaction_end", _write_pending_reviews)
        pending.append((self._clock, standing))
        logger.info(
            "fraud_review_queued",
            extra={
                "user_id": str(standing.user_id),
                "risk_level": standing.fraud.risk_level.value,
            },
        )


def _write_pending_reviews(session: Session, transaction: SessionTransaction) -> None:
    # Only once the outermost transaction is over; on SQLite it holds the
    # write lock until then.
    if transaction.parent is not None:
        return
    pending = session.info.get(_PENDING_REVIEWS)
    if not pending:
        return
    reviews = list(pending)
    pending.clear()

    user_ids = [str(standing.user_id) for _, standing in reviews]
    try:
        with Session(bind=session.get_bind()) as review_session, review_session.begin():
            for clock, standing in reviews:
                AuditorService(review_session, clock).record_fraud_review(
                    user_id=standing.user_id,
                    risk_level=standing.fraud.risk_level.value,
                    flags=[f.value for f in standing.fraud.flags],
                )
    except SQLAlchemyError:
        logger.exception("fraud_review_record_failed", extra={"user_ids": user_ids})
        return
    logger.info("fraud_review_recorded", extra={"user_ids": user_ids})
