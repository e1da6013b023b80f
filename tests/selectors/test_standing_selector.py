"""Tests for StandingSelector: store counters -> engine results."""

from datetime import timedelta
from uuid import uuid4

import pytest

from market_engines.fraud import FraudFlag, FraudPolicy, FraudRiskLevel
from market_engines.restriction import RestrictionPolicy
from market_engines.trust import TrustStatus
from market_kernel.exceptions import EntityNotFoundError
from market_kernel.selectors.standing_selector import StandingPolicies, StandingSelector


@pytest.fixture
def standing_for(session_factory, deterministic_clock):
    def _standing(user_id, policies=None):
        with session_factory() as session:
            return StandingSelector(session, deterministic_clock, policies).standing_for(user_id)

    return _standing


class TestStandingSelector:
    def test_clean_account(self, standing_for, make_account):
        user = make_account()

        standing = standing_for(user.id)

        assert standing.trust.status is TrustStatus.GOOD_STANDING
        assert not standing.restriction.is_restricted
        assert standing.fraud.risk_level is FraudRiskLevel.LOW
        assert standing.account_age_days == 0

    def test_account_age_from_clock(self, standing_for, make_account, deterministic_clock):
        user = make_account(created_at=deterministic_clock.now() - timedelta(days=40, hours=3))

        assert standing_for(user.id).account_age_days == 40

    def test_stored_counters_feed_trust(self, standing_for, make_account, deterministic_clock):
        user = make_account(
            completed_exchanges=4,
            cancelled_requests=3,
            created_at=deterministic_clock.now() - timedelta(days=10),
        )

        standing = standing_for(user.id)

        assert standing.trust.status is TrustStatus.REVIEW_REQUIRED
        assert standing.trust.reasons == (
            "New account (10 days) with high cancel/complete ratio (0.75 > 0.50).",
        )

    def test_disputes_against_user_counted(self, standing_for, make_account, make_dispute):
        user = make_account()
        for status in ("OPEN", "UNDER_REVIEW", "RESOLVED"):
            make_dispute(make_account().id, user.id, status=status)

        standing = standing_for(user.id)

        assert standing.trust.status is TrustStatus.REVIEW_REQUIRED
        assert not standing.restriction.is_restricted
        assert standing.fraud.flags == (FraudFlag.DISPUTE_SPIKE,)

    def test_disputes_raised_by_user_not_counted(self, standing_for, make_account, make_dispute):
        user = make_account()
        for _ in range(4):
            make_dispute(user.id, make_account().id)

        assert standing_for(user.id).trust.status is TrustStatus.GOOD_STANDING

    def test_active_disputes_restrict(self, standing_for, make_account, make_dispute):
        user = make_account()
        make_dispute(make_account().id, user.id)

        standing = standing_for(user.id, StandingPolicies(restriction=RestrictionPolicy(dispute_threshold=1)))

        assert standing.restriction.is_restricted

    def test_recent_cancellations_counted_for_both_parties(
        self, standing_for, make_account, make_listing, make_request
    ):
        seller = make_account()
        listing = make_listing(seller.id)
        for status in ("CANCELLED", "WITHDRAWN", "CANCELLED"):
            make_request(listing, make_account().id, status=status)

        standing = standing_for(seller.id, StandingPolicies(fraud=FraudPolicy(cancellation_spike=2)))

        assert FraudFlag.CANCELLATION_SPIKE in standing.fraud.flags

    def test_old_cancellations_ignored(
        self, standing_for, make_account, make_listing, make_request, deterministic_clock
    ):
        seller = make_account()
        listing = make_listing(seller.id)
        old = deterministic_clock.now() - timedelta(days=8)
        for _ in range(5):
            make_request(listing, make_account().id, status="CANCELLED", updated_at=old)

        assert standing_for(seller.id).fraud.flags == ()

    def test_admin_is_exempt(self, standing_for, make_account):
        admin = make_account(role="ADMIN", admin_flags=5)

        standing = standing_for(admin.id)

        assert standing.trust.is_good_standing
        assert not standing.restriction.is_restricted

    def test_unknown_user(self, standing_for):
        with pytest.raises(EntityNotFoundError):
            standing_for(uuid4())
