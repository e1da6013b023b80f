"""Tests for the restriction engine."""

import pytest

from market_engines.restriction import (
    ALL_BLOCKED_ACTIONS,
    RestrictedAction,
    RestrictionInput,
    RestrictionPolicy,
    compute_restriction,
)
from market_engines.trust import TrustStatus


class TestRestriction:
    def test_good_standing_is_unrestricted(self):
        result = compute_restriction(RestrictionInput(trust_status=TrustStatus.GOOD_STANDING))

        assert not result.is_restricted
        assert result.blocked_actions == ()
        assert result.reasons == ()
        assert not result.blocks(RestrictedAction.CREATE_LISTING)

    def test_review_required_alone_does_not_restrict(self):
        result = compute_restriction(RestrictionInput(trust_status=TrustStatus.REVIEW_REQUIRED))

        assert not result.is_restricted

    def test_override_wins_over_everything(self):
        result = compute_restriction(
            RestrictionInput(
                trust_status=TrustStatus.RESTRICTED,
                active_disputes=10,
                admin_override=True,
            )
        )

        assert result.is_restricted
        assert result.reasons == ("Administrative override in effect.",)

    def test_restricted_trust_blocks_everything(self):
        result = compute_restriction(RestrictionInput(trust_status=TrustStatus.RESTRICTED))

        assert result.blocked_actions == ALL_BLOCKED_ACTIONS
        assert result.reasons == ("Account trust status is RESTRICTED.",)
        for action in RestrictedAction:
            assert result.blocks(action)

    def test_trust_status_accepted_as_string(self):
        result = compute_restriction(RestrictionInput(trust_status="RESTRICTED"))

        assert result.is_restricted

    @pytest.mark.parametrize("active,restricted", [(2, False), (3, True), (7, True)])
    def test_active_dispute_threshold_is_inclusive(self, active, restricted):
        result = compute_restriction(
            RestrictionInput(trust_status=TrustStatus.GOOD_STANDING, active_disputes=active)
        )

        assert result.is_restricted is restricted
        if restricted:
            assert result.reasons == (
                f"Active disputes ({active}) meet or exceed threshold (3).",
            )

    def test_custom_threshold(self):
        result = compute_restriction(
            RestrictionInput(trust_status=TrustStatus.GOOD_STANDING, active_disputes=1),
            RestrictionPolicy(dispute_threshold=1),
        )

        assert result.is_restricted

    def test_blocks_accepts_action_value(self):
        result = compute_restriction(RestrictionInput(trust_status="RESTRICTED"))

        assert result.blocks("REQUEST_CONTACT")

    def test_hostile_dispute_count_is_zero(self):
        result = compute_restriction(
            RestrictionInput(trust_status=TrustStatus.GOOD_STANDING, active_disputes=float("nan"))
        )

        assert not result.is_restricted
