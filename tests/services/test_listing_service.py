"""Tests for ListingService.create_listing."""

from decimal import Decimal
from uuid import uuid4

import pytest

from market_kernel.exceptions import ActionRestrictedError, EntityNotFoundError, ValidationError
from market_kernel.services.auditor_service import AuditorService
from market_kernel.services.listing_service import ListingService


@pytest.fixture
def create_listing(session_factory, deterministic_clock):
    def _create(owner_id, title="Desk lamp", category="furniture", price="12.5", **kwargs):
        with session_factory() as session, session.begin():
            return ListingService(session, deterministic_clock).create_listing(
                owner_id, title, category, price, **kwargs
            )

    return _create


class TestCreateListing:
    def test_new_listing_starts_in_draft(self, create_listing, make_account, session_factory):
        owner = make_account()

        listing = create_listing(owner.id, description="Works fine")

        assert listing.status == "DRAFT"
        assert listing.version == 0
        assert listing.price == Decimal("12.50")
        assert listing.created_by_id == owner.id
        with session_factory() as session:
            trace = AuditorService(session).get_trace("listing", listing.id)
        assert trace.last_action == "listing_create"
        assert trace.statuses == ("DRAFT",)

    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"title": "  "}, "title"),
            ({"title": "x" * 201}, "title"),
            ({"category": ""}, "category"),
            ({"price": "-1"}, "price"),
            ({"price": "free"}, "price"),
            ({"price": "NaN"}, "price"),
        ],
    )
    def test_validation(self, create_listing, make_account, kwargs, field):
        owner = make_account()

        with pytest.raises(ValidationError) as exc_info:
            create_listing(owner.id, **kwargs)

        assert field in exc_info.value.fields

    def test_unknown_owner(self, create_listing):
        with pytest.raises(EntityNotFoundError):
            create_listing(uuid4())

    def test_restricted_owner_cannot_create(self, create_listing, make_account):
        owner = make_account(admin_flags=1)

        with pytest.raises(ActionRestrictedError) as exc_info:
            create_listing(owner.id)

        assert exc_info.value.action == "CREATE_LISTING"
        assert exc_info.value.http_status == 403
        assert exc_info.value.details()["reasons"] == [
            "Account trust status is RESTRICTED."
        ]

    def test_override_blocks_creation(self, create_listing, make_account):
        owner = make_account(restriction_override=True)

        with pytest.raises(ActionRestrictedError):
            create_listing(owner.id)
