"""
Module: market_kernel.selectors.integrity_selector
Responsibility: Read-only consistency report for the admin dashboard.
Architecture position: Kernel > Selectors.  Read-only.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select

from market_kernel.domain.lifecycle import LISTING_LIFECYCLE, REQUEST_LIFECYCLE
from market_kernel.domain.machines import ACTIVE_REQUEST_STATES, ListingState, RequestState
from market_kernel.models.exchange_request import ExchangeRequest
from market_kernel.models.listing import Listing
from market_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class IntegrityReport:
    orphaned_requests: int
    stale_pending_listings: int
    stale_sent_requests: int
    checked_at: datetime

    @property
    def is_clean(self) -> bool:
        return not (self.orphaned_requests or self.stale_pending_listings or self.stale_sent_requests)


class IntegritySelector(BaseSelector[Listing]):
    def report(self, now: datetime, stale_after: timedelta = timedelta(days=7)) -> IntegrityReport:
        """
        Counts of:
            - active requests whose listing has been removed
            - listings waiting in review for longer than ``stale_after``
            - requests still SENT and untouched for longer than ``stale_after``
        """
        cutoff = now - stale_after
        removed = LISTING_LIFECYCLE.status_map.to_status(ListingState.REMOVED)
        pending = LISTING_LIFECYCLE.status_map.to_status(ListingState.PENDING_REVIEW)
        sent = REQUEST_LIFECYCLE.status_map.to_status(RequestState.SENT)
        active = [REQUEST_LIFECYCLE.status_map.to_status(s) for s in sorted(ACTIVE_REQUEST_STATES)]

        orphaned = self.session.execute(
            select(func.count(ExchangeRequest.id))
            .join(Listing, Listing.id == ExchangeRequest.listing_id)
            .where(Listing.status == removed, ExchangeRequest.status.in_(active))
        ).scalar_one()

        stale_pending = self.session.execute(
            select(func.count(Listing.id)).where(
                Listing.status == pending, Listing.updated_at < cutoff
            )
        ).scalar_one()

        stale_sent = self.session.execute(
            select(func.count(ExchangeRequest.id)).where(
                ExchangeRequest.status == sent, ExchangeRequest.updated_at < cutoff
            )
        ).scalar_one()

        return IntegrityReport(
            orphaned_requests=orphaned,
            stale_pending_listings=stale_pending,
            stale_sent_requests=stale_sent,
            checked_at=now,
        )
