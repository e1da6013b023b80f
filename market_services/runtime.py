"""
market_services.runtime -- assemble the kernel from configuration.

``build_runtime(config)`` initializes the database engine, installs the
audit immutability guards, and constructs the long-lived services with
the configured thresholds.  Session-scoped services are created per unit
of work through the factory methods.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import Session, sessionmaker

from market_config import get_active_config
from market_config.bridges import build_standing_policies, engine_kwargs
from market_config.schema import MarketConfig
from market_kernel.db.engine import create_tables, init_engine_from_url, get_session_factory
from market_kernel.db.immutability import register_immutability_listeners
from market_kernel.domain.clock import Clock, SystemClock
from market_kernel.logging_config import configure_logging, get_logger
from market_kernel.selectors.standing_selector import StandingPolicies, StandingSelector
from market_kernel.services.account_service import AccountService
from market_kernel.services.dispute_service import DisputeService
from market_kernel.services.exchange_request_service import ExchangeRequestService
from market_kernel.services.idempotency_service import IdempotencyService
from market_kernel.services.listing_service import ListingService
from market_kernel.services.transition_coordinator import TransitionCoordinator
from market_services.maintenance import MaintenanceService
from market_services.scheduler import MaintenanceScheduler

logger = get_logger("services.runtime")


@dataclass
class MarketRuntime:
    config: MarketConfig
    clock: Clock
    session_factory: sessionmaker[Session]
    policies: StandingPolicies
    coordinator: TransitionCoordinator
    idempotency: IdempotencyService
    maintenance: MaintenanceService
    scheduler: MaintenanceScheduler | None = None

    def accounts(self, session: Session) -> AccountService:
        return AccountService(session, self.clock, self.config.admin_registry)

    def listings(self, session: Session) -> ListingService:
        return ListingService(session, self.clock, self.policies)

    def requests(self, session: Session) -> ExchangeRequestService:
        return ExchangeRequestService(session, self.clock, self.policies)

    def disputes(self, session: Session) -> DisputeService:
        return DisputeService(session, self.clock)

    def standing(self, session: Session) -> StandingSelector:
        return StandingSelector(session, self.clock, self.policies)

    def start(self) -> None:
        if self.scheduler is not None:
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown()


def build_runtime(
    config: MarketConfig | None = None,
    clock: Clock | None = None,
    create_schema: bool = False,
) -> MarketRuntime:
    config = config or get_active_config()
    clock = clock or SystemClock()

    configure_logging(level=config.logging.level)
    init_engine_from_url(config.database.url, **engine_kwargs(config))
    if create_schema:
        create_tables()
    register_immutability_listeners()

    session_factory = get_session_factory()
    coordinator = TransitionCoordinator(
        session_factory,
        clock,
        lock_timeout_seconds=config.coordinator.lock_timeout_seconds,
    )
    idempotency = IdempotencyService(
        session_factory,
        clock,
        ttl_seconds=config.idempotency.ttl_seconds,
        processing_lease_seconds=config.idempotency.processing_lease_seconds,
        max_key_length=config.idempotency.max_key_length,
    )
    maintenance = MaintenanceService(
        session_factory,
        coordinator,
        idempotency,
        clock,
        request_expiry=timedelta(days=config.maintenance.request_expiry_days),
        sweep_batch_size=config.idempotency.sweep_batch_size,
    )
    scheduler = None
    if config.maintenance.enabled:
        scheduler = MaintenanceScheduler(
            maintenance,
            interval_seconds=config.maintenance.sweep_interval_seconds,
        )

    logger.info("market_runtime_built", extra={"config_checksum": config.checksum})
    return MarketRuntime(
        config=config,
        clock=clock,
        session_factory=session_factory,
        policies=build_standing_policies(config),
        coordinator=coordinator,
        idempotency=idempotency,
        maintenance=maintenance,
        scheduler=scheduler,
    )
