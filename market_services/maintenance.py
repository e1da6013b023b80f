"""
market_services.maintenance -- background maintenance sweeps.

Responsibility:
    Expires exchange requests that sat in SENT past the expiry window and
    garbage-collects expired idempotency rows.

Architecture position:
    Services layer.  May import from market_kernel and market_engines.

Invariants enforced:
    - Request expiry goes through the TransitionCoordinator exactly like a
      user action (row lock, FSM validation, version bump, audit record).
      The version read by the candidate query is passed as
      ``expected_version``, so a request that moved and came back to SENT
      in the meantime is left alone.
    - ``run_sweep`` is mutually exclusive with itself within the process:
      an overlapping call returns immediately without sweeping.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from market_kernel.domain.clock import Clock, SystemClock
from market_kernel.domain.lifecycle import REQUEST_LIFECYCLE, ActorRole, EntityType
from market_kernel.domain.machines import RequestEvent, RequestState
from market_kernel.exceptions import (
    EntityNotFoundError,
    InvalidTransitionError,
    LockContentionError,
    VersionConflictError,
)
from market_kernel.logging_config import LogContext, get_logger
from market_kernel.models.exchange_request import ExchangeRequest
from market_kernel.services.auditor_service import SYSTEM_ACTOR_ID
from market_kernel.services.idempotency_service import IdempotencyService
from market_kernel.services.transition_coordinator import TransitionCoordinator

logger = get_logger("services.maintenance")


@dataclass(frozen=True)
class ExpirySweepResult:
    expired: tuple[UUID, ...] = ()
    skipped: tuple[UUID, ...] = ()

    @property
    def expired_count(self) -> int:
        return len(self.expired)


@dataclass(frozen=True)
class MaintenanceReport:
    job_id: str
    requests: ExpirySweepResult = field(default_factory=ExpirySweepResult)
    idempotency_keys_deleted: int = 0


class MaintenanceService:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        coordinator: TransitionCoordinator,
        idempotency: IdempotencyService,
        clock: Clock | None = None,
        request_expiry: timedelta = timedelta(days=7),
        sweep_batch_size: int | None = None,
    ):
        self._session_factory = session_factory
        self._coordinator = coordinator
        self._idempotency = idempotency
        self._clock = clock or SystemClock()
        self._request_expiry = request_expiry
        self._sweep_batch_size = sweep_batch_size
        self._sweep_lock = threading.Lock()

    def expire_stale_requests(self, older_than: timedelta | None = None) -> ExpirySweepResult:
        """Send EXPIRE to every SENT request not updated within ``older_than``."""
        cutoff = self._clock.now() - (older_than or self._request_expiry)
        sent = REQUEST_LIFECYCLE.status_map.to_status(RequestState.SENT)

        with self._session_factory() as session:
            candidates = session.execute(
                select(ExchangeRequest.id, ExchangeRequest.version)
                .where(ExchangeRequest.status == sent, ExchangeRequest.updated_at < cutoff)
                .order_by(ExchangeRequest.updated_at)
            ).all()

        expired: list[UUID] = []
        skipped: list[UUID] = []
        for request_id, version in candidates:
            try:
                self._coordinator.transition(
                    EntityType.REQUEST,
                    request_id,
                    RequestEvent.EXPIRE,
                    actor_id=SYSTEM_ACTOR_ID,
                    actor_role=ActorRole.ADMIN,
                    expected_version=version,
                    reason="expired by maintenance sweep",
                )
            except (
                InvalidTransitionError,
                VersionConflictError,
                LockContentionError,
                EntityNotFoundError,
            ) as exc:
                # Moved, locked or deleted since the candidate query.
                logger.info(
                    "request_expiry_skipped",
                    extra={"request_id": str(request_id), "error_code": exc.code},
                )
                skipped.append(request_id)
                continue
            expired.append(request_id)

        logger.info(
            "request_expiry_completed",
            extra={"expired": len(expired), "skipped": len(skipped)},
        )
        return ExpirySweepResult(expired=tuple(expired), skipped=tuple(skipped))

    def sweep_idempotency_keys(self) -> int:
        return self._idempotency.sweep_expired(limit=self._sweep_batch_size)

    def run_sweep(self) -> MaintenanceReport | None:
        """One full maintenance pass.  Returns None when a pass is already running."""
        if not self._sweep_lock.acquire(blocking=False):
            logger.info("maintenance_sweep_skipped_overlap")
            return None
        job_id = uuid.uuid4().hex
        try:
            with LogContext.bind(job_id=job_id):
                logger.info("maintenance_sweep_started")
                requests = self.expire_stale_requests()
                deleted = self.sweep_idempotency_keys()
                logger.info(
                    "maintenance_sweep_completed",
                    extra={
                        "requests_expired": requests.expired_count,
                        "idempotency_keys_deleted": deleted,
                    },
                )
                return MaintenanceReport(
                    job_id=job_id,
                    requests=requests,
                    idempotency_keys_deleted=deleted,
                )
        finally:
            self._sweep_lock.release()
