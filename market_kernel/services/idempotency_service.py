"""
IdempotencyService -- at-most-once execution of retried mutations.

Responsibility:
    Deduplicates mutation requests that share ``(actor_id, client_key)``.
    The first request claims the key and runs; every other request either
    replays the cached response or is told the original is still running.

Architecture position:
    Kernel > Services.  Owns its own short transactions (claim, complete,
    release, sweep), each independent of the operation it wraps.

Invariants enforced:
    - Claim-then-execute: the claim is a single INSERT backed by the UNIQUE
      constraint on ``idempotency_keys.key``.  There is no read-then-write
      window; of N concurrent claims exactly one INSERT succeeds.
    - A "processing" sentinel is never replayed; callers get
      ``IdempotencyInProgressError`` (409) instead of a second execution.
    - Server-fault outcomes (status >= 500) and retryable kernel errors
      are never cached.
    - Expiry sweeps run off the request path (``sweep_expired``).

Failure modes:
    - IdempotencyKeyError: empty key or key over ``max_key_length``.
    - IdempotencyInProgressError: the key is held by a running request.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from market_kernel.domain.clock import Clock, SystemClock
from market_kernel.exceptions import (
    IdempotencyInProgressError,
    IdempotencyKeyError,
    MarketKernelError,
    serialize_error,
)
from market_kernel.logging_config import LogContext, get_logger
from market_kernel.models.idempotency_key import IdempotencyKey, IdempotencyState

logger = get_logger("services.idempotency")

Operation = Callable[[], tuple[int, Any]]


@dataclass(frozen=True)
class IdempotencyClaim:
    """
    Outcome of ``claim()``.

    ``replayed`` is False when this caller owns the sentinel and must run
    the operation, True when ``status``/``body`` hold a cached response.
    """

    composite_key: str
    actor_id: UUID
    replayed: bool = False
    status: int | None = None
    body: Any = None


@dataclass(frozen=True)
class IdempotentResponse:
    status: int
    body: Any
    replayed: bool = False


class IdempotencyService:
    """
    Contract:
        ``execute()`` runs ``operation`` at most once per composite key
        within the TTL and returns the same ``(status, body)`` to every
        caller that shares the key.

    Guarantees:
        - Sentinels carry a lease of ``processing_lease_seconds``; a
          sentinel abandoned by a crashed worker becomes reclaimable.
        - Completed responses expire ``ttl_seconds`` after completion.
    """

    MAX_CLAIM_ATTEMPTS = 3

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        ttl_seconds: int = 86400,
        processing_lease_seconds: int = 300,
        max_key_length: int = 128,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._lease = timedelta(seconds=processing_lease_seconds)
        self._max_key_length = max_key_length

    def composite_key(self, actor_id: UUID, client_key: str) -> str:
        """``"{actor_id}:{client_key}"`` after validating the client key."""
        if not isinstance(client_key, str) or not client_key.strip():
            raise IdempotencyKeyError("key must be a non-empty string", self._max_key_length)
        if len(client_key) > self._max_key_length:
            raise IdempotencyKeyError(
                f"key exceeds {self._max_key_length} characters", self._max_key_length
            )
        return f"{actor_id}:{client_key}"

    def claim(self, actor_id: UUID, client_key: str) -> IdempotencyClaim:
        """
        Atomically claim the key, or report what holds it.

        Raises:
            IdempotencyKeyError: invalid client key.
            IdempotencyInProgressError: another request holds the sentinel.
        """
        key = self.composite_key(actor_id, client_key)

        for _ in range(self.MAX_CLAIM_ATTEMPTS):
            if self._try_insert_sentinel(key, actor_id):
                logger.info("idempotency_key_claimed", extra={"idempotency_key": key})
                return IdempotencyClaim(composite_key=key, actor_id=actor_id)

            now = self._clock.now()
            with self._session_factory() as session, session.begin():
                existing = session.execute(
                    select(IdempotencyKey).where(IdempotencyKey.key == key)
                ).scalar_one_or_none()

                if existing is None:
                    # Removed between our INSERT and SELECT; claim again.
                    continue

                if existing.is_expired(now):
                    session.execute(
                        delete(IdempotencyKey)
                        .where(
                            IdempotencyKey.key == key,
                            IdempotencyKey.expires_at <= now,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    logger.info(
                        "idempotency_key_expired_reclaimed",
                        extra={"idempotency_key": key},
                    )
                    continue

                if existing.is_processing:
                    logger.info(
                        "idempotency_key_in_progress",
                        extra={"idempotency_key": key},
                    )
                    raise IdempotencyInProgressError(key)

                logger.info("idempotency_key_replayed", extra={"idempotency_key": key})
                return IdempotencyClaim(
                    composite_key=key,
                    actor_id=actor_id,
                    replayed=True,
                    status=existing.response_status,
                    body=existing.response_body,
                )

        # Every attempt lost a race against a concurrent claimant.
        raise IdempotencyInProgressError(key)

    def complete(self, claim: IdempotencyClaim, status: int, body: Any) -> None:
        """Store the final response, or drop the sentinel on a server fault."""
        if claim.replayed:
            return

        now = self._clock.now()
        with self._session_factory() as session, session.begin():
            owned = (
                IdempotencyKey.key == claim.composite_key,
                IdempotencyKey.state == IdempotencyState.PROCESSING.value,
            )
            if status >= 500:
                session.execute(
                    delete(IdempotencyKey)
                    .where(*owned)
                    .execution_options(synchronize_session=False)
                )
                logger.info(
                    "idempotency_key_dropped",
                    extra={"idempotency_key": claim.composite_key, "status": status},
                )
                return

            session.execute(
                update(IdempotencyKey)
                .where(*owned)
                .values(
                    state=IdempotencyState.COMPLETED.value,
                    response_status=status,
                    response_body=body,
                    expires_at=now + self._ttl,
                )
                .execution_options(synchronize_session=False)
            )
        logger.info(
            "idempotency_key_completed",
            extra={"idempotency_key": claim.composite_key, "status": status},
        )

    def release(self, claim: IdempotencyClaim) -> None:
        """Delete our sentinel so the client may retry."""
        if claim.replayed:
            return
        with self._session_factory() as session, session.begin():
            session.execute(
                delete(IdempotencyKey)
                .where(
                    IdempotencyKey.key == claim.composite_key,
                    IdempotencyKey.state == IdempotencyState.PROCESSING.value,
                )
                .execution_options(synchronize_session=False)
            )
        logger.info("idempotency_key_released", extra={"idempotency_key": claim.composite_key})

    def execute(
        self,
        actor_id: UUID,
        client_key: str | None,
        operation: Operation,
    ) -> IdempotentResponse:
        """
        Claim, run ``operation`` once, cache and return its response.

        ``operation`` returns ``(status, body)``.  Kernel errors it raises
        are converted to their HTTP response and cached like any other
        response below 500, except retryable ones (lock contention,
        cancellation): those release the key so a retry with the same key
        runs the operation again.  Any other exception releases the
        sentinel and propagates.  ``client_key=None`` runs without
        deduplication.
        """
        if client_key is None:
            status, body, _ = self._run(operation)
            return IdempotentResponse(status=status, body=body)

        claim = self.claim(actor_id, client_key)
        if claim.replayed:
            return IdempotentResponse(status=claim.status, body=claim.body, replayed=True)

        with LogContext.bind(idempotency_key=claim.composite_key):
            try:
                status, body, retryable = self._run(operation)
            except Exception:
                logger.exception("idempotent_operation_failed")
                self.release(claim)
                raise
            if retryable:
                logger.info("idempotent_operation_retryable", extra={"status": status})
                self.release(claim)
            else:
                self.complete(claim, status, body)
        return IdempotentResponse(status=status, body=body)

    def sweep_expired(self, limit: int | None = None) -> int:
        """Delete expired rows (sentinels and responses).  Returns the count."""
        now = self._clock.now()
        with self._session_factory() as session, session.begin():
            stmt = delete(IdempotencyKey).where(IdempotencyKey.expires_at <= now)
            if limit is not None:
                ids = session.execute(
                    select(IdempotencyKey.id)
                    .where(IdempotencyKey.expires_at <= now)
                    .order_by(IdempotencyKey.expires_at)
                    .limit(limit)
                ).scalars().all()
                if not ids:
                    return 0
                stmt = stmt.where(IdempotencyKey.id.in_(ids))
            result = session.execute(stmt.execution_options(synchronize_session=False))
            deleted = result.rowcount or 0

        logger.info("idempotency_sweep_completed", extra={"deleted": deleted})
        return deleted

    # Internals

    def _try_insert_sentinel(self, key: str, actor_id: UUID) -> bool:
        now = self._clock.now()
        try:
            with self._session_factory() as session, session.begin():
                session.add(
                    IdempotencyKey(
                        key=key,
                        actor_id=actor_id,
                        state=IdempotencyState.PROCESSING.value,
                        created_at=now,
                        expires_at=now + self._lease,
                    )
                )
        except IntegrityError:
            return False
        return True

    @staticmethod
    def _run(operation: Operation) -> tuple[int, Any, bool]:
        """``(status, body, retryable)``; kernel errors become their response."""
        try:
            status, body = operation()
        except MarketKernelError as exc:
            status, body = serialize_error(exc)
            return status, body, exc.retryable
        return status, body, False
