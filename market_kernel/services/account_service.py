"""
AccountService -- account registration and administrative moderation.

Responsibility:
    Registers accounts, grants the ADMIN role only to e-mails in the
    configured admin registry, and lets administrators flag accounts or
    toggle the restriction override.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.  The
    admin registry is injected (from ``market_config``), never read from a
    module-level global.

Invariants enforced:
    - ADMIN role requires registry membership, both when granted and when
      an administrator acts.
    - Counter updates lock the account row.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from market_kernel.domain.clock import Clock
from market_kernel.domain.lifecycle import ActorRole
from market_kernel.exceptions import ConflictError, EntityNotFoundError, ForbiddenError, ValidationError
from market_kernel.logging_config import get_logger
from market_kernel.models.account import UserAccount
from market_kernel.models.audit_record import AuditAction
from market_kernel.services.auditor_service import AuditorService
from market_kernel.services.base import BaseService

logger = get_logger("services.account")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService(BaseService[UserAccount]):
    def __init__(
        self,
        session,
        clock: Clock | None = None,
        admin_registry: Iterable[str] = (),
    ):
        super().__init__(session, clock)
        self._admin_registry = frozenset(normalize_email(e) for e in admin_registry)
        self._auditor = AuditorService(session, self.clock)

    def is_registered_admin(self, email: str) -> bool:
        return normalize_email(email) in self._admin_registry

    def register_account(
        self,
        email: str,
        full_name: str,
        role: ActorRole | str = ActorRole.STUDENT,
    ) -> UserAccount:
        """
        Raises:
            ValidationError: malformed e-mail or empty name.
            ForbiddenError: ADMIN requested for an e-mail outside the registry.
            ConflictError: e-mail already registered.
        """
        email = normalize_email(email)
        role = ActorRole(role)
        errors: dict[str, list[str]] = {}
        if "@" not in email:
            errors["email"] = ["must be a valid e-mail address"]
        if not full_name.strip():
            errors["full_name"] = ["must not be empty"]
        if errors:
            raise ValidationError("Invalid account data", errors)

        if role is ActorRole.ADMIN and not self.is_registered_admin(email):
            logger.warning("admin_registration_refused", extra={"email": email})
            raise ForbiddenError("Not in admin registry")

        existing = self.session.execute(
            select(UserAccount.id).where(UserAccount.email == email)
        ).scalar_one_or_none()
        if existing is not None:
            raise ConflictError("Email already registered")

        now = self.clock.now()
        account = UserAccount(
            email=email,
            full_name=full_name.strip(),
            role=role.value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(account)
        self.session.flush()

        self._auditor.record_creation(
            entity_type="user",
            entity_id=account.id,
            action=AuditAction.ACCOUNT_CREATE,
            actor_id=account.id,
            actor_role=role.value,
            status=None,
            payload={"role": role.value},
        )
        logger.info("account_registered", extra={"user_id": str(account.id), "role": role.value})
        return account

    def require_admin(self, admin_id: UUID) -> UserAccount:
        """Raises ForbiddenError unless ``admin_id`` is a registered administrator."""
        admin = self.session.get(UserAccount, admin_id)
        if admin is None or not admin.is_admin:
            raise ForbiddenError("Admin role required")
        if not self.is_registered_admin(admin.email):
            raise ForbiddenError("Not in admin registry")
        return admin

    def flag_account(self, user_id: UUID, admin_id: UUID, reason: str | None = None) -> UserAccount:
        self.require_admin(admin_id)
        user = self._lock_account(user_id)
        user.admin_flags += 1
        user.updated_at = self.clock.now()
        self.session.flush()

        self._auditor.record_account_flagged(user_id, admin_id, user.admin_flags, reason)
        logger.info(
            "account_flagged",
            extra={"user_id": str(user_id), "admin_flags": user.admin_flags},
        )
        return user

    def set_restriction_override(self, user_id: UUID, admin_id: UUID, enabled: bool) -> UserAccount:
        self.require_admin(admin_id)
        user = self._lock_account(user_id)
        user.restriction_override = bool(enabled)
        user.updated_at = self.clock.now()
        self.session.flush()
        logger.info(
            "restriction_override_set",
            extra={"user_id": str(user_id), "enabled": bool(enabled)},
        )
        return user

    def _lock_account(self, user_id: UUID) -> UserAccount:
        user = self.session.execute(
            select(UserAccount).where(UserAccount.id == user_id).with_for_update()
        ).scalar_one_or_none()
        if user is None:
            raise EntityNotFoundError("user", user_id)
        return user
