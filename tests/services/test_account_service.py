"""Tests for AccountService: registration against the admin registry and moderation."""

from uuid import uuid4

import pytest
from sqlalchemy import select

from market_kernel.exceptions import (
    ConflictError,
    EntityNotFoundError,
    ForbiddenError,
    ValidationError,
)
from market_kernel.models.account import UserAccount
from market_kernel.models.audit_record import AuditRecord
from market_kernel.services.account_service import AccountService, normalize_email

REGISTRY = ("Dean@Campus.edu",)


@pytest.fixture
def accounts(session_factory, deterministic_clock):
    """Run one AccountService call in its own committed unit."""

    def _run(method, *args, **kwargs):
        with session_factory() as session, session.begin():
            service = AccountService(session, deterministic_clock, REGISTRY)
            return getattr(service, method)(*args, **kwargs)

    return _run


class TestRegistration:
    def test_student_registration(self, accounts, session_factory):
        account = accounts("register_account", "  Ada@Campus.EDU ", "Ada Lovelace")

        assert account.email == "ada@campus.edu"
        assert account.role == "STUDENT"
        assert account.completed_exchanges == 0
        with session_factory() as session:
            record = session.execute(
                select(AuditRecord).where(AuditRecord.entity_id == account.id)
            ).scalar_one()
        assert record.action == "account_create"
        assert record.entity_type == "user"

    def test_admin_in_registry(self, accounts):
        account = accounts("register_account", "dean@campus.edu", "The Dean", "ADMIN")

        assert account.is_admin

    def test_admin_outside_registry_refused(self, accounts, session_factory):
        with pytest.raises(ForbiddenError, match="Not in admin registry"):
            accounts("register_account", "mallory@campus.edu", "Mallory", "ADMIN")

        with session_factory() as session:
            assert session.execute(select(UserAccount)).first() is None

    def test_duplicate_email(self, accounts):
        accounts("register_account", "ada@campus.edu", "Ada")

        with pytest.raises(ConflictError, match="Email already registered"):
            accounts("register_account", "ADA@campus.edu", "Ada Again")

    def test_invalid_input(self, accounts):
        with pytest.raises(ValidationError) as exc_info:
            accounts("register_account", "not-an-email", "  ")

        assert set(exc_info.value.fields) == {"email", "full_name"}

    def test_unknown_role(self, accounts):
        with pytest.raises(ValueError):
            accounts("register_account", "ada@campus.edu", "Ada", "SUPERUSER")

    def test_normalize_email(self):
        assert normalize_email(" X@Y.Z ") == "x@y.z"


class TestModeration:
    def test_flag_account_increments_and_audits(self, accounts, make_account, session_factory):
        admin = make_account(role="ADMIN", email="dean@campus.edu")
        user = make_account()

        accounts("flag_account", user.id, admin.id, reason="spam")
        flagged = accounts("flag_account", user.id, admin.id)

        assert flagged.admin_flags == 2
        with session_factory() as session:
            records = session.execute(
                select(AuditRecord).where(AuditRecord.action == "admin_user_flag")
            ).scalars().all()
        assert len(records) == 2
        assert {r.payload["admin_flags"] for r in records} == {1, 2}

    def test_non_admin_cannot_flag(self, accounts, make_account):
        user, other = make_account(), make_account()

        with pytest.raises(ForbiddenError, match="Admin role required"):
            accounts("flag_account", user.id, other.id)

    def test_admin_role_without_registry_entry_cannot_act(self, accounts, make_account):
        rogue = make_account(role="ADMIN", email="rogue@campus.edu")
        user = make_account()

        with pytest.raises(ForbiddenError, match="Not in admin registry"):
            accounts("flag_account", user.id, rogue.id)

    def test_flag_unknown_user(self, accounts, make_account):
        admin = make_account(role="ADMIN", email="dean@campus.edu")

        with pytest.raises(EntityNotFoundError):
            accounts("flag_account", uuid4(), admin.id)

    def test_restriction_override(self, accounts, make_account):
        admin = make_account(role="ADMIN", email="dean@campus.edu")
        user = make_account()

        assert accounts("set_restriction_override", user.id, admin.id, True).restriction_override
        assert not accounts("set_restriction_override", user.id, admin.id, False).restriction_override
