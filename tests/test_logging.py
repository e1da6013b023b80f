"""Structured JSON logging: context fields, formatter payload, setup."""

import json
import logging
from decimal import Decimal
from enum import Enum
from io import StringIO
from uuid import uuid4

import pytest

from market_kernel.exceptions import ActionRestrictedError, InvalidTransitionError
from market_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _isolated_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def captured():
    """Configure the kernel logger into a buffer; returns a reader of JSON lines."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    configure_logging(handler=handler, level="DEBUG")

    def read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return read


class TestPayload:
    def test_envelope(self, captured):
        get_logger("market").info("listing_created")

        (line,) = captured()
        assert line["message"] == "listing_created"
        assert line["level"] == "INFO"
        assert line["logger"] == "market_kernel.market"
        assert line["ts"].endswith("+00:00")

    def test_extra_and_context_are_merged(self, captured):
        LogContext.set(correlation_id="req-7", entity_type="request")
        get_logger("svc").info("entity_transition_committed", extra={"version": 3})

        (line,) = captured()
        assert line["correlation_id"] == "req-7"
        assert line["entity_type"] == "request"
        assert line["version"] == 3
        assert "job_id" not in line

    def test_domain_values_serialized(self, captured):
        class Status(str, Enum):
            ACTIVE = "ACTIVE"

        listing_id = uuid4()
        get_logger("svc").info(
            "price_changed",
            extra={"listing_id": listing_id, "status": Status.ACTIVE, "price": Decimal("9.50"),
                   "flags": {"B", "A"}},
        )

        (line,) = captured()
        assert line["listing_id"] == str(listing_id)
        assert line["status"] == "ACTIVE"
        assert line["price"] == "9.50"
        assert line["flags"] == ["A", "B"]

    def test_plain_exception(self, captured):
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            get_logger("svc").exception("job_failed")

        (line,) = captured()
        assert line["level"] == "ERROR"
        assert line["exc_type"] == "RuntimeError"
        assert line["exc_message"] == "disk full"
        assert "exc_code" not in line
        assert "exc_details" not in line
        assert "RuntimeError: disk full" in line["traceback"]

    def test_kernel_exception_code_and_details(self, captured):
        try:
            raise InvalidTransitionError("request", "SENT", "CONFIRM")
        except InvalidTransitionError:
            get_logger("svc").error("transition_rejected", exc_info=True)

        (line,) = captured()
        assert line["exc_code"] == "INVALID_TRANSITION"
        assert line["exc_details"] == {
            "machine": "request",
            "from_state": "SENT",
            "event": "CONFIRM",
        }
        assert line["exc_from_state"] == "SENT"

    def test_restriction_reasons_logged(self, captured):
        try:
            raise ActionRestrictedError("u-1", "create_listing", ("too many reports",))
        except ActionRestrictedError:
            get_logger("svc").warning("action_blocked", exc_info=True)

        (line,) = captured()
        assert line["exc_code"] == "ACTION_RESTRICTED"
        assert line["exc_details"]["reasons"] == ["too many reports"]
        assert line["exc_actor_id"] == "u-1"

    def test_formatter_usable_standalone(self):
        record = logging.LogRecord("other", logging.WARNING, __file__, 1, "x=%s", (5,), None)
        assert json.loads(StructuredFormatter().format(record))["message"] == "x=5"


class TestLogContext:
    def test_fields_are_declared_once(self):
        assert CONTEXT_FIELDS == (
            "correlation_id",
            "actor_id",
            "entity_type",
            "entity_id",
            "idempotency_key",
            "job_id",
        )

    def test_set_skips_none(self):
        LogContext.set(job_id="sweep-1", actor_id=None)
        assert LogContext.get_all() == {"job_id": "sweep-1"}

    def test_values_are_stringified(self):
        uid = uuid4()
        LogContext.set(entity_id=uid)
        assert LogContext.get_all() == {"entity_id": str(uid)}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="colour"):
            LogContext.set(colour="blue")
        with pytest.raises(TypeError, match="colour"):
            LogContext.bind(actor_id="a", colour="blue")
        assert LogContext.get_all() == {}

    def test_bind_nests_and_restores(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", entity_id="e-1"):
            with LogContext.bind(entity_id="e-2"):
                assert LogContext.get_all() == {"correlation_id": "inner", "entity_id": "e-2"}
            assert LogContext.get_all()["entity_id"] == "e-1"
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_restores_after_exception(self):
        with pytest.raises(ValueError):
            with LogContext.bind(job_id="j"):
                raise ValueError
        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(**{name: name for name in CONTEXT_FIELDS})
        assert len(LogContext.get_all()) == len(CONTEXT_FIELDS)
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:
    def test_second_call_is_noop(self):
        first = logging.StreamHandler(StringIO())
        second = logging.StreamHandler(StringIO())

        assert configure_logging(handler=first) is True
        assert configure_logging(handler=second) is False

        root = logging.getLogger("market_kernel")
        assert first in root.handlers
        assert second not in root.handlers
        assert root.propagate is False

    @pytest.mark.parametrize(
        ("level", "expected"),
        [("debug", logging.DEBUG), (" WARNING ", logging.WARNING), (logging.ERROR, logging.ERROR)],
    )
    def test_level_accepts_names_and_constants(self, level, expected):
        configure_logging(handler=logging.NullHandler(), level=level)
        assert logging.getLogger("market_kernel").level == expected

    def test_unknown_level_name_rejected(self):
        with pytest.raises(ValueError, match="chatty"):
            configure_logging(level="chatty")
        # a failed call leaves logging unconfigured
        assert configure_logging(handler=logging.NullHandler()) is True

    def test_child_loggers_share_handler(self, captured):
        get_logger("services.transition_coordinator").debug("nested")

        (line,) = captured()
        assert line["logger"] == "market_kernel.services.transition_coordinator"

    def test_level_filters_records(self):
        stream = StringIO()
        configure_logging(handler=logging.StreamHandler(stream), level="WARNING")
        get_logger("svc").info("dropped")
        get_logger("svc").warning("kept")

        assert [json.loads(x)["message"] for x in stream.getvalue().splitlines()] == ["kept"]
