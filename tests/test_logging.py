"""
Tests for supply_kernel/logging_config.py.

Covers what the kernel's records carry: money and status values, command
context bound from an actor, and the structured fields of kernel errors.
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from supply_kernel.domain.actors import SupplierActor
from supply_kernel.domain.dtos import RequestStatus
from supply_kernel.exceptions import InvalidTransitionError, ValidationError
from supply_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    actor_fields,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def log_stream() -> StringIO:
    """Configure logging onto a fresh stream and return it."""
    stream = StringIO()
    configure_logging(stream=stream)
    return stream


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestSerialization:
    def test_decimal_and_enum(self, log_stream):
        get_logger("budget").info(
            "charged", extra={"amount": Decimal("39.50"), "status": RequestStatus.APPROVED},
        )

        (record,) = _records(log_stream)
        assert record["amount"] == "39.50"
        assert record["status"] == "approved"

    def test_uuid_and_extras_do_not_override_context(self, log_stream):
        request_id = uuid4()
        with LogContext.bind(operation="confirm_order"):
            get_logger("orders").info(
                "created", extra={"request_id": request_id, "operation": "other"},
            )

        (record,) = _records(log_stream)
        assert record["request_id"] == str(request_id)
        assert record["operation"] == "confirm_order"
        assert record["logger"] == "supply_kernel.orders"


class TestLogContext:
    def test_bind_skips_none(self):
        with LogContext.bind(operation="submit_request", entity_id=None):
            assert LogContext.get_all() == {"operation": "submit_request"}

    def test_bind_restores_previous_values(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner", entity_id="req-1"):
            assert LogContext.get_all() == {"actor_id": "inner", "entity_id": "req-1"}
        assert LogContext.get_all() == {"actor_id": "outer"}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(operation="ship"):
                raise RuntimeError("abort")
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(request_total="12")

    def test_actor_fields(self, log_stream):
        actor = SupplierActor(user_id=uuid4(), supplier_id=uuid4())
        with LogContext.bind(**actor_fields(actor)):
            get_logger("test").info("acting")

        (record,) = _records(log_stream)
        assert record["actor_id"] == str(actor.user_id)
        assert record["actor_role"] == "supplier"


class TestKernelErrors:
    def test_transition_error_fields(self, log_stream):
        try:
            raise InvalidTransitionError("shipment", "shp-1", "preparing", "delivered")
        except InvalidTransitionError:
            get_logger("test").error("transition_error", exc_info=True)

        (record,) = _records(log_stream)
        assert record["exc_type"] == "InvalidTransitionError"
        assert record["exc_code"] == "INVALID_TRANSITION"
        assert record["exc_current_state"] == "preparing"
        assert record["exc_requested_state"] == "delivered"
        assert "traceback" in record

    def test_validation_error_field(self, log_stream):
        try:
            raise ValidationError("Unknown status 'archived'", field="status")
        except ValidationError:
            get_logger("test").warning("rejected", exc_info=True)

        (record,) = _records(log_stream)
        assert record["exc_code"] == "VALIDATION_ERROR"
        assert record["exc_field"] == "status"

    def test_plain_exception_has_no_code(self, log_stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = _records(log_stream)
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record


class TestConfigureLogging:
    def test_second_call_is_noop(self):
        h1 = logging.StreamHandler(StringIO())
        h2 = logging.StreamHandler(StringIO())
        configure_logging(handler=h1)
        configure_logging(handler=h2)

        root = logging.getLogger("supply_kernel")
        assert h1 in root.handlers
        assert h2 not in root.handlers

    def test_reset_removes_our_handler(self):
        handler = logging.StreamHandler(StringIO())
        configure_logging(handler=handler)
        reset_logging()

        root = logging.getLogger("supply_kernel")
        assert handler not in root.handlers
        assert root.level == logging.WARNING

    def test_level_filters_records(self, log_stream):
        get_logger("test").debug("hidden")
        get_logger("test").info("shown")

        assert [r["message"] for r in _records(log_stream)] == ["shown"]
