"""Tests for the supply kernel exception hierarchy (supply_kernel/exceptions.py)."""

import pytest

from supply_kernel.exceptions import (
    AuthorizationError,
    BudgetExceededError,
    BudgetNotFoundError,
    CollaboratorUnavailableError,
    ConcurrentModificationError,
    InvalidTransitionError,
    InventoryRecordNotFoundError,
    NotFoundError,
    NumberCollisionError,
    OrderNotFoundError,
    RequestNotFoundError,
    ShipmentNotFoundError,
    SupplyKernelError,
    ValidationError,
    user_message,
)

SAMPLES = [
    ValidationError("title is blank", field="title"),
    BudgetExceededError(2025, "120.00", "80.00"),
    AuthorizationError("supplier", "approve supply_request", "admin only", "req-1"),
    InvalidTransitionError("shipment", "shp-1", "preparing", "delivered"),
    ConcurrentModificationError("supply_request", "req-1", "pending"),
    NumberCollisionError("REQ", 10),
    CollaboratorUnavailableError("database", "decide_request", "timeout"),
    RequestNotFoundError("req-1"),
]


class TestCodes:
    @pytest.mark.parametrize(
        "exc, code",
        [
            (SAMPLES[0], "VALIDATION_ERROR"),
            (SAMPLES[1], "BUDGET_EXCEEDED"),
            (SAMPLES[2], "AUTHORIZATION_DENIED"),
            (SAMPLES[3], "INVALID_TRANSITION"),
            (SAMPLES[4], "CONCURRENT_MODIFICATION"),
            (SAMPLES[5], "NUMBER_COLLISION"),
            (SAMPLES[6], "COLLABORATOR_UNAVAILABLE"),
            (SAMPLES[7], "REQUEST_NOT_FOUND"),
        ],
    )
    def test_code(self, exc, code):
        assert exc.code == code

    def test_every_error_is_a_kernel_error(self):
        assert all(isinstance(exc, SupplyKernelError) for exc in SAMPLES)

    @pytest.mark.parametrize(
        "cls, entity_type",
        [
            (RequestNotFoundError, "supply_request"),
            (OrderNotFoundError, "order"),
            (ShipmentNotFoundError, "shipment"),
            (BudgetNotFoundError, "annual_budget"),
            (InventoryRecordNotFoundError, "inventory"),
        ],
    )
    def test_not_found_family(self, cls, entity_type):
        exc = cls("abc")
        assert isinstance(exc, NotFoundError)
        assert exc.entity_id == "abc"
        assert str(exc) == f"{entity_type} not found: abc"


class TestHierarchy:
    def test_budget_exceeded_is_validation(self):
        assert isinstance(SAMPLES[1], ValidationError)
        assert SAMPLES[1].field == "amount"

    def test_number_collision_is_concurrency(self):
        assert isinstance(SAMPLES[5], ConcurrentModificationError)
        assert SAMPLES[5].attempts == 10

    def test_authorization_message_names_entity(self):
        assert "req-1" in str(SAMPLES[2])
        assert "admin only" in str(SAMPLES[2])

    def test_concurrent_modification_custom_message(self):
        exc = ConcurrentModificationError("order", "req-1", "absent", message="already ordered")
        assert str(exc) == "already ordered"
        assert exc.expected_state == "absent"


class TestUserMessages:
    def test_distinct_per_class(self):
        messages = [user_message(exc) for exc in SAMPLES]
        assert len(set(messages)) == len(SAMPLES)

    def test_subclass_gets_its_own_message(self):
        assert user_message(SAMPLES[1]) != user_message(SAMPLES[0])
        assert user_message(SAMPLES[5]) != user_message(SAMPLES[4])

    def test_not_found_subclasses_share_message(self):
        assert user_message(OrderNotFoundError("x")) == user_message(ShipmentNotFoundError("y"))

    def test_base_error_has_fallback(self):
        assert user_message(SupplyKernelError("odd")) == "Something went wrong. Try again."
