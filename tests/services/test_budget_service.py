"""
Tests for BudgetService.

Covers:
- annual budgets and category allocations (admin only)
- manual expenses: guarded against overrun unless explicitly allowed
- delivered orders charged to the budget of the delivery year
- the admin budget summary
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from supply_config import BudgetConfig, SupplyConfig
from supply_kernel.exceptions import (
    AuthorizationError,
    BudgetExceededError,
    BudgetNotFoundError,
    ValidationError,
)
from supply_kernel.models.budget import BudgetCategoryModel, BudgetExpenseModel
from supply_kernel.services.budget_service import BudgetService


@pytest.fixture
def budgets(session, deterministic_clock):
    return BudgetService(session, deterministic_clock)


@pytest.fixture
def budget_2025(budgets, session, admin):
    budget = budgets.create_budget(admin, 2025, Decimal("1000.00"))
    session.commit()
    return budget


class TestCreateBudget:
    def test_create(self, budget_2025):
        assert budget_2025.year == 2025
        assert budget_2025.total_budget == Decimal("1000.00")
        assert budget_2025.used_budget == Decimal("0")
        assert budget_2025.status == "active"

    def test_one_budget_per_year(self, budgets, admin, budget_2025):
        with pytest.raises(ValidationError) as exc_info:
            budgets.create_budget(admin, 2025, Decimal("5"))
        assert exc_info.value.field == "year"

    @pytest.mark.parametrize("total", [Decimal("0"), Decimal("-10")])
    def test_total_must_be_positive(self, budgets, admin, total):
        with pytest.raises(ValidationError):
            budgets.create_budget(admin, 2026, total)

    def test_float_amounts_rejected(self, budgets, admin):
        with pytest.raises(ValidationError):
            budgets.create_budget(admin, 2026, 1000.0)

    @pytest.mark.parametrize("actor_fixture", ["branch_user", "supplier_user"])
    def test_admin_only(self, request, budgets, actor_fixture):
        actor = request.getfixturevalue(actor_fixture)
        with pytest.raises(AuthorizationError):
            budgets.create_budget(actor, 2026, Decimal("100"))

    def test_unknown_budget(self, budgets, branch):
        with pytest.raises(BudgetNotFoundError):
            budgets.get_budget(uuid4())


class TestCategories:
    def test_allocations_within_total(self, budgets, admin, budget_2025):
        medical = budgets.add_category(admin, budget_2025.id, "Medical", Decimal("600"))
        cleaning = budgets.add_category(admin, budget_2025.id, " Cleaning ", Decimal("400"))

        assert medical.allocated_amount == Decimal("600")
        assert cleaning.category_name == "Cleaning"

    def test_over_allocation_rejected(self, budgets, admin, budget_2025):
        budgets.add_category(admin, budget_2025.id, "Medical", Decimal("600"))
        with pytest.raises(ValidationError) as exc_info:
            budgets.add_category(admin, budget_2025.id, "Cleaning", Decimal("400.01"))
        assert exc_info.value.field == "allocated_amount"

    def test_blank_name(self, budgets, admin, budget_2025):
        with pytest.raises(ValidationError):
            budgets.add_category(admin, budget_2025.id, "  ", Decimal("1"))


class TestExpenses:
    def test_expense_reduces_remaining(self, budgets, admin, budget_2025, deterministic_clock):
        expense = budgets.record_expense(
            admin, budget_2025.id, Decimal("250.00"), "Cold-chain boxes",
        )

        assert expense.expense_type == "manual"
        assert expense.expense_date == deterministic_clock.now().date()
        assert budgets.get_budget(budget_2025.id).remaining_budget == Decimal("750.00")

    def test_category_usage_tracked(self, budgets, admin, budget_2025, session):
        category = budgets.add_category(admin, budget_2025.id, "Medical", Decimal("600"))
        budgets.record_expense(
            admin, budget_2025.id, Decimal("100"), "Masks", category_id=category.id,
        )
        session.commit()

        used = session.execute(
            select(BudgetCategoryModel.used_amount).where(BudgetCategoryModel.id == category.id)
        ).scalar_one()
        assert used == Decimal("100")

    def test_overrun_refused(self, budgets, admin, budget_2025):
        budgets.record_expense(admin, budget_2025.id, Decimal("900"), "Gloves")

        with pytest.raises(BudgetExceededError) as exc_info:
            budgets.record_expense(admin, budget_2025.id, Decimal("100.01"), "Masks")

        assert exc_info.value.budget_year == 2025
        assert Decimal(exc_info.value.remaining) == Decimal("100.00")
        assert budgets.get_budget(budget_2025.id).used_budget == Decimal("900")

    def test_exact_remainder_allowed(self, budgets, admin, budget_2025):
        budgets.record_expense(admin, budget_2025.id, Decimal("1000.00"), "Everything")
        assert budgets.get_budget(budget_2025.id).remaining_budget == Decimal("0")

    def test_overrun_when_allowed(self, budgets, admin, budget_2025, captured_logs):
        budgets.record_expense(
            admin, budget_2025.id, Decimal("1200"), "Emergency stock", allow_overrun=True,
        )

        assert budgets.get_budget(budget_2025.id).remaining_budget == Decimal("-200")
        overrun = [r for r in captured_logs() if r["message"] == "budget_overrun"]
        assert overrun[0]["level"] == "WARNING"

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_amount_must_be_positive(self, budgets, admin, budget_2025, amount):
        with pytest.raises(ValidationError):
            budgets.record_expense(admin, budget_2025.id, amount, "Nothing")

    @pytest.mark.parametrize("amount", [None, "abc", "", object()])
    def test_malformed_amount(self, budgets, admin, budget_2025, amount):
        with pytest.raises(ValidationError) as exc_info:
            budgets.record_expense(admin, budget_2025.id, amount, "Nothing")
        assert exc_info.value.field == "amount"

    def test_category_of_another_budget_refused(self, budgets, session, admin, budget_2025):
        budget_2026 = budgets.create_budget(admin, 2026, Decimal("500"))
        foreign = budgets.add_category(admin, budget_2026.id, "Medical", Decimal("300"))
        session.commit()

        with pytest.raises(ValidationError) as exc_info:
            budgets.record_expense(
                admin, budget_2025.id, Decimal("100"), "Masks", category_id=foreign.id,
            )
        session.rollback()

        assert exc_info.value.field == "category_id"
        assert budgets.get_budget(budget_2025.id).used_budget == Decimal("0")
        assert session.execute(select(BudgetExpenseModel)).first() is None
        used = session.execute(
            select(BudgetCategoryModel.used_amount).where(BudgetCategoryModel.id == foreign.id)
        ).scalar_one()
        assert used == Decimal("0")

    def test_unknown_category_refused(self, budgets, admin, budget_2025):
        with pytest.raises(ValidationError) as exc_info:
            budgets.record_expense(
                admin, budget_2025.id, Decimal("10"), "Masks", category_id=uuid4(),
            )
        assert exc_info.value.field == "category_id"

    def test_float_amount_rejected(self, budgets, admin, budget_2025):
        with pytest.raises(ValidationError):
            budgets.record_expense(admin, budget_2025.id, 10.5, "Float")

    def test_blank_description(self, budgets, admin, budget_2025):
        with pytest.raises(ValidationError):
            budgets.record_expense(admin, budget_2025.id, Decimal("1"), " ")

    def test_branch_cannot_record(self, budgets, branch_user, budget_2025):
        with pytest.raises(AuthorizationError):
            budgets.record_expense(branch_user, budget_2025.id, Decimal("1"), "Pens")

    def test_stale_reader_cannot_squeeze_under_limit(
        self, budgets, admin, budget_2025, session, session_factory, deterministic_clock,
    ):
        other_session = session_factory()
        try:
            rival = BudgetService(other_session, deterministic_clock)
            assert rival.get_budget(budget_2025.id).remaining_budget == Decimal("1000.00")
            other_session.commit()

            budgets.record_expense(admin, budget_2025.id, Decimal("600"), "First")
            session.commit()

            with pytest.raises(BudgetExceededError):
                rival.record_expense(admin, budget_2025.id, Decimal("600"), "Second")
            other_session.rollback()
        finally:
            other_session.close()

        assert budgets.get_budget(budget_2025.id).used_budget == Decimal("600")


class TestDeliveryCharge:
    def test_delivery_charged_to_budget(
        self, workflow_engine, budgets, branch_user, budget_2025, confirmed, in_transit,
    ):
        workflow_engine.confirm_delivery(branch_user, in_transit.id)

        budget = budgets.get_budget(budget_2025.id)
        assert budget.used_budget == Decimal("39.50")

    def test_expense_references_order_number(
        self, workflow_engine, session, branch_user, budget_2025, confirmed, in_transit,
        deterministic_clock,
    ):
        workflow_engine.confirm_delivery(branch_user, in_transit.id)

        expense = session.execute(
            select(BudgetExpenseModel).where(BudgetExpenseModel.budget_id == budget_2025.id)
        ).scalar_one()
        assert expense.reference_number == confirmed.order.order_number
        assert expense.expense_type == "order_delivery"
        assert expense.expense_date == deterministic_clock.now().date()
        assert expense.created_by == branch_user.user_id

    def test_delivery_without_budget(
        self, workflow_engine, branch_user, in_transit, captured_logs,
    ):
        delivered = workflow_engine.confirm_delivery(branch_user, in_transit.id)

        assert delivered.status.value == "delivered"
        assert any(r["message"] == "delivery_not_budgeted" for r in captured_logs())

    def test_overrun_recorded_not_refused(
        self, workflow_engine, budgets, admin, branch_user, budget_2025, in_transit,
    ):
        budgets.record_expense(admin, budget_2025.id, Decimal("990"), "Earlier purchases")
        workflow_engine.confirm_delivery(branch_user, in_transit.id)

        assert budgets.get_budget(budget_2025.id).used_budget == Decimal("1029.50")

    def test_charge_disabled_by_configuration(
        self, make_workflow_engine, budgets, branch_user, budget_2025, in_transit,
    ):
        engine = make_workflow_engine(SupplyConfig(budget=BudgetConfig(charge_on_delivery=False)))
        engine.confirm_delivery(branch_user, in_transit.id)

        assert budgets.get_budget(budget_2025.id).used_budget == Decimal("0")


class TestSummary:
    def test_totals_across_budgets(self, budgets, admin, budget_2025):
        budgets.create_budget(admin, 2026, Decimal("3000"))
        budgets.record_expense(admin, budget_2025.id, Decimal("400"), "Gloves")

        summary = budgets.summary(admin)

        assert summary.budget_count == 2
        assert summary.active_budgets == 2
        assert summary.total_budget == Decimal("4000")
        assert summary.remaining_budget == Decimal("3600")
        assert summary.utilization_pct == Decimal("10.0")

    def test_admin_only(self, budgets, branch_user):
        with pytest.raises(AuthorizationError):
            budgets.summary(branch_user)
