"""
BudgetService -- annual procurement budgets.

Responsibility:
    Creates annual budgets and their category allocations, records
    expenses against them, and charges delivered orders to the budget of
    the delivery year.

Architecture position:
    Kernel > Services -- imperative shell.  Admin tooling calls it
    directly; the workflow engine calls ``charge_delivery`` inside the
    delivery unit of work.

Invariants enforced:
    - One budget per year; totals are positive.
    - The sum of category allocations never exceeds the budget total.
    - ``used_budget`` only grows, through an atomic guarded UPDATE:
      ``used_budget + :amount <= total_budget`` unless an overrun is
      explicitly allowed.  Two concurrent expenses cannot both squeeze
      under the limit.

Failure modes:
    - AuthorizationError for non-admin actors.
    - ValidationError for bad amounts, duplicate years or over-allocation.
    - BudgetExceededError when an expense exceeds the remaining budget.
    - BudgetNotFoundError for unknown budget ids.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from supply_config.schema import BudgetConfig
from supply_kernel.domain.actors import Actor
from supply_kernel.domain.authorization import require_admin
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import (
    AnnualBudget,
    BudgetCategory,
    BudgetExpense,
    BudgetSummary,
    Order,
)
from supply_kernel.exceptions import (
    BudgetExceededError,
    BudgetNotFoundError,
    ValidationError,
)
from supply_kernel.logging_config import get_logger
from supply_kernel.models.budget import (
    AnnualBudgetModel,
    BudgetCategoryModel,
    BudgetExpenseModel,
    BudgetStatus,
)
from supply_kernel.services.base import BaseService

logger = get_logger("services.budget")


def _money(value: Decimal | int | str, field: str) -> Decimal:
    if isinstance(value, float):
        raise ValidationError("Money amounts must not be floats", field=field)
    try:
        return Decimal(value)
    except (ArithmeticError, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid amount {value!r}", field=field) from exc


class BudgetService(BaseService):
    """Annual budget writes.  Flushes; never commits."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BudgetConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._config = config or BudgetConfig()

    def _budget(self, budget_id: UUID) -> AnnualBudgetModel:
        budget = self.session.execute(
            select(AnnualBudgetModel)
            .where(AnnualBudgetModel.id == budget_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if budget is None:
            raise BudgetNotFoundError(str(budget_id))
        return budget

    def get_budget(self, budget_id: UUID) -> AnnualBudget:
        return self._budget(budget_id).to_dto()

    def active_budget_for_year(self, year: int) -> AnnualBudget | None:
        budget = self.session.execute(
            select(AnnualBudgetModel)
            .where(
                AnnualBudgetModel.year == year,
                AnnualBudgetModel.status == BudgetStatus.ACTIVE.value,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return budget.to_dto() if budget is not None else None

    def create_budget(self, actor: Actor, year: int, total: Decimal) -> AnnualBudget:
        require_admin(actor, "create budget")
        total = _money(total, "total_budget")
        if total <= 0:
            raise ValidationError("Budget total must be positive", field="total_budget")

        existing = self.session.execute(
            select(AnnualBudgetModel.id).where(AnnualBudgetModel.year == year)
        ).scalar_one_or_none()
        if existing is not None:
            raise ValidationError(f"A budget for {year} already exists", field="year")

        budget = AnnualBudgetModel(
            year=year,
            total_budget=total,
            used_budget=Decimal("0"),
            status=BudgetStatus.ACTIVE.value,
            created_by=actor.user_id,
        )
        self.session.add(budget)
        self.session.flush()

        logger.info(
            "budget_created",
            extra={"budget_id": budget.id, "year": year, "total_budget": total},
        )
        return budget.to_dto()

    def add_category(
        self,
        actor: Actor,
        budget_id: UUID,
        name: str,
        allocated: Decimal,
    ) -> BudgetCategory:
        require_admin(actor, "allocate budget category")
        allocated = _money(allocated, "allocated_amount")
        if allocated < 0:
            raise ValidationError("Allocation cannot be negative", field="allocated_amount")
        if not name or not name.strip():
            raise ValidationError("Category name is required", field="category_name")

        budget = self._budget(budget_id)
        already = self.session.execute(
            select(func.coalesce(func.sum(BudgetCategoryModel.allocated_amount), 0))
            .where(BudgetCategoryModel.budget_id == budget_id)
        ).scalar_one()
        if Decimal(already) + allocated > Decimal(budget.total_budget):
            raise ValidationError(
                f"Allocations would total {Decimal(already) + allocated}, "
                f"above the budget of {budget.total_budget}",
                field="allocated_amount",
            )

        category = BudgetCategoryModel(
            budget_id=budget_id,
            category_name=name.strip(),
            allocated_amount=allocated,
            used_amount=Decimal("0"),
        )
        self.session.add(category)
        self.session.flush()
        return category.to_dto()

    def record_expense(
        self,
        actor: Actor,
        budget_id: UUID,
        amount: Decimal,
        description: str,
        category_id: UUID | None = None,
        reference_number: str | None = None,
        allow_overrun: bool = False,
    ) -> BudgetExpense:
        """
        Charge a manual expense to a budget.

        Raises:
            AuthorizationError: actor is not admin.
            ValidationError: non-positive amount, blank description, a
                closed budget, or a category of another budget.
            BudgetExceededError: amount exceeds the remaining budget and
                ``allow_overrun`` is False.
        """
        require_admin(actor, "record budget expense")
        return self._charge(
            actor,
            budget_id,
            _money(amount, "amount"),
            description,
            expense_type="manual",
            category_id=category_id,
            reference_number=reference_number,
            allow_overrun=allow_overrun,
        )

    def charge_delivery(
        self,
        actor: Actor,
        order: Order,
        delivered_at: datetime,
    ) -> BudgetExpense | None:
        """
        Charge a delivered order to the active budget of the delivery year.

        Returns None when there is no such budget or the order has no
        value.  The delivery already happened, so an overrun is recorded
        and logged rather than refused.
        """
        total = order.total
        if total <= 0:
            return None
        budget = self.active_budget_for_year(delivered_at.year)
        if budget is None:
            logger.info(
                "delivery_not_budgeted",
                extra={"order_number": order.order_number, "year": delivered_at.year},
            )
            return None

        return self._charge(
            actor,
            budget.id,
            total,
            f"Order {order.order_number} delivered",
            expense_type=self._config.expense_type,
            reference_number=order.order_number,
            allow_overrun=True,
            expense_date=delivered_at.date(),
        )

    def _require_category(self, budget_id: UUID, category_id: UUID) -> None:
        found = self.session.execute(
            select(BudgetCategoryModel.id).where(
                BudgetCategoryModel.id == category_id,
                BudgetCategoryModel.budget_id == budget_id,
            )
        ).scalar_one_or_none()
        if found is None:
            raise ValidationError(
                f"Category {category_id} does not belong to budget {budget_id}",
                field="category_id",
            )

    def _charge(
        self,
        actor: Actor,
        budget_id: UUID,
        amount: Decimal,
        description: str,
        expense_type: str,
        category_id: UUID | None = None,
        reference_number: str | None = None,
        allow_overrun: bool = False,
        expense_date: date | None = None,
    ) -> BudgetExpense:
        if amount <= 0:
            raise ValidationError("Expense amount must be positive", field="amount")
        if not description or not description.strip():
            raise ValidationError("Expense description is required", field="description")

        budget = self._budget(budget_id)
        if budget.status != BudgetStatus.ACTIVE.value:
            raise ValidationError(f"Budget {budget.year} is {budget.status}", field="budget_id")
        if category_id is not None:
            self._require_category(budget_id, category_id)

        now = self._clock.now()
        stmt = (
            update(AnnualBudgetModel)
            .where(AnnualBudgetModel.id == budget_id)
            .values(used_budget=AnnualBudgetModel.used_budget + amount, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if not allow_overrun:
            stmt = stmt.where(
                AnnualBudgetModel.used_budget + amount <= AnnualBudgetModel.total_budget
            )
        if self.session.execute(stmt).rowcount != 1:
            remaining = self._budget(budget_id).remaining_budget
            raise BudgetExceededError(budget.year, str(amount), str(remaining))

        if category_id is not None:
            charged = self.session.execute(
                update(BudgetCategoryModel)
                .where(
                    BudgetCategoryModel.id == category_id,
                    BudgetCategoryModel.budget_id == budget_id,
                )
                .values(used_amount=BudgetCategoryModel.used_amount + amount, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if charged.rowcount != 1:
                raise ValidationError(
                    f"Budget category {category_id} is not on budget {budget.year}",
                    field="category_id",
                )

        expense = BudgetExpenseModel(
            budget_id=budget_id,
            category_id=category_id,
            amount=amount,
            description=description.strip(),
            expense_type=expense_type,
            expense_date=expense_date or now.date(),
            reference_number=reference_number,
            created_by=actor.user_id,
        )
        self.session.add(expense)
        self.session.flush()

        refreshed = self._budget(budget_id)
        if refreshed.remaining_budget < 0:
            logger.warning(
                "budget_overrun",
                extra={
                    "budget_id": budget_id,
                    "year": refreshed.year,
                    "amount": amount,
                    "remaining_budget": refreshed.remaining_budget,
                    "reference_number": reference_number,
                },
            )
        logger.info(
            "budget_expense_recorded",
            extra={
                "budget_id": budget_id,
                "amount": amount,
                "expense_type": expense_type,
                "reference_number": reference_number,
            },
        )
        return expense.to_dto()

    def summary(self, actor: Actor) -> BudgetSummary:
        """Totals across every budget.  Admin only."""
        require_admin(actor, "view budget summary")
        budgets = list(
            self.session.execute(
                select(AnnualBudgetModel).execution_options(populate_existing=True)
            ).scalars()
        )
        return BudgetSummary(
            budget_count=len(budgets),
            active_budgets=sum(1 for b in budgets if b.status == BudgetStatus.ACTIVE.value),
            total_budget=sum((Decimal(b.total_budget) for b in budgets), Decimal("0")),
            used_budget=sum((Decimal(b.used_budget) for b in budgets), Decimal("0")),
        )
