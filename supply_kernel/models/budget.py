"""
Module: supply_kernel.models.budget
Responsibility: ORM persistence for annual procurement budgets, their
    category allocations, and the expenses charged against them.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain DTOs only.

Invariants enforced:
    - One budget per year.
    - Totals and allocations are non-negative; expenses are positive.
    - Expenses are append-only; used amounts only grow.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase, UUIDString
from supply_kernel.domain.dtos import AnnualBudget, BudgetCategory, BudgetExpense


class BudgetStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class AnnualBudgetModel(TrackedBase):
    __tablename__ = "annual_budgets"

    __table_args__ = (
        CheckConstraint("total_budget >= 0", name="ck_annual_budgets_total"),
        CheckConstraint("used_budget >= 0", name="ck_annual_budgets_used"),
    )

    year: Mapped[int] = mapped_column(nullable=False, unique=True)
    total_budget: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    used_budget: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0"),
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BudgetStatus.ACTIVE.value,
    )
    created_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    @property
    def remaining_budget(self) -> Decimal:
        return Decimal(self.total_budget) - Decimal(self.used_budget)

    def to_dto(self) -> AnnualBudget:
        return AnnualBudget(
            id=self.id,
            year=self.year,
            total_budget=Decimal(self.total_budget),
            used_budget=Decimal(self.used_budget),
            status=self.status,
        )


class BudgetCategoryModel(TrackedBase):
    __tablename__ = "budget_categories"

    __table_args__ = (
        CheckConstraint("allocated_amount >= 0", name="ck_budget_categories_allocated"),
        Index("ix_budget_categories_budget", "budget_id"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("annual_budgets.id"), nullable=False,
    )
    category_name: Mapped[str] = mapped_column(String(100), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    used_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0"),
    )

    @property
    def remaining_amount(self) -> Decimal:
        return Decimal(self.allocated_amount) - Decimal(self.used_amount)

    def to_dto(self) -> BudgetCategory:
        return BudgetCategory(
            id=self.id,
            budget_id=self.budget_id,
            category_name=self.category_name,
            allocated_amount=Decimal(self.allocated_amount),
            used_amount=Decimal(self.used_amount),
        )


class BudgetExpenseModel(TrackedBase):
    __tablename__ = "budget_expenses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_budget_expenses_positive"),
        Index("ix_budget_expenses_budget", "budget_id"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("annual_budgets.id"), nullable=False,
    )
    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("budget_categories.id"), nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    expense_type: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    created_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def to_dto(self) -> BudgetExpense:
        return BudgetExpense(
            id=self.id,
            budget_id=self.budget_id,
            amount=Decimal(self.amount),
            description=self.description,
            expense_type=self.expense_type,
            expense_date=self.expense_date,
            category_id=self.category_id,
            reference_number=self.reference_number,
        )
