"""
Report Models

Read-only views computed from the repositories on demand. None of these
are persisted; recomputing one always reflects the current records.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from pocketledger.models.finance import ProgressLevel, Transaction


class BudgetSnapshot(BaseModel):
    """A budget's position within its current period."""

    budget_id: UUID
    name: str
    category_id: UUID
    limit: Decimal
    spent: Decimal
    remaining: Decimal = Field(..., description="Negative when over budget")
    spending_ratio: float = Field(..., ge=0)
    level: ProgressLevel
    period_start: Optional[date] = None
    period_end: Optional[date] = Field(
        default=None,
        description="Exclusive end of the current period"
    )
    days_remaining: int = 0

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.limit


class CategorySpending(BaseModel):
    """Expenses for one category over a date range."""

    category_id: Optional[UUID] = Field(
        default=None,
        description="None for uncategorized spending"
    )
    category_name: str
    amount: Decimal
    transaction_count: int = 0
    percentage: float = Field(default=0.0, description="Share of total expenses, 0-100")
    budget_limit: Optional[Decimal] = None

    @property
    def remaining(self) -> Optional[Decimal]:
        if self.budget_limit is None:
            return None
        return self.budget_limit - self.amount

    @property
    def is_over_budget(self) -> bool:
        return self.budget_limit is not None and self.amount > self.budget_limit


class FinanceSummary(BaseModel):
    """Dashboard numbers for one calendar month."""

    as_of: date
    month_start: date
    currency: str = "USD"
    total_balance: Decimal
    monthly_income: Decimal
    monthly_expenses: Decimal
    upcoming_bills_count: int = 0
    overdue_bills_count: int = 0
    savings_total: Decimal = Decimal("0")
    category_spending: list[CategorySpending] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)

    @property
    def monthly_savings(self) -> Decimal:
        return self.monthly_income - self.monthly_expenses

    @property
    def savings_rate(self) -> float:
        """Savings as a fraction of income, 0 when there was no income."""
        if self.monthly_income <= 0:
            return 0.0
        return float(self.monthly_savings / self.monthly_income)


class CategorySummary(BaseModel):
    """One category line of a tax report."""

    category_name: str
    total: Decimal
    transaction_count: int


# Simplified flat-rate table: (net income below, rate)
TAX_BRACKETS: list[tuple[Optional[Decimal], Decimal]] = [
    (Decimal("10000"), Decimal("0.10")),
    (Decimal("40000"), Decimal("0.15")),
    (Decimal("85000"), Decimal("0.25")),
    (Decimal("163000"), Decimal("0.28")),
    (Decimal("200000"), Decimal("0.33")),
    (Decimal("500000"), Decimal("0.35")),
    (None, Decimal("0.37")),
]


class TaxReport(BaseModel):
    """Yearly income and expense totals with a rough tax estimate."""

    year: int
    total_income: Decimal
    total_expenses: Decimal
    income_by_category: list[CategorySummary] = Field(default_factory=list)
    expenses_by_category: list[CategorySummary] = Field(default_factory=list)

    @property
    def net_income(self) -> Decimal:
        return self.total_income - self.total_expenses

    @property
    def estimated_tax_rate(self) -> Decimal:
        """Flat rate of the bracket the net income falls into."""
        for ceiling, rate in TAX_BRACKETS:
            if ceiling is None or self.net_income < ceiling:
                return rate
        return TAX_BRACKETS[-1][1]

    @property
    def estimated_taxes(self) -> Decimal:
        return max(Decimal("0"), self.net_income * self.estimated_tax_rate)
