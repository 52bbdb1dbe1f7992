"""
Report Builder

DESIGN DECISION: Reports are DETERMINISTIC folds over the repositories.
Nothing here is stored or cached; asking twice with unchanged records
gives the same answer, and asking after a change reflects it.

The builder only reads. It never mutates a repository, so it is safe to
call from inside a change observer.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from pocketledger.models.base import local_now
from pocketledger.models.dates import add_months
from pocketledger.models.finance import BillStatus, TransactionType
from pocketledger.models.reports import (
    CategorySpending,
    CategorySummary,
    FinanceSummary,
    TaxReport,
)
from pocketledger.repositories.finance import (
    AccountRepository,
    BillRepository,
    BudgetRepository,
    CategoryRepository,
    SavingsGoalRepository,
    TransactionRepository,
)


logger = structlog.get_logger(__name__)


class ReportBuilder:
    """
    Builds dashboard and year-end reports from live repository state.

    GUARANTEES:
    - Only reports what the repositories hold
    - Uncategorized spending is reported as its own line, never dropped
    """

    def __init__(
        self,
        transactions: TransactionRepository,
        accounts: AccountRepository,
        categories: CategoryRepository,
        budgets: BudgetRepository,
        bills: BillRepository,
        goals: SavingsGoalRepository,
        recent_limit: int = 10,
        base_currency: str = "USD",
    ):
        self._transactions = transactions
        self._accounts = accounts
        self._categories = categories
        self._budgets = budgets
        self._bills = bills
        self._goals = goals
        self._recent_limit = recent_limit
        self._base_currency = base_currency.upper()

    def _category_name(self, category_id: Optional[UUID]) -> str:
        category = self._categories.find(category_id)
        return category.name if category else "Uncategorized"

    def _budget_limit(self, category_id: Optional[UUID], as_of: date) -> Optional[Decimal]:
        """Limit of the active budget covering as_of, else the category's own allowance."""
        if category_id is None:
            return None
        for budget in self._budgets.for_category(category_id):
            if budget.is_active and budget.window(as_of) is not None:
                return budget.limit
        category = self._categories.find(category_id)
        return category.budget_limit if category else None

    def category_spending(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        as_of: Optional[date] = None,
    ) -> list[CategorySpending]:
        """Expense totals per category over [start, end), largest first."""
        as_of = as_of or local_now().date()
        totals = self._transactions.spending_by_category(start, end)
        counts: dict[Optional[UUID], int] = {}
        for t in self._transactions.between(start, end):
            if t.type == TransactionType.EXPENSE:
                counts[t.category_id] = counts.get(t.category_id, 0) + 1

        grand_total = sum(totals.values(), Decimal("0"))
        lines = [
            CategorySpending(
                category_id=category_id,
                category_name=self._category_name(category_id),
                amount=amount,
                transaction_count=counts.get(category_id, 0),
                percentage=float(amount / grand_total * 100) if grand_total > 0 else 0.0,
                budget_limit=self._budget_limit(category_id, as_of),
            )
            for category_id, amount in totals.items()
        ]
        lines.sort(key=lambda line: line.amount, reverse=True)
        return lines

    def finance_summary(self, as_of: Optional[date] = None) -> FinanceSummary:
        """Numbers for the calendar month containing as_of."""
        as_of = as_of or local_now().date()
        month_start = as_of.replace(day=1)
        month_end = add_months(month_start, 1)

        bill_statuses = [
            bill.status(as_of, self._bills.due_soon_days) for bill in self._bills
        ]

        summary = FinanceSummary(
            as_of=as_of,
            month_start=month_start,
            currency=self._base_currency,
            # No conversion: accounts in other currencies are not summed
            total_balance=self._accounts.total_balance(self._base_currency),
            monthly_income=self._transactions.total_income(month_start, month_end),
            monthly_expenses=self._transactions.total_expenses(month_start, month_end),
            upcoming_bills_count=sum(
                1 for s in bill_statuses
                if s in (BillStatus.DUE_SOON, BillStatus.UPCOMING)
            ),
            overdue_bills_count=sum(1 for s in bill_statuses if s == BillStatus.OVERDUE),
            savings_total=self._goals.total_saved(),
            category_spending=self.category_spending(month_start, month_end, as_of),
            recent_transactions=self._transactions.recent(self._recent_limit),
        )
        logger.debug(
            "finance_summary_built",
            as_of=as_of.isoformat(),
            categories=len(summary.category_spending),
        )
        return summary

    def tax_report(self, year: int) -> TaxReport:
        """Income and expense totals for a calendar year."""
        start, end = date(year, 1, 1), date(year + 1, 1, 1)

        income: dict[str, list[Decimal]] = {}
        expenses: dict[str, list[Decimal]] = {}
        for t in self._transactions.between(start, end):
            if t.type == TransactionType.INCOME:
                bucket = income
            elif t.type == TransactionType.EXPENSE:
                bucket = expenses
            else:
                continue
            bucket.setdefault(self._category_name(t.category_id), []).append(t.amount)

        def summarize(bucket: dict[str, list[Decimal]]) -> list[CategorySummary]:
            lines = [
                CategorySummary(
                    category_name=name,
                    total=sum(amounts, Decimal("0")),
                    transaction_count=len(amounts),
                )
                for name, amounts in bucket.items()
            ]
            return sorted(lines, key=lambda line: line.total, reverse=True)

        return TaxReport(
            year=year,
            total_income=self._transactions.total_income(start, end),
            total_expenses=self._transactions.total_expenses(start, end),
            income_by_category=summarize(income),
            expenses_by_category=summarize(expenses),
        )
