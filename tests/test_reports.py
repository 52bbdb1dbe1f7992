"""Tests for the report builder."""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from pocketledger.models import TaxReport, TransactionType


AS_OF = date(2024, 3, 15)


def _tx(ledger, account, amount, type_, category=None, when=datetime(2024, 3, 10)):
    return ledger.transactions.create(
        amount=Decimal(amount),
        type=type_,
        merchant="Somewhere",
        account_id=account.id,
        category_id=category.id if category else None,
        date=when,
    )


class TestFinanceSummary:
    """Tests for the monthly dashboard numbers."""

    def test_monthly_totals(self, ledger, checking, food):
        """Test income, expenses and savings for the month."""
        _tx(ledger, checking, "3000", TransactionType.INCOME)
        _tx(ledger, checking, "200", TransactionType.EXPENSE, food)
        _tx(ledger, checking, "999", TransactionType.EXPENSE, food, when=datetime(2024, 2, 28))
        _tx(ledger, checking, "500", TransactionType.TRANSFER)

        summary = ledger.reports.finance_summary(AS_OF)

        assert summary.month_start == date(2024, 3, 1)
        assert summary.monthly_income == Decimal("3000")
        assert summary.monthly_expenses == Decimal("200")
        assert summary.monthly_savings == Decimal("2800")
        assert summary.savings_rate == pytest.approx(2800 / 3000)

    def test_balance_in_base_currency_only(self, ledger, checking):
        """Test that accounts in other currencies are not mixed in."""
        ledger.accounts.create(name="Euro", balance=Decimal("500"), currency="EUR")
        ledger.accounts.create(name="Closed", balance=Decimal("50"), is_active=False)
        assert ledger.reports.finance_summary(AS_OF).total_balance == Decimal("1000")

    def test_bill_counts(self, ledger):
        """Test upcoming and overdue bill counts."""
        ledger.bills.create(name="Late", amount=Decimal("10"), due_date=date(2024, 3, 1))
        ledger.bills.create(name="Soon", amount=Decimal("10"), due_date=date(2024, 3, 18))
        ledger.bills.create(name="Later", amount=Decimal("10"), due_date=date(2024, 4, 18))

        summary = ledger.reports.finance_summary(AS_OF)
        assert summary.overdue_bills_count == 1
        assert summary.upcoming_bills_count == 2

    def test_recent_transactions_newest_first(self, ledger, checking):
        """Test the recent list."""
        for day in (1, 5, 3):
            _tx(ledger, checking, str(day), TransactionType.EXPENSE, when=datetime(2024, 3, day))
        recent = ledger.reports.finance_summary(AS_OF).recent_transactions
        assert [t.amount for t in recent] == [Decimal("5"), Decimal("3"), Decimal("1")]

    def test_recent_with_mixed_timestamps(self, ledger, checking):
        """Test that aware and naive dates sort together."""
        _tx(ledger, checking, "1", TransactionType.EXPENSE, when=datetime(2024, 3, 1))
        aware = datetime(2024, 3, 5, 12, 0, tzinfo=timezone(timedelta(hours=-7)))
        _tx(ledger, checking, "2", TransactionType.EXPENSE, when=aware)

        recent = ledger.transactions.recent()
        assert [t.amount for t in recent] == [Decimal("2"), Decimal("1")]
        assert all(t.date.tzinfo is None for t in recent)

    def test_reflects_latest_state(self, ledger, checking):
        """Test that nothing is cached between calls."""
        t = _tx(ledger, checking, "40", TransactionType.EXPENSE)
        assert ledger.reports.finance_summary(AS_OF).monthly_expenses == Decimal("40")
        ledger.transactions.remove(t.id)
        assert ledger.reports.finance_summary(AS_OF).monthly_expenses == Decimal("0")


class TestCategorySpending:
    """Tests for per-category spending lines."""

    def test_lines_and_percentages(self, ledger, checking, food):
        """Test amounts, shares and ordering."""
        travel = ledger.categories.find_by_name("Travel")
        _tx(ledger, checking, "300", TransactionType.EXPENSE, travel)
        _tx(ledger, checking, "50", TransactionType.EXPENSE, food)
        _tx(ledger, checking, "50", TransactionType.EXPENSE, food)
        _tx(ledger, checking, "100", TransactionType.EXPENSE)

        lines = ledger.reports.category_spending(date(2024, 3, 1), date(2024, 4, 1), AS_OF)

        assert [(line.category_name, line.amount) for line in lines] == [
            ("Travel", Decimal("300")),
            ("Food & Dining", Decimal("100")),
            ("Uncategorized", Decimal("100")),
        ]
        assert lines[0].percentage == pytest.approx(60.0)
        assert lines[1].transaction_count == 2

    def test_budget_limit_from_active_budget(self, ledger, checking, food):
        """Test that lines carry the budget that covers them."""
        ledger.budgets.create(
            name="Food", category_id=food.id, limit=Decimal("80"),
            start_date=date(2024, 1, 1),
        )
        _tx(ledger, checking, "100", TransactionType.EXPENSE, food)

        line = ledger.reports.category_spending(date(2024, 3, 1), date(2024, 4, 1), AS_OF)[0]
        assert line.budget_limit == Decimal("80")
        assert line.remaining == Decimal("-20")
        assert line.is_over_budget

    def test_budget_limit_falls_back_to_category_allowance(self, ledger, checking, food):
        """Test the category's own limit when no budget applies."""
        ledger.categories.update(food.id, lambda c: setattr(c, "budget_limit", Decimal("250")))
        _tx(ledger, checking, "100", TransactionType.EXPENSE, food)

        line = ledger.reports.category_spending(date(2024, 3, 1), date(2024, 4, 1), AS_OF)[0]
        assert line.budget_limit == Decimal("250")
        assert not line.is_over_budget


class TestTaxReport:
    """Tests for the yearly report."""

    def test_year_totals(self, ledger, checking, food):
        """Test income and expenses grouped by category."""
        salary = ledger.categories.find_by_name("Salary")
        _tx(ledger, checking, "30000", TransactionType.INCOME, salary, when=datetime(2024, 1, 31))
        _tx(ledger, checking, "12000", TransactionType.INCOME, salary, when=datetime(2024, 6, 30))
        _tx(ledger, checking, "2000", TransactionType.EXPENSE, food, when=datetime(2024, 5, 5))
        _tx(ledger, checking, "9999", TransactionType.INCOME, salary, when=datetime(2023, 12, 31))

        report = ledger.reports.tax_report(2024)

        assert report.total_income == Decimal("42000")
        assert report.total_expenses == Decimal("2000")
        assert report.net_income == Decimal("40000")
        assert report.income_by_category[0].category_name == "Salary"
        assert report.income_by_category[0].transaction_count == 2
        assert report.expenses_by_category[0].total == Decimal("2000")

    @pytest.mark.parametrize("net,rate", [
        ("5000", "0.10"),
        ("39999", "0.15"),
        ("40000", "0.25"),
        ("170000", "0.33"),
        ("600000", "0.37"),
    ])
    def test_estimated_rate(self, net, rate):
        """Test the flat-rate table."""
        report = TaxReport(year=2024, total_income=Decimal(net), total_expenses=Decimal("0"))
        assert report.estimated_tax_rate == Decimal(rate)
        assert report.estimated_taxes == Decimal(net) * Decimal(rate)

    def test_no_tax_on_a_loss(self):
        """Test that a negative net income estimates no tax."""
        report = TaxReport(year=2024, total_income=Decimal("0"), total_expenses=Decimal("100"))
        assert report.estimated_taxes == Decimal("0")
