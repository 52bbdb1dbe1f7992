"""
Finance Repositories

One repository per finance family. Aggregates (balances, spending, budget
progress) are folded from the current records every time they are asked
for; nothing derived is cached or stored.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from pocketledger.categorization.categorizer import UNCATEGORIZED, CategorySuggestion
from pocketledger.events.notifier import ChangeNotifier
from pocketledger.models.base import IdFactory, ValidationIssue, default_id_factory, local_now
from pocketledger.models.finance import (
    PREDEFINED_CATEGORIES,
    Account,
    AttachmentRef,
    Bill,
    BillStatus,
    Budget,
    Category,
    Contribution,
    ProgressLevel,
    SavingsGoal,
    Transaction,
    TransactionType,
    palette_color,
)
from pocketledger.models.reports import BudgetSnapshot
from pocketledger.repositories.base import RecordQuery, Repository, issues_from_error
from pocketledger.services.storage.interface import (
    AttachmentStoreInterface,
    BlobStoreInterface,
    NotFoundError,
    ValidationFailedError,
)


def _on_or_after(moment: datetime, start: Optional[date]) -> bool:
    return start is None or moment.date() >= start


def _before(moment: datetime, end: Optional[date]) -> bool:
    return end is None or moment.date() < end


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionRepository(Repository[Transaction]):
    """
    Transactions, plus the receipts attached to them.

    Date ranges are half-open: `start` inclusive, `end` exclusive, compared
    on the calendar date of the transaction.
    """

    family = "transactions"
    record_type = Transaction

    def __init__(
        self,
        store: BlobStoreInterface,
        notifier: ChangeNotifier,
        id_factory: IdFactory = default_id_factory,
        attachments: Optional[AttachmentStoreInterface] = None,
    ):
        self._attachments = attachments
        super().__init__(store, notifier, id_factory)

    def for_account(self, account_id: UUID) -> RecordQuery[Transaction]:
        return self.query(lambda t: t.account_id == account_id)

    def for_category(self, category_id: Optional[UUID]) -> RecordQuery[Transaction]:
        """Transactions in a category; None selects uncategorized ones."""
        return self.query(lambda t: t.category_id == category_id)

    def between(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> RecordQuery[Transaction]:
        return self.query(lambda t: _on_or_after(t.date, start) and _before(t.date, end))

    def _total(
        self,
        type_: TransactionType,
        start: Optional[date],
        end: Optional[date],
        category_id: Optional[UUID] = None,
        any_category: bool = True,
    ) -> Decimal:
        total = Decimal("0")
        for t in self._scan():
            if t.type != type_:
                continue
            if not any_category and t.category_id != category_id:
                continue
            if _on_or_after(t.date, start) and _before(t.date, end):
                total += t.amount
        return total

    def total_income(self, start: Optional[date] = None, end: Optional[date] = None) -> Decimal:
        return self._total(TransactionType.INCOME, start, end)

    def total_expenses(self, start: Optional[date] = None, end: Optional[date] = None) -> Decimal:
        return self._total(TransactionType.EXPENSE, start, end)

    def expenses_for_category(
        self,
        category_id: UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Decimal:
        """Sum of expense amounts in one category. Refunds (negative) reduce it."""
        return self._total(
            TransactionType.EXPENSE, start, end,
            category_id=category_id, any_category=False,
        )

    def spending_by_category(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> dict[Optional[UUID], Decimal]:
        """Expense totals keyed by category id (None = uncategorized)."""
        totals: dict[Optional[UUID], Decimal] = {}
        for t in self._scan():
            if t.type != TransactionType.EXPENSE:
                continue
            if _on_or_after(t.date, start) and _before(t.date, end):
                totals[t.category_id] = totals.get(t.category_id, Decimal("0")) + t.amount
        return totals

    def recent(self, limit: int = 10) -> list[Transaction]:
        """Newest first."""
        newest = sorted(self._scan(), key=lambda t: t.date, reverse=True)[:limit]
        return [t.model_copy(deep=True) for t in newest]

    # -------------------------------------------------------------------------
    # Receipts
    # -------------------------------------------------------------------------

    def _require_attachments(self) -> AttachmentStoreInterface:
        if self._attachments is None:
            raise ValidationFailedError("No attachment store configured for receipts")
        return self._attachments

    def attach_receipt(
        self,
        transaction_id: UUID,
        data: bytes,
        filename: str,
        media_type: str = "application/octet-stream",
    ) -> Transaction:
        """Store a receipt blob and reference it from the transaction."""
        attachments = self._require_attachments()
        previous = self.get(transaction_id).receipt

        blob_key = attachments.write_blob(data, filename, media_type)
        ref = AttachmentRef(blob_key=blob_key, filename=filename, media_type=media_type)
        try:
            updated = self.update(transaction_id, lambda t: setattr(t, "receipt", ref))
        except ValidationFailedError:
            attachments.delete_blob(blob_key)
            raise

        if previous is not None:
            attachments.delete_blob(previous.blob_key)
        return updated

    def read_receipt(self, transaction_id: UUID) -> bytes:
        """
        Raises:
            NotFoundError: If the transaction has no receipt
        """
        receipt = self.get(transaction_id).receipt
        if receipt is None:
            raise NotFoundError(f"Transaction {transaction_id} has no receipt")
        return self._require_attachments().read_blob(receipt.blob_key)

    def _on_removed(self, records: list[Transaction]) -> None:
        if self._attachments is None:
            return
        for record in records:
            if record.receipt is not None:
                self._attachments.delete_blob(record.receipt.blob_key)


# =============================================================================
# ACCOUNTS & CATEGORIES
# =============================================================================

class AccountRepository(Repository[Account]):
    family = "accounts"
    record_type = Account

    def active(self) -> RecordQuery[Account]:
        return self.query(lambda a: a.is_active)

    def total_balance(self, currency: Optional[str] = None) -> Decimal:
        """Sum of active account balances, optionally for one currency."""
        return sum(
            (
                a.balance for a in self._scan()
                if a.is_active and (currency is None or a.currency == currency.upper())
            ),
            Decimal("0"),
        )


class CategoryRepository(Repository[Category]):
    family = "categories"
    record_type = Category

    def _validate(self, record: Category) -> list[ValidationIssue]:
        clash = self._find_by_name(record.name)
        if clash is not None and clash.id != record.id:
            return [ValidationIssue(
                field="name",
                issue_type="duplicate_name",
                message=f"A category named '{record.name}' already exists",
                value=record.name,
            )]
        return []

    def _find_by_name(self, name: str) -> Optional[Category]:
        wanted = name.strip().casefold()
        for category in self._scan():
            if category.name.casefold() == wanted:
                return category
        return None

    def find_by_name(self, name: str) -> Optional[Category]:
        """Case-insensitive lookup."""
        found = self._find_by_name(name)
        return found.model_copy(deep=True) if found else None

    def resolve(self, suggestion: CategorySuggestion) -> Optional[UUID]:
        """Id of the stored category a suggestion names, if any."""
        if suggestion.category_name == UNCATEGORIZED:
            return None
        found = self._find_by_name(suggestion.category_name)
        return found.id if found else None

    def seed_defaults(self) -> list[Category]:
        """Add the predefined categories that are missing by name."""
        added = []
        for name, icon, color in PREDEFINED_CATEGORIES:
            if self._find_by_name(name) is None:
                added.append(self.create(name=name, icon=icon, color=palette_color(color)))
        return added


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetRepository(Repository[Budget]):
    """
    Budgets. Spending is folded from the transaction repository on demand.

    Only expense transactions in the budget's category whose date falls in
    the current period count.
    """

    family = "budgets"
    record_type = Budget

    def __init__(
        self,
        store: BlobStoreInterface,
        notifier: ChangeNotifier,
        transactions: TransactionRepository,
        id_factory: IdFactory = default_id_factory,
        warning_ratio: float = 0.7,
        critical_ratio: float = 0.9,
    ):
        if critical_ratio < warning_ratio:
            raise ValueError("critical_ratio must be >= warning_ratio")
        self._transactions = transactions
        self.warning_ratio = warning_ratio
        self.critical_ratio = critical_ratio
        super().__init__(store, notifier, id_factory)

    def _budget(self, budget_id: UUID) -> Budget:
        budget = self._records.get(budget_id)
        if budget is None:
            raise NotFoundError(f"No budgets record with id {budget_id}")
        return budget

    def _spent(self, budget: Budget, as_of: date) -> Decimal:
        window = budget.window(as_of)
        if window is None:
            return Decimal("0")
        start, end = window
        return self._transactions.expenses_for_category(budget.category_id, start, end)

    def _ratio(self, budget: Budget, spent: Decimal) -> float:
        # A zero limit has no meaningful ratio; over_budget() still flags it
        if budget.limit <= 0:
            return 0.0
        return max(0.0, float(spent / budget.limit))

    def _level(self, ratio: float) -> ProgressLevel:
        if ratio >= self.critical_ratio:
            return ProgressLevel.CRITICAL
        if ratio >= self.warning_ratio:
            return ProgressLevel.WARNING
        return ProgressLevel.OK

    def spent(self, budget_id: UUID, as_of: Optional[date] = None) -> Decimal:
        """Expenses counted against the budget in the period containing as_of."""
        return self._spent(self._budget(budget_id), as_of or local_now().date())

    def remaining(self, budget_id: UUID, as_of: Optional[date] = None) -> Decimal:
        """Limit minus spent; negative when over budget."""
        budget = self._budget(budget_id)
        return budget.limit - self._spent(budget, as_of or local_now().date())

    def spending_ratio(self, budget_id: UUID, as_of: Optional[date] = None) -> float:
        budget = self._budget(budget_id)
        return self._ratio(budget, self._spent(budget, as_of or local_now().date()))

    def progress_level(self, budget_id: UUID, as_of: Optional[date] = None) -> ProgressLevel:
        return self._level(self.spending_ratio(budget_id, as_of))

    def snapshot(self, budget_id: UUID, as_of: Optional[date] = None) -> BudgetSnapshot:
        """Every derived number for one budget in one go."""
        as_of = as_of or local_now().date()
        budget = self._budget(budget_id)
        spent = self._spent(budget, as_of)
        ratio = self._ratio(budget, spent)
        window = budget.window(as_of)
        return BudgetSnapshot(
            budget_id=budget.id,
            name=budget.name,
            category_id=budget.category_id,
            limit=budget.limit,
            spent=spent,
            remaining=budget.limit - spent,
            spending_ratio=ratio,
            level=self._level(ratio),
            period_start=window[0] if window else None,
            period_end=window[1] if window else None,
            days_remaining=budget.days_remaining(as_of),
        )

    def for_category(self, category_id: UUID) -> RecordQuery[Budget]:
        return self.query(lambda b: b.category_id == category_id)

    def over_budget(self, as_of: Optional[date] = None) -> list[Budget]:
        """Active budgets whose current spend exceeds their limit."""
        as_of = as_of or local_now().date()
        return [
            b.model_copy(deep=True) for b in self._scan()
            if b.is_active and self._spent(b, as_of) > b.limit
        ]


# =============================================================================
# BILLS
# =============================================================================

class BillRepository(Repository[Bill]):
    family = "bills"
    record_type = Bill

    def __init__(
        self,
        store: BlobStoreInterface,
        notifier: ChangeNotifier,
        id_factory: IdFactory = default_id_factory,
        due_soon_days: int = 7,
    ):
        self.due_soon_days = due_soon_days
        super().__init__(store, notifier, id_factory)

    def status(self, bill_id: UUID, as_of: Optional[date] = None) -> BillStatus:
        return self.get(bill_id).status(as_of or local_now().date(), self.due_soon_days)

    def _with_status(self, wanted: Iterable[BillStatus], as_of: Optional[date]) -> list[Bill]:
        as_of = as_of or local_now().date()
        wanted = set(wanted)
        bills = [
            b for b in self._scan()
            if b.status(as_of, self.due_soon_days) in wanted
        ]
        bills.sort(key=lambda b: b.due_date)
        return [b.model_copy(deep=True) for b in bills]

    def overdue(self, as_of: Optional[date] = None) -> list[Bill]:
        return self._with_status([BillStatus.OVERDUE], as_of)

    def due_soon(self, as_of: Optional[date] = None) -> list[Bill]:
        return self._with_status([BillStatus.DUE_SOON], as_of)

    def upcoming(self, as_of: Optional[date] = None) -> list[Bill]:
        """Unpaid bills not yet overdue, soonest first."""
        return self._with_status([BillStatus.DUE_SOON, BillStatus.UPCOMING], as_of)

    def unpaid_total(self) -> Decimal:
        return sum((b.amount for b in self._scan() if not b.is_paid), Decimal("0"))

    def mark_paid(
        self,
        bill_id: UUID,
        paid_on: Optional[date] = None,
    ) -> tuple[Bill, Optional[Bill]]:
        """
        Mark a bill paid. A recurring bill schedules its next occurrence.

        Returns:
            (paid bill, next occurrence or None)

        Raises:
            ValidationFailedError: If the bill is already paid
        """
        bill = self.get(bill_id)
        if bill.is_paid:
            raise ValidationFailedError(f"Bill '{bill.name}' is already paid")

        paid_on = paid_on or local_now().date()

        def pay(b: Bill) -> None:
            b.is_paid = True
            b.paid_date = paid_on

        # One scope: deferred work sees the paid bill and its successor together
        with self._notifier.mutation():
            paid = self.update(bill_id, pay)

            next_due = paid.next_due_date()
            if next_due is None:
                return paid, None
            following = self.create(
                **paid.model_dump(exclude={"id", "is_paid", "paid_date", "due_date"}),
                due_date=next_due,
            )
        return paid, following


# =============================================================================
# SAVINGS GOALS
# =============================================================================

class SavingsGoalRepository(Repository[SavingsGoal]):
    family = "goals"
    record_type = SavingsGoal

    def add_contribution(
        self,
        goal_id: UUID,
        amount: Decimal,
        when: Optional[datetime] = None,
        note: Optional[str] = None,
        source: str = "manual",
    ) -> SavingsGoal:
        """
        Append a contribution. The goal's current amount follows from it.

        Raises:
            ValidationFailedError: If amount is not positive
        """
        try:
            contribution = Contribution(
                amount=amount,
                date=when or local_now(),
                note=note,
                source=source,
            )
        except PydanticValidationError as e:
            raise ValidationFailedError(
                "Invalid contribution",
                issues=issues_from_error(e),
            ) from e
        return self.update(goal_id, lambda g: g.contributions.append(contribution))

    def active(self) -> RecordQuery[SavingsGoal]:
        return self.query(lambda g: g.is_active and not g.is_completed)

    def completed(self) -> RecordQuery[SavingsGoal]:
        return self.query(lambda g: g.is_completed)

    def total_saved(self) -> Decimal:
        return sum((g.current_amount for g in self._scan()), Decimal("0"))
