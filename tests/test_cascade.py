"""
Tests for the delete policy between families.

Required references cascade (account -> transactions, category -> budgets).
Optional references are cleared. Folder membership lists drop deleted notes.
"""

import pytest
from datetime import date
from decimal import Decimal

from pocketledger.models import ChangeKind, TransactionType
from pocketledger.services.storage import (
    NotificationFailedError,
    PersistenceFailedError,
    ValidationFailedError,
)


def _expense(ledger, account, category=None, amount="25.99", merchant="Joe's Pizza"):
    return ledger.transactions.create(
        amount=Decimal(amount),
        type=TransactionType.EXPENSE,
        merchant=merchant,
        account_id=account.id,
        category_id=category.id if category else None,
    )


class TestAccountRemoval:
    """Tests for deleting accounts."""

    def test_checking_account_scenario(self, ledger, checking, food):
        """Test the account/transaction lifecycle end to end."""
        t = _expense(ledger, checking, food)

        assert [r.id for r in ledger.transactions.for_account(checking.id)] == [t.id]

        ledger.accounts.remove(checking.id)

        assert ledger.transactions.for_account(checking.id).all() == []
        assert all(r.account_id in ledger.accounts for r in ledger.transactions)
        assert t.id not in ledger.transactions

    def test_other_accounts_untouched(self, ledger, checking, food):
        """Test that only the removed account's transactions go."""
        savings = ledger.accounts.create(name="Savings")
        _expense(ledger, checking, food)
        kept = _expense(ledger, savings, food)

        ledger.accounts.remove(checking.id)
        assert [r.id for r in ledger.transactions] == [kept.id]

    def test_bills_lose_the_account(self, ledger, checking):
        """Test that bills paid from a deleted account keep existing."""
        bill = ledger.bills.create(
            name="Rent", amount=Decimal("1200"), due_date=date(2024, 7, 1),
            account_id=checking.id,
        )
        ledger.accounts.remove(checking.id)
        assert ledger.bills.get(bill.id).account_id is None

    def test_dependents_settle_before_owner_event(self, ledger, checking, food, recorder):
        """Test that no observer ever sees a dangling reference."""
        _expense(ledger, checking, food)
        recorder.clear()

        dangling = []

        def check(event):
            for t in ledger.transactions:
                if t.account_id not in ledger.accounts:
                    dangling.append(t.id)

        ledger.subscribe(check)
        ledger.accounts.remove(checking.id)

        assert dangling == []
        assert [(e.family, e.kind) for e in recorder.events] == [
            ("transactions", ChangeKind.REMOVED),
            ("accounts", ChangeKind.REMOVED),
        ]

    def test_deferred_work_runs_after_the_whole_cascade(self, ledger, checking, food):
        """Test that follow-up work cannot reference the account being removed."""
        _expense(ledger, checking, food)
        seen_account = []

        def late_expense():
            seen_account.append(checking.id in ledger.accounts)
            _expense(ledger, checking, merchant="Late")

        def on_transactions(event):
            if event.kind == ChangeKind.REMOVED:
                ledger.notifier.call_later(late_expense)

        ledger.subscribe(on_transactions, "transactions")
        with pytest.raises(NotificationFailedError) as exc_info:
            ledger.accounts.remove(checking.id)

        assert seen_account == [False]
        assert isinstance(exc_info.value.errors[0], ValidationFailedError)
        assert [t for t in ledger.transactions if t.account_id not in ledger.accounts] == []

    def test_receipt_blob_removed_with_transaction(self, ledger, checking, attachments):
        """Test that cascaded transactions release their receipts."""
        t = _expense(ledger, checking)
        t = ledger.transactions.attach_receipt(t.id, b"img", "r.jpg", "image/jpeg")
        key = t.receipt.blob_key

        ledger.accounts.remove(checking.id)
        assert attachments.delete_blob(key) is False

    def test_store_failure_during_cascade_still_settles_memory(self, ledger, checking, store):
        """Test that a failed write does not leave a half-applied removal."""
        _expense(ledger, checking)
        store.failing = True

        with pytest.raises(PersistenceFailedError):
            ledger.accounts.remove(checking.id)

        assert checking.id not in ledger.accounts
        assert len(ledger.transactions) == 0


class TestCategoryRemoval:
    """Tests for deleting categories."""

    def test_transactions_become_uncategorized(self, ledger, checking, food):
        """Test that transactions keep existing without a category."""
        t = _expense(ledger, checking, food)
        ledger.categories.remove(food.id)

        assert ledger.transactions.get(t.id).category_id is None
        assert ledger.transactions.for_category(None).count() == 1

    def test_budgets_are_removed(self, ledger, food):
        """Test that a budget cannot outlive its category."""
        budget = ledger.budgets.create(
            name="Food", category_id=food.id, limit=Decimal("500"),
            start_date=date(2024, 1, 1),
        )
        ledger.categories.remove(food.id)
        assert budget.id not in ledger.budgets

    def test_bills_and_goals_lose_the_category(self, ledger, food):
        """Test that optional category references are cleared."""
        bill = ledger.bills.create(
            name="Meal kit", amount=Decimal("60"), due_date=date(2024, 7, 1),
            category_id=food.id,
        )
        goal = ledger.goals.create(
            name="Dinner party", target_amount=Decimal("300"), category_id=food.id,
        )
        ledger.categories.remove(food.id)

        assert ledger.bills.get(bill.id).category_id is None
        assert ledger.goals.get(goal.id).category_id is None

    def test_no_dangling_category_references(self, ledger, checking, food):
        """Test every family after the removal."""
        other = ledger.categories.find_by_name("Shopping")
        _expense(ledger, checking, food)
        _expense(ledger, checking, other, merchant="Amazon")
        ledger.budgets.create(
            name="Food", category_id=food.id, limit=Decimal("500"),
            start_date=date(2024, 1, 1),
        )

        ledger.categories.remove(food.id)

        for t in ledger.transactions:
            assert t.category_id is None or t.category_id in ledger.categories
        for b in ledger.budgets:
            assert b.category_id in ledger.categories


class TestNoteRemoval:
    """Tests for deleting notes and folders."""

    def test_folder_removal_clears_membership(self, ledger):
        """Test that notes survive their folder."""
        folder = ledger.folders.create(name="Work")
        note = ledger.notes.create(title="Standup")
        ledger.folders.move_note(note.id, folder.id)

        ledger.folders.remove(folder.id)
        assert ledger.notes.get(note.id).folder_id is None

    def test_note_removal_drops_it_from_folder(self, ledger):
        """Test that folders never list deleted notes."""
        folder = ledger.folders.create(name="Work")
        note = ledger.notes.create(title="Standup")
        keep = ledger.notes.create(title="Retro")
        ledger.folders.move_note(note.id, folder.id)
        ledger.folders.move_note(keep.id, folder.id)

        ledger.notes.remove(note.id)
        assert ledger.folders.get(folder.id).note_ids == [keep.id]
