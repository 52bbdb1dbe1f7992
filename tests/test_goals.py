"""Tests for savings goals and their contribution log."""

import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from pocketledger.codec import RecordCodec
from pocketledger.models import SavingsGoal
from pocketledger.services.storage import NotFoundError, ValidationFailedError


@pytest.fixture
def vacation(ledger):
    return ledger.goals.create(
        name="Vacation",
        target_amount=Decimal("1000"),
        opening_amount=Decimal("500"),
    )


class TestContributions:
    """Tests for add_contribution."""

    def test_five_hundred_plus_one_hundred(self, ledger, vacation):
        """Test that a 100 contribution on a 500 goal gives 600."""
        updated = ledger.goals.add_contribution(vacation.id, Decimal("100"))

        assert updated.current_amount == Decimal("600")
        assert ledger.goals.get(vacation.id).current_amount == Decimal("600")
        assert len(updated.contributions) == 1

    def test_contribution_is_recorded(self, ledger, vacation):
        """Test the log entry fields."""
        when = datetime(2024, 5, 1, 9, 0)
        updated = ledger.goals.add_contribution(
            vacation.id, Decimal("50"), when=when, note="Birthday money", source="gift",
        )
        entry = updated.contributions[0]
        assert entry.amount == Decimal("50")
        assert entry.date == when
        assert entry.note == "Birthday money"
        assert entry.source == "gift"

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10")])
    def test_non_positive_rejected(self, ledger, vacation, amount):
        """Test that contributions must add money."""
        with pytest.raises(ValidationFailedError):
            ledger.goals.add_contribution(vacation.id, amount)
        assert ledger.goals.get(vacation.id).current_amount == Decimal("500")

    def test_unknown_goal(self, ledger):
        """Test NotFound for unknown goals."""
        with pytest.raises(NotFoundError):
            ledger.goals.add_contribution(uuid4(), Decimal("10"))

    def test_current_amount_survives_restart(self, ledger, vacation, store):
        """Test that the stored log reproduces the same total."""
        ledger.goals.add_contribution(vacation.id, Decimal("100"))
        ledger.goals.add_contribution(vacation.id, Decimal("25.50"))

        stored = RecordCodec(SavingsGoal).decode_many(store.get("goals"))
        assert stored[0].current_amount == Decimal("625.50")

    def test_current_amount_not_persisted(self, ledger, vacation, store):
        """Test that only the log is stored, not the total."""
        ledger.goals.add_contribution(vacation.id, Decimal("100"))
        assert b"current_amount" not in store.get("goals")


class TestCompletion:
    """Tests for completed and active goals."""

    def test_reaching_the_target(self, ledger, vacation):
        """Test that a goal completes when contributions reach the target."""
        ledger.goals.add_contribution(vacation.id, Decimal("499.99"))
        assert ledger.goals.completed().count() == 0

        ledger.goals.add_contribution(vacation.id, Decimal("0.01"))
        assert [g.id for g in ledger.goals.completed()] == [vacation.id]
        assert ledger.goals.active().count() == 0

    def test_total_saved(self, ledger, vacation):
        """Test the sum over all goals."""
        ledger.goals.create(name="Car", target_amount=Decimal("5000"), opening_amount=Decimal("250"))
        ledger.goals.add_contribution(vacation.id, Decimal("100"))
        assert ledger.goals.total_saved() == Decimal("850")
