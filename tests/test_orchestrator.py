"""Tests for ledger composition, cold start and restart."""

from datetime import date, datetime
from decimal import Decimal

from conftest import SequentialIds, make_ledger_settings
from pocketledger.config import StorageSettings
from pocketledger.models import PREDEFINED_CATEGORIES, TransactionType
from pocketledger.orchestrator import create_ledger
from pocketledger.services.storage import FileBlobStore, InMemoryBlobStore


def _populate(ledger):
    account = ledger.accounts.create(name="Checking", balance=Decimal("1000.10"))
    food = ledger.categories.find_by_name("Food & Dining")
    ledger.transactions.create(
        amount=Decimal("12.34"),
        type=TransactionType.EXPENSE,
        merchant="Joe's Pizza",
        account_id=account.id,
        category_id=food.id,
        date=datetime(2024, 3, 5, 19, 30),
        tags={"dinner", "friends"},
    )
    ledger.budgets.create(
        name="Food", category_id=food.id, limit=Decimal("300"), start_date=date(2024, 1, 1),
    )
    goal = ledger.goals.create(name="Trip", target_amount=Decimal("1000"))
    ledger.goals.add_contribution(goal.id, Decimal("100"), when=datetime(2024, 3, 1))
    note = ledger.notes.create(title="Ideas", content="save more")
    work = ledger.folders.create(name="Work")
    ledger.folders.move_note(note.id, work.id)


class TestColdStart:
    """Tests for first-run seeding."""

    def test_defaults_seeded(self, ledger):
        """Test predefined categories and folders on an empty store."""
        assert [c.name for c in ledger.categories] == [name for name, _, _ in PREDEFINED_CATEGORIES]
        assert len(ledger.folders) == 3

    def test_seeding_can_be_disabled(self):
        """Test an empty ledger without defaults."""
        ledger = create_ledger(
            store=InMemoryBlobStore(),
            ledger_settings=make_ledger_settings(seed_defaults=False),
        )
        assert len(ledger.categories) == 0
        assert len(ledger.folders) == 0

    def test_no_reseed_after_deleting_everything(self, ledger, store):
        """Test that an emptied category list stays empty on restart."""
        for category in list(ledger.categories):
            ledger.categories.remove(category.id)

        restarted = create_ledger(store=store, ledger_settings=make_ledger_settings())
        assert len(restarted.categories) == 0

    def test_corrupt_family_starts_empty(self):
        """Test that a bad blob isolates its own family only."""
        store = InMemoryBlobStore({"accounts": b"not json"})
        ledger = create_ledger(store=store, ledger_settings=make_ledger_settings())

        assert len(ledger.accounts) == 0
        assert list(ledger.load_errors()) == ["accounts"]
        assert len(ledger.categories) == len(PREDEFINED_CATEGORIES)


class TestRestart:
    """Tests for reloading a ledger from the same store."""

    def test_same_records_after_restart(self, store, ids):
        """Test that every family comes back equal."""
        first = create_ledger(store=store, id_factory=ids, ledger_settings=make_ledger_settings())
        _populate(first)

        second = create_ledger(store=store, ledger_settings=make_ledger_settings())

        for family, repo in first.repositories.items():
            assert list(second.repositories[family]) == list(repo), family
        assert second.load_errors() == {}

    def test_derived_values_after_restart(self, store):
        """Test that computed values are rebuilt from stored records."""
        first = create_ledger(store=store, ledger_settings=make_ledger_settings())
        _populate(first)
        second = create_ledger(store=store, ledger_settings=make_ledger_settings())

        goal = second.goals.query().first()
        assert goal.current_amount == Decimal("100")
        budget = second.budgets.query().first()
        assert second.budgets.spent(budget.id, date(2024, 3, 20)) == Decimal("12.34")

    def test_file_backed_restart(self, tmp_path):
        """Test a ledger persisted to disk and reopened."""
        storage = StorageSettings(data_dir=tmp_path, namespace="test", fsync=False)
        settings = make_ledger_settings()

        first = create_ledger(storage_settings=storage, ledger_settings=settings)
        _populate(first)
        assert (tmp_path / "test").is_dir()

        second = create_ledger(storage_settings=storage, ledger_settings=settings)
        assert isinstance(second.store, FileBlobStore)
        for family, repo in first.repositories.items():
            assert list(second.repositories[family]) == list(repo), family


class TestLedgerSurface:
    """Tests for the composed ledger."""

    def test_repositories_by_family(self, ledger):
        """Test the family index."""
        assert set(ledger.repositories) == {
            "accounts", "categories", "transactions", "budgets",
            "bills", "goals", "folders", "notes",
        }
        assert ledger.repositories["accounts"] is ledger.accounts

    def test_subscribe_to_some_families(self, ledger):
        """Test family-filtered subscriptions."""
        seen = []
        ledger.subscribe(seen.append, "accounts")
        ledger.accounts.create(name="Savings")
        ledger.notes.create(title="Ideas")
        assert [e.family for e in seen] == ["accounts"]

    def test_ids_come_from_the_factory(self, ledger, ids):
        """Test the injected id factory."""
        account = ledger.accounts.create(name="Savings")
        assert account.id.int == ids.count

    def test_audit_logger_sees_changes(self, ledger):
        """Test that the built-in audit observer is wired."""
        ledger.accounts.create(name="Savings")
        assert ledger.audit_logger.recent_events(limit=1)[0].family == "accounts"

    def test_close_detaches_audit_logger(self, store):
        """Test that closing stops the audit observer."""
        ledger = create_ledger(
            store=store, id_factory=SequentialIds(), ledger_settings=make_ledger_settings(),
        )
        ledger.close()
        before = len(ledger.audit_logger.recent_events(limit=1000))
        ledger.accounts.create(name="Savings")
        assert len(ledger.audit_logger.recent_events(limit=1000)) == before
