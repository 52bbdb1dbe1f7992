"""
Ledger Composition Root

This module ties together all the components: one blob store, one
notifier, one repository per entity family, the reference links between
them, the audit logger and the report builder.

DESIGN DECISION: There is no global ledger. `create_ledger()` builds a
complete, isolated instance and hands it to the caller. Configuration is
read here and nowhere else; every class below receives plain arguments.

Reference policy between families:
- Required references cascade: deleting an account deletes its
  transactions, deleting a category deletes its budgets
- Optional references are cleared: transactions, bills and goals lose a
  deleted category, bills lose a deleted account, notes lose a deleted folder
- Folder membership lists drop deleted notes
"""

from typing import Optional
from uuid import UUID

import structlog

from pocketledger.audit import AuditLogger, configure_logging
from pocketledger.categorization import CategorySuggestion, KeywordCategorizer
from pocketledger.config import LedgerSettings, StorageSettings, get_settings
from pocketledger.events import ChangeNotifier, Observer, Subscription
from pocketledger.models.base import IdFactory, default_id_factory
from pocketledger.queries import ReportBuilder
from pocketledger.repositories import (
    AccountRepository,
    BillRepository,
    BudgetRepository,
    CategoryRepository,
    NoteFolderRepository,
    NoteRepository,
    OnDelete,
    Repository,
    SavingsGoalRepository,
    TransactionRepository,
    link,
)
from pocketledger.services.storage import (
    AttachmentStoreInterface,
    BlobStoreInterface,
    FileAttachmentStore,
    FileBlobStore,
)


logger = structlog.get_logger(__name__)


class Ledger:
    """
    A fully wired ledger.

    Every repository shares the same store and notifier, so one observer
    can watch all families and the reentrancy guard spans all of them.
    """

    def __init__(
        self,
        store: BlobStoreInterface,
        notifier: ChangeNotifier,
        transactions: TransactionRepository,
        accounts: AccountRepository,
        categories: CategoryRepository,
        budgets: BudgetRepository,
        bills: BillRepository,
        goals: SavingsGoalRepository,
        notes: NoteRepository,
        folders: NoteFolderRepository,
        categorizer: KeywordCategorizer,
        audit_logger: AuditLogger,
        reports: ReportBuilder,
    ):
        self.store = store
        self.notifier = notifier
        self.transactions = transactions
        self.accounts = accounts
        self.categories = categories
        self.budgets = budgets
        self.bills = bills
        self.goals = goals
        self.notes = notes
        self.folders = folders
        self.categorizer = categorizer
        self.audit_logger = audit_logger
        self.reports = reports

    @property
    def repositories(self) -> dict[str, Repository]:
        """All repositories keyed by family."""
        repos: list[Repository] = [
            self.accounts,
            self.categories,
            self.transactions,
            self.budgets,
            self.bills,
            self.goals,
            self.folders,
            self.notes,
        ]
        return {repo.family: repo for repo in repos}

    def subscribe(self, observer: Observer, *families: str) -> Subscription:
        """Observe changes, optionally limited to some families."""
        return self.notifier.subscribe(observer, families or None)

    def suggest_category(
        self,
        merchant_text: str,
    ) -> tuple[CategorySuggestion, Optional[UUID]]:
        """Suggestion for a merchant plus the stored category id it maps to."""
        suggestion = self.categorizer.suggest(merchant_text)
        return suggestion, self.categories.resolve(suggestion)

    def load_errors(self) -> dict[str, str]:
        """Families that failed to decode at startup and started empty."""
        return {
            family: str(repo.load_error)
            for family, repo in self.repositories.items()
            if repo.load_error is not None
        }

    def close(self) -> None:
        self.audit_logger.close()


def create_ledger(
    store: Optional[BlobStoreInterface] = None,
    attachments: Optional[AttachmentStoreInterface] = None,
    notifier: Optional[ChangeNotifier] = None,
    id_factory: IdFactory = default_id_factory,
    ledger_settings: Optional[LedgerSettings] = None,
    storage_settings: Optional[StorageSettings] = None,
    categorizer: Optional[KeywordCategorizer] = None,
    setup_logging: bool = False,
) -> Ledger:
    """
    Factory function to create a complete ledger.

    Args:
        store: Blob store for the family collections.
               Defaults to a FileBlobStore built from StorageSettings.
        attachments: Store for receipt blobs. Defaults to a
                     FileAttachmentStore when `store` is also defaulted.
        notifier: Shared notifier (a fresh one if None)
        id_factory: Id generator for new records
        ledger_settings: Thresholds and defaults (from environment if None)
        storage_settings: Where files live (from environment if None)
        categorizer: Merchant categorizer (default keyword rules if None)
        setup_logging: Install the structlog configuration first

    Returns:
        A wired Ledger
    """
    settings = None
    if ledger_settings is None or (store is None and storage_settings is None):
        settings = get_settings()
    ledger_settings = ledger_settings or settings.ledger

    if setup_logging:
        configure_logging(ledger_settings.log_level, ledger_settings.log_json)

    if store is None:
        storage_settings = storage_settings or settings.storage
        store = FileBlobStore.from_settings(storage_settings)
        if attachments is None:
            attachments = FileAttachmentStore.from_settings(storage_settings)

    store.load()
    notifier = notifier or ChangeNotifier()

    accounts = AccountRepository(store, notifier, id_factory)
    categories = CategoryRepository(store, notifier, id_factory)
    transactions = TransactionRepository(store, notifier, id_factory, attachments=attachments)
    budgets = BudgetRepository(
        store,
        notifier,
        transactions,
        id_factory,
        warning_ratio=ledger_settings.budget_warning_ratio,
        critical_ratio=ledger_settings.budget_critical_ratio,
    )
    bills = BillRepository(
        store,
        notifier,
        id_factory,
        due_soon_days=ledger_settings.bill_due_soon_days,
    )
    goals = SavingsGoalRepository(store, notifier, id_factory)
    notes = NoteRepository(store, notifier, id_factory)
    folders = NoteFolderRepository(store, notifier, id_factory)

    link(accounts, transactions, "account_id", OnDelete.CASCADE)
    link(accounts, bills, "account_id", OnDelete.NULLIFY)
    link(categories, transactions, "category_id", OnDelete.NULLIFY)
    link(categories, budgets, "category_id", OnDelete.CASCADE)
    link(categories, bills, "category_id", OnDelete.NULLIFY)
    link(categories, goals, "category_id", OnDelete.NULLIFY)
    link(folders, notes, "folder_id", OnDelete.NULLIFY)
    link(notes, folders, "note_ids", OnDelete.NULLIFY)

    audit_logger = AuditLogger(notifier)

    # Defaults only on a true cold start: a user who deleted every
    # category keeps an empty list
    if ledger_settings.seed_defaults:
        if not categories.loaded_from_store and categories.load_error is None:
            categories.seed_defaults()
        if not folders.loaded_from_store and folders.load_error is None:
            folders.seed_defaults()

    reports = ReportBuilder(
        transactions,
        accounts,
        categories,
        budgets,
        bills,
        goals,
        recent_limit=ledger_settings.recent_transactions_limit,
        base_currency=ledger_settings.base_currency,
    )

    ledger = Ledger(
        store=store,
        notifier=notifier,
        transactions=transactions,
        accounts=accounts,
        categories=categories,
        budgets=budgets,
        bills=bills,
        goals=goals,
        notes=notes,
        folders=folders,
        categorizer=categorizer or KeywordCategorizer(),
        audit_logger=audit_logger,
        reports=reports,
    )

    logger.info(
        "ledger_created",
        families={family: len(repo) for family, repo in ledger.repositories.items()},
        load_errors=list(ledger.load_errors()),
    )
    return ledger
