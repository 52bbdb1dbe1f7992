"""
Data Models Package

This package contains all Pydantic models used by PocketLedger.
Everything a repository persists conforms to these schemas.
"""

from pocketledger.models.base import (
    IdFactory,
    Record,
    ValidationIssue,
    default_id_factory,
)
from pocketledger.models.events import ChangeEvent, ChangeKind
from pocketledger.models.finance import (
    PREDEFINED_CATEGORIES,
    Account,
    AccountType,
    AttachmentRef,
    Bill,
    BillStatus,
    Budget,
    BudgetPeriod,
    Category,
    Contribution,
    Location,
    Priority,
    ProgressLevel,
    RecurrenceInterval,
    SavingsGoal,
    Transaction,
    TransactionType,
)
from pocketledger.models.notes import (
    DEFAULT_FOLDERS,
    AttachmentType,
    Note,
    NoteAttachment,
    NoteFolder,
)
from pocketledger.models.reports import (
    BudgetSnapshot,
    CategorySpending,
    CategorySummary,
    FinanceSummary,
    TaxReport,
)

__all__ = [
    # Base
    "IdFactory",
    "Record",
    "ValidationIssue",
    "default_id_factory",
    # Events
    "ChangeEvent",
    "ChangeKind",
    # Finance models
    "PREDEFINED_CATEGORIES",
    "Account",
    "AccountType",
    "AttachmentRef",
    "Bill",
    "BillStatus",
    "Budget",
    "BudgetPeriod",
    "Category",
    "Contribution",
    "Location",
    "Priority",
    "ProgressLevel",
    "RecurrenceInterval",
    "SavingsGoal",
    "Transaction",
    "TransactionType",
    # Note models
    "DEFAULT_FOLDERS",
    "AttachmentType",
    "Note",
    "NoteAttachment",
    "NoteFolder",
    # Reports
    "BudgetSnapshot",
    "CategorySpending",
    "CategorySummary",
    "FinanceSummary",
    "TaxReport",
]
