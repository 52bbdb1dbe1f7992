"""
Repositories Package

One repository per entity family. Each owns its in-memory collection,
persists it through a blob store and publishes change events.
"""

from pocketledger.repositories.base import (
    OnDelete,
    RecordQuery,
    ReferenceLink,
    Repository,
    link,
)
from pocketledger.repositories.finance import (
    AccountRepository,
    BillRepository,
    BudgetRepository,
    CategoryRepository,
    SavingsGoalRepository,
    TransactionRepository,
)
from pocketledger.repositories.notes import (
    NoteFolderRepository,
    NoteRepository,
)

__all__ = [
    # Base
    "OnDelete",
    "RecordQuery",
    "ReferenceLink",
    "Repository",
    "link",
    # Finance
    "AccountRepository",
    "BillRepository",
    "BudgetRepository",
    "CategoryRepository",
    "SavingsGoalRepository",
    "TransactionRepository",
    # Notes
    "NoteFolderRepository",
    "NoteRepository",
]
