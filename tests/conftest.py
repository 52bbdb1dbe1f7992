"""
Shared fixtures.

Tests never touch the real data directory: ledgers are built on in-memory
stores with sequential ids, so every run is deterministic.
"""

from decimal import Decimal
from typing import Mapping, Optional
from uuid import UUID

import pytest

from pocketledger.config import LedgerSettings
from pocketledger.events import ChangeNotifier
from pocketledger.models import AccountType, ChangeEvent
from pocketledger.orchestrator import create_ledger
from pocketledger.services.storage import (
    InMemoryAttachmentStore,
    InMemoryBlobStore,
    PersistenceFailedError,
)


class SequentialIds:
    """Id factory yielding UUID(int=1), UUID(int=2), ..."""

    def __init__(self):
        self.count = 0

    def __call__(self) -> UUID:
        self.count += 1
        return UUID(int=self.count)


class FlakyBlobStore(InMemoryBlobStore):
    """In-memory store whose writes fail while `failing` is set."""

    def __init__(self, initial: Optional[Mapping[str, bytes]] = None):
        super().__init__(initial)
        self.failing = False

    def put(self, key: str, data: bytes) -> None:
        if self.failing:
            raise PersistenceFailedError(f"Simulated write failure for {key!r}")
        super().put(key, data)


class EventRecorder:
    """Observer that keeps every event it receives."""

    def __init__(self):
        self.events: list[ChangeEvent] = []

    def __call__(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def families(self) -> list[str]:
        return [e.family for e in self.events]

    def clear(self) -> None:
        self.events.clear()


def make_ledger_settings(**overrides) -> LedgerSettings:
    values = {
        "base_currency": "USD",
        "bill_due_soon_days": 7,
        "budget_warning_ratio": 0.7,
        "budget_critical_ratio": 0.9,
        "recent_transactions_limit": 10,
        "seed_defaults": True,
        "log_level": "INFO",
        "log_json": True,
    }
    values.update(overrides)
    return LedgerSettings(**values)


@pytest.fixture
def ids():
    return SequentialIds()


@pytest.fixture
def store():
    return FlakyBlobStore()


@pytest.fixture
def attachments():
    return InMemoryAttachmentStore()


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def ledger(store, attachments, ids):
    ledger = create_ledger(
        store=store,
        attachments=attachments,
        id_factory=ids,
        ledger_settings=make_ledger_settings(),
    )
    yield ledger
    ledger.close()


@pytest.fixture
def recorder(ledger):
    recorder = EventRecorder()
    ledger.subscribe(recorder)
    return recorder


@pytest.fixture
def checking(ledger):
    return ledger.accounts.create(
        name="Checking",
        type=AccountType.CHECKING,
        balance=Decimal("1000"),
    )


@pytest.fixture
def food(ledger):
    return ledger.categories.find_by_name("Food & Dining")
