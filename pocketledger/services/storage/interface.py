"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the persistence substrate.
This allows us to:
1. Keep repositories ignorant of where bytes end up (files, memory, a platform store)
2. Use in-memory storage for testing
3. Swap the substrate without touching business logic

The interface is intentionally tiny - a key-value blob store, not an ORM.
Each entity family is persisted as ONE blob under a stable key.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional


class BlobStoreInterface(ABC):
    """
    Abstract key-value blob store.

    Keys are stable family names ("transactions", "budgets", ...).
    Values are opaque bytes produced by the record codec.
    """

    @abstractmethod
    def load(self) -> Mapping[str, bytes]:
        """
        Load every persisted blob.

        Called once at process start. Returns an empty mapping on a cold
        start - a missing backing location is NOT an error.

        Raises:
            PersistenceFailedError: If existing data cannot be read
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """
        Return the blob stored under key, or None if absent.
        """
        pass

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """
        Synchronously store data under key, overwriting any previous value.

        The update is atomic per key: `get` returns either the old or the
        new value, never a partial write.

        Raises:
            PersistenceFailedError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove the blob under key.

        Returns:
            True if something was removed
        """
        pass

    def keys(self) -> list[str]:
        """List stored keys."""
        return sorted(self.load().keys())


class AttachmentStoreInterface(ABC):
    """
    Abstract store for binary attachments (receipts, scans).

    Attachments are opaque to the ledger: bytes plus a filename and a
    media type, addressed by a generated blob key.
    """

    @abstractmethod
    def write_blob(self, data: bytes, filename: str, media_type: str) -> str:
        """
        Persist an attachment.

        Returns:
            The blob key to reference it by
        """
        pass

    @abstractmethod
    def read_blob(self, blob_key: str) -> bytes:
        """
        Read an attachment back.

        Raises:
            NotFoundError: If no blob exists for the key
        """
        pass

    @abstractmethod
    def delete_blob(self, blob_key: str) -> bool:
        """Delete an attachment. Returns True if it existed."""
        pass


class StorageError(Exception):
    """Base exception for ledger storage operations."""
    pass


class NotFoundError(StorageError):
    """Operation referenced an identifier that does not exist."""
    pass


class DuplicateIdentifierError(StorageError):
    """Attempted to add a record whose identifier already exists."""
    pass


class ValidationFailedError(StorageError):
    """
    A record violates a field or reference invariant.

    `issues` carries the individual problems so the UI can surface them.
    """

    def __init__(self, message: str, issues: Optional[list] = None):
        super().__init__(message)
        self.issues = list(issues or [])


class PersistenceFailedError(StorageError):
    """The underlying store could not read or write."""
    pass


class DecodeFailedError(StorageError):
    """Persisted bytes are malformed (treated as corruption)."""
    pass


class ReentrantMutationError(StorageError):
    """A mutation was attempted while change notifications were being delivered."""
    pass


class NotificationFailedError(StorageError):
    """
    One or more observers raised while handling a change event.

    The mutation itself has been applied; `errors` holds what observers raised.
    """

    def __init__(self, message: str, errors: Optional[list[BaseException]] = None):
        super().__init__(message)
        self.errors = list(errors or [])
