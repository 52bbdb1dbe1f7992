"""
Storage Services Package

Provides the abstract blob-store interfaces and the local implementations.
The ledger only ever talks to the interfaces, so the substrate is swappable.
"""

from pocketledger.services.storage.interface import (
    AttachmentStoreInterface,
    BlobStoreInterface,
    DecodeFailedError,
    DuplicateIdentifierError,
    NotFoundError,
    NotificationFailedError,
    PersistenceFailedError,
    ReentrantMutationError,
    StorageError,
    ValidationFailedError,
)
from pocketledger.services.storage.file_store import (
    FileAttachmentStore,
    FileBlobStore,
)
from pocketledger.services.storage.memory import (
    InMemoryAttachmentStore,
    InMemoryBlobStore,
)

__all__ = [
    # Interfaces
    "AttachmentStoreInterface",
    "BlobStoreInterface",
    # Exceptions
    "DecodeFailedError",
    "DuplicateIdentifierError",
    "NotFoundError",
    "NotificationFailedError",
    "PersistenceFailedError",
    "ReentrantMutationError",
    "StorageError",
    "ValidationFailedError",
    # Local file implementation
    "FileAttachmentStore",
    "FileBlobStore",
    # In-memory implementation
    "InMemoryAttachmentStore",
    "InMemoryBlobStore",
]
