"""Services package."""

from pocketledger.services.storage import (
    AttachmentStoreInterface,
    BlobStoreInterface,
    DecodeFailedError,
    DuplicateIdentifierError,
    FileAttachmentStore,
    FileBlobStore,
    InMemoryAttachmentStore,
    InMemoryBlobStore,
    NotFoundError,
    NotificationFailedError,
    PersistenceFailedError,
    ReentrantMutationError,
    StorageError,
    ValidationFailedError,
)

__all__ = [
    # Storage services
    "AttachmentStoreInterface",
    "BlobStoreInterface",
    "DecodeFailedError",
    "DuplicateIdentifierError",
    "FileAttachmentStore",
    "FileBlobStore",
    "InMemoryAttachmentStore",
    "InMemoryBlobStore",
    "NotFoundError",
    "NotificationFailedError",
    "PersistenceFailedError",
    "ReentrantMutationError",
    "StorageError",
    "ValidationFailedError",
]
