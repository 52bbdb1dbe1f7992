"""
In-Memory Storage Implementation

Used by tests and by ephemeral sessions (nothing survives the process).
Behaves like the file store: values are copied in and out, keys are
independent, and `load` on a fresh store is empty.
"""

from typing import Mapping, Optional
from uuid import uuid4

from pocketledger.services.storage.interface import (
    AttachmentStoreInterface,
    BlobStoreInterface,
    NotFoundError,
)


class InMemoryBlobStore(BlobStoreInterface):
    """Dictionary-backed blob store."""

    def __init__(self, initial: Optional[Mapping[str, bytes]] = None):
        self._blobs: dict[str, bytes] = {
            key: bytes(value) for key, value in (initial or {}).items()
        }
        self.write_count = 0

    def load(self) -> Mapping[str, bytes]:
        return dict(self._blobs)

    def get(self, key: str) -> Optional[bytes]:
        return self._blobs.get(key)

    def put(self, key: str, data: bytes) -> None:
        self._blobs[key] = bytes(data)
        self.write_count += 1

    def delete(self, key: str) -> bool:
        return self._blobs.pop(key, None) is not None


class InMemoryAttachmentStore(AttachmentStoreInterface):
    """Dictionary-backed attachment store."""

    def __init__(self):
        self._blobs: dict[str, tuple[bytes, str, str]] = {}

    def write_blob(self, data: bytes, filename: str, media_type: str) -> str:
        blob_key = uuid4().hex
        self._blobs[blob_key] = (bytes(data), filename, media_type)
        return blob_key

    def read_blob(self, blob_key: str) -> bytes:
        try:
            return self._blobs[blob_key][0]
        except KeyError:
            raise NotFoundError(f"Attachment not found: {blob_key}")

    def delete_blob(self, blob_key: str) -> bool:
        return self._blobs.pop(blob_key, None) is not None
