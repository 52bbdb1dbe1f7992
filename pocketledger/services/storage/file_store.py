"""
Local File Storage Implementation

DESIGN DECISION: Each entity family is one file on local disk:

    <data_dir>/<namespace>/<key>.blob

Writes follow a strict order so a crash or a full disk can never leave a
half-written blob visible:
1. The whole payload is already serialized in memory (the codec's job)
2. It is written to a temporary file in the same directory and fsynced
3. The temporary file is atomically renamed over the target

TRADEOFFS:
- Whole-family rewrites on every mutation (fine for personal-scale data)
- No cross-key transactions (each key is atomic on its own)
"""

import contextlib
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Mapping, Optional
from uuid import uuid4

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pocketledger.config.settings import StorageSettings
from pocketledger.services.storage.interface import (
    AttachmentStoreInterface,
    BlobStoreInterface,
    NotFoundError,
    PersistenceFailedError,
    StorageError,
)


logger = structlog.get_logger(__name__)

BLOB_SUFFIX = ".blob"
META_SUFFIX = ".meta.json"

_KEY_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_\-]*$")


def _validate_key(key: str) -> str:
    if not _KEY_PATTERN.match(key):
        raise StorageError(f"Invalid storage key: {key!r}")
    return key


def _atomic_write(path: Path, data: bytes, fsync: bool) -> None:
    """Write data to path via a temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=path.parent,
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            if fsync:
                os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


class FileBlobStore(BlobStoreInterface):
    """
    Blob store backed by one file per key in a namespaced directory.

    Transient OS errors on write are retried; if every attempt fails the
    caller gets a PersistenceFailedError and the cached value is unchanged.
    """

    def __init__(
        self,
        root: Path,
        write_attempts: int = 3,
        fsync: bool = True,
    ):
        """
        Initialize the store.

        Args:
            root: Directory holding this namespace's blobs.
                  Created lazily on first write.
            write_attempts: How many times a failing write is tried
            fsync: Flush file contents to disk before the rename
        """
        self._root = Path(root)
        self._write_attempts = max(1, write_attempts)
        self._fsync = fsync
        self._cache: Optional[dict[str, bytes]] = None

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "FileBlobStore":
        """Build a store from storage settings."""
        return cls(
            root=settings.namespace_dir,
            write_attempts=settings.write_attempts,
            fsync=settings.fsync,
        )

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        return self._root / f"{_validate_key(key)}{BLOB_SUFFIX}"

    def load(self) -> Mapping[str, bytes]:
        """Read every blob in the namespace directory."""
        if self._cache is not None:
            return dict(self._cache)

        blobs: dict[str, bytes] = {}
        if self._root.is_dir():
            for path in sorted(self._root.glob(f"*{BLOB_SUFFIX}")):
                if path.name.startswith("."):
                    continue  # leftover temp file
                key = path.name[: -len(BLOB_SUFFIX)]
                try:
                    blobs[key] = path.read_bytes()
                except OSError as e:
                    logger.error("blob_read_failed", key=key, path=str(path), error=str(e))
                    raise PersistenceFailedError(f"Failed to read {key!r}: {e}") from e

        logger.debug("blob_store_loaded", root=str(self._root), keys=sorted(blobs))
        self._cache = blobs
        return dict(blobs)

    def get(self, key: str) -> Optional[bytes]:
        _validate_key(key)
        if self._cache is None:
            self.load()
        return self._cache.get(key)

    def put(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        if self._cache is None:
            self.load()

        retryer = Retrying(
            stop=stop_after_attempt(self._write_attempts),
            wait=wait_exponential(multiplier=0.05, max=1),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )
        try:
            retryer(_atomic_write, path, bytes(data), self._fsync)
        except OSError as e:
            logger.error(
                "blob_write_failed",
                key=key,
                path=str(path),
                attempts=self._write_attempts,
                error=str(e),
            )
            raise PersistenceFailedError(f"Failed to write {key!r}: {e}") from e

        # Only visible once the rename has succeeded
        self._cache[key] = bytes(data)
        logger.debug("blob_written", key=key, size=len(data))

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        if self._cache is None:
            self.load()
        try:
            path.unlink()
        except FileNotFoundError:
            return self._cache.pop(key, None) is not None
        except OSError as e:
            raise PersistenceFailedError(f"Failed to delete {key!r}: {e}") from e
        self._cache.pop(key, None)
        return True


class FileAttachmentStore(AttachmentStoreInterface):
    """
    Attachment store writing each blob next to a small JSON metadata file.
    """

    def __init__(self, root: Path, fsync: bool = True):
        self._root = Path(root)
        self._fsync = fsync

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "FileAttachmentStore":
        return cls(root=settings.attachments_dir, fsync=settings.fsync)

    def write_blob(self, data: bytes, filename: str, media_type: str) -> str:
        blob_key = uuid4().hex
        meta = {
            "filename": filename,
            "media_type": media_type,
            "size": len(data),
        }
        blob_path = self._root / blob_key
        try:
            _atomic_write(blob_path, bytes(data), self._fsync)
        except OSError as e:
            raise PersistenceFailedError(f"Failed to write attachment {filename!r}: {e}") from e
        try:
            _atomic_write(
                self._root / f"{blob_key}{META_SUFFIX}",
                json.dumps(meta).encode("utf-8"),
                self._fsync,
            )
        except OSError as e:
            # No orphaned payload without its metadata
            with contextlib.suppress(FileNotFoundError):
                blob_path.unlink()
            logger.error("attachment_meta_write_failed", blob_key=blob_key, error=str(e))
            raise PersistenceFailedError(f"Failed to write attachment {filename!r}: {e}") from e

        logger.info("attachment_written", blob_key=blob_key, filename=filename, size=len(data))
        return blob_key

    def read_blob(self, blob_key: str) -> bytes:
        path = self._root / _validate_key(blob_key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"Attachment not found: {blob_key}")
        except OSError as e:
            raise PersistenceFailedError(f"Failed to read attachment {blob_key}: {e}") from e

    def describe(self, blob_key: str) -> dict:
        """Return the stored filename, media type and size."""
        path = self._root / f"{_validate_key(blob_key)}{META_SUFFIX}"
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise NotFoundError(f"Attachment not found: {blob_key}")

    def delete_blob(self, blob_key: str) -> bool:
        existed = False
        for path in (
            self._root / _validate_key(blob_key),
            self._root / f"{blob_key}{META_SUFFIX}",
        ):
            try:
                path.unlink()
                existed = True
            except FileNotFoundError:
                continue
        return existed
