"""
Object storage port for archived documents.

The archive writes each document once under a key below its own prefix
and reads it back by key.  ``ObjectStorage`` is the port; two adapters
ship with the package:

* ``InMemoryObjectStorage`` for tests and local tooling.
* ``FileSystemObjectStorage`` which keeps objects as files below a root
  directory, with their metadata in a JSON sidecar.

S3-compatible stores plug in by implementing ``put`` and ``get``.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from windpark_kernel.exceptions import StorageObjectNotFoundError
from windpark_kernel.logging_config import get_logger

logger = get_logger("modules.archive.storage")

_METADATA_SUFFIX = ".meta.json"


@dataclass(frozen=True)
class StoredObject:
    key: str
    content: bytes
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict)


class ObjectStorage(ABC):
    """
    Abstract object store.

    Contract:
        ``put`` stores bytes under a key (overwriting is allowed; the
        archive never reuses a key).  ``get`` returns the stored bytes or
        raises ``StorageObjectNotFoundError``.
    """

    @abstractmethod
    def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Store ``content`` under ``key``."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the bytes stored under ``key``."""


class InMemoryObjectStorage(ObjectStorage):
    """Dictionary-backed store."""

    def __init__(self):
        self._objects: dict[str, StoredObject] = {}

    def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        self._objects[key] = StoredObject(
            key=key,
            content=bytes(content),
            content_type=content_type,
            metadata=dict(metadata or {}),
        )

    def get(self, key: str) -> bytes:
        stored = self._objects.get(key)
        if stored is None:
            raise StorageObjectNotFoundError(key)
        return stored.content

    def head(self, key: str) -> StoredObject:
        """Stored object including content type and metadata."""
        stored = self._objects.get(key)
        if stored is None:
            raise StorageObjectNotFoundError(key)
        return stored

    def keys(self) -> list[str]:
        return sorted(self._objects)

    def __len__(self) -> int:
        return len(self._objects)


class FileSystemObjectStorage(ObjectStorage):
    """
    Store objects as files below ``root``.

    Keys map to relative paths; keys that would escape ``root`` are
    rejected with ``ValueError``.
    """

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise ValueError(f"Storage key escapes the storage root: {key}")
        return path

    def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        sidecar = path.with_name(path.name + _METADATA_SUFFIX)
        sidecar.write_text(
            json.dumps(
                {"content_type": content_type, "metadata": metadata or {}},
                sort_keys=True,
            ),
            encoding="utf-8",
        )
        logger.debug("storage_object_written", extra={"key": key, "size": len(content)})

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise StorageObjectNotFoundError(key)
        return path.read_bytes()
