from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStoreError(RuntimeError):
    pass


@dataclass(frozen=True)
class BlobRef:
    path: str
    size: int = 0


class BlobStore(Protocol):
    def store(self, data: bytes, filename: str) -> BlobRef: ...

    def fetch(self, path: str) -> bytes: ...


def safe_filename(filename: str, default: str = "blob") -> str:
    name = Path(filename or "").name
    cleaned = _UNSAFE_CHARS_RE.sub("_", name).strip("._")
    return cleaned[:120] or default


class FileSystemBlobStore:
    """Blobs live at ``<root>/<uuid>/<filename>``; refs are paths relative to root."""

    def __init__(self, root: str | Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def init(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        root = self._root.resolve()
        target = (root / path).resolve()
        if target == root or root not in target.parents:
            raise BlobStoreError(f"Blob path escapes the store root: '{path}'")
        return target

    def store(self, data: bytes, filename: str) -> BlobRef:
        relative = f"{uuid.uuid4().hex}/{safe_filename(filename)}"
        target = self._resolve(relative)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise BlobStoreError(f"Failed to store blob '{filename}': {exc}") from exc
        logger.info("blob_stored path=%s bytes=%s", relative, len(data))
        return BlobRef(path=relative, size=len(data))

    def fetch(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise BlobStoreError(f"Blob not found: '{path}'") from exc
        except OSError as exc:
            raise BlobStoreError(f"Failed to read blob '{path}': {exc}") from exc
