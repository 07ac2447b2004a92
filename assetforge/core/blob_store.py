"""Content-addressed blob store backing the build cache.

Storage layout: {base_path}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.blob
Blobs are immutable; storing the same bytes twice is a no-op.
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path

from assetforge.core.hasher import sha256_hex
from assetforge.errors import CacheIntegrityError


class BlobStore:
    """SHA-256 keyed, write-once blob storage.

    Parameters
    ----------
    base_path:
        Root directory for blob storage.  Created if missing.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    @staticmethod
    def _digest(address: str) -> str:
        """Strip the ``sha256:`` prefix from an address, if present."""
        return address.removeprefix("sha256:")

    def _blob_path(self, digest: str) -> Path:
        return self._base / digest[:2] / digest[2:4] / f"{digest}.blob"

    def store(self, data: bytes) -> str:
        """Store *data* and return its ``sha256:<hex>`` address."""
        digest = sha256_hex(data)
        path = self._blob_path(digest)
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so concurrent readers never see a partial blob.
            tmp = path.with_name(f".{digest}.{uuid.uuid4().hex}.tmp")
            tmp.write_bytes(data)
            os.replace(tmp, path)
        return f"sha256:{digest}"

    def retrieve(self, address: str) -> bytes:
        """Return the bytes at *address*, verifying them against the digest.

        Raises ``CacheIntegrityError`` if the blob is missing or corrupt.
        """
        digest = self._digest(address)
        path = self._blob_path(digest)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise CacheIntegrityError(f"Blob not found: {address}") from None
        except OSError as exc:
            raise CacheIntegrityError(f"Blob unreadable: {address}: {exc}") from exc
        if sha256_hex(data) != digest:
            raise CacheIntegrityError(f"Blob {address} failed integrity check")
        return data

    def discard(self, address: str) -> None:
        """Remove a blob; used only to evict corrupt entries."""
        self._blob_path(self._digest(address)).unlink(missing_ok=True)
