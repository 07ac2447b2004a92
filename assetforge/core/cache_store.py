"""Persistent build cache keyed purely by content and configuration hashes.

Design:
- Entries live in SQLite (``cache_entries``); output bytes live in a
  content-addressed ``BlobStore`` next to it.
- Keys come from ``compute_cache_key``: scope + input fingerprints + chain
  configuration.  Nothing is time-based, so an entry can never be stale.
- A lookup whose blobs are missing or corrupt, or that the database cannot
  serve, is a miss, not an error.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

from assetforge.core.blob_store import BlobStore
from assetforge.errors import CacheIntegrityError
from assetforge.models.assets import AssetRef
from assetforge.models.results import CacheEntry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_CACHE = """
CREATE TABLE IF NOT EXISTS cache_entries (
    cache_key     TEXT PRIMARY KEY,
    scope         TEXT NOT NULL,
    outputs_json  TEXT NOT NULL,
    created_utc   TEXT NOT NULL
);
"""

_CREATE_IDX_SCOPE = """
CREATE INDEX IF NOT EXISTS idx_cache_scope ON cache_entries(scope);
"""


class CacheStore:
    """Key -> CacheEntry table that survives across invocations.

    Parameters
    ----------
    cache_dir:
        Directory holding ``cache.db`` and the ``blobs/`` store.
    """

    def __init__(self, cache_dir: Path) -> None:
        self._dir = Path(cache_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._db_path = self._dir / "cache.db"
        self._blobs = BlobStore(self._dir / "blobs")
        # Match groups of one stage share the store from worker threads.
        self._lock = threading.Lock()
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_CACHE)
            conn.execute(_CREATE_IDX_SCOPE)
            conn.commit()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, key: str) -> CacheEntry | None:
        """Return the entry for *key*, or None on a miss.

        Entries whose recorded blobs are gone or corrupt are reported as
        misses; the caller recomputes and ``put`` replaces them.  So are
        lookups the database or the blob directory cannot serve.
        """
        with self._lock:
            scope = "?"
            try:
                with self._connect() as conn:
                    row = conn.execute(
                        "SELECT scope, outputs_json FROM cache_entries WHERE cache_key = ?",
                        (key,),
                    ).fetchone()
                if row is None:
                    return None
                scope, outputs_json = row
                outputs = self._hydrate(json.loads(outputs_json))
            except (CacheIntegrityError, OSError, sqlite3.Error, ValueError, KeyError) as exc:
                logger.warning("Cache entry %s (%s) unusable, recomputing: %s", key[:12], scope, exc)
                return None
        return CacheEntry(key=key, scope=scope, outputs=outputs)

    def _hydrate(self, records: list[dict]) -> list[AssetRef]:
        outputs = []
        for record in records:
            try:
                data = self._blobs.retrieve(record["address"])
            except CacheIntegrityError:
                self._blobs.discard(record["address"])
                raise
            outputs.append(
                AssetRef(
                    relative_path=record["relative_path"],
                    content=data,
                    metadata=record.get("metadata", {}),
                )
            )
        return outputs

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def put(self, entry: CacheEntry) -> None:
        """Record *entry*, replacing any entry under the same key."""
        with self._lock:
            records = [
                {
                    "relative_path": asset.relative_path,
                    "address": self._blobs.store(asset.content),
                    "metadata": asset.metadata,
                }
                for asset in entry.outputs
            ]
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO cache_entries
                        (cache_key, scope, outputs_json, created_utc)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        entry.key,
                        entry.scope,
                        json.dumps(records, sort_keys=True),
                        datetime.now(timezone.utc).isoformat(),
                    ),
                )
                conn.commit()
        logger.debug("Cached %d output(s) for %s under %s", len(entry.outputs), entry.scope, entry.key[:12])

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def keys(self, scope: str | None = None) -> list[str]:
        """All keys, optionally restricted to one ``stage/group`` scope."""
        with self._connect() as conn:
            if scope is None:
                rows = conn.execute("SELECT cache_key FROM cache_entries ORDER BY cache_key").fetchall()
            else:
                rows = conn.execute(
                    "SELECT cache_key FROM cache_entries WHERE scope = ? ORDER BY cache_key",
                    (scope,),
                ).fetchall()
        return [r[0] for r in rows]

    def __len__(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM cache_entries").fetchone()[0]

    @property
    def blobs(self) -> BlobStore:
        return self._blobs
