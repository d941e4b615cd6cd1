"""
cache/store.py -- SQLite-backed cache for rendered dashboard views.

The invoice list page is rendered once per (path, query string) and served
from here until it expires or a write invalidates it. Invoice actions call
revalidate_path("/dashboard/invoices") after every successful write so the
next request re-renders from the database.

Usage:
    cache = ViewCache()
    html = cache.get("/dashboard/invoices", "page=2")   # returns str or None
    cache.set("/dashboard/invoices", "page=2", html)
    cache.revalidate_path("/dashboard/invoices")        # drop every variant
    cache.purge_expired()                               # call periodically
"""

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("invoicedesk.cache")

_DEFAULT_TTL = 60 * 5  # 5 minutes in seconds

_DDL = """
CREATE TABLE IF NOT EXISTS view_cache (
    path        TEXT NOT NULL,
    variant     TEXT NOT NULL,
    html        TEXT NOT NULL,
    cached_at   REAL NOT NULL,
    PRIMARY KEY (path, variant)
);
"""


class ViewCache:
    def __init__(self, db_path: Union[Path, str] = ":memory:", ttl: int = _DEFAULT_TTL) -> None:
        self.ttl = ttl
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        # One connection is shared by the threadpool workers serving requests.
        self._lock = threading.Lock()
        with self._lock:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute(_DDL)
            self._conn.commit()

    def get(self, path: str, variant: str = "") -> Optional[str]:
        """Return cached HTML, or None if missing or expired."""
        with self._lock:
            row = self._conn.execute(
                "SELECT html, cached_at FROM view_cache WHERE path = ? AND variant = ?",
                (path, variant),
            ).fetchone()
        if row is None:
            return None
        html, cached_at = row
        if time.time() - cached_at > self.ttl:
            return None
        return html

    def set(self, path: str, variant: str, html: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO view_cache (path, variant, html, cached_at) VALUES (?, ?, ?, ?)",
                (path, variant, html, time.time()),
            )
            self._conn.commit()

    def revalidate_path(self, path: str) -> int:
        """Mark every cached variant of path stale. Returns rows dropped."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM view_cache WHERE path = ?", (path,))
            self._conn.commit()
        logger.info("Revalidated %s (%d cached views dropped)", path, cursor.rowcount)
        return cursor.rowcount

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns the number of rows removed."""
        cutoff = time.time() - self.ttl
        with self._lock:
            cursor = self._conn.execute("DELETE FROM view_cache WHERE cached_at < ?", (cutoff,))
            self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        with self._lock:
            self._conn.close()
