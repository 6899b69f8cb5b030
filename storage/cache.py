"""
SQLite cache for tracker lookups and a rate-limit-aware cached GET helper.
Stores decoded JSON responses keyed by tracker+resource with the time they were fetched.
"""

import sqlite3
import json
import logging
import time
from typing import Optional, Any, Dict, List
import threading

# Delegate retry/backoff logic to storage.retry
from .retry import perform_request_with_retries, configure_retry

logger = logging.getLogger(__name__)

DB_PATH = None  # can be overridden by caller

# noinspection SqlResolve
SQL_CREATE = """
CREATE TABLE IF NOT EXISTS its_cache (
    key TEXT PRIMARY KEY,
    response TEXT,
    status INTEGER,
    timestamp REAL
);
"""


class Cache:
    def __init__(self, path: Optional[str] = None, max_entries: Optional[int] = None, ttl_seconds: Optional[float] = None):
        """Create a cache instance.

        :param path: SQLite file path or None for in-memory.
        :param max_entries: optional maximum number of entries to keep; oldest entries are pruned when exceeded.
        :param ttl_seconds: optional TTL in seconds; older entries are pruned on set and ignored on get.
        """
        self.path = path or DB_PATH or ':memory:'
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self._lock = threading.RLock()
        self.max_entries = int(max_entries) if max_entries is not None else None
        self.ttl_seconds = float(ttl_seconds) if ttl_seconds is not None else None
        with self._lock:
            self.conn.executescript(SQL_CREATE)
            self.conn.commit()

    def close(self):
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # noinspection SqlResolve
    def stats(self) -> Dict[str, Any]:
        """Return basic statistics about the cache: count, oldest timestamp, newest timestamp."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT COUNT(1), MIN(timestamp), MAX(timestamp) FROM its_cache')
            count, oldest, newest = cur.fetchone()
        return {
            'count': int(count or 0),
            'oldest': float(oldest) if oldest is not None else None,
            'newest': float(newest) if newest is not None else None,
        }

    # noinspection SqlResolve
    def list_keys(self, limit: int = 1000) -> List[Dict[str, Any]]:
        """Return cache keys with basic metadata (key, status, timestamp), newest first."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT key, status, timestamp FROM its_cache ORDER BY timestamp DESC LIMIT ?', (limit,))
            rows = cur.fetchall()
        return [{'key': k, 'status': int(status or 0), 'timestamp': float(ts or 0)} for k, status, ts in rows]

    # noinspection SqlWithoutWhere
    def clear(self):
        """Clear all entries from the cache."""
        with self._lock:
            self.conn.execute('DELETE FROM its_cache')
            self.conn.commit()

    # noinspection SqlResolve
    def delete_key(self, key: str) -> int:
        """Delete a specific cache key. Returns number of rows deleted."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('DELETE FROM its_cache WHERE key = ?', (key,))
            self.conn.commit()
            return cur.rowcount

    # noinspection SqlResolve
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT response, status, timestamp FROM its_cache WHERE key = ?', (key,))
            row = cur.fetchone()
        if not row:
            return None
        response, status, timestamp = row
        if self.ttl_seconds is not None and timestamp is not None and time.time() - float(timestamp) > self.ttl_seconds:
            self.delete_key(key)
            return None
        try:
            parsed = json.loads(response)
        except (TypeError, ValueError):
            parsed = response
        return {'response': parsed, 'status': status, 'timestamp': timestamp}

    # noinspection SqlResolve
    def _prune_if_needed(self, cur):
        if self.ttl_seconds is not None:
            cutoff = time.time() - float(self.ttl_seconds)
            cur.execute('DELETE FROM its_cache WHERE timestamp < ?', (cutoff,))
        if self.max_entries is not None:
            cur.execute('SELECT COUNT(1) FROM its_cache')
            count = cur.fetchone()[0] or 0
            if count > self.max_entries:
                cur.execute(
                    'DELETE FROM its_cache WHERE key IN (SELECT key FROM its_cache ORDER BY timestamp ASC LIMIT ?)',
                    (int(count - self.max_entries),),
                )

    # noinspection SqlResolve
    def set(self, key: str, response: Any, status: int = 200):
        try:
            payload = json.dumps(response)
        except (TypeError, ValueError):
            payload = json.dumps(str(response))
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('REPLACE INTO its_cache(key, response, status, timestamp) VALUES (?, ?, ?, ?)', (key, payload, status, time.time()))
            self._prune_if_needed(cur)
            self.conn.commit()


def _cached_fresh(cache: Optional[Cache], cache_key: Optional[str], max_age: Optional[float]):
    if not cache or not cache_key:
        return None
    cached = cache.get(cache_key)
    if not cached:
        return None
    if max_age is None:
        return cached
    age = time.time() - float(cached.get('timestamp', 0) or 0)
    if age <= float(max_age):
        return cached
    return None


def rate_limited_get(
    url: str,
    headers: Dict[str, str] = None,
    params: Dict[str, Any] = None,
    cache: Cache = None,
    cache_key: str = None,
    min_wait: float = 0.5,
    max_age: Optional[float] = None,
    max_retries: int = 3,
) -> Dict[str, Any]:
    """Perform a GET with caching, rate-limit handling, and retries.

    Checks cache first (honoring max_age), otherwise performs the request via storage.retry.
    Only successful responses are cached.
    """
    cached = _cached_fresh(cache, cache_key, max_age)
    if cached:
        logger.debug("Cache hit for %s", cache_key)
        return cached
    return perform_request_with_retries(url, headers or {}, params or {}, cache, cache_key or '', min_wait, max_retries)


__all__ = ["Cache", "rate_limited_get", "configure_retry"]
