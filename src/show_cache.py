"""
Time-boxed cache of show lists keyed by request fingerprint.

Entries live in a pluggable key-value storage. The cache is an optimization
only: storage failures and corrupt entries are logged and treated as misses.
"""

import errno
import hashlib
import json
import logging
import math
import os
import tempfile
import time

from errors import StorageError, StorageFullError

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "showcache:"
QUERY_KINDS = ("trending", "search", "search-all")
DEFAULT_TTL_SECONDS = 24 * 60 * 60

def make_cache_key(kind, *parts):
    """
    Build the fingerprint for a request.

    Parts are lower-cased and trimmed so requests differing only in casing or
    surrounding whitespace share a slot. ``None`` parts are skipped.

    Example:
        make_cache_key("search", "Netflix", " The Matrix ") -> "search:netflix:the matrix"
    """
    if kind not in QUERY_KINDS:
        raise ValueError(f"Unknown query kind: {kind}")
    normalized = [str(p).strip().lower() for p in parts if p is not None]
    return ":".join([kind] + normalized)


class MemoryStorage:
    """Dict-backed storage, optionally capped at ``max_entries`` keys."""

    def __init__(self, max_entries=None):
        self.max_entries = max_entries
        self._data = {}

    def read(self, key):
        return self._data.get(key)

    def write(self, key, value):
        if (self.max_entries is not None and key not in self._data
                and len(self._data) >= self.max_entries):
            raise StorageFullError(f"Storage full ({self.max_entries} entries)")
        self._data[key] = value

    def remove(self, key):
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class FileStorage:
    """
    One file per key under ``directory``; survives restarts.

    File names are the SHA-256 of the key, so long or non-ASCII queries stay
    within filename limits. Each file holds ``{"key": ..., "value": ...}`` so
    ``keys()`` can recover the original keys. Writes go through a temp file
    and ``os.replace``.
    """

    SUFFIX = ".json"

    def __init__(self, directory, max_entries=None):
        self.directory = directory
        self.max_entries = max_entries

    def _path(self, key):
        key_hash = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.directory, key_hash + self.SUFFIX)

    def _read_record(self, path):
        try:
            with open(path, mode='r', encoding='utf-8') as file:
                record = json.load(file)
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e
        except ValueError as e:
            raise StorageError(f"Unreadable storage file {path}: {e}") from e
        if (not isinstance(record, dict) or not isinstance(record.get("key"), str)
                or not isinstance(record.get("value"), str)):
            raise StorageError(f"Unreadable storage file {path}: missing key or value")
        return record

    def read(self, key):
        path = self._path(key)
        if not os.path.exists(path):
            return None
        return self._read_record(path)["value"]

    def write(self, key, value):
        path = self._path(key)
        payload = json.dumps({"key": key, "value": value})
        try:
            os.makedirs(self.directory, exist_ok=True)
            if (self.max_entries is not None and not os.path.exists(path)
                    and len(self._files()) >= self.max_entries):
                raise StorageFullError(f"Storage full ({self.max_entries} entries)")
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, mode='w', encoding='utf-8') as file:
                    file.write(payload)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            if e.errno == errno.ENOSPC:
                raise StorageFullError(f"No space left for {path}") from e
            raise StorageError(f"Could not write {path}: {e}") from e

    def remove(self, key):
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not remove {key}: {e}") from e

    def _files(self):
        if not os.path.isdir(self.directory):
            return []
        return [
            os.path.join(self.directory, name)
            for name in os.listdir(self.directory)
            if name.endswith(self.SUFFIX)
        ]

    def keys(self):
        keys = []
        for path in self._files():
            try:
                keys.append(self._read_record(path)["key"])
            except StorageError as e:
                logger.warning("Skipping storage file: %s", e)
        return keys


class ShowCache:
    """
    Cache of show record lists with lazy expiry.

    Args:
        storage: Object with ``read``, ``write``, ``remove`` and ``keys``
        ttl: Entry lifetime in seconds
        clock: Callable returning the current epoch time in seconds
    """

    key = staticmethod(make_cache_key)

    def __init__(self, storage, ttl=DEFAULT_TTL_SECONDS, clock=time.time):
        self.storage = storage
        self.ttl = ttl
        self.clock = clock

    def _is_valid(self, entry):
        return self.clock() - entry["stored_at"] < self.ttl

    def _load(self, storage_key):
        raw = self.storage.read(storage_key)
        if raw is None:
            return None
        entry = json.loads(raw)
        if not isinstance(entry, dict) or not isinstance(entry.get("records"), list):
            raise ValueError("cache entry has no record list")
        stored_at = float(entry["stored_at"])
        if not math.isfinite(stored_at) or stored_at > self.clock():
            raise ValueError(f"cache entry has an impossible timestamp: {stored_at}")
        entry["stored_at"] = stored_at
        return entry

    def _discard(self, storage_key):
        try:
            self.storage.remove(storage_key)
        except StorageError as e:
            logger.warning("Could not remove cache entry %s: %s", storage_key, e)

    def get(self, key):
        """Return the cached records for ``key``, or None if absent or expired."""
        storage_key = CACHE_KEY_PREFIX + key
        try:
            entry = self._load(storage_key)
        except StorageError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Dropping corrupt cache entry %s: %s", key, e)
            self._discard(storage_key)
            return None

        if entry is None:
            return None
        if not self._is_valid(entry):
            logger.debug("Cache entry expired: %s", key)
            self._discard(storage_key)
            return None
        return entry["records"]

    def put(self, key, records):
        """Store ``records`` under ``key``. Failures are logged, never raised."""
        storage_key = CACHE_KEY_PREFIX + key
        try:
            payload = json.dumps({"records": list(records), "stored_at": self.clock()})
        except (TypeError, ValueError) as e:
            logger.warning("Could not serialize cache entry %s: %s", key, e)
            return False

        try:
            self.storage.write(storage_key, payload)
        except StorageFullError:
            removed = self.evict_expired()
            logger.info("Cache storage full; evicted %d expired entries, retrying", removed)
            try:
                self.storage.write(storage_key, payload)
            except StorageError as e:
                logger.warning("Cache write failed for %s after cleanup: %s", key, e)
                return False
        except StorageError as e:
            logger.warning("Cache write failed for %s: %s", key, e)
            return False
        return True

    def _cache_keys(self):
        try:
            return [k for k in self.storage.keys() if k.startswith(CACHE_KEY_PREFIX)]
        except StorageError as e:
            logger.warning("Could not list cache entries: %s", e)
            return []

    def evict_expired(self):
        """Remove every expired or unreadable entry. Returns how many were removed."""
        removed = 0
        for storage_key in self._cache_keys():
            try:
                entry = self._load(storage_key)
                expired = entry is not None and not self._is_valid(entry)
            except StorageError as e:
                logger.warning("Skipping unreadable cache entry %s: %s", storage_key, e)
                continue
            except (ValueError, KeyError, TypeError):
                # corrupt entries are never valid
                expired = True
            if expired:
                self._discard(storage_key)
                removed += 1
        return removed

    def clear(self):
        """Remove every cache entry."""
        for storage_key in self._cache_keys():
            self._discard(storage_key)
