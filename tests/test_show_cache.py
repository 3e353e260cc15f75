"""
Unit tests for the show cache and its storages.
"""

import errno
import json
import os
import sys
import tempfile
import unittest
from unittest.mock import MagicMock, patch

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from errors import StorageError, StorageFullError
from show_cache import (
    CACHE_KEY_PREFIX,
    DEFAULT_TTL_SECONDS,
    FileStorage,
    MemoryStorage,
    ShowCache,
    make_cache_key,
)

DAY = 24 * 60 * 60

class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

SAMPLE_RECORDS = [
    {"id": "netflix-0-1-abc", "title": "Dark", "year": "2017", "critic_score": 95,
     "audience_score": None, "summary": "Time travel in a small town.",
     "watch_link": None, "review_link": None, "genre": "Sci-Fi", "source_catalog": None},
]

class TestCacheKey(unittest.TestCase):

    def test_normalizes_case_and_whitespace(self):
        """Casing and surrounding whitespace collapse to one slot."""
        self.assertEqual(
            make_cache_key("search", "Netflix", "The Matrix"),
            make_cache_key("search", "netflix", "  the matrix  "),
        )

    def test_shape(self):
        self.assertEqual(make_cache_key("trending", "Prime Video"), "trending:prime video")
        self.assertEqual(make_cache_key("search-all", " Dune "), "search-all:dune")

    def test_kinds_do_not_collide(self):
        self.assertNotEqual(make_cache_key("search", "all", "x"), make_cache_key("search-all", "x"))

    def test_none_parts_skipped(self):
        self.assertEqual(make_cache_key("trending", "Hulu", None), "trending:hulu")

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            make_cache_key("popular", "Netflix")

    def test_exposed_on_cache(self):
        self.assertEqual(ShowCache.key("trending", "Max"), "trending:max")

class TestShowCache(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.storage = MemoryStorage()
        self.cache = ShowCache(self.storage, clock=self.clock)

    def test_round_trip(self):
        """put followed by get returns the same records."""
        self.assertTrue(self.cache.put("trending:netflix", SAMPLE_RECORDS))
        self.assertEqual(self.cache.get("trending:netflix"), SAMPLE_RECORDS)

    def test_miss(self):
        self.assertIsNone(self.cache.get("trending:hulu"))

    def test_default_ttl_is_one_day(self):
        self.assertEqual(DEFAULT_TTL_SECONDS, DAY)

    def test_valid_just_before_expiry(self):
        self.cache.put("k", SAMPLE_RECORDS)
        self.clock.advance(DAY - 1)
        self.assertEqual(self.cache.get("k"), SAMPLE_RECORDS)

    def test_expired_after_a_day(self):
        """Entries at or beyond 24h are absent and evicted."""
        self.cache.put("k", SAMPLE_RECORDS)
        self.clock.advance(DAY)
        self.assertIsNone(self.cache.get("k"))
        self.assertEqual(self.storage.keys(), [])

    def test_put_overwrites(self):
        self.cache.put("k", SAMPLE_RECORDS)
        self.clock.advance(DAY - 10)
        self.cache.put("k", [])
        self.clock.advance(20)
        self.assertEqual(self.cache.get("k"), [])

    def test_empty_list_is_a_hit(self):
        self.cache.put("k", [])
        self.assertEqual(self.cache.get("k"), [])

    def test_entries_are_prefixed_json(self):
        self.cache.put("trending:max", SAMPLE_RECORDS)
        raw = self.storage.read(CACHE_KEY_PREFIX + "trending:max")
        entry = json.loads(raw)
        self.assertEqual(entry["records"], SAMPLE_RECORDS)
        self.assertEqual(entry["stored_at"], self.clock.now)

    def test_corrupt_entry_is_a_miss_and_removed(self):
        self.storage.write(CACHE_KEY_PREFIX + "k", "{not json")
        self.assertIsNone(self.cache.get("k"))
        self.assertIsNone(self.storage.read(CACHE_KEY_PREFIX + "k"))

    def test_wrong_entry_shape_is_a_miss(self):
        self.storage.write(CACHE_KEY_PREFIX + "k", json.dumps({"records": "nope", "stored_at": 1}))
        self.assertIsNone(self.cache.get("k"))
        self.storage.write(CACHE_KEY_PREFIX + "j", json.dumps({"records": []}))
        self.assertIsNone(self.cache.get("j"))

    def test_non_finite_timestamp_is_corrupt(self):
        for stamp in ("Infinity", "NaN"):
            raw = '{"records": [], "stored_at": %s}' % stamp
            self.storage.write(CACHE_KEY_PREFIX + "k", raw)
            self.assertIsNone(self.cache.get("k"))
            self.assertIsNone(self.storage.read(CACHE_KEY_PREFIX + "k"))

    def test_future_timestamp_is_corrupt(self):
        entry = {"records": SAMPLE_RECORDS, "stored_at": self.clock.now + 10 * DAY}
        self.storage.write(CACHE_KEY_PREFIX + "k", json.dumps(entry))
        self.assertIsNone(self.cache.get("k"))
        self.assertIsNone(self.storage.read(CACHE_KEY_PREFIX + "k"))

    def test_future_timestamp_removed_by_eviction(self):
        entry = {"records": [], "stored_at": self.clock.now + DAY}
        self.storage.write(CACHE_KEY_PREFIX + "k", json.dumps(entry))
        self.assertEqual(self.cache.evict_expired(), 1)

    def test_read_failure_is_swallowed(self):
        storage = MagicMock()
        storage.read.side_effect = StorageError("disk on fire")
        cache = ShowCache(storage, clock=self.clock)
        self.assertIsNone(cache.get("k"))

    def test_write_failure_is_swallowed(self):
        storage = MagicMock()
        storage.write.side_effect = StorageError("read-only")
        cache = ShowCache(storage, clock=self.clock)
        self.assertFalse(cache.put("k", SAMPLE_RECORDS))

    def test_unserializable_records(self):
        self.assertFalse(self.cache.put("k", [{"when": object()}]))

    def test_full_storage_evicts_expired_and_retries(self):
        """A capacity failure sweeps expired entries then retries once."""
        storage = MemoryStorage(max_entries=2)
        cache = ShowCache(storage, clock=self.clock)
        cache.put("old", SAMPLE_RECORDS)
        self.clock.advance(DAY + 1)
        cache.put("fresh", SAMPLE_RECORDS)

        self.assertTrue(cache.put("new", SAMPLE_RECORDS))
        self.assertEqual(sorted(storage.keys()), [CACHE_KEY_PREFIX + "fresh", CACHE_KEY_PREFIX + "new"])

    def test_full_storage_without_expired_entries(self):
        storage = MemoryStorage(max_entries=1)
        cache = ShowCache(storage, clock=self.clock)
        cache.put("a", SAMPLE_RECORDS)
        self.assertFalse(cache.put("b", SAMPLE_RECORDS))
        self.assertEqual(cache.get("a"), SAMPLE_RECORDS)

    def test_evict_expired(self):
        self.cache.put("a", SAMPLE_RECORDS)
        self.clock.advance(DAY)
        self.cache.put("b", SAMPLE_RECORDS)
        self.storage.write(CACHE_KEY_PREFIX + "broken", "][")
        self.storage.write("other-app-key", "untouched")

        self.assertEqual(self.cache.evict_expired(), 2)
        self.assertEqual(sorted(self.storage.keys()), ["other-app-key", CACHE_KEY_PREFIX + "b"])

    def test_clear_only_touches_cache_entries(self):
        self.cache.put("a", SAMPLE_RECORDS)
        self.storage.write("other-app-key", "untouched")
        self.cache.clear()
        self.assertEqual(self.storage.keys(), ["other-app-key"])

class TestMemoryStorage(unittest.TestCase):

    def test_capacity(self):
        storage = MemoryStorage(max_entries=1)
        storage.write("a", "1")
        storage.write("a", "2")
        with self.assertRaises(StorageFullError):
            storage.write("b", "3")
        self.assertEqual(storage.read("a"), "2")

    def test_remove_missing_key(self):
        MemoryStorage().remove("nothing")

class TestFileStorage(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.directory = os.path.join(self.tmp.name, "cache")
        self.storage = FileStorage(self.directory)

    def tearDown(self):
        self.tmp.cleanup()

    def test_read_write_remove(self):
        key = CACHE_KEY_PREFIX + "search:netflix:the matrix/reloaded"
        self.assertIsNone(self.storage.read(key))
        self.storage.write(key, '{"a": 1}')
        self.assertEqual(self.storage.read(key), '{"a": 1}')
        self.assertEqual(self.storage.keys(), [key])
        self.storage.remove(key)
        self.assertIsNone(self.storage.read(key))
        self.storage.remove(key)

    def test_keys_without_directory(self):
        self.assertEqual(self.storage.keys(), [])

    def test_no_temp_files_left(self):
        self.storage.write("a", "1")
        names = os.listdir(self.directory)
        self.assertEqual(len(names), 1)
        self.assertTrue(names[0].endswith(".json"))

    def test_file_names_are_key_hashes(self):
        self.storage.write(CACHE_KEY_PREFIX + "trending:max", "1")
        name = os.listdir(self.directory)[0]
        self.assertRegex(name, r"^[0-9a-f]{64}\.json$")

    def test_long_query_round_trip(self):
        """A 300 character query still gets a cache slot."""
        cache = ShowCache(FileStorage(self.directory), clock=FakeClock())
        key = make_cache_key("search", "Netflix", "x" * 300)
        self.assertTrue(cache.put(key, SAMPLE_RECORDS))
        self.assertEqual(cache.get(key), SAMPLE_RECORDS)
        self.assertEqual(cache.storage.keys(), [CACHE_KEY_PREFIX + key])

    def test_non_ascii_query_round_trip(self):
        cache = ShowCache(FileStorage(self.directory), clock=FakeClock())
        key = make_cache_key("search", "Netflix", "進撃の巨人" * 10)
        self.assertTrue(cache.put(key, SAMPLE_RECORDS))
        self.assertEqual(cache.get(key), SAMPLE_RECORDS)
        self.assertEqual(cache.storage.keys(), [CACHE_KEY_PREFIX + key])

    def test_unreadable_file_raises_storage_error_and_is_skipped_in_keys(self):
        self.storage.write("good", "1")
        os.makedirs(self.directory, exist_ok=True)
        with open(self.storage._path("bad"), mode='w', encoding='utf-8') as file:
            file.write("{not json")
        with self.assertRaises(StorageError):
            self.storage.read("bad")
        with self.assertLogs("show_cache", level="WARNING"):
            self.assertEqual(self.storage.keys(), ["good"])

    def test_persists_across_instances(self):
        """A new cache over the same directory sees earlier entries."""
        clock = FakeClock()
        ShowCache(FileStorage(self.directory), clock=clock).put("trending:hulu", SAMPLE_RECORDS)
        reopened = ShowCache(FileStorage(self.directory), clock=clock)
        self.assertEqual(reopened.get("trending:hulu"), SAMPLE_RECORDS)

    def test_capacity(self):
        storage = FileStorage(self.directory, max_entries=1)
        storage.write("a", "1")
        storage.write("a", "2")
        with self.assertRaises(StorageFullError):
            storage.write("b", "3")

    def test_disk_full_maps_to_storage_full(self):
        with patch("show_cache.tempfile.mkstemp", side_effect=OSError(errno.ENOSPC, "No space left")):
            with self.assertRaises(StorageFullError):
                self.storage.write("a", "1")

    def test_other_os_errors_map_to_storage_error(self):
        with patch("show_cache.tempfile.mkstemp", side_effect=OSError(errno.EACCES, "Permission denied")):
            with self.assertRaises(StorageError) as ctx:
                self.storage.write("a", "1")
        self.assertNotIsInstance(ctx.exception, StorageFullError)

if __name__ == '__main__':
    unittest.main()
