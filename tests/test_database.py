"""Test cache stores"""

import sqlite3

import pytest

from track_reconciler.core.database import MemoryCacheStore, SqliteCacheStore
from track_reconciler.core.exceptions import CacheError


@pytest.fixture
def sqlite_store(temp_dir):
    store = SqliteCacheStore(temp_dir / "cache.db")
    yield store
    store.close()


def insert_raw(db_path, container_id, payload):
    """Write a row bypassing the store's JSON encoding"""
    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute(
            "INSERT INTO match_cache (container_id, payload, updated_at) VALUES (?, ?, NULL)",
            (container_id, payload)
        )
        conn.commit()
    finally:
        conn.close()


class TestSqliteCacheStore:
    """Test the SQLite store"""

    def test_put_get(self, sqlite_store):
        sqlite_store.put("p1", {"version_marker": "v1", "tracks": {}})

        assert sqlite_store.get("p1") == {"version_marker": "v1", "tracks": {}}
        assert sqlite_store.get("missing") is None

    def test_put_replaces_record(self, sqlite_store):
        sqlite_store.put("p1", {"version_marker": "v1"})
        sqlite_store.put("p1", {"version_marker": "v2"})

        assert sqlite_store.get("p1") == {"version_marker": "v2"}
        assert sqlite_store.list_container_ids() == ["p1"]

    def test_delete(self, sqlite_store):
        sqlite_store.put("p1", {"a": 1})

        sqlite_store.delete("p1")
        sqlite_store.delete("p1")

        assert sqlite_store.get("p1") is None

    def test_list_all(self, sqlite_store):
        sqlite_store.put("b", {"n": 2})
        sqlite_store.put("a", {"n": 1})

        assert sqlite_store.list_all() == [("a", {"n": 1}), ("b", {"n": 2})]

    def test_unicode_payload(self, sqlite_store):
        sqlite_store.put("p1", {"playlist_name": "Café Tacvba ♫"})

        assert sqlite_store.get("p1")["playlist_name"] == "Café Tacvba ♫"

    def test_persists_across_instances(self, temp_dir):
        first = SqliteCacheStore(temp_dir / "cache.db")
        first.put("p1", {"a": 1})
        first.close()

        second = SqliteCacheStore(temp_dir / "cache.db")
        try:
            assert second.get("p1") == {"a": 1}
        finally:
            second.close()

    def test_corrupt_rows(self, sqlite_store, temp_dir):
        insert_raw(temp_dir / "cache.db", "bad_json", "{not json")
        insert_raw(temp_dir / "cache.db", "not_object", "[1, 2, 3]")
        sqlite_store.put("good", {"a": 1})

        assert sqlite_store.get("bad_json") is None
        assert sqlite_store.get("not_object") is None
        assert sqlite_store.list_all() == [("good", {"a": 1})]
        assert sqlite_store.list_container_ids() == ["bad_json", "good", "not_object"]

    def test_missing_parent_directory(self, temp_dir):
        with pytest.raises(CacheError):
            SqliteCacheStore(temp_dir / "missing" / "cache.db")

    def test_version_mismatch(self, temp_dir):
        db_path = temp_dir / "cache.db"
        SqliteCacheStore(db_path).close()

        conn = sqlite3.connect(str(db_path))
        conn.execute("UPDATE schema_version SET version = 99")
        conn.commit()
        conn.close()

        with pytest.raises(CacheError):
            SqliteCacheStore(db_path)


class TestMemoryCacheStore:
    """Test the in-memory store"""

    def test_put_get_delete(self):
        store = MemoryCacheStore()
        store.put("p1", {"a": 1})

        assert store.get("p1") == {"a": 1}
        assert store.list_all() == [("p1", {"a": 1})]

        store.delete("p1")
        assert store.get("p1") is None
        assert store.list_container_ids() == []

    def test_copies_payloads(self):
        store = MemoryCacheStore()
        payload = {"tracks": {"t1": {}}}
        store.put("p1", payload)

        payload["tracks"]["t2"] = {}
        store.get("p1")["tracks"]["t3"] = {}

        assert store.get("p1") == {"tracks": {"t1": {}}}
