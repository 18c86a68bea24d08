"""Unit tests for HeadingCache and its indexes."""

from unittest.mock import patch

import pytest

from headingcache.adapters.cache.heading_cache import HeadingCache
from headingcache.domain.ports import NotFoundError, StorageError

PATIENT_ID = 9999999000


class TestHeadingCachePut:
    """Test suite for HeadingCache.put."""

    def test_put_writes_every_index(self, heading_cache, make_record):
        """Test that a put is visible through all index families."""
        stored = heading_cache.put(make_record(payload={"name": "Appendectomy"}))

        assert stored.version == 1
        assert heading_cache.exists("ethercis-1")
        assert heading_cache.get("ethercis-1").payload == {"name": "Appendectomy"}
        assert heading_cache.by_heading.get_all_source_ids("procedures") == ["ethercis-1"]
        assert heading_cache.by_date.get_all_source_ids(PATIENT_ID, "procedures") == ["ethercis-1"]
        assert heading_cache.by_host.get_all_source_ids(PATIENT_ID, "procedures", "ethercis") == ["ethercis-1"]
        assert heading_cache.by_version.get_all_versions("ethercis-1") == [1]

    def test_put_existing_source_id_is_noop(self, heading_cache, make_record):
        """Test that a second put of the same source id keeps the canonical copy."""
        heading_cache.put(make_record(payload={"name": "first"}))
        again = heading_cache.put(make_record(payload={"name": "second"}))

        assert again.payload == {"name": "first"}
        assert heading_cache.by_version.get_all_versions("ethercis-1") == [1]

    def test_patient_id_int_and_str_share_indexes(self, heading_cache, make_record):
        """Test that 9999999000 and '9999999000' address the same pointers."""
        heading_cache.put(make_record(patient_id="9999999000"))

        assert heading_cache.by_host.exists(PATIENT_ID, "procedures", "ethercis")
        assert heading_cache.get_all_for_patient_heading(PATIENT_ID, "procedures")[0].source_id == "ethercis-1"

    def test_unstorable_payload_consumes_no_version(self, heading_cache, make_record, memory_store):
        """Test that a payload the store rejects leaves no counter or index behind."""
        with pytest.raises(StorageError):
            heading_cache.put(make_record(payload={"bad": object()}))

        assert memory_store.children([]) == []
        assert heading_cache.put(make_record()).version == 1

    def test_failed_index_write_removes_partial_entry(self, heading_cache, make_record, memory_store):
        """Test that a write failing midway removes what was already written."""
        with patch.object(heading_cache.by_date, "set", side_effect=StorageError("disk full", operation="put")):
            with pytest.raises(StorageError):
                heading_cache.put(make_record())

        assert not heading_cache.exists("ethercis-1")
        assert memory_store.children([]) == []


class TestHeadingCacheOrdering:
    """Test suite for date-ordered traversal."""

    @pytest.fixture
    def populated(self, heading_cache, make_record):
        heading_cache.put(make_record(source_id="ethercis-a", date=1000))
        heading_cache.put(make_record(source_id="ethercis-b", date=3000))
        heading_cache.put(make_record(source_id="ethercis-c", date=2000))
        heading_cache.put(make_record(source_id="ethercis-d", date=3000))
        return heading_cache

    def test_newest_first_by_default(self, populated):
        """Test reverse date order, ties in ascending source id order."""
        assert populated.by_date.get_all_source_ids(PATIENT_ID, "procedures") == [
            "ethercis-b", "ethercis-d", "ethercis-c", "ethercis-a"
        ]

    def test_forward_direction(self, populated):
        """Test oldest first when direction is forward."""
        assert populated.by_date.get_all_source_ids(PATIENT_ID, "procedures", direction="forward") == [
            "ethercis-a", "ethercis-c", "ethercis-b", "ethercis-d"
        ]

    def test_limit_truncates(self, populated):
        """Test that a limit stops the walk early."""
        records = populated.get_all_for_patient_heading(PATIENT_ID, "procedures", limit=2)
        assert [r.source_id for r in records] == ["ethercis-b", "ethercis-d"]

    def test_dates_sort_numerically(self, heading_cache, make_record):
        """Test that date 900 sorts before 1000 despite the string form."""
        heading_cache.put(make_record(source_id="ethercis-old", date=900))
        heading_cache.put(make_record(source_id="ethercis-new", date=1000))

        assert heading_cache.by_date.get_all_source_ids(PATIENT_ID, "procedures") == [
            "ethercis-new", "ethercis-old"
        ]


class TestHeadingCacheVersions:
    """Test suite for the by-version index."""

    def test_put_version_allocates_next_version(self, heading_cache, make_record):
        """Test that versions are dense and snapshots immutable."""
        heading_cache.put(make_record(payload={"name": "v1"}))
        updated = heading_cache.put_version("ethercis-1", {"name": "v2", "extra": "x"})

        assert updated.version == 2
        assert heading_cache.get("ethercis-1").payload == {"name": "v2", "extra": "x"}
        assert heading_cache.by_version.get_all_versions("ethercis-1") == [2, 1]
        assert heading_cache.by_version.get("ethercis-1", 1).payload == {"name": "v1"}

    def test_put_version_replaces_payload(self, heading_cache, make_record):
        """Test that keys missing from the new payload do not linger."""
        heading_cache.put(make_record(payload={"name": "v1", "old": "gone"}))
        heading_cache.put_version("ethercis-1", {"name": "v2"})

        assert heading_cache.get("ethercis-1").payload == {"name": "v2"}

    def test_put_version_missing_record_raises(self, heading_cache):
        """Test that versioning an uncached record raises NotFoundError."""
        with pytest.raises(NotFoundError):
            heading_cache.put_version("ethercis-missing", {"name": "x"})

    def test_put_version_unstorable_payload_keeps_current(self, heading_cache, make_record):
        """Test that a rejected payload neither bumps the version nor touches the record."""
        heading_cache.put(make_record(payload={"name": "v1"}))

        with pytest.raises(StorageError):
            heading_cache.put_version("ethercis-1", {"bad": object()})

        assert heading_cache.get("ethercis-1").payload == {"name": "v1"}
        assert heading_cache.by_version.get_all_versions("ethercis-1") == [1]
        assert heading_cache.put_version("ethercis-1", {"name": "v2"}).version == 2

    def test_version_counter_restarts_after_delete(self, heading_cache, make_record):
        """Test that a deleted then recreated record starts at version 1 again."""
        heading_cache.put(make_record())
        heading_cache.delete("ethercis-1")

        assert heading_cache.put(make_record()).version == 1


class TestHeadingCacheDelete:
    """Test suite for HeadingCache deletion."""

    def test_delete_removes_every_index(self, heading_cache, make_record, memory_store):
        """Test that deleting the only record leaves the store empty."""
        heading_cache.put(make_record(payload={"name": "x"}))
        deleted = heading_cache.delete("ethercis-1")

        assert deleted.source_id == "ethercis-1"
        assert heading_cache.get("ethercis-1") is None
        assert memory_store.children([]) == []

    def test_delete_missing_returns_none(self, heading_cache):
        """Test that deleting an uncached record returns None."""
        assert heading_cache.delete("ethercis-missing") is None

    def test_delete_all_scoped_to_host_patient_heading(self, heading_cache, make_record):
        """Test that delete_all leaves other hosts, patients and headings alone."""
        heading_cache.put(make_record(source_id="ethercis-1"))
        heading_cache.put(make_record(source_id="marand-1", host="marand"))
        heading_cache.put(make_record(source_id="ethercis-2", patient_id=9999999001))
        heading_cache.put(make_record(source_id="ethercis-3", heading="allergies"))

        heading_cache.delete_all("ethercis", PATIENT_ID, "procedures")

        assert not heading_cache.exists("ethercis-1")
        assert heading_cache.exists("marand-1")
        assert heading_cache.exists("ethercis-2")
        assert heading_cache.exists("ethercis-3")
        assert heading_cache.by_date.get_all_source_ids(PATIENT_ID, "procedures") == ["marand-1"]
        assert not heading_cache.by_host.exists(PATIENT_ID, "procedures", "ethercis")


class TestFetchCount:
    """Test suite for the fetch counter."""

    def test_fetch_count_increments(self, heading_cache):
        """Test that the counter starts at zero and increments by one."""
        assert heading_cache.fetch_count.get(PATIENT_ID, "procedures") == 0
        assert heading_cache.fetch_count.increment(PATIENT_ID, "procedures") == 1
        assert heading_cache.fetch_count.increment("9999999000", "procedures") == 2


class TestHeadingCacheOnDuckDB:
    """Test suite for HeadingCache over the DuckDB store."""

    def test_put_and_delete(self, duckdb_store, make_record):
        """Test the same write and delete behavior on DuckDB."""
        cache = HeadingCache(duckdb_store)
        cache.put(make_record(payload={"name": "x", "codes": ["a", "b"]}))

        assert cache.get("ethercis-1").payload == {"name": "x", "codes": ["a", "b"]}

        cache.delete("ethercis-1")
        assert duckdb_store.children([]) == []
