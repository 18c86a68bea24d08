"""Unit tests for CacheService and KeyedLocks."""

import threading
from unittest.mock import Mock

from headingcache.adapters.sessions.registry import InMemorySessionRegistry
from headingcache.domain.services.cache_service import CacheService
from headingcache.domain.services.locks import KeyedLocks

PATIENT_ID = 9999999000


class TestCacheService:
    """Test suite for CacheService."""

    def test_delete_clears_every_session(self, memory_store, make_record):
        """Test that the host's records and the heading pointers go from each session."""
        registry = InMemorySessionRegistry(memory_store)
        sessions = [registry.create("s1"), registry.create("s2")]
        for session in sessions:
            session.heading_cache.put(make_record(source_id="ethercis-1"))
            session.heading_cache.put(make_record(source_id="marand-1", host="marand"))
            session.heading_cache.put(make_record(source_id="ethercis-2", heading="allergies"))

        CacheService(registry).delete("ethercis", PATIENT_ID, "procedures")

        for session in sessions:
            cache = session.heading_cache
            assert not cache.exists("ethercis-1")
            assert not cache.by_heading.exists("procedures")
            assert cache.exists("marand-1")
            assert cache.exists("ethercis-2")

    def test_failing_session_does_not_stop_others(self, memory_store, make_record):
        """Test that an error in one session is logged and the rest still run."""
        healthy = InMemorySessionRegistry(memory_store).create("ok")
        healthy.heading_cache.put(make_record())

        broken = Mock()
        broken.session_id = "broken"
        broken.heading_cache.delete_all.side_effect = RuntimeError("boom")

        registry = Mock()
        registry.active_sessions.return_value = [broken, healthy]
        audit = Mock()

        CacheService(registry, audit_logger=audit).delete("ethercis", PATIENT_ID, "procedures")

        assert not healthy.heading_cache.exists("ethercis-1")
        assert audit.log_change.call_count == 1
        assert audit.log_change.call_args.kwargs["record_id"] == "ok"

    def test_no_sessions_is_noop(self, memory_store):
        """Test that a broadcast with no live sessions does nothing."""
        registry = InMemorySessionRegistry(memory_store)
        CacheService(registry).delete("ethercis", PATIENT_ID, "procedures")
        assert memory_store.children([]) == []


class TestKeyedLocks:
    """Test suite for KeyedLocks."""

    def test_same_key_same_lock(self):
        """Test that int and str patient ids share a lock."""
        locks = KeyedLocks()
        assert locks.get(PATIENT_ID, "procedures") is locks.get("9999999000", "procedures")
        assert locks.get(PATIENT_ID, "procedures") is not locks.get(PATIENT_ID, "allergies")
        assert len(locks) == 2

    def test_hold_is_reentrant(self):
        """Test that a holder can take the same lock again."""
        locks = KeyedLocks()
        with locks.hold(PATIENT_ID, "procedures"):
            with locks.hold(PATIENT_ID, "procedures"):
                pass

    def test_hold_excludes_other_threads(self):
        """Test that another thread cannot take a held key."""
        locks = KeyedLocks()
        acquired = []

        with locks.hold(PATIENT_ID, "procedures"):
            def worker():
                acquired.append(locks.get(PATIENT_ID, "procedures").acquire(blocking=False))

            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert acquired == [False]
