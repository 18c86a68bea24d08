"""Unit tests for InMemoryDocumentStore and PrefixedDocumentStore."""

import threading

import pytest

from headingcache.adapters.storage.memory_adapter import InMemoryDocumentStore
from headingcache.adapters.storage.prefixed_adapter import PrefixedDocumentStore
from headingcache.domain.ports import StorageError


class TestInMemoryDocumentStore:
    """Test suite for InMemoryDocumentStore."""

    def test_increment_is_atomic_across_threads(self):
        """Test concurrent increments allocate unique, dense values."""
        store = InMemoryDocumentStore()
        allocated = []
        lock = threading.Lock()

        def worker():
            for _ in range(200):
                value = store.increment(["seq"])
                with lock:
                    allocated.append(value)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(allocated) == list(range(1, 1601))

    def test_put_at_root_raises(self):
        """Test that a scalar cannot be written at the root."""
        store = InMemoryDocumentStore()
        with pytest.raises(StorageError):
            store.put([], 1)

    def test_delete_root_clears_everything(self):
        """Test that deleting the empty path clears the store."""
        store = InMemoryDocumentStore()
        store.put(["a"], 1)
        store.put(["b"], 2)
        store.delete([])
        assert store.children([]) == []

    def test_invalid_segment_raises(self):
        """Test that unsupported key segments are rejected."""
        store = InMemoryDocumentStore()
        with pytest.raises(StorageError):
            store.put(["a", None], 1)
        with pytest.raises(StorageError):
            store.put(["a", ""], 1)
        with pytest.raises(StorageError):
            store.put(["a", "x\x1fy"], 1)
        with pytest.raises(StorageError):
            store.put(["a", "x\x1ey"], 1)


class TestPrefixedDocumentStore:
    """Test suite for PrefixedDocumentStore."""

    def test_operations_are_rooted_at_prefix(self):
        """Test that a view reads and writes under its prefix only."""
        store = InMemoryDocumentStore()
        view = PrefixedDocumentStore(store, ["sessions", "s1"])

        view.put(["a"], 1)
        assert store.get(["sessions", "s1", "a"]) == 1
        assert view.get(["a"]) == 1
        assert view.children([]) == ["a"]
        assert view.increment(["n"]) == 1

    def test_views_are_disjoint(self):
        """Test that two views over one store do not see each other."""
        store = InMemoryDocumentStore()
        first = PrefixedDocumentStore(store, ["sessions", "s1"])
        second = PrefixedDocumentStore(store, ["sessions", "s2"])

        first.put_document(["doc"], {"x": 1})
        assert second.get_document(["doc"]) is None

        first.delete(["doc"])
        assert not store.exists(["sessions", "s1"])
