"""Unit tests for DuckDBDocumentStore."""

import pytest

from headingcache.adapters.storage.duckdb_adapter import DuckDBDocumentStore
from headingcache.domain.ports import StorageError
from headingcache.infrastructure.config_manager import DatabaseConfig


class TestDuckDBDocumentStore:
    """Test suite for DuckDBDocumentStore."""

    def test_defaults_to_in_memory(self):
        """Test that no config means an in-memory database."""
        store = DuckDBDocumentStore()
        assert store.db_path == ":memory:"

    def test_rejects_non_duckdb_config(self):
        """Test that a memory DatabaseConfig is refused."""
        with pytest.raises(StorageError):
            DuckDBDocumentStore(db_config=DatabaseConfig(db_type="memory"))

    def test_rejects_missing_directory(self, tmp_path):
        """Test that a db path in a missing directory is refused."""
        with pytest.raises(StorageError):
            DuckDBDocumentStore(db_path=str(tmp_path / "missing" / "cache.duckdb"))

    def test_initialize_schema_returns_success(self, duckdb_store):
        """Test schema creation is idempotent and reports success."""
        result = duckdb_store.initialize_schema()
        assert result.is_success()
        assert result.value is None

    def test_schema_created_lazily(self):
        """Test that the first operation creates the schema."""
        store = DuckDBDocumentStore(db_path=":memory:")
        store.put(["a"], 1)
        assert store.get(["a"]) == 1
        store.close()

    def test_state_survives_reopen(self, tmp_path):
        """Test that a file-backed store keeps its data across connections."""
        db_path = str(tmp_path / "cache.duckdb")

        store = DuckDBDocumentStore(db_config=DatabaseConfig(db_type="duckdb", db_path=db_path))
        store.put_document(["bySourceId", "ethercis-1"], {"heading": "procedures", "date": 1000})
        store.increment(["versionSeq", "ethercis-1"])
        store.close()

        reopened = DuckDBDocumentStore(db_path=db_path)
        assert reopened.get_document(["bySourceId", "ethercis-1"]) == {"date": 1000, "heading": "procedures"}
        assert reopened.increment(["versionSeq", "ethercis-1"]) == 2
        reopened.close()

    def test_close_is_idempotent(self, duckdb_store):
        """Test closing twice does not raise."""
        duckdb_store.close()
        duckdb_store.close()
