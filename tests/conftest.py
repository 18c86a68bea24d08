"""Shared fixtures for the heading cache test suite."""

import pytest

from headingcache.adapters.cache.heading_cache import HeadingCache
from headingcache.adapters.storage.duckdb_adapter import DuckDBDocumentStore
from headingcache.adapters.storage.memory_adapter import InMemoryDocumentStore
from headingcache.domain.models import HeadingRecord
from headingcache.infrastructure.audit.reconciliation_audit_logger import ReconciliationAuditLogger
from headingcache.main import HeadingCacheCore

PATIENT_ID = 9999999000
HOST = "ethercis"


@pytest.fixture
def memory_store():
    return InMemoryDocumentStore()


@pytest.fixture
def duckdb_store():
    store = DuckDBDocumentStore(db_path=":memory:")
    result = store.initialize_schema()
    assert result.is_success()
    yield store
    store.close()


@pytest.fixture(params=["memory", "duckdb"])
def any_store(request):
    """Every DocumentStorePort implementation, for contract tests."""
    if request.param == "memory":
        yield InMemoryDocumentStore()
    else:
        store = DuckDBDocumentStore(db_path=":memory:")
        yield store
        store.close()


@pytest.fixture
def heading_cache(memory_store):
    return HeadingCache(memory_store)


@pytest.fixture
def make_record():
    """Factory for HeadingRecords with sensible defaults."""
    def _make(source_id="ethercis-1", patient_id=PATIENT_ID, heading="procedures",
              host=HOST, date=1000, **kwargs):
        return HeadingRecord(
            source_id=source_id,
            patient_id=patient_id,
            heading=heading,
            host=host,
            date=date,
            **kwargs
        )
    return _make


@pytest.fixture
def audit_logger():
    return ReconciliationAuditLogger()


@pytest.fixture
def core(memory_store, audit_logger):
    return HeadingCacheCore(memory_store, audit_logger=audit_logger)
