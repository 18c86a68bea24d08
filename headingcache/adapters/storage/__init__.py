"""Storage adapters for Heading-Cache.

This module contains the document store adapters that implement the
DocumentStorePort interface.
"""

from headingcache.adapters.storage.duckdb_adapter import DuckDBDocumentStore
from headingcache.adapters.storage.memory_adapter import InMemoryDocumentStore
from headingcache.adapters.storage.prefixed_adapter import PrefixedDocumentStore

__all__ = ["DuckDBDocumentStore", "InMemoryDocumentStore", "PrefixedDocumentStore"]
