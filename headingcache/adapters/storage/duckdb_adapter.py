"""DuckDB Document Store Adapter.

This adapter implements the DocumentStorePort contract on top of DuckDB, an
in-process database, so that the heading cache, discovery links and patient
status survive a restart of the host process.

Security Impact:
    - Clinical payloads are stored as JSON leaves and never logged
    - Database path is validated before connecting
    - Counter increments run inside a transaction so allocated versions are unique

Architecture:
    - Implements DocumentStorePort (Hexagonal Architecture)
    - Isolated from domain core - only depends on ports and key path helpers
    - One row per leaf: `path` is the serialized key path, `value` its JSON scalar
    - Subtree reads and deletes are prefix scans on `path`
"""

import json
import logging
import threading
from pathlib import Path
from typing import Optional, Union

import duckdb

from headingcache.adapters.storage.key_path import (
    SEPARATOR,
    TreeNode,
    as_counter,
    check_scalar,
    iter_leaves,
    node_to_document,
    normalize_path,
    serialize_path,
    sort_segments,
    subtree_prefix,
)
from headingcache.domain.ports import (
    DocumentStorePort,
    KeyPath,
    Result,
    Scalar,
    StorageError,
)
from headingcache.infrastructure.config_manager import DatabaseConfig

logger = logging.getLogger(__name__)


class DuckDBDocumentStore(DocumentStorePort):
    """DuckDB implementation of DocumentStorePort.

    Parameters:
        db_config: DatabaseConfig from configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)

    Example Usage:
        ```python
        from headingcache.infrastructure.config_manager import get_database_config

        store = DuckDBDocumentStore(db_config=get_database_config())
        result = store.initialize_schema()
        if result.is_success():
            store.put(['status', '9999999000', 'status'], 'ready')
        ```
    """

    def __init__(
        self,
        db_config: Optional[DatabaseConfig] = None,
        db_path: Optional[str] = None
    ):
        """Initialize DuckDB document store.

        Note:
            If both db_config and db_path are provided, db_config takes precedence.
            If neither is provided, defaults to an in-memory database.
        """
        if db_config:
            if db_config.db_type != "duckdb":
                raise StorageError(
                    f"DatabaseConfig type '{db_config.db_type}' does not match DuckDB adapter",
                    operation="__init__"
                )
            self.db_path = db_config.db_path or ":memory:"
        elif db_path:
            self.db_path = db_path
        else:
            self.db_path = ":memory:"

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False
        self._lock = threading.RLock()

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise StorageError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection, creating the schema on first use."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except Exception as e:
                raise StorageError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                )

        if not self._initialized:
            result = self.initialize_schema()
            if result.is_failure():
                raise StorageError(result.error, operation="initialize_schema")

        return self._connection

    def initialize_schema(self) -> Result[None]:
        """Create the documents table.

        Returns:
            Result[None]: Success or failure result
        """
        try:
            if self._connection is None:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")

            self._connection.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    path VARCHAR PRIMARY KEY,
                    value VARCHAR NOT NULL
                )
            """)

            self._initialized = True
            logger.info("Document store schema initialized successfully")
            return Result.success_result(None)

        except Exception as e:
            error_msg = f"Failed to initialize schema: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation="initialize_schema"),
                error_type="StorageError"
            )

    def exists(self, path: KeyPath) -> bool:
        keys = normalize_path(path)
        with self._lock:
            if not keys:
                row = self._query_one("exists", "SELECT 1 FROM documents LIMIT 1")
            else:
                row = self._query_one(
                    "exists",
                    "SELECT 1 FROM documents WHERE path = ? OR starts_with(path, ?) LIMIT 1",
                    [serialize_path(keys), subtree_prefix(keys)]
                )
            return row is not None

    def get(self, path: KeyPath) -> Optional[Scalar]:
        keys = normalize_path(path)
        if not keys:
            return None
        with self._lock:
            row = self._query_one(
                "get",
                "SELECT value FROM documents WHERE path = ?",
                [serialize_path(keys)]
            )
        return json.loads(row[0]) if row else None

    def get_document(self, path: KeyPath, preserve_arrays: bool = False) -> Optional[Union[dict, list]]:
        keys = normalize_path(path)
        with self._lock:
            rows = self._subtree_rows("get_document", keys)

        if not rows:
            return None

        root = TreeNode()
        prefix_len = len(subtree_prefix(keys))
        for row_path, raw in rows:
            if keys and row_path == serialize_path(keys):
                continue
            node = root
            for key in row_path[prefix_len:].split(SEPARATOR):
                node = node.children.setdefault(key, TreeNode())
            node.set_value(json.loads(raw))

        if not root.children:
            return {}
        return node_to_document(root, preserve_arrays)

    def put(self, path: KeyPath, value: Scalar) -> None:
        keys = normalize_path(path)
        if not keys:
            raise StorageError("Cannot put a value at the root", operation="put")
        check_scalar(value)
        with self._lock:
            self._execute(
                "put",
                "INSERT OR REPLACE INTO documents VALUES (?, ?)",
                [serialize_path(keys), json.dumps(value)]
            )

    def put_document(self, path: KeyPath, document: Union[dict, list]) -> None:
        keys = normalize_path(path)
        rows = [
            [serialize_path(keys + relative), json.dumps(value)]
            for relative, value in iter_leaves(document)
        ]
        if not rows:
            return

        with self._lock:
            conn = self._get_connection()
            try:
                conn.execute("BEGIN TRANSACTION")
                conn.executemany("INSERT OR REPLACE INTO documents VALUES (?, ?)", rows)
                conn.execute("COMMIT")
            except Exception as e:
                self._rollback(conn)
                raise StorageError(
                    f"Failed to write document: {str(e)}",
                    operation="put_document",
                    details={"path": list(keys), "leaves": len(rows)}
                )

    def delete(self, path: KeyPath) -> None:
        keys = normalize_path(path)
        with self._lock:
            if not keys:
                self._execute("delete", "DELETE FROM documents")
            else:
                # Leaf-only rows mean no empty ancestors are ever left behind
                self._execute(
                    "delete",
                    "DELETE FROM documents WHERE path = ? OR starts_with(path, ?)",
                    [serialize_path(keys), subtree_prefix(keys)]
                )

    def increment(self, path: KeyPath) -> int:
        keys = normalize_path(path)
        if not keys:
            raise StorageError("Cannot increment the root", operation="increment")
        serialized = serialize_path(keys)

        with self._lock:
            conn = self._get_connection()
            try:
                conn.execute("BEGIN TRANSACTION")
                row = conn.execute(
                    "SELECT value FROM documents WHERE path = ?", [serialized]
                ).fetchone()
                current = as_counter(json.loads(row[0]) if row else 0, keys)
                conn.execute(
                    "INSERT OR REPLACE INTO documents VALUES (?, ?)",
                    [serialized, json.dumps(current + 1)]
                )
                conn.execute("COMMIT")
                return current + 1
            except StorageError:
                self._rollback(conn)
                raise
            except Exception as e:
                self._rollback(conn)
                raise StorageError(
                    f"Failed to increment counter: {str(e)}",
                    operation="increment",
                    details={"path": list(keys)}
                )

    def children(self, path: KeyPath, reverse: bool = False) -> list[str]:
        keys = normalize_path(path)
        prefix = subtree_prefix(keys)
        with self._lock:
            if not keys:
                rows = self._query_all("children", "SELECT path FROM documents")
            else:
                rows = self._query_all(
                    "children",
                    "SELECT path FROM documents WHERE starts_with(path, ?)",
                    [prefix]
                )

        names = {row[0][len(prefix):].split(SEPARATOR, 1)[0] for row in rows}
        return sort_segments(names, reverse=reverse)

    def close(self) -> None:
        """Close storage connection and release resources."""
        if self._connection is not None:
            try:
                self._connection.close()
                self._connection = None
                self._initialized = False
                logger.info("Closed DuckDB connection")
            except Exception as e:
                logger.warning(f"Error closing connection: {str(e)}")

    def _subtree_rows(self, operation: str, keys: tuple[str, ...]) -> list:
        if not keys:
            return self._query_all(operation, "SELECT path, value FROM documents")
        return self._query_all(
            operation,
            "SELECT path, value FROM documents WHERE path = ? OR starts_with(path, ?)",
            [serialize_path(keys), subtree_prefix(keys)]
        )

    def _execute(self, operation: str, sql: str, params: Optional[list] = None) -> None:
        try:
            self._get_connection().execute(sql, params or [])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"DuckDB {operation} failed: {str(e)}",
                operation=operation
            )

    def _query_one(self, operation: str, sql: str, params: Optional[list] = None) -> Optional[tuple]:
        try:
            return self._get_connection().execute(sql, params or []).fetchone()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"DuckDB {operation} failed: {str(e)}",
                operation=operation
            )

    def _query_all(self, operation: str, sql: str, params: Optional[list] = None) -> list:
        try:
            return self._get_connection().execute(sql, params or []).fetchall()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"DuckDB {operation} failed: {str(e)}",
                operation=operation
            )

    @staticmethod
    def _rollback(conn: duckdb.DuckDBPyConnection) -> None:
        try:
            conn.execute("ROLLBACK")
        except Exception as e:
            logger.warning(f"Rollback failed: {str(e)}")

