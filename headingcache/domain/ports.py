"""Domain Ports - Abstract Contracts for the Heading Cache.

This module defines the Port interfaces (abstract contracts) that Adapters must implement.
Following Hexagonal Architecture, the Domain Core defines what it needs, not how it's provided.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Storage adapters (in-memory tree, DuckDB) implement DocumentStorePort
    - Session registries implement SessionRegistryPort
    - Origin record fetchers implement RecordSourcePort
    - Domain services only ever see these contracts
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Optional, Sequence, TypeVar, Union

# Type variable for Result generic
T = TypeVar('T')

# A key path segment. Segments are canonicalised to strings by the stores.
Segment = Union[str, int]
KeyPath = Sequence[Segment]
Scalar = Union[str, int, float, bool]


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (StorageError, ValidationError, etc.)
        error_details: Additional error context

    Example:
        ```python
        result = store.initialize_schema()
        if not result.success:
            log_error(result.error, result.error_details)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result."""
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "StorageError")
            error_details: Additional context

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class HeadingCacheError(Exception):
    """Base exception for all heading cache errors."""
    pass


class ValidationError(HeadingCacheError):
    """Raised when an inbound argument fails validation.

    Validation always happens before any mutation, so no partial
    state change is left behind when this is raised.

    Attributes:
        field: Name of the offending argument (patientId, heading, ...)
        details: Additional error details
    """

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.field = field
        self.details = details or {}


class NotFoundError(HeadingCacheError):
    """Raised when an inbound command requires an entity that does not exist.

    Plain lookups return None instead; only commands that explicitly
    require existence raise this.

    Attributes:
        entity: Kind of entity that was looked up (record, link, status)
        key: The identifier that was not found
    """

    def __init__(self, message: str, entity: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.entity = entity
        self.key = key


class UpstreamError(HeadingCacheError):
    """Raised when an origin-fetch collaborator fails.

    Attributes:
        host: The origin host that was being fetched
    """

    def __init__(self, message: str, host: Optional[str] = None):
        super().__init__(message)
        self.host = host


class StorageError(HeadingCacheError):
    """Raised when the keyed document store fails.

    Attributes:
        operation: Store operation that failed (get, put, delete, ...)
        details: Additional error context (path, db_path, ...)
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


def errors_to_response(err: Exception) -> dict:
    """Translate an error into the uniform `{error: message}` response shape.

    Handler collaborators use this; the core itself never formats responses.
    """
    return {
        'error': str(err) or type(err).__name__
    }


# ============================================================================
# Storage Port
# ============================================================================

class DocumentStorePort(ABC):
    """Abstract contract for the hierarchical keyed document store.

    The store is a tree keyed by successive path segments. Every other
    component of the heading cache is built on these operations.

    Key Principles:
        - Reads of a non-existent path return None/False, never raise
        - Children are ordered numeric-first (by value), then lexicographically
        - increment() is atomic and is used to allocate integer ids
        - Adapter failures raise StorageError

    Example Usage:
        ```python
        store = InMemoryDocumentStore()
        store.put(['byHeading', 'procedures', 'ethercis-1'], True)
        store.exists(['byHeading', 'procedures'])  # True
        store.increment(['versionSeq', 'ethercis-1'])  # 1
        ```
    """

    @abstractmethod
    def exists(self, path: KeyPath) -> bool:
        """Check whether a node (value or subtree) exists at path."""
        pass

    @abstractmethod
    def get(self, path: KeyPath) -> Optional[Scalar]:
        """Get the scalar value stored at path, or None."""
        pass

    @abstractmethod
    def get_document(self, path: KeyPath, preserve_arrays: bool = False) -> Optional[Union[dict, list]]:
        """Get the subtree at path as a native document.

        Parameters:
            path: Key path of the subtree root
            preserve_arrays: When False, any node whose children are the
                consecutive integers 0..n-1 is collapsed into a list.
                When True, every node is returned as a mapping.

        Returns:
            dict/list for the subtree, or None if nothing exists at path
        """
        pass

    @abstractmethod
    def put(self, path: KeyPath, value: Scalar) -> None:
        """Store a scalar value at path."""
        pass

    @abstractmethod
    def put_document(self, path: KeyPath, document: Union[dict, list]) -> None:
        """Write a native document under path.

        The document is merged into any existing subtree. Lists are written
        as children 0..n-1. Nested None values and empty objects or arrays
        are kept as leaves; keys are escaped so any string key round trips.
        """
        pass

    @abstractmethod
    def delete(self, path: KeyPath) -> None:
        """Delete the subtree at path, pruning ancestors left empty."""
        pass

    @abstractmethod
    def increment(self, path: KeyPath) -> int:
        """Atomically increment the integer at path and return the new value."""
        pass

    @abstractmethod
    def children(self, path: KeyPath, reverse: bool = False) -> list[str]:
        """List the child keys directly below path in collation order."""
        pass

    def close(self) -> None:
        """Release any resources held by the store (optional)."""
        return None


# ============================================================================
# Session Registry Port
# ============================================================================

class SessionRegistryPort(ABC):
    """Abstract contract for the table of active session partitions.

    The registry is injected into the core rather than being a process-wide
    singleton. Each handle it returns owns a HeadingCache rooted at its own
    key path prefix.
    """

    @abstractmethod
    def active_sessions(self) -> list[Any]:
        """Return the SessionHandle of every currently active session."""
        pass


# ============================================================================
# Origin Fetch Port
# ============================================================================

class RecordSourcePort(ABC):
    """Abstract contract for the origin-fetch collaborator.

    Implementations return already-fetched, record-shaped dicts for a
    (host, patientId, heading). Each dict must carry a `uid`; `date`,
    `dateCreated` or `date_created` is used as the record date when present.
    Any failure should be raised as UpstreamError.
    """

    @abstractmethod
    def fetch(self, host: str, patient_id: Union[str, int], heading: str) -> list[dict]:
        """Fetch the records of one heading for a patient from one host."""
        pass
