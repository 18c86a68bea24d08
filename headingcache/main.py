"""Heading-Cache Core.

This module wires the document store, the caches and the domain services
into HeadingCacheCore, the single entry point that request handlers and the
CLI call into.

Security Impact:
    - Every inbound argument is validated before any mutation
    - Errors surface as typed HeadingCacheError subclasses; formatting them
      for a response is left to the caller (see errors_to_response)
    - Reconciliation changes are recorded in the audit trail

Architecture:
    - Composition root (Hexagonal Architecture): adapters are chosen here
      from configuration and injected into domain services
    - One document store holds the global record cache, discovery links,
      patient status and every session partition under disjoint roots
"""

import logging
from typing import Any, Iterable, Mapping, Optional, Union

from headingcache.adapters.cache.discovery_db import DiscoveryLinkStore
from headingcache.adapters.cache.heading_cache import HeadingCache
from headingcache.adapters.cache.status_cache import StatusCache
from headingcache.adapters.sessions.registry import InMemorySessionRegistry, SessionHandle
from headingcache.adapters.storage.duckdb_adapter import DuckDBDocumentStore
from headingcache.adapters.storage.memory_adapter import InMemoryDocumentStore
from headingcache.domain.models import (
    ExtraHeading,
    MergeResult,
    RecordStatus,
    ResponseFormat,
    StatusRecord,
)
from headingcache.domain.ports import (
    DocumentStorePort,
    NotFoundError,
    RecordSourcePort,
    SessionRegistryPort,
    StorageError,
)
from headingcache.domain.services.cache_service import CacheService
from headingcache.domain.services.discovery_service import DiscoveryService
from headingcache.domain.services.heading_service import CanonicalRecordSource, HeadingService
from headingcache.domain.services.locks import KeyedLocks
from headingcache.domain.services.status_service import StatusService
from headingcache.domain.utils import equals
from headingcache.domain.validation import validate_heading, validate_patient_id
from headingcache.infrastructure.audit.reconciliation_audit_logger import ReconciliationAuditLogger
from headingcache.infrastructure.config_manager import (
    DEFAULT_HOST,
    ConfigManager,
    DatabaseConfig,
    HeadingsConfig,
)

logger = logging.getLogger(__name__)

PatientId = Union[int, str]


def create_document_store(db_config: Optional[DatabaseConfig] = None) -> DocumentStorePort:
    """Create the document store selected by configuration.

    Raises:
        ValueError: If the store type is unsupported
        StorageError: If the DuckDB schema cannot be created
    """
    db_config = db_config or ConfigManager.from_environment().get_database_config()

    if db_config.db_type == "memory":
        logger.info("Initializing in-memory document store")
        return InMemoryDocumentStore()
    elif db_config.db_type == "duckdb":
        logger.info(f"Initializing DuckDB document store with path: {db_config.db_path or ':memory:'}")
        store = DuckDBDocumentStore(db_config=db_config)
        result = store.initialize_schema()
        if result.is_failure():
            raise StorageError(result.error, operation="initialize_schema")
        return store
    else:
        raise ValueError(f"Unsupported database type: {db_config.db_type}")


class HeadingCacheCore:
    """Inbound interface of the heading cache.

    Every method takes plain scalars/JSON and returns JSON-able dicts and
    lists, or raises a HeadingCacheError subclass.

    Example Usage:
        ```python
        core = HeadingCacheCore(InMemoryDocumentStore())
        core.status_create(9999999000, new_patient=True)
        core.merge_discovery_data(9999999000, 'procedures', [{'sourceId': 'd1'}])
        core.merge_discovery_data(9999999000, 'finished', [])
        core.revert_discovery_data(9999999000, 'procedures')
        ```
    """

    def __init__(
        self,
        store: DocumentStorePort,
        registry: Optional[SessionRegistryPort] = None,
        headings: Optional[HeadingsConfig] = None,
        default_host: str = DEFAULT_HOST,
        hosts: Optional[Iterable[str]] = None,
        record_source: Optional[RecordSourcePort] = None,
        audit_logger: Optional[ReconciliationAuditLogger] = None
    ):
        self.store = store
        self.registry = registry if registry is not None else InMemorySessionRegistry(store)
        self.headings = headings or HeadingsConfig()
        self.default_host = default_host
        self.hosts = list(hosts) if hosts else [default_host]
        self.locks = KeyedLocks()
        self.audit_logger = audit_logger or ReconciliationAuditLogger()

        self.heading_cache = HeadingCache(store)
        self.links = DiscoveryLinkStore(store)
        self.status_cache = StatusCache(store)

        self.cache_service = CacheService(self.registry, self.audit_logger)
        self.status_service = StatusService(self.status_cache)
        self.discovery_service = DiscoveryService(
            heading_cache=self.heading_cache,
            links=self.links,
            cache_service=self.cache_service,
            headings=self.headings,
            locks=self.locks,
            audit_logger=self.audit_logger,
        )
        self.heading_service = HeadingService(
            source=record_source or CanonicalRecordSource(self.heading_cache),
            links=self.links,
            headings=self.headings,
            hosts=self.hosts,
            locks=self.locks,
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def open_session(self, session_id: Optional[str] = None) -> str:
        if not isinstance(self.registry, InMemorySessionRegistry):
            raise TypeError("The injected session registry does not open sessions")
        return self.registry.create(session_id).session_id

    def close_session(self, session_id: str) -> bool:
        if not isinstance(self.registry, InMemorySessionRegistry):
            raise TypeError("The injected session registry does not close sessions")
        return self.registry.end(session_id)

    def _session(self, session_id: str) -> SessionHandle:
        if isinstance(self.registry, InMemorySessionRegistry):
            return self.registry.get_or_create(session_id)

        for session in self.registry.active_sessions():
            if session.session_id == session_id:
                return session
        raise NotFoundError(f"Session {session_id} is not active", entity="session", key=session_id)

    # ------------------------------------------------------------------
    # Session read path
    # ------------------------------------------------------------------

    def get_by_patient_heading(
        self,
        session_id: str,
        patient_id: PatientId,
        heading: str,
        source_id: str
    ) -> dict:
        """Detail of one record of a patient's heading.

        Raises:
            ValidationError: If patientId or heading is invalid
            NotFoundError: If the record does not belong to this patient and heading
            UpstreamError: If filling the session cache fails
        """
        validate_patient_id(patient_id)
        validate_heading(self.headings, heading)

        heading_cache = self._session(session_id).heading_cache
        self.heading_service.fetch_one(heading_cache, patient_id, heading)

        record = heading_cache.get(source_id)
        if record is None or record.heading != heading or not equals(record.patient_id, patient_id):
            raise NotFoundError(
                f"No {heading} record found for sourceId: {source_id}",
                entity="record",
                key=source_id
            )

        return self.heading_service.get_by_source_id(heading_cache, source_id, ResponseFormat.DETAIL)

    def get_heading_summary(self, session_id: str, patient_id: PatientId, heading: str) -> dict:
        """Summaries of a patient's heading, newest first, with the fetch count."""
        validate_patient_id(patient_id)
        validate_heading(self.headings, heading)

        heading_cache = self._session(session_id).heading_cache
        self.heading_service.fetch_one(heading_cache, patient_id, heading)
        return self.heading_service.get_summary(heading_cache, patient_id, heading)

    def get_heading_synopsis(
        self,
        session_id: str,
        patient_id: PatientId,
        heading: str,
        limit: int = 0
    ) -> dict:
        """Synopses of the newest `limit` records of a patient's heading."""
        validate_patient_id(patient_id)
        validate_heading(self.headings, heading)

        heading_cache = self._session(session_id).heading_cache
        self.heading_service.fetch_one(heading_cache, patient_id, heading)
        return self.heading_service.get_synopsis(heading_cache, patient_id, heading, limit)

    # ------------------------------------------------------------------
    # Discovery reconciliation
    # ------------------------------------------------------------------

    def merge_discovery_data(
        self,
        patient_id: PatientId,
        heading: str,
        records: Iterable[Mapping[str, Any]],
        host: Optional[str] = None
    ) -> dict:
        """Merge discovery records, or mark the patient ready on 'finished'.

        Returns:
            {'refresh': bool} telling the client whether to re-query
        """
        logger.info(f"commands/mergeDiscoveryData patientId={patient_id} heading={heading}")

        if heading == ExtraHeading.FINISHED.value:
            validate_patient_id(patient_id)
            self.status_service.mark_ready(patient_id)
            return MergeResult(refresh=True).model_dump()

        records = list(records or [])
        if not records:
            return MergeResult(refresh=False).model_dump()

        host = host or self.default_host
        merged = self.discovery_service.merge_all(host, patient_id, heading, records)
        if merged:
            self.cache_service.delete(host, patient_id, heading)

        return MergeResult(refresh=merged).model_dump()

    def revert_discovery_data(self, patient_id: PatientId, heading: str) -> list[dict]:
        """Undo every discovery merge for a patient's heading."""
        return [r.to_dict() for r in self.discovery_service.revert(patient_id, heading)]

    def revert_all_discovery_data(self) -> list[dict]:
        """Undo every discovery merge."""
        return [r.to_dict() for r in self.discovery_service.revert_all()]

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status_check(self, patient_id: PatientId) -> Optional[dict]:
        """Bump and return the patient's status, or None if there is none."""
        validate_patient_id(patient_id)
        state = self.status_service.check(patient_id)
        return state.to_document() if state is not None else None

    def status_create(self, patient_id: PatientId, new_patient: bool = False) -> dict:
        """Start tracking a patient's load in the loading_data state."""
        validate_patient_id(patient_id)
        state = StatusRecord(status=RecordStatus.LOADING, new_patient=new_patient, request_no=0)
        self.status_service.create(patient_id, state)
        return state.to_document()

    def close(self) -> None:
        self.store.close()


def create_core(config_manager: Optional[ConfigManager] = None) -> HeadingCacheCore:
    """Build a HeadingCacheCore from configuration (environment by default)."""
    config_manager = config_manager or ConfigManager.from_environment()
    app_config = config_manager.get_app_config()

    return HeadingCacheCore(
        store=create_document_store(config_manager.get_database_config()),
        headings=config_manager.get_headings_config(),
        default_host=app_config.default_host,
        hosts=app_config.hosts,
        audit_logger=ReconciliationAuditLogger(max_events=app_config.audit_max_events),
    )
