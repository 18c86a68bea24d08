"""Discovery Reconciliation Service.

This module absorbs records from the external discovery feed into the
heading cache and undoes those merges on request.

Security Impact:
    - Arguments are validated before any mutation, so a rejected call
      leaves the cache untouched
    - Every link inserted or removed is recorded in the audit trail
    - Discovery payloads are never logged; only their ids are

Architecture:
    - Domain service; collaborators (cache, link store, broadcaster, locks)
      are injected
    - Records are merged and reverted strictly in series
    - Each (patientId, heading) is processed under its own lock
"""

import logging
import uuid
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional, Union

from headingcache.domain.cdc_models import ChangeType
from headingcache.domain.models import DiscoveryLink, HeadingRecord, RevertResult
from headingcache.domain.ports import StorageError
from headingcache.domain.services.locks import KeyedLocks
from headingcache.domain.utils import build_source_id, equals, now_ms, record_date
from headingcache.domain.validation import (
    validate_discovery_records,
    validate_heading,
    validate_patient_id,
)

if TYPE_CHECKING:
    from headingcache.adapters.cache.discovery_db import DiscoveryLinkStore
    from headingcache.adapters.cache.heading_cache import HeadingCache
    from headingcache.domain.services.cache_service import CacheService
    from headingcache.infrastructure.audit.reconciliation_audit_logger import ReconciliationAuditLogger

logger = logging.getLogger(__name__)


class DiscoveryService:
    """Merges discovery records into the cache and reverts them.

    Parameters:
        heading_cache: The global (unpartitioned) record cache
        links: Discovery link store
        cache_service: Invalidation broadcaster
        headings: Configured heading set (anything supporting `in`)
        locks: Per-(patientId, heading) locks shared with the read path
        audit_logger: Optional reconciliation audit trail
    """

    def __init__(
        self,
        heading_cache: 'HeadingCache',
        links: 'DiscoveryLinkStore',
        cache_service: 'CacheService',
        headings: Any,
        locks: Optional[KeyedLocks] = None,
        audit_logger: Optional['ReconciliationAuditLogger'] = None
    ):
        self.heading_cache = heading_cache
        self.links = links
        self.cache_service = cache_service
        self.headings = headings
        self.locks = locks or KeyedLocks()
        self.audit_logger = audit_logger

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge_all(
        self,
        host: str,
        patient_id: Union[int, str],
        heading: str,
        records: Iterable[Mapping[str, Any]]
    ) -> bool:
        """Merge a batch of discovery records in series.

        Returns:
            True if at least one record was newly merged
        """
        records = list(records)
        validate_patient_id(patient_id)
        validate_heading(self.headings, heading)
        validate_discovery_records(records)

        operation_id = new_operation_id("merge")
        logger.info(
            f"services/discoveryService|mergeAll host={host} patientId={patient_id} "
            f"heading={heading} records={len(records)}",
            extra=log_context(patient_id, heading, host, operation_id)
        )

        with self.locks.hold(patient_id, heading):
            results = [
                self.merge(host, patient_id, heading, item, operation_id=operation_id)
                for item in records
            ]

        return any(results)

    def merge(
        self,
        host: str,
        patient_id: Union[int, str],
        heading: str,
        item: Mapping[str, Any],
        operation_id: Optional[str] = None
    ) -> bool:
        """Merge one discovery record.

        Returns:
            True if a new record and link were created, False if the record
            was already linked or could not be stored
        """
        discovery_source_id = str(item["sourceId"])
        context = log_context(patient_id, heading, host, operation_id)
        source_id = None

        try:
            if self.links.get_source_id_by_discovery_id(discovery_source_id) is not None:
                logger.debug(
                    f"services/discoveryService|merge discoverySourceId={discovery_source_id} already linked",
                    extra=context
                )
                return False

            uid = str(uuid.uuid4())
            source_id = build_source_id(host, uid)
            date = record_date(dict(item), default=now_ms())

            record = HeadingRecord(
                source_id=source_id,
                patient_id=patient_id,
                heading=heading,
                host=host,
                date=date,
                version=1,
                uid=uid,
                payload=dict(item),
            )
            self.heading_cache.put(record)
            self.links.insert(DiscoveryLink(
                discovery=discovery_source_id,
                source_id=source_id,
                patient_id=patient_id,
                heading=heading,
                host=host,
                date=date,
            ))
        except StorageError as e:
            logger.error(
                f"services/discoveryService|merge|err discoverySourceId={discovery_source_id}: {str(e)}",
                extra=context
            )
            if source_id is not None:
                # Drop any part of the record that was cached before the failure
                self.heading_cache.delete(source_id)
            return False

        self._audit(
            "discovery_link", source_id, ChangeType.INSERT, patient_id, heading, host,
            {"discovery": discovery_source_id}, operation_id
        )
        logger.info(
            f"services/discoveryService|merge discoverySourceId={discovery_source_id} sourceId={source_id}",
            extra=context
        )
        return True

    # ------------------------------------------------------------------
    # Revert
    # ------------------------------------------------------------------

    def revert(self, patient_id: Union[int, str], heading: str) -> list[RevertResult]:
        """Undo every merge for a patient's heading."""
        validate_patient_id(patient_id)
        validate_heading(self.headings, heading)

        operation_id = new_operation_id("revert")
        logger.info(
            f"services/discoveryService|revert patientId={patient_id} heading={heading}",
            extra=log_context(patient_id, heading, operation_id=operation_id)
        )

        source_ids = self.get_source_ids(
            lambda link: link.heading == heading and equals(link.patient_id, patient_id)
        )
        return self._revert_source_ids(source_ids, operation_id)

    def revert_all(self) -> list[RevertResult]:
        """Undo every merge ever made."""
        operation_id = new_operation_id("revert_all")
        logger.info("services/discoveryService|revertAll", extra={"operation_id": operation_id})
        return self._revert_source_ids(self.get_all_source_ids(), operation_id)

    def _revert_source_ids(self, source_ids: list[str], operation_id: str) -> list[RevertResult]:
        results: list[RevertResult] = []
        targets: dict[tuple[str, str, str], tuple[str, Union[int, str], str]] = {}

        for source_id in source_ids:
            link = self.links.get_by_source_id(source_id)
            if link is None:
                continue

            with self.locks.hold(link.patient_id, link.heading):
                # A concurrent revert may have removed it while we waited
                link = self.links.get_by_source_id(source_id)
                if link is None:
                    continue

                deleted = self.heading_cache.delete(source_id)
                self.links.delete(link.discovery, source_id)

            self._audit(
                "record", source_id, ChangeType.DELETE, link.patient_id, link.heading, link.host,
                {"deleted": deleted is not None}, operation_id
            )
            self._audit(
                "discovery_link", source_id, ChangeType.DELETE, link.patient_id, link.heading, link.host,
                {"discovery": link.discovery}, operation_id
            )

            results.append(RevertResult(
                deleted=deleted is not None,
                patient_id=link.patient_id,
                heading=link.heading,
                source_id=source_id,
                host=link.host,
            ))
            targets.setdefault(
                (link.host, str(link.patient_id), link.heading),
                (link.host, link.patient_id, link.heading)
            )

        for host, patient_id, heading in targets.values():
            self.cache_service.delete(host, patient_id, heading)

        return results

    # ------------------------------------------------------------------
    # Link lookups
    # ------------------------------------------------------------------

    def delete(self, source_id: str) -> Optional[DiscoveryLink]:
        """Remove both directions of a link, returning the removed link."""
        logger.info(f"services/discoveryService|delete sourceId={source_id}")
        link = self.links.get_by_source_id(source_id)
        if link is not None:
            self.links.delete(link.discovery, source_id)
        return link

    def get_all_source_ids(self) -> list[str]:
        return self.links.get_all_source_ids()

    def get_source_ids(self, predicate: Callable[[DiscoveryLink], bool]) -> list[str]:
        return self.links.get_source_ids(predicate)

    def get_by_source_id(self, source_id: str) -> Optional[DiscoveryLink]:
        return self.links.get_by_source_id(source_id)

    def _audit(
        self,
        entity: str,
        record_id: str,
        change_type: ChangeType,
        patient_id: Union[int, str],
        heading: str,
        host: str,
        details: Optional[dict] = None,
        operation_id: Optional[str] = None
    ) -> None:
        if self.audit_logger is None:
            return
        self.audit_logger.log_change(
            entity=entity,
            record_id=record_id,
            change_type=change_type,
            patient_id=str(patient_id),
            heading=heading,
            host=host,
            details=details,
            operation_id=operation_id,
        )


def new_operation_id(kind: str) -> str:
    return f"{kind}-{uuid.uuid4().hex}"


def log_context(
    patient_id: Union[int, str],
    heading: str,
    host: Optional[str] = None,
    operation_id: Optional[str] = None
) -> dict:
    """Reconciliation fields picked up by the structured log formatter."""
    context = {"patient_id": str(patient_id), "heading": heading}
    if host is not None:
        context["host"] = host
    if operation_id is not None:
        context["operation_id"] = operation_id
    return context
