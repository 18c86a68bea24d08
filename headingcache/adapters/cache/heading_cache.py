"""Multi-Index Heading Cache.

HeadingCache keeps one canonical copy of each record plus the pointers
needed to answer "all records of this heading for this patient, newest
first" and "everything this host contributed for this patient and heading".

Architecture:
    - Composed of one object per index (see indexes.py)
    - Bound to a DocumentStorePort; the global cache and every session
      partition use the same class over differently-rooted stores
    - Writes go canonical copy first and pointers last
"""

import logging
from typing import Any, Optional, Union

from headingcache.adapters.cache.indexes import (
    ByDateIndex,
    ByHeadingIndex,
    ByHostIndex,
    BySourceIdIndex,
    ByVersionIndex,
    FetchCount,
)
from headingcache.adapters.storage.key_path import check_document
from headingcache.domain.models import HeadingRecord
from headingcache.domain.ports import DocumentStorePort, NotFoundError, StorageError

logger = logging.getLogger(__name__)


class HeadingCache:
    """Canonical record store with by-heading, by-date, by-host and by-version indexes.

    Example Usage:
        ```python
        cache = HeadingCache(InMemoryDocumentStore())
        cache.put(record)
        cache.get_all_for_patient_heading(9999999000, 'procedures', limit=10)
        cache.delete_all('ethercis', 9999999000, 'procedures')
        ```
    """

    def __init__(self, store: DocumentStorePort):
        self.store = store
        self.by_source_id = BySourceIdIndex(store)
        self.by_heading = ByHeadingIndex(store)
        self.by_date = ByDateIndex(store)
        self.by_host = ByHostIndex(store)
        self.by_version = ByVersionIndex(store)
        self.fetch_count = FetchCount(store)

    def put(self, record: HeadingRecord) -> HeadingRecord:
        """Insert a record and all of its index entries.

        Creating a source id that already exists leaves the canonical copy
        untouched and returns it.

        Returns:
            The stored record, with its allocated version
        """
        source_id = record.source_id
        existing = self.by_source_id.get(source_id)
        if existing is not None:
            logger.debug(f"cache/headingCache|put sourceId={source_id} already cached")
            return existing

        # A document the store cannot hold must not consume a version
        check_document(record.to_document())
        version = self.by_version.next_version(source_id)
        stored = record.model_copy(update={"version": version})

        try:
            self.by_source_id.set(stored)
            self.by_version.set(source_id, version, stored)
            self.by_heading.set(stored.heading, source_id)
            self.by_date.set(stored.patient_id, stored.heading, stored.date, source_id)
            self.by_host.set(stored.patient_id, stored.heading, stored.host, source_id)
        except StorageError:
            logger.error(f"cache/headingCache|put sourceId={source_id} failed, removing partial entry")
            self._delete_entry(source_id, stored.patient_id, stored.heading, stored.host)
            raise

        logger.debug(
            f"cache/headingCache|put sourceId={source_id} patientId={stored.patient_id} "
            f"heading={stored.heading} version={version}"
        )
        return stored

    def put_version(self, source_id: str, payload: dict[str, Any]) -> HeadingRecord:
        """Store a new payload for an existing record as its next version.

        Raises:
            NotFoundError: If the record is not cached
        """
        current = self.by_source_id.get(source_id)
        if current is None:
            raise NotFoundError(f"Record {source_id} is not cached", entity="record", key=source_id)

        updated = current.model_copy(update={"payload": payload})
        check_document(updated.to_document())
        version = self.by_version.next_version(source_id)
        updated = updated.model_copy(update={"version": version})

        self.store.delete(["bySourceId", source_id, "payload"])
        self.by_source_id.set(updated)
        self.by_version.set(source_id, version, updated)

        logger.debug(f"cache/headingCache|putVersion sourceId={source_id} version={version}")
        return updated

    def get(self, source_id: str) -> Optional[HeadingRecord]:
        return self.by_source_id.get(source_id)

    def exists(self, source_id: str) -> bool:
        return self.by_source_id.exists(source_id)

    def get_all_for_patient_heading(
        self,
        patient_id: Union[int, str],
        heading: str,
        direction: str = "reverse",
        limit: int = 0
    ) -> list[HeadingRecord]:
        """Records of one patient and heading ordered by date (newest first by default)."""
        records = []
        for source_id in self.by_date.get_all_source_ids(patient_id, heading, direction, limit):
            record = self.by_source_id.get(source_id)
            if record is not None:
                records.append(record)
        return records

    def delete_all(self, host: str, patient_id: Union[int, str], heading: str) -> None:
        """Delete every record a host contributed for a patient's heading."""
        logger.info(
            f"cache/headingCache|deleteAll host={host} patientId={patient_id} heading={heading}"
        )
        for source_id in self.by_host.get_all_source_ids(patient_id, heading, host):
            self._delete_entry(source_id, patient_id, heading, host)

    def delete(self, source_id: str) -> Optional[HeadingRecord]:
        """Delete one record and its index entries.

        Returns:
            The deleted record, or None if it was not cached
        """
        record = self.by_source_id.get(source_id)
        if record is None:
            return None

        logger.info(f"cache/headingCache|delete sourceId={source_id}")
        self._delete_entry(source_id, record.patient_id, record.heading, record.host)
        return record

    def _delete_entry(self, source_id: str, patient_id: Union[int, str], heading: str, host: str) -> None:
        date = self.by_source_id.get_date(source_id)

        self.by_source_id.delete(source_id)
        if date is None:
            self.by_date.delete_source_id(patient_id, heading, source_id)
        else:
            self.by_date.delete(patient_id, heading, date, source_id)
        self.by_heading.delete(heading, source_id)
        self.by_version.delete_all(source_id)
        self.by_host.delete(patient_id, heading, host, source_id)
