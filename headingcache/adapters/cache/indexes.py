"""Secondary indexes of the heading cache.

Each index is a small object bound to a document store and owning one key
layout. HeadingCache composes them; nothing outside the cache package
should write these paths directly.

Layout (relative to the store the indexes are bound to):

    bySourceId[sourceId]                                  canonical record
    byHeading[heading][sourceId]                          pointer
    byPatient[patientId][heading][byDate][date][sourceId] pointer
    byPatient[patientId][heading][byHost][host][sourceId] pointer
    byVersion[sourceId][version]                          record snapshot
    versionSeq[sourceId]                                  version counter
    fetchCount[patientId][heading]                        fetch counter
"""

import logging
from typing import Optional, Union

from headingcache.domain.models import HeadingRecord
from headingcache.domain.ports import DocumentStorePort

logger = logging.getLogger(__name__)

PatientId = Union[int, str]


def record_from_document(document: Optional[dict]) -> Optional[HeadingRecord]:
    """Rebuild a HeadingRecord from its stored document."""
    if not document or not isinstance(document, dict):
        return None

    payload = document.get("payload")
    # A payload keyed 0..n-1 comes back collapsed; restore the mapping
    if isinstance(payload, list):
        document = dict(document, payload={str(i): v for i, v in enumerate(payload)})

    return HeadingRecord.model_validate(document)


class BySourceIdIndex:
    """Canonical copy of every record, keyed by source id."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    def exists(self, source_id: str) -> bool:
        return self._store.exists(["bySourceId", source_id])

    def get(self, source_id: str) -> Optional[HeadingRecord]:
        logger.debug(f"cache/headingCache|bySourceId|get sourceId={source_id}")
        return record_from_document(self._store.get_document(["bySourceId", source_id]))

    def get_date(self, source_id: str) -> Optional[int]:
        date = self._store.get(["bySourceId", source_id, "date"])
        return None if date is None else int(date)

    def set(self, record: HeadingRecord) -> None:
        logger.debug(f"cache/headingCache|bySourceId|set sourceId={record.source_id}")
        self._store.put_document(["bySourceId", record.source_id], record.to_document())

    def delete(self, source_id: str) -> None:
        logger.debug(f"cache/headingCache|bySourceId|delete sourceId={source_id}")
        self._store.delete(["bySourceId", source_id])


class ByHeadingIndex:
    """Source ids per heading, across all patients."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    def set(self, heading: str, source_id: str) -> None:
        self._store.put(["byHeading", heading, source_id], True)

    def exists(self, heading: str, source_id: Optional[str] = None) -> bool:
        path = ["byHeading", heading] if source_id is None else ["byHeading", heading, source_id]
        return self._store.exists(path)

    def get_all_source_ids(self, heading: str) -> list[str]:
        return self._store.children(["byHeading", heading])

    def delete(self, heading: str, source_id: str) -> None:
        logger.debug(f"cache/headingCache|byHeading|delete heading={heading} sourceId={source_id}")
        self._store.delete(["byHeading", heading, source_id])

    def delete_all(self, heading: str) -> None:
        logger.info(f"cache/headingCache|byHeading|deleteAll heading={heading}")
        self._store.delete(["byHeading", heading])


class ByDateIndex:
    """Per patient and heading, source ids bucketed by record date."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    @staticmethod
    def _path(patient_id: PatientId, heading: str) -> list:
        return ["byPatient", str(patient_id), heading, "byDate"]

    def set(self, patient_id: PatientId, heading: str, date: int, source_id: str) -> None:
        logger.debug(
            f"cache/headingCache|byDate|set patientId={patient_id} heading={heading} "
            f"date={date} sourceId={source_id}"
        )
        self._store.put(self._path(patient_id, heading) + [date, source_id], True)

    def delete(self, patient_id: PatientId, heading: str, date: int, source_id: str) -> None:
        self._store.delete(self._path(patient_id, heading) + [date, source_id])

    def delete_source_id(self, patient_id: PatientId, heading: str, source_id: str) -> None:
        """Remove a pointer whose date is no longer known."""
        path = self._path(patient_id, heading)
        for date in self._store.children(path):
            if self._store.exists(path + [date, source_id]):
                self._store.delete(path + [date, source_id])

    def get_all_source_ids(
        self,
        patient_id: PatientId,
        heading: str,
        direction: str = "reverse",
        limit: int = 0
    ) -> list[str]:
        """List source ids ordered by date.

        Dates are walked newest first when direction is 'reverse'. Source ids
        sharing a date keep their ascending order. A limit of 0 means no limit.
        """
        logger.debug(
            f"cache/headingCache|byDate|getAllSourceIds patientId={patient_id} "
            f"heading={heading} direction={direction} limit={limit}"
        )
        path = self._path(patient_id, heading)
        source_ids: list[str] = []

        for date in self._store.children(path, reverse=(direction == "reverse")):
            for source_id in self._store.children(path + [date]):
                source_ids.append(source_id)
                if limit and len(source_ids) == limit:
                    return source_ids

        return source_ids


class ByHostIndex:
    """Per patient and heading, source ids grouped by origin host."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    @staticmethod
    def _path(patient_id: PatientId, heading: str, host: str) -> list:
        return ["byPatient", str(patient_id), heading, "byHost", host]

    def set(self, patient_id: PatientId, heading: str, host: str, source_id: str) -> None:
        self._store.put(self._path(patient_id, heading, host) + [source_id], True)

    def exists(self, patient_id: PatientId, heading: str, host: str) -> bool:
        return self._store.exists(self._path(patient_id, heading, host))

    def get_all_source_ids(self, patient_id: PatientId, heading: str, host: str) -> list[str]:
        return self._store.children(self._path(patient_id, heading, host))

    def delete(self, patient_id: PatientId, heading: str, host: str, source_id: str) -> None:
        self._store.delete(self._path(patient_id, heading, host) + [source_id])


class ByVersionIndex:
    """Dense, immutable snapshots of every version of a record."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    def next_version(self, source_id: str) -> int:
        return self._store.increment(["versionSeq", source_id])

    def get(self, source_id: str, version: int) -> Optional[HeadingRecord]:
        logger.debug(f"cache/headingCache|byVersion|get sourceId={source_id} version={version}")
        return record_from_document(self._store.get_document(["byVersion", source_id, version]))

    def set(self, source_id: str, version: int, record: HeadingRecord) -> None:
        logger.debug(f"cache/headingCache|byVersion|set sourceId={source_id} version={version}")
        self._store.put_document(["byVersion", source_id, version], record.to_document())

    def delete(self, source_id: str, version: int) -> None:
        self._store.delete(["byVersion", source_id, version])

    def delete_all(self, source_id: str) -> None:
        self._store.delete(["byVersion", source_id])
        self._store.delete(["versionSeq", source_id])

    def get_all_versions(self, source_id: str) -> list[int]:
        """All stored versions of a record, newest first."""
        return [int(v) for v in self._store.children(["byVersion", source_id], reverse=True)]


class FetchCount:
    """Number of origin fetches made for a patient's heading."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    def increment(self, patient_id: PatientId, heading: str) -> int:
        return self._store.increment(["fetchCount", str(patient_id), heading])

    def get(self, patient_id: PatientId, heading: str) -> int:
        value = self._store.get(["fetchCount", str(patient_id), heading])
        return 0 if value is None else int(value)
