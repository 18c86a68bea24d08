"""Per-patient load status cache."""

import logging
from typing import Optional, Union

from headingcache.domain.models import StatusRecord
from headingcache.domain.ports import DocumentStorePort

logger = logging.getLogger(__name__)


class StatusCache:
    """Stores one StatusRecord per patient at `status[patientId]`."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    def get(self, patient_id: Union[int, str]) -> Optional[StatusRecord]:
        logger.debug(f"cache/statusCache|get patientId={patient_id}")
        document = self._store.get_document(["status", str(patient_id)])
        if not document:
            return None
        return StatusRecord.model_validate(document)

    def set(self, patient_id: Union[int, str], record: StatusRecord) -> None:
        """Replace the patient's status record in a single write.

        StatusRecord always serializes every field, so the write overwrites
        each leaf and readers never observe a missing record.
        """
        logger.debug(f"cache/statusCache|set patientId={patient_id} status={record.status.value}")
        self._store.put_document(["status", str(patient_id)], record.to_document())

    def delete(self, patient_id: Union[int, str]) -> None:
        self._store.delete(["status", str(patient_id)])
