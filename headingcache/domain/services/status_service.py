"""Per-patient load status tracking.

Every read-modify-write of a patient's status runs under that patient's
lock, so concurrent checks never lose a requestNo bump and a 'finished'
notification never overwrites a bump made while it was running.
"""

import logging
from typing import TYPE_CHECKING, Optional, Union

from headingcache.domain.models import RecordStatus, StatusRecord
from headingcache.domain.services.locks import KeyedLocks

if TYPE_CHECKING:
    from headingcache.adapters.cache.status_cache import StatusCache

logger = logging.getLogger(__name__)

_STATUS_LOCK = "status"


class StatusService:
    """Reads and writes StatusRecords through a StatusCache."""

    def __init__(self, status_cache: 'StatusCache', locks: Optional[KeyedLocks] = None):
        self.status_cache = status_cache
        self.locks = locks or KeyedLocks()

    def check(self, patient_id: Union[int, str]) -> Optional[StatusRecord]:
        """Bump requestNo on an existing record.

        Returns:
            The updated record, or None if the patient has no status yet
        """
        logger.info(f"services/statusService|check patientId={patient_id}", extra={"patient_id": str(patient_id)})
        with self.locks.hold(patient_id, _STATUS_LOCK):
            state = self.status_cache.get(patient_id)
            if state is None:
                return None

            state = state.model_copy(update={"request_no": state.request_no + 1})
            self.status_cache.set(patient_id, state)
            return state

    def get(self, patient_id: Union[int, str]) -> Optional[StatusRecord]:
        return self.status_cache.get(patient_id)

    def create(self, patient_id: Union[int, str], state: StatusRecord) -> None:
        logger.info(f"services/statusService|create patientId={patient_id} status={state.status.value}")
        with self.locks.hold(patient_id, _STATUS_LOCK):
            self.status_cache.set(patient_id, state)

    def update(self, patient_id: Union[int, str], state: StatusRecord) -> None:
        logger.info(f"services/statusService|update patientId={patient_id} status={state.status.value}")
        with self.locks.hold(patient_id, _STATUS_LOCK):
            self.status_cache.set(patient_id, state)

    def mark_ready(self, patient_id: Union[int, str]) -> StatusRecord:
        """Move the patient's status to ready, keeping its requestNo.

        A patient with no status record gets a fresh ready record.
        """
        with self.locks.hold(patient_id, _STATUS_LOCK):
            state = self.status_cache.get(patient_id)
            if state is None:
                logger.warning(
                    f"services/statusService|markReady patientId={patient_id} has no status record",
                    extra={"patient_id": str(patient_id)}
                )
                state = StatusRecord(status=RecordStatus.READY)
            else:
                state = state.model_copy(update={"status": RecordStatus.READY})
            self.status_cache.set(patient_id, state)

        logger.info(f"services/statusService|markReady patientId={patient_id} requestNo={state.request_no}")
        return state
