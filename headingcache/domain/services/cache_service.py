"""Cross-session cache invalidation.

After upstream data for a patient's heading changes, every live session must
drop what it cached for that heading so its next read refetches.
"""

import logging
from typing import TYPE_CHECKING, Optional, Union

from headingcache.domain.cdc_models import ChangeType
from headingcache.domain.ports import SessionRegistryPort

if TYPE_CHECKING:
    from headingcache.infrastructure.audit.reconciliation_audit_logger import ReconciliationAuditLogger

logger = logging.getLogger(__name__)


class CacheService:
    """Invalidation broadcaster over the injected session registry.

    The broadcast only reaches sessions held by this registry.
    """

    def __init__(
        self,
        registry: SessionRegistryPort,
        audit_logger: Optional['ReconciliationAuditLogger'] = None
    ):
        self.registry = registry
        self.audit_logger = audit_logger

    def delete(self, host: str, patient_id: Union[int, str], heading: str) -> None:
        """Drop a host's records for a patient's heading from every active session.

        A failure in one session is logged and does not stop the others.
        """
        logger.info(
            f"services/cacheService|delete host={host} patientId={patient_id} heading={heading}",
            extra={"patient_id": str(patient_id), "heading": heading, "host": host}
        )

        for session in self.registry.active_sessions():
            try:
                heading_cache = session.heading_cache
                heading_cache.delete_all(host, patient_id, heading)
                heading_cache.by_heading.delete_all(heading)
            except Exception as e:
                logger.warning(
                    f"services/cacheService|delete failed for session "
                    f"{getattr(session, 'session_id', '?')}: {str(e)}",
                    extra={"patient_id": str(patient_id), "heading": heading, "host": host,
                           "session_id": str(getattr(session, "session_id", ""))}
                )
                continue

            if self.audit_logger is not None:
                self.audit_logger.log_change(
                    entity="session_cache",
                    record_id=str(getattr(session, "session_id", "")),
                    change_type=ChangeType.INVALIDATE,
                    patient_id=str(patient_id),
                    heading=heading,
                    host=host,
                )
