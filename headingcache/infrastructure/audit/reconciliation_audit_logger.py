"""Reconciliation Audit Logger.

This module records every mutation the discovery reconciliation engine makes:
links inserted by a merge, records and links deleted by a revert, and the
session invalidations that follow both.

Security Impact:
    - Creates an append-only audit trail of reconciliation changes
    - Only identifiers are recorded, never clinical payloads
    - Enables forensic analysis of which merge or revert removed a record

Architecture:
    - Infrastructure layer component
    - Called from domain services (DiscoveryService, CacheService)
    - Bounded in-memory buffer that a host process can drain to durable
      storage; once full, the oldest events are dropped first
"""

import logging
import threading
from collections import deque
from typing import Deque, List, Optional

from headingcache.domain.cdc_models import ChangeEvent, ChangeType

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 10000


class ReconciliationAuditLogger:
    """Thread-safe, bounded buffer of reconciliation change events.

    Parameters:
        max_events: Buffer capacity; None keeps every event, 0 keeps none

    Example Usage:
        ```python
        audit = ReconciliationAuditLogger(max_events=1000)
        audit.log_change(
            entity="discovery_link",
            record_id="ethercis-0f7192e9-168e-4dea-812a-3e1d236ae46d",
            change_type=ChangeType.INSERT,
            patient_id="9999999000",
            heading="procedures",
            host="ethercis",
            operation_id="merge-1"
        )
        audit.get_log_count()  # 1
        ```
    """

    def __init__(self, max_events: Optional[int] = DEFAULT_MAX_EVENTS):
        self._logs: Deque[dict] = deque(maxlen=max_events)
        self._dropped = 0
        self._changed_by: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def max_events(self) -> Optional[int]:
        return self._logs.maxlen

    def set_context(self, changed_by: Optional[str] = None) -> None:
        """Set the system/user identifier stamped on events that carry none."""
        self._changed_by = changed_by

    def log_change(
        self,
        entity: str,
        record_id: str,
        change_type: ChangeType,
        patient_id: Optional[str] = None,
        heading: Optional[str] = None,
        host: Optional[str] = None,
        details: Optional[dict] = None,
        operation_id: Optional[str] = None
    ) -> None:
        """Log a single change.

        Parameters:
            entity: Kind of entity (discovery_link, record, session_cache)
            record_id: Key of the changed entity
            change_type: INSERT, DELETE or INVALIDATE
            patient_id: Patient the change belongs to
            heading: Heading the change belongs to
            host: Origin host
            details: Extra identifiers (never payloads)
            operation_id: Identifier of the merge/revert call that made the change
        """
        self.log_event(ChangeEvent(
            entity=entity,
            record_id=str(record_id),
            change_type=change_type,
            patient_id=None if patient_id is None else str(patient_id),
            heading=heading,
            host=host,
            details=details,
            operation_id=operation_id,
        ))

    def log_event(self, change_event: ChangeEvent) -> None:
        """Log a ChangeEvent, filling changed_by when it is unset."""
        audit_dict = change_event.to_audit_dict()
        if self._changed_by and not change_event.changed_by:
            audit_dict['changed_by'] = self._changed_by

        with self._lock:
            if self._logs.maxlen is not None and len(self._logs) >= self._logs.maxlen:
                self._dropped += 1
            self._logs.append(audit_dict)

        logger.debug(
            f"Logged change event: {change_event.entity}."
            f"{change_event.record_id} ({change_event.change_type.value})"
        )

    def log_events(self, change_events: List[ChangeEvent]) -> None:
        """Log multiple change events in order."""
        for event in change_events:
            self.log_event(event)

    def get_logs(self) -> List[dict]:
        """Get a copy of the buffered change events, oldest first."""
        with self._lock:
            return list(self._logs)

    def clear_logs(self) -> None:
        """Clear all logged events (after draining to storage)."""
        with self._lock:
            self._logs.clear()
        logger.debug("Cleared reconciliation audit logs")

    def get_log_count(self) -> int:
        with self._lock:
            return len(self._logs)

    def get_dropped_count(self) -> int:
        """Number of events evicted because the buffer was full."""
        with self._lock:
            return self._dropped

    def has_logs(self) -> bool:
        return self.get_log_count() > 0
