"""Change Data Capture (CDC) Models.

This module defines the model used to record every mutation that the
reconciliation engine makes to the cache: discovery links created by a
merge, links and records removed by a revert, and session invalidations.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Models are validated before use
    - Follows Hexagonal Architecture: Domain Core is isolated from Adapters
"""

import json
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ChangeType(str, Enum):
    """Kinds of change recorded in the audit trail."""
    INSERT = "INSERT"
    DELETE = "DELETE"
    INVALIDATE = "INVALIDATE"


class ChangeEvent(BaseModel):
    """Represents a single change made by the reconciliation engine.

    Parameters:
        entity: What changed (discovery_link, record, session_cache)
        record_id: Key of the changed entity (source id, session id)
        change_type: INSERT, DELETE or INVALIDATE
        patient_id: Patient the change belongs to
        heading: Heading the change belongs to
        host: Origin host of the affected record
        details: Extra context (discovery source id, session id, ...)
        changed_at: Timestamp when change occurred
        operation_id: ID of the merge/revert call that caused this change
        changed_by: System/user identifier (optional)
    """

    entity: str = Field(..., description="Kind of entity that changed")
    record_id: str = Field(..., description="Key of the changed entity")
    change_type: ChangeType = Field(..., description="Type of change")
    patient_id: Optional[str] = Field(None, description="Patient identifier")
    heading: Optional[str] = Field(None, description="Heading name")
    host: Optional[str] = Field(None, description="Origin host")
    details: Optional[dict[str, Any]] = Field(None, description="Additional context")
    changed_at: datetime = Field(default_factory=datetime.now, description="Timestamp when change occurred")
    operation_id: Optional[str] = Field(None, description="ID of the merge/revert operation")
    changed_by: Optional[str] = Field(None, description="System/user identifier")

    def to_audit_dict(self) -> dict:
        """Convert to dictionary for the audit buffer.

        Returns:
            Dictionary with serialized values
        """
        return {
            'change_id': str(uuid.uuid4()),
            'entity': self.entity,
            'record_id': self.record_id,
            'change_type': self.change_type.value,
            'patient_id': self.patient_id,
            'heading': self.heading,
            'host': self.host,
            'details': self._serialize_value(self.details),
            'changed_at': self.changed_at,
            'operation_id': self.operation_id,
            'changed_by': self.changed_by or 'system'
        }

    def _serialize_value(self, value: Any) -> Optional[str]:
        """Serialize complex types to a JSON string."""
        if value is None:
            return None

        if isinstance(value, (list, dict)):
            try:
                return json.dumps(value, sort_keys=True)
            except (TypeError, ValueError):
                return str(value)

        return str(value)

    model_config = {
        'frozen': False,
        'validate_assignment': True,
    }
