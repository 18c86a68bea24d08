"""Heading Cache Domain Models.

This module defines the canonical data models for cached clinical headings,
discovery id links and per-patient load status. The clinical content of a
heading is never interpreted here; it travels as an opaque payload.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Models are validated before use (Pydantic V2)
    - Field aliases match the persisted camelCase document layout
    - Follows Hexagonal Architecture: Domain Core is isolated from Adapters
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from headingcache.domain.utils import is_numeric


class RecordStatus(str, Enum):
    """Load status of a patient's record."""
    LOADING = "loading_data"
    READY = "ready"


class ExtraHeading(str, Enum):
    """Pseudo-headings that are not part of the configured heading set."""
    FINISHED = "finished"


class ResponseFormat(str, Enum):
    """Shapes in which a cached heading can be served."""
    DETAIL = "detail"
    SUMMARY = "summary"
    SYNOPSIS = "synopsis"


class HeadingRecord(BaseModel):
    """A cached clinical heading instance.

    Parameters:
        source_id: Globally unique id, `<host>-<uid>`; immutable once created
        patient_id: Patient identifier (numeric, int or str)
        heading: Clinical category (must be a configured heading)
        host: Origin record system
        date: Epoch-millisecond timestamp, used as secondary sort key
        version: Positive integer, dense per source id, starting at 1
        uid: Origin identity (composition uid) forming the natural key
        payload: Opaque clinical content
    """

    model_config = ConfigDict(populate_by_name=True)

    source_id: str = Field(..., alias="sourceId", min_length=1)
    patient_id: Union[int, str] = Field(..., alias="patientId")
    heading: str = Field(..., min_length=1)
    host: str = Field(..., min_length=1)
    date: int = Field(..., description="Epoch milliseconds")
    version: int = Field(default=1, ge=1)
    uid: Optional[str] = Field(None, description="Origin composition uid")
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("patient_id")
    @classmethod
    def validate_patient_id(cls, v: Union[int, str]) -> Union[int, str]:
        """Patient ids must be numeric (NHS-number style)."""
        if isinstance(v, bool) or not is_numeric(v):
            raise ValueError(f"patientId {v} is invalid")
        return v

    def to_document(self) -> dict:
        """Serialize to the persisted document shape.

        Only record fields drop None; payload content is stored as given.
        """
        document = self.model_dump(by_alias=True, exclude_none=True, exclude={"payload"})
        document["payload"] = self.payload
        return document


class DiscoveryLink(BaseModel):
    """Association between a discovery feed id and a cached record.

    This is the denormalized, filterable copy stored under
    `discoveryLink/by_source_id/<sourceId>`; the reverse direction only
    holds the source id.
    """

    model_config = ConfigDict(populate_by_name=True)

    discovery: str = Field(..., min_length=1, description="Discovery source id")
    source_id: str = Field(..., alias="sourceId", min_length=1)
    patient_id: Union[int, str] = Field(..., alias="patientId")
    heading: str
    host: str
    date: Optional[int] = None

    def to_document(self) -> dict:
        """Serialize to the persisted document shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


class StatusRecord(BaseModel):
    """Per-patient load status.

    `requestNo` is bumped by every status check so that callers can detect
    duplicate or out-of-order polls.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: RecordStatus = RecordStatus.LOADING
    new_patient: bool = False
    request_no: int = Field(default=0, alias="requestNo", ge=0)

    def to_document(self) -> dict:
        """Serialize to the persisted document shape."""
        return self.model_dump(by_alias=True, mode="json")


class MergeResult(BaseModel):
    """Outcome of a discovery merge: whether the client should re-query."""

    refresh: bool

    model_config = {
        'frozen': True,
    }


class RevertResult(BaseModel):
    """Descriptor of one reverted discovery record."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    deleted: bool
    patient_id: Union[int, str] = Field(..., alias="patientId")
    heading: str
    source_id: str = Field(..., alias="sourceId")
    host: str

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class HeadingDefinition(BaseModel):
    """Serving hints for one configured heading.

    Parameters:
        summary_fields: Payload fields returned in summary format
        synopsis_field: Payload field used as the synopsis text
    """

    model_config = ConfigDict(populate_by_name=True)

    summary_fields: list[str] = Field(default_factory=list, alias="summaryFields")
    synopsis_field: Optional[str] = Field(None, alias="synopsisField")
