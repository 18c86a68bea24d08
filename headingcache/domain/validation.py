"""Inbound argument validation.

Every check raises ValidationError and is meant to run before any
mutation, so a rejected call leaves no partial state behind.
"""

import re
from typing import Any, Iterable, Mapping, Union

from headingcache.domain.ports import ValidationError
from headingcache.domain.utils import is_numeric

_GUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_GUID_LENGTH = 36

# Characters reserved by the document store key encoding
_CONTROL_SEPARATORS = ("\x1e", "\x1f")


def validate_patient_id(patient_id: Union[int, str, None]) -> None:
    """Patient ids must be defined and numeric."""
    if patient_id is None or patient_id == "":
        raise ValidationError(f"patientId {patient_id} must be defined", field="patientId")

    if not is_numeric(patient_id):
        raise ValidationError(f"patientId {patient_id} is invalid", field="patientId")


def validate_heading(headings: Union[Mapping[str, Any], Iterable[str]], heading: str) -> None:
    """Headings must be members of the configured heading set."""
    if not heading or heading not in headings:
        raise ValidationError(f"Invalid or missing heading: {heading}", field="heading")


def is_guid(value: str) -> bool:
    return bool(_GUID_RE.match(value))


def validate_source_id(source_id: str) -> None:
    """Source ids look like `<host>-<guid>`; the host may itself contain dashes."""
    if not source_id:
        raise ValidationError(f"sourceId {source_id} must be defined", field="sourceId")

    host, guid = source_id[:-_GUID_LENGTH - 1], source_id[-_GUID_LENGTH:]
    if not host or source_id[-_GUID_LENGTH - 1:-_GUID_LENGTH] != "-" or not is_guid(guid):
        raise ValidationError(f"sourceId {source_id} is invalid", field="sourceId")


def validate_discovery_records(records: Iterable[Any]) -> None:
    """Every discovery record must be a mapping with a usable sourceId."""
    for index, item in enumerate(records):
        if not isinstance(item, Mapping):
            raise ValidationError(
                f"Discovery record at index {index} must be an object",
                field="records",
                details={"index": index}
            )

        discovery_id = item.get("sourceId")
        if not discovery_id:
            raise ValidationError(
                f"Discovery record at index {index} has no sourceId",
                field="records",
                details={"index": index}
            )
        if (
            isinstance(discovery_id, bool)
            or not isinstance(discovery_id, (str, int))
            or any(char in str(discovery_id) for char in _CONTROL_SEPARATORS)
        ):
            raise ValidationError(
                f"Discovery record at index {index} has an invalid sourceId",
                field="records",
                details={"index": index}
            )
