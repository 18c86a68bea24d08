"""Domain Utilities - Helper functions shared by the heading cache.

This module provides small pure functions for building source ids,
comparing patient ids and normalising record dates.
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

_NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")


def is_numeric(value: Any) -> bool:
    """Check whether a value is a finite number or a numeric string."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == value and value not in (float("inf"), float("-inf"))
    if isinstance(value, str):
        return bool(_NUMERIC_RE.match(value.strip()))
    return False


def build_source_id(host: str, uid: str) -> str:
    """Build the internal source id of a record.

    The origin uid is truncated at its first `::` (version suffix) and
    prefixed with the host, e.g. `ethercis-0f7192e9-...`.
    """
    return f"{host}-{uid.split('::')[0]}"


def equals(left: Any, right: Any) -> bool:
    """Compare two ids by their string form (9999999000 == '9999999000')."""
    return str(left) == str(right)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def to_epoch_ms(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Normalise a record date to epoch milliseconds.

    Accepts epoch numbers, numeric strings, ISO-8601 strings (a trailing
    `Z` is allowed) and datetime objects. Naive datetimes are taken as UTC.

    Parameters:
        value: Raw date value from a record
        default: Returned when the value is missing or unparseable

    Returns:
        Epoch milliseconds, or default
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, (int, float)):
        return int(value)

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        if is_numeric(text):
            return int(float(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return default
    else:
        return default

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def record_date(data: dict, default: Optional[int] = None) -> Optional[int]:
    """Pick the date of a raw record from its `date`/`dateCreated`/`date_created` field."""
    for key in ("date", "dateCreated", "date_created"):
        if key in data and data[key] is not None:
            parsed = to_epoch_ms(data[key])
            if parsed is not None:
                return parsed
    return default
