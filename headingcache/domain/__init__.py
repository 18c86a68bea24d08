"""Domain layer for Heading-Cache.

This module contains the record models, ports and reconciliation services.
Domain models are pure Python with no external dependencies beyond Pydantic.
"""

from .models import (
    DiscoveryLink,
    HeadingRecord,
    StatusRecord,
)

__all__ = [
    "DiscoveryLink",
    "HeadingRecord",
    "StatusRecord",
]
