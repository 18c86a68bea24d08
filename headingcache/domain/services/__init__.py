"""Domain services for Heading-Cache."""

from headingcache.domain.services.cache_service import CacheService
from headingcache.domain.services.discovery_service import DiscoveryService
from headingcache.domain.services.heading_service import CanonicalRecordSource, HeadingService
from headingcache.domain.services.locks import KeyedLocks
from headingcache.domain.services.status_service import StatusService

__all__ = [
    "CacheService",
    "CanonicalRecordSource",
    "DiscoveryService",
    "HeadingService",
    "KeyedLocks",
    "StatusService",
]
