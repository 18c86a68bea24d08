"""Cache adapters for Heading-Cache.

Key layouts for the multi-index record cache, the discovery link store and
the per-patient status cache, all built on a DocumentStorePort.
"""

from headingcache.adapters.cache.discovery_db import DiscoveryLinkStore
from headingcache.adapters.cache.heading_cache import HeadingCache
from headingcache.adapters.cache.status_cache import StatusCache

__all__ = ["DiscoveryLinkStore", "HeadingCache", "StatusCache"]
