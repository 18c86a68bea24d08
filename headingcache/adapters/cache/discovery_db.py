"""Discovery link store.

Maps discovery feed ids to the source ids of the records created for them,
in both directions:

    discoveryLink[by_discovery_id][discoverySourceId] -> sourceId
    discoveryLink[by_source_id][sourceId]             -> link document

Only the by_source_id direction carries the filterable link document.
"""

import logging
from typing import Callable, Optional

from headingcache.domain.models import DiscoveryLink
from headingcache.domain.ports import DocumentStorePort

logger = logging.getLogger(__name__)

ROOT = "discoveryLink"
BY_DISCOVERY_ID = "by_discovery_id"
BY_SOURCE_ID = "by_source_id"


class DiscoveryLinkStore:
    """Two-way association between discovery ids and cached records."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    def get_source_id_by_discovery_id(self, discovery_source_id: str) -> Optional[str]:
        logger.debug(f"db/discoveryDb|getSourceIdByDiscoveryId discoverySourceId={discovery_source_id}")
        value = self._store.get([ROOT, BY_DISCOVERY_ID, discovery_source_id])
        return None if value is None else str(value)

    def get_by_source_id(self, source_id: str) -> Optional[DiscoveryLink]:
        logger.debug(f"db/discoveryDb|getBySourceId sourceId={source_id}")
        document = self._store.get_document([ROOT, BY_SOURCE_ID, source_id])
        if not document:
            return None
        return DiscoveryLink.model_validate(document)

    def check_by_source_id(self, source_id: str) -> bool:
        return self._store.exists([ROOT, BY_SOURCE_ID, source_id])

    def get_all_source_ids(self) -> list[str]:
        return self._store.children([ROOT, BY_SOURCE_ID])

    def get_source_ids(self, predicate: Callable[[DiscoveryLink], bool]) -> list[str]:
        """Source ids whose link document satisfies predicate, in traversal order."""
        source_ids = []
        for source_id in self.get_all_source_ids():
            link = self.get_by_source_id(source_id)
            if link is not None and predicate(link):
                source_ids.append(source_id)
        return source_ids

    def insert(self, link: DiscoveryLink) -> None:
        logger.info(
            f"db/discoveryDb|insert discoverySourceId={link.discovery} sourceId={link.source_id}"
        )
        self._store.put([ROOT, BY_DISCOVERY_ID, link.discovery], link.source_id)
        self._store.delete([ROOT, BY_SOURCE_ID, link.source_id])
        self._store.put_document([ROOT, BY_SOURCE_ID, link.source_id], link.to_document())

    def delete(self, discovery_source_id: str, source_id: str) -> None:
        logger.info(
            f"db/discoveryDb|delete discoverySourceId={discovery_source_id} sourceId={source_id}"
        )
        self._store.delete([ROOT, BY_DISCOVERY_ID, discovery_source_id])
        self._store.delete([ROOT, BY_SOURCE_ID, source_id])
