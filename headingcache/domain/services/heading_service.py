"""Session read path for cached headings.

A session's HeadingCache is filled on demand from the origin hosts, then
served in detail, summary or synopsis form. Records that arrived through a
discovery merge are reported with source 'GP'.
"""

import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from headingcache.domain.models import HeadingDefinition, HeadingRecord, ResponseFormat
from headingcache.domain.ports import HeadingCacheError, RecordSourcePort, UpstreamError
from headingcache.domain.services.locks import KeyedLocks
from headingcache.domain.utils import build_source_id, now_ms, record_date

if TYPE_CHECKING:
    from headingcache.adapters.cache.discovery_db import DiscoveryLinkStore
    from headingcache.adapters.cache.heading_cache import HeadingCache

logger = logging.getLogger(__name__)

DISCOVERY_SOURCE = "GP"
_RECORD_KEYS = ("uid", "sourceId", "date", "dateCreated", "date_created", "payload")


class CanonicalRecordSource(RecordSourcePort):
    """Serves origin fetches from the global record cache."""

    def __init__(self, heading_cache: 'HeadingCache'):
        self.heading_cache = heading_cache

    def fetch(self, host: str, patient_id: Union[str, int], heading: str) -> list[dict]:
        records = []
        for source_id in self.heading_cache.by_host.get_all_source_ids(patient_id, heading, host):
            record = self.heading_cache.get(source_id)
            if record is None:
                continue
            records.append({
                "uid": record.uid or record.source_id,
                "sourceId": record.source_id,
                "date": record.date,
                "payload": record.payload,
            })
        return records


class HeadingService:
    """Fills and serves per-session heading caches.

    Parameters:
        source: Origin-fetch collaborator
        links: Discovery link store, used to flag discovery-sourced records
        headings: Configured heading set (name -> HeadingDefinition)
        hosts: Origin hosts to fetch from, in order
        locks: Per-(patientId, heading) locks shared with reconciliation
    """

    def __init__(
        self,
        source: RecordSourcePort,
        links: 'DiscoveryLinkStore',
        headings: Any,
        hosts: Iterable[str],
        locks: Optional[KeyedLocks] = None
    ):
        self.source = source
        self.links = links
        self.headings = headings
        self.hosts = list(hosts)
        self.locks = locks or KeyedLocks()

    def fetch_many(self, heading_cache: 'HeadingCache', patient_id: Union[int, str], headings: Iterable[str]) -> None:
        """Fill several headings; a failing heading is logged and skipped."""
        for heading in headings:
            try:
                self.fetch_one(heading_cache, patient_id, heading)
            except HeadingCacheError as e:
                logger.error(
                    f"services/headingService|fetchMany|err heading={heading}: {str(e)}",
                    extra={"patient_id": str(patient_id), "heading": heading}
                )

    def fetch_one(self, heading_cache: 'HeadingCache', patient_id: Union[int, str], heading: str) -> None:
        """Fill one heading of a session cache from every configured host."""
        logger.info(
            f"services/headingService|fetchOne patientId={patient_id} heading={heading}",
            extra={"patient_id": str(patient_id), "heading": heading}
        )
        with self.locks.hold(patient_id, heading):
            for host in self.hosts:
                self.fetch(heading_cache, host, patient_id, heading)

    def fetch(
        self,
        heading_cache: 'HeadingCache',
        host: str,
        patient_id: Union[int, str],
        heading: str
    ) -> Optional[int]:
        """Fetch one host's records unless the session already holds them.

        Returns:
            Number of records cached, or None if the host was already cached

        Raises:
            UpstreamError: If the origin fetch fails
        """
        if heading_cache.by_host.exists(patient_id, heading, host):
            return None

        logger.info(
            f"services/headingService|fetch host={host} patientId={patient_id} heading={heading}",
            extra={"patient_id": str(patient_id), "heading": heading, "host": host}
        )
        try:
            data = self.source.fetch(host, patient_id, heading)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Fetching {heading} from {host} failed: {str(e)}", host=host) from e

        now = now_ms()
        count = 0
        for item in data:
            uid = item.get("uid")
            if not uid:
                logger.warning(f"services/headingService|fetch host={host} skipped a record without uid")
                continue

            payload = item.get("payload")
            if not isinstance(payload, dict):
                payload = {k: v for k, v in item.items() if k not in _RECORD_KEYS}

            heading_cache.put(HeadingRecord(
                source_id=item.get("sourceId") or build_source_id(host, str(uid)),
                patient_id=patient_id,
                heading=heading,
                host=host,
                date=record_date(item, default=now),
                uid=str(uid),
                payload=payload,
            ))
            count += 1

        return count

    def get_by_source_id(
        self,
        heading_cache: 'HeadingCache',
        source_id: str,
        response_format: ResponseFormat = ResponseFormat.DETAIL
    ) -> Optional[dict]:
        """Render one cached record, or None if the session does not hold it."""
        record = heading_cache.get(source_id)
        if record is None:
            return None

        response = dict(record.payload)
        response["source"] = record.host
        response["sourceId"] = source_id
        if self.links.check_by_source_id(source_id):
            response["source"] = DISCOVERY_SOURCE

        definition = self._definition(record.heading)

        if response_format == ResponseFormat.SYNOPSIS:
            text = response.get(definition.synopsis_field) if definition.synopsis_field else None
            return {
                "sourceId": source_id,
                "source": response["source"],
                "text": text or "",
            }

        if response_format == ResponseFormat.SUMMARY:
            fields = ["source", "sourceId"] + list(definition.summary_fields)
            return {field: response.get(field) or "" for field in fields}

        return response

    def get_summary(self, heading_cache: 'HeadingCache', patient_id: Union[int, str], heading: str) -> dict:
        """Summaries of every record of a heading, newest first, plus the fetch count."""
        logger.info(f"services/headingService|getSummary patientId={patient_id} heading={heading}")
        results = [
            self.get_by_source_id(heading_cache, source_id, ResponseFormat.SUMMARY)
            for source_id in heading_cache.by_date.get_all_source_ids(patient_id, heading)
        ]
        fetch_count = heading_cache.fetch_count.increment(patient_id, heading)
        return {
            "results": [r for r in results if r is not None],
            "fetchCount": fetch_count,
        }

    def get_synopsis(
        self,
        heading_cache: 'HeadingCache',
        patient_id: Union[int, str],
        heading: str,
        limit: int = 0
    ) -> dict:
        """Synopses of the newest `limit` records of a heading (0 for all)."""
        logger.info(f"services/headingService|getSynopsis patientId={patient_id} heading={heading} limit={limit}")
        results = [
            self.get_by_source_id(heading_cache, source_id, ResponseFormat.SYNOPSIS)
            for source_id in heading_cache.by_date.get_all_source_ids(patient_id, heading, limit=limit)
        ]
        return {"results": [r for r in results if r is not None]}

    def _definition(self, heading: str) -> HeadingDefinition:
        getter = getattr(self.headings, "get", None)
        definition = getter(heading) if getter else None
        return definition if isinstance(definition, HeadingDefinition) else HeadingDefinition()
