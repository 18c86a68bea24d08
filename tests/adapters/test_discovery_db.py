"""Unit tests for DiscoveryLinkStore and StatusCache."""

from headingcache.adapters.cache.discovery_db import DiscoveryLinkStore
from headingcache.adapters.cache.status_cache import StatusCache
from headingcache.domain.models import DiscoveryLink, RecordStatus, StatusRecord


def make_link(discovery="d1", source_id="ethercis-1", patient_id=9999999000, heading="procedures"):
    return DiscoveryLink(
        discovery=discovery,
        source_id=source_id,
        patient_id=patient_id,
        heading=heading,
        host="ethercis",
        date=1000,
    )


class TestDiscoveryLinkStore:
    """Test suite for DiscoveryLinkStore."""

    def test_insert_writes_both_directions(self, memory_store):
        """Test that both lookup directions resolve after insert."""
        links = DiscoveryLinkStore(memory_store)
        links.insert(make_link())

        assert links.get_source_id_by_discovery_id("d1") == "ethercis-1"
        assert links.check_by_source_id("ethercis-1")
        assert links.get_by_source_id("ethercis-1") == make_link()

    def test_missing_lookups_return_none(self, memory_store):
        """Test that unknown ids return None or False."""
        links = DiscoveryLinkStore(memory_store)

        assert links.get_source_id_by_discovery_id("nope") is None
        assert links.get_by_source_id("nope") is None
        assert links.check_by_source_id("nope") is False
        assert links.get_all_source_ids() == []

    def test_delete_removes_both_directions(self, memory_store):
        """Test that delete leaves no trace of the link."""
        links = DiscoveryLinkStore(memory_store)
        links.insert(make_link())
        links.delete("d1", "ethercis-1")

        assert links.get_source_id_by_discovery_id("d1") is None
        assert not links.check_by_source_id("ethercis-1")
        assert memory_store.children([]) == []

    def test_get_source_ids_filters_by_predicate(self, memory_store):
        """Test predicate filtering over the link documents."""
        links = DiscoveryLinkStore(memory_store)
        links.insert(make_link("d1", "ethercis-1"))
        links.insert(make_link("d2", "ethercis-2", heading="allergies"))
        links.insert(make_link("d3", "ethercis-3", patient_id=9999999001))

        result = links.get_source_ids(lambda link: link.heading == "procedures")

        assert result == ["ethercis-1", "ethercis-3"]
        assert links.get_all_source_ids() == ["ethercis-1", "ethercis-2", "ethercis-3"]


class TestStatusCache:
    """Test suite for StatusCache."""

    def test_set_and_get(self, memory_store):
        """Test that a status record round trips with its alias fields."""
        cache = StatusCache(memory_store)
        cache.set(9999999000, StatusRecord(status=RecordStatus.LOADING, new_patient=True, request_no=3))

        state = cache.get("9999999000")
        assert state.status == RecordStatus.LOADING
        assert state.new_patient is True
        assert state.request_no == 3
        assert memory_store.get(["status", "9999999000", "requestNo"]) == 3

    def test_get_missing_returns_none(self, memory_store):
        """Test that a patient without status returns None."""
        assert StatusCache(memory_store).get(9999999000) is None

    def test_delete(self, memory_store):
        """Test that delete removes the record."""
        cache = StatusCache(memory_store)
        cache.set(9999999000, StatusRecord())
        cache.delete(9999999000)

        assert cache.get(9999999000) is None
