"""Unit tests for ReconciliationAuditLogger."""

import json

from headingcache.domain.cdc_models import ChangeEvent, ChangeType
from headingcache.infrastructure.audit.reconciliation_audit_logger import ReconciliationAuditLogger


class TestReconciliationAuditLogger:
    """Test suite for ReconciliationAuditLogger."""

    def test_log_change(self):
        """Test logging a single change."""
        audit = ReconciliationAuditLogger()

        audit.log_change(
            entity="discovery_link",
            record_id="ethercis-1",
            change_type=ChangeType.INSERT,
            patient_id=9999999000,
            heading="procedures",
            host="ethercis",
            details={"discovery": "d1"},
            operation_id="merge-1",
        )

        logs = audit.get_logs()
        assert len(logs) == 1
        assert logs[0]["entity"] == "discovery_link"
        assert logs[0]["record_id"] == "ethercis-1"
        assert logs[0]["change_type"] == "INSERT"
        assert logs[0]["patient_id"] == "9999999000"
        assert logs[0]["operation_id"] == "merge-1"
        assert logs[0]["changed_by"] == "system"
        assert json.loads(logs[0]["details"]) == {"discovery": "d1"}

    def test_event_context_wins(self):
        """Test that an event's own changed_by is kept over the logger context."""
        audit = ReconciliationAuditLogger()
        audit.set_context(changed_by="cli")

        audit.log_event(ChangeEvent(
            entity="record",
            record_id="ethercis-1",
            change_type=ChangeType.DELETE,
            operation_id="inner",
            changed_by="api",
        ))

        log = audit.get_logs()[0]
        assert log["operation_id"] == "inner"
        assert log["changed_by"] == "api"

    def test_log_events_and_clear(self):
        """Test logging several events then clearing the buffer."""
        audit = ReconciliationAuditLogger()
        audit.log_events([
            ChangeEvent(entity="record", record_id="a", change_type=ChangeType.DELETE),
            ChangeEvent(entity="session_cache", record_id="s1", change_type=ChangeType.INVALIDATE),
        ])

        assert audit.get_log_count() == 2
        assert audit.has_logs()
        assert [log["change_type"] for log in audit.get_logs()] == ["DELETE", "INVALIDATE"]

        audit.clear_logs()
        assert not audit.has_logs()

    def test_get_logs_returns_copy(self):
        """Test that callers cannot mutate the buffer."""
        audit = ReconciliationAuditLogger()
        audit.log_change(entity="record", record_id="a", change_type=ChangeType.DELETE)

        audit.get_logs().clear()
        assert audit.get_log_count() == 1

    def test_context_fills_missing_changed_by(self):
        """Test that set_context stamps events that carry no changed_by."""
        audit = ReconciliationAuditLogger()
        audit.set_context(changed_by="cli")

        audit.log_change(entity="record", record_id="a", change_type=ChangeType.DELETE)

        log = audit.get_logs()[0]
        assert log["changed_by"] == "cli"
        assert log["operation_id"] is None

    def test_buffer_drops_oldest_when_full(self):
        """Test that a full buffer evicts the oldest events first."""
        audit = ReconciliationAuditLogger(max_events=3)
        for i in range(5):
            audit.log_change(entity="record", record_id=f"r{i}", change_type=ChangeType.DELETE)

        assert audit.max_events == 3
        assert [log["record_id"] for log in audit.get_logs()] == ["r2", "r3", "r4"]
        assert audit.get_dropped_count() == 2

    def test_zero_capacity_keeps_nothing(self):
        """Test that max_events=0 turns buffering off."""
        audit = ReconciliationAuditLogger(max_events=0)
        audit.log_change(entity="record", record_id="a", change_type=ChangeType.DELETE)

        assert not audit.has_logs()
        assert audit.get_dropped_count() == 1

    def test_unbounded_when_max_events_is_none(self):
        """Test that None keeps every event."""
        audit = ReconciliationAuditLogger(max_events=None)
        for i in range(20):
            audit.log_change(entity="record", record_id=str(i), change_type=ChangeType.DELETE)

        assert audit.get_log_count() == 20
        assert audit.get_dropped_count() == 0
