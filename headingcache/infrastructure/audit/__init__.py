"""Audit infrastructure components.

This package provides the reconciliation audit trail.
"""

from headingcache.infrastructure.audit.reconciliation_audit_logger import ReconciliationAuditLogger

__all__ = ['ReconciliationAuditLogger']
