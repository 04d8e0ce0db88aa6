"""
Audit Package

Provides audit logging for traceability of every ledger change.
"""

from finledger.audit.logger import AuditLogger, configure_logging, create_correlation_id

__all__ = [
    "AuditLogger",
    "configure_logging",
    "create_correlation_id",
]
