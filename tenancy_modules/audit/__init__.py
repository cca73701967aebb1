"""Read-only ledger integrity audit (``tenancy_modules.audit``)."""

from tenancy_modules.audit.auditor import (
    AuditFinding,
    AuditReport,
    FindingCode,
    LedgerAuditor,
    Severity,
)

__all__ = ["LedgerAuditor", "AuditReport", "AuditFinding", "FindingCode", "Severity"]
