"""
Lease data (``tenancy_modules.lease``).

Read-only lease facts consumed by the accrual and allocation services,
plus the ORM tables that hold them when the ledger owns that data.
"""

from tenancy_modules.lease.models import LeaseTerms, Residence
from tenancy_modules.lease.source import LeaseSource, OrmLeaseSource, StaticLeaseSource

__all__ = [
    "LeaseTerms",
    "Residence",
    "LeaseSource",
    "OrmLeaseSource",
    "StaticLeaseSource",
]
