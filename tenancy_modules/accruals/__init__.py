"""
Rent accruals (``tenancy_modules.accruals``).

Monthly and lease-start accrual of rent, admin fee and security deposit,
plus reversal of accruals for early lease ends and corrections.
"""

from tenancy_modules.accruals.models import (
    AccrualItemError,
    AccrualOutcome,
    AccrualRunResult,
    AccrualSummary,
)
from tenancy_modules.accruals.service import AccrualService

__all__ = [
    "AccrualService",
    "AccrualItemError",
    "AccrualOutcome",
    "AccrualRunResult",
    "AccrualSummary",
]
