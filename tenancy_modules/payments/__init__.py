"""
Payments (``tenancy_modules.payments``).

Smart FIFO allocation of student payments and security deposit handling.
"""

from tenancy_modules.payments.deposits import DepositService
from tenancy_modules.payments.models import (
    AllocationOutcome,
    DepositStatus,
    PaymentSplit,
    Settlement,
    UnappliedCredit,
)
from tenancy_modules.payments.service import AllocationService

__all__ = [
    "AllocationService",
    "DepositService",
    "AllocationOutcome",
    "DepositStatus",
    "PaymentSplit",
    "Settlement",
    "UnappliedCredit",
]
