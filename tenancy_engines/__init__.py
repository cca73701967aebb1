"""
Pure calculation engines: obligation calendar, outstanding balances and
FIFO allocation.  No database access; inputs and outputs are frozen
dataclasses.
"""

from tenancy_engines.allocation import (
    AllocationLine,
    AllocationResult,
    AllocationTarget,
    FifoAllocator,
)
from tenancy_engines.obligations import MonthlyObligation, months_for, obligation_for
from tenancy_engines.outstanding import CATEGORIES, MonthlyOutstanding, compute_outstanding

__all__ = [
    "AllocationLine",
    "AllocationResult",
    "AllocationTarget",
    "FifoAllocator",
    "MonthlyObligation",
    "months_for",
    "obligation_for",
    "CATEGORIES",
    "MonthlyOutstanding",
    "compute_outstanding",
]
