"""
Module: tenancy_engines.allocation
Responsibility:
    FIFO allocation of one payment amount across outstanding obligations:
    the oldest month is funded first, each target receives at most what it
    is owed, and whatever is left over is reported as unallocated.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Conservation: total_allocated + unallocated == amount.
    - No target receives more than its eligible amount.
    - Targets are funded in (month_key, priority) order.

Failure modes:
    - ValueError on a negative amount or a negative eligible amount.

Usage:
    from tenancy_engines.allocation import FifoAllocator, AllocationTarget

    result = FifoAllocator().allocate(
        Decimal("75"),
        [
            AllocationTarget("2025-05", "2025-05", Decimal("50")),
            AllocationTarget("2025-06", "2025-06", Decimal("50")),
        ],
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from tenancy_kernel.domain.money import ZERO, round_money
from tenancy_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class AllocationTarget:
    """An obligation that can absorb part of a payment."""

    target_id: str
    month_key: str
    eligible: Decimal
    priority: int = 0

    def __post_init__(self) -> None:
        if self.eligible < ZERO:
            raise ValueError(f"Eligible amount cannot be negative: {self.target_id}")


@dataclass(frozen=True)
class AllocationLine:
    """Outcome for one target."""

    target_id: str
    month_key: str
    allocated: Decimal
    remaining: Decimal

    @property
    def is_fully_allocated(self) -> bool:
        return self.remaining == ZERO


@dataclass(frozen=True)
class AllocationResult:
    """
    Outcome of one FIFO run.

    Guarantees:
        - total_allocated + unallocated == source_amount.
    """

    source_amount: Decimal
    lines: tuple[AllocationLine, ...]
    total_allocated: Decimal
    unallocated: Decimal

    @property
    def is_fully_allocated(self) -> bool:
        return self.unallocated == ZERO

    @property
    def funded_lines(self) -> tuple[AllocationLine, ...]:
        return tuple(line for line in self.lines if line.allocated > ZERO)


class FifoAllocator:
    """Oldest-first sequential allocation.  Pure; no I/O."""

    def allocate(self, amount: Decimal, targets: Sequence[AllocationTarget]) -> AllocationResult:
        amount = round_money(amount)
        if amount < ZERO:
            raise ValueError(f"Cannot allocate a negative amount: {amount}")

        ordered = sorted(targets, key=lambda t: (t.month_key, t.priority))
        remaining_to_allocate = amount
        lines: list[AllocationLine] = []

        for target in ordered:
            eligible = round_money(target.eligible)
            to_allocate = min(remaining_to_allocate, eligible)
            remaining_to_allocate -= to_allocate
            lines.append(
                AllocationLine(
                    target_id=target.target_id,
                    month_key=target.month_key,
                    allocated=to_allocate,
                    remaining=eligible - to_allocate,
                )
            )

        total_allocated = amount - remaining_to_allocate
        assert total_allocated + remaining_to_allocate == amount, (
            f"Allocation conservation violated: "
            f"{total_allocated} + {remaining_to_allocate} != {amount}"
        )

        logger.debug(
            "fifo_allocation_completed",
            extra={
                "source_amount": str(amount),
                "total_allocated": str(total_allocated),
                "unallocated": str(remaining_to_allocate),
                "targets_funded": sum(1 for line in lines if line.allocated > ZERO),
                "target_count": len(lines),
            },
        )

        return AllocationResult(
            source_amount=amount,
            lines=tuple(lines),
            total_allocated=total_allocated,
            unallocated=remaining_to_allocate,
        )
