"""
Module: tenancy_engines.obligations
Responsibility:
    The obligation calendar.  Given a lease, enumerate the calendar months
    it covers and what is due in each: rent (prorated by days occupied in
    partial months), the flat monthly admin fee, and the security deposit
    in the lease-start month only.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Months are returned in ascending order, one per calendar month.
    - rent_due = monthly_rent / days_in_month * days_occupied, rounded
      half-up to cents; a fully occupied month is exactly monthly_rent.
    - deposit_due is nonzero only in the lease-start month.

Edge cases:
    - lease_end before lease_start  -> no months.
    - lease_start after as_of  -> no months yet.
    - monthly_rent missing  -> zero rent obligation (the accrual service
      treats that as missing reference data, not this engine).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

from tenancy_kernel.domain.money import ZERO, round_money, to_decimal
from tenancy_kernel.domain.months import (
    days_in_month,
    iter_month_keys,
    month_bounds,
    parse_month_key,
)


class LeaseLike(Protocol):
    lease_start: date
    lease_end: date | None
    monthly_rent: Decimal | None
    monthly_admin_fee: Decimal | None
    deposit_amount: Decimal | None


@dataclass(frozen=True)
class MonthlyObligation:
    """What a lease makes due in one calendar month."""

    month_key: str
    rent_due: Decimal
    admin_fee_due: Decimal
    deposit_due: Decimal
    days_occupied: int
    days_in_month: int

    @property
    def is_prorated(self) -> bool:
        return self.days_occupied < self.days_in_month

    @property
    def is_lease_start(self) -> bool:
        return self.deposit_due > ZERO

    @property
    def total_due(self) -> Decimal:
        return self.rent_due + self.admin_fee_due + self.deposit_due

    def amount_for(self, category: str) -> Decimal:
        if category == "rent":
            return self.rent_due
        if category == "admin":
            return self.admin_fee_due
        if category == "deposit":
            return self.deposit_due
        raise ValueError(f"Unknown category: {category}")


def prorate(monthly_amount, days_occupied: int, month_days: int) -> Decimal:
    """Daily rate times days occupied; whole months are not rounded."""
    amount = to_decimal(monthly_amount)
    if days_occupied >= month_days:
        return round_money(amount)
    return round_money(amount / Decimal(month_days) * Decimal(days_occupied))


def days_occupied_in(lease: LeaseLike, year: int, month: int) -> int:
    first, last = month_bounds(year, month)
    start = max(first, lease.lease_start)
    end = last if lease.lease_end is None else min(last, lease.lease_end)
    if end < start:
        return 0
    return (end - start).days + 1


def obligation_for(lease: LeaseLike, month_key: str) -> MonthlyObligation | None:
    """The obligation for one month, or None if the lease does not cover it."""
    if lease.lease_end is not None and lease.lease_end < lease.lease_start:
        return None
    year, month = parse_month_key(month_key)
    occupied = days_occupied_in(lease, year, month)
    if occupied == 0:
        return None

    month_days = days_in_month(year, month)
    is_start_month = (lease.lease_start.year, lease.lease_start.month) == (year, month)
    return MonthlyObligation(
        month_key=month_key,
        rent_due=prorate(lease.monthly_rent or ZERO, occupied, month_days),
        admin_fee_due=round_money(lease.monthly_admin_fee or ZERO),
        deposit_due=round_money(lease.deposit_amount or ZERO) if is_start_month else ZERO,
        days_occupied=occupied,
        days_in_month=month_days,
    )


def months_for(lease: LeaseLike, as_of: date | None = None) -> tuple[MonthlyObligation, ...]:
    """
    Every month from lease start to lease end, or to ``as_of`` when the
    lease is ongoing or ``as_of`` comes first.

    The engine has no clock: callers pass ``as_of`` for an ongoing lease.
    ``AccrualService.obligation_schedule`` supplies today's date.

    Raises:
        ValueError: ongoing lease (no lease_end) without ``as_of``.
    """
    start = lease.lease_start
    end = lease.lease_end
    if end is not None and end < start:
        return ()
    if as_of is not None and start > as_of:
        return ()

    last = end
    if as_of is not None and (last is None or as_of < last):
        last = as_of
    if last is None:
        raise ValueError("An ongoing lease needs an as_of date")

    months = (obligation_for(lease, key) for key in iter_month_keys(start, last))
    return tuple(m for m in months if m is not None)
