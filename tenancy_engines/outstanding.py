"""
Module: tenancy_engines.outstanding
Responsibility:
    Fold a student's receivable ledger lines into owed / paid / outstanding
    per calendar month and category.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Input lines come from
    LedgerSelector; anything with source, month_key, category, debit and
    credit attributes works.

Rules:
    owed  += debit - credit   for rental_accrual lines
    owed  -= credit - debit   for rental_accrual_reversal lines
    paid  += credit - debit   for payment lines (month_key = monthSettled)
    paid  += credit - debit   for manual lines tagged with month and category
    Lines without a month_key or category are not attributable to an
    obligation and are ignored.

Invariants:
    - Reported outstanding amounts are clamped at zero; the raw value
      (possibly negative, i.e. over-settled) is available for auditing.
    - Months are ordered oldest first.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from tenancy_kernel.domain.money import ZERO, round_money

CATEGORIES = ("rent", "admin", "deposit")

_OWED_SOURCES = frozenset({"rental_accrual", "rental_accrual_reversal"})
_PAID_SOURCES = frozenset({"payment", "manual"})


@dataclass(frozen=True)
class MonthlyOutstanding:
    """Owed and paid amounts for one student-month."""

    month_key: str
    rent_owed: Decimal = ZERO
    rent_paid: Decimal = ZERO
    admin_owed: Decimal = ZERO
    admin_paid: Decimal = ZERO
    deposit_owed: Decimal = ZERO
    deposit_paid: Decimal = ZERO

    def owed(self, category: str) -> Decimal:
        return getattr(self, f"{category}_owed")

    def paid(self, category: str) -> Decimal:
        return getattr(self, f"{category}_paid")

    def raw_outstanding(self, category: str) -> Decimal:
        return round_money(self.owed(category) - self.paid(category))

    def outstanding(self, category: str) -> Decimal:
        return max(self.raw_outstanding(category), ZERO)

    @property
    def rent_outstanding(self) -> Decimal:
        return self.outstanding("rent")

    @property
    def admin_outstanding(self) -> Decimal:
        return self.outstanding("admin")

    @property
    def deposit_outstanding(self) -> Decimal:
        return self.outstanding("deposit")

    @property
    def total_outstanding(self) -> Decimal:
        return sum((self.outstanding(c) for c in CATEGORIES), ZERO)

    @property
    def is_over_settled(self) -> bool:
        return any(self.raw_outstanding(c) < ZERO for c in CATEGORIES)

    def as_dict(self) -> dict[str, Any]:
        """External representation (camelCase, string amounts)."""
        out: dict[str, Any] = {"monthKey": self.month_key}
        for category in CATEGORIES:
            out[f"{category}Owed"] = str(round_money(self.owed(category)))
            out[f"{category}Paid"] = str(round_money(self.paid(category)))
            out[f"{category}Outstanding"] = str(self.outstanding(category))
        return out


def compute_outstanding(lines: Iterable[Any]) -> list[MonthlyOutstanding]:
    """Fold receivable lines into per-month owed/paid, oldest month first."""
    totals: dict[str, dict[str, Decimal]] = {}

    for line in lines:
        if line.month_key is None or line.category not in CATEGORIES:
            continue
        if line.source in _OWED_SOURCES:
            field_name = f"{line.category}_owed"
            delta = line.debit - line.credit
        elif line.source in _PAID_SOURCES:
            field_name = f"{line.category}_paid"
            delta = line.credit - line.debit
        else:
            continue
        month = totals.setdefault(line.month_key, {})
        month[field_name] = month.get(field_name, ZERO) + delta

    return [
        MonthlyOutstanding(
            month_key=key,
            **{name: round_money(value) for name, value in values.items()},
        )
        for key, values in sorted(totals.items())
    ]


def apply_settlement(row: MonthlyOutstanding, category: str, amount: Decimal) -> MonthlyOutstanding:
    """The row after ``amount`` more has been paid against ``category``."""
    field_name = f"{category}_paid"
    return replace(row, **{field_name: round_money(getattr(row, field_name) + amount)})
