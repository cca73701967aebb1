"""
Payment Domain Models (``tenancy_modules.payments.models``).

Responsibility
--------------
Frozen value objects for payment allocation and security deposits: the
per-category split of an incoming payment, the settlements it produced, and
a student's deposit position.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* ``PaymentSplit`` amounts are non-negative Decimals rounded to cents, and
  at least one of them is positive.
* ``AllocationOutcome``: sum(settlements) + unallocated == payment total.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from tenancy_kernel.domain.money import ZERO, round_money
from tenancy_kernel.exceptions import InvalidPaymentError


@dataclass(frozen=True)
class PaymentSplit:
    """How much of a payment is meant for each category."""

    rent: Decimal = ZERO
    admin: Decimal = ZERO
    deposit: Decimal = ZERO

    @classmethod
    def coerce(cls, payment: PaymentSplit | Mapping[str, Any], payment_id: str | None = None) -> PaymentSplit:
        """
        Validate a split given as a PaymentSplit or a mapping.

        Mapping keys are ``rent``, ``admin`` (or ``adminFee``) and ``deposit``.

        Raises:
            InvalidPaymentError: unknown keys, non-numeric or negative
                amounts, or nothing to allocate.
        """
        if isinstance(payment, PaymentSplit):
            raw = {"rent": payment.rent, "admin": payment.admin, "deposit": payment.deposit}
        elif isinstance(payment, Mapping):
            raw = dict(payment)
            if "adminFee" in raw:
                raw["admin"] = raw.pop("adminFee")
            unknown = set(raw) - {"rent", "admin", "deposit"}
            if unknown:
                raise InvalidPaymentError(f"unknown categories {sorted(unknown)}", payment_id)
        else:
            raise InvalidPaymentError(f"unsupported payment type {type(payment).__name__}", payment_id)

        amounts: dict[str, Decimal] = {}
        for category in ("rent", "admin", "deposit"):
            try:
                amount = round_money(raw.get(category) or ZERO)
                if not amount.is_finite():
                    raise InvalidPaymentError(f"{category} is not a finite amount", payment_id)
            except (InvalidOperation, TypeError, ValueError) as exc:
                raise InvalidPaymentError(f"{category} is not a number", payment_id) from exc
            if amount < ZERO:
                raise InvalidPaymentError(f"{category} amount is negative: {amount}", payment_id)
            amounts[category] = amount

        if not any(amount > ZERO for amount in amounts.values()):
            raise InvalidPaymentError("payment has no positive amount", payment_id)
        return cls(**amounts)

    def amount_for(self, category: str) -> Decimal:
        return getattr(self, category)

    @property
    def total(self) -> Decimal:
        return self.rent + self.admin + self.deposit


@dataclass(frozen=True)
class Settlement:
    """One month/category slice of a payment."""

    month: str
    category: str
    amount: Decimal
    ledger_entry_id: str


@dataclass(frozen=True)
class UnappliedCredit:
    """Part of a payment parked as advance payment for one category."""

    category: str
    amount: Decimal
    ledger_entry_id: str


@dataclass(frozen=True)
class AllocationOutcome:
    """
    Everything one payment produced.

    Guarantees:
        - total_settled + unallocated == payment.total.
    """

    payment_id: str
    student_id: str
    payment_date: date
    payment: PaymentSplit
    settlements: tuple[Settlement, ...]
    credits: tuple[UnappliedCredit, ...] = ()
    cash_account: str | None = None

    @property
    def total_settled(self) -> Decimal:
        return sum((s.amount for s in self.settlements), ZERO)

    @property
    def unallocated(self) -> Decimal:
        return sum((c.amount for c in self.credits), ZERO)

    @property
    def unapplied_entry_id(self) -> str | None:
        """Entry of the first advance-payment posting, if any."""
        return self.credits[0].ledger_entry_id if self.credits else None

    def settled_for(self, month: str, category: str) -> Decimal:
        return sum(
            (s.amount for s in self.settlements if s.month == month and s.category == category),
            ZERO,
        )

    def as_dict(self) -> dict[str, Any]:
        """External representation (camelCase, string amounts)."""
        return {
            "paymentId": self.payment_id,
            "studentId": self.student_id,
            "settlements": [
                {
                    "month": s.month,
                    "category": s.category,
                    "amount": str(s.amount),
                    "ledgerEntryId": s.ledger_entry_id,
                }
                for s in self.settlements
            ],
            "unallocated": str(self.unallocated),
            "unappliedEntryId": self.unapplied_entry_id,
        }


@dataclass(frozen=True)
class DepositStatus:
    """
    A student's security deposit position.

    required:    deposit accrued at lease start.
    paid:        settled by payments.
    reversed:    unpaid deposit written back off the receivable.
    forfeited:   held deposit recognized as income.
    held:        paid - forfeited (what the liability still owes the student).
    """

    student_id: str
    required: Decimal
    paid: Decimal
    reversed: Decimal
    forfeited: Decimal

    @property
    def outstanding(self) -> Decimal:
        return max(round_money(self.required - self.paid - self.reversed), ZERO)

    @property
    def held(self) -> Decimal:
        return max(round_money(self.paid - self.forfeited), ZERO)

    @property
    def is_fully_paid(self) -> bool:
        return self.required > ZERO and self.outstanding == ZERO
