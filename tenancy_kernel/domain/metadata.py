"""
Typed ledger entry metadata.

Each entry source carries exactly one metadata variant.  The stored JSON uses
camelCase keys (``studentId``, ``monthSettled``, ``allocationType`` ...);
in Python the variants are frozen dataclasses, so reading a field that a
variant does not define is an AttributeError instead of a silent ``None``.

    rental_accrual            -> AccrualMetadata
    payment                   -> PaymentAllocationMetadata
    advance_payment           -> UnappliedCreditMetadata
    rental_accrual_reversal   -> ReversalMetadata
    manual                    -> ManualMetadata
"""

from __future__ import annotations

from dataclasses import MISSING, dataclass, fields
from decimal import Decimal
from typing import Any, ClassVar

from tenancy_kernel.exceptions import InvalidMetadataError


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class _EntryMetadata:
    """Shared (de)serialization for the metadata variants."""

    source: ClassVar[str]
    _decimal_fields: ClassVar[frozenset[str]] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, Decimal):
                value = str(value)
            out[_camel(f.name)] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None):
        data = data or {}
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            key = _camel(f.name)
            if key not in data or data[key] is None:
                if f.default is MISSING and f.default_factory is MISSING:
                    raise InvalidMetadataError(cls.source, f"missing field {key}")
                continue
            value = data[key]
            if f.name in cls._decimal_fields:
                value = Decimal(str(value))
            kwargs[f.name] = value
        return cls(**kwargs)


@dataclass(frozen=True)
class AccrualMetadata(_EntryMetadata):
    source: ClassVar[str] = "rental_accrual"
    _decimal_fields: ClassVar[frozenset[str]] = frozenset(
        {"rent_amount", "admin_fee", "deposit_amount"}
    )

    student_id: str
    month: str
    accrual_type: str = "monthly_rent_accrual"
    student_name: str | None = None
    residence_id: str | None = None
    lease_id: str | None = None
    rent_amount: Decimal = Decimal("0")
    admin_fee: Decimal = Decimal("0")
    deposit_amount: Decimal = Decimal("0")
    prorated: bool = False


@dataclass(frozen=True)
class PaymentAllocationMetadata(_EntryMetadata):
    source: ClassVar[str] = "payment"

    student_id: str
    payment_id: str
    payment_type: str
    month_settled: str
    allocation_type: str = "payment_allocation"
    accrual_entry_id: str | None = None
    payment_method: str | None = None


@dataclass(frozen=True)
class UnappliedCreditMetadata(_EntryMetadata):
    source: ClassVar[str] = "advance_payment"

    student_id: str
    payment_id: str
    payment_type: str
    allocation_type: str = "advance_payment"
    payment_method: str | None = None


@dataclass(frozen=True)
class ReversalMetadata(_EntryMetadata):
    source: ClassVar[str] = "rental_accrual_reversal"

    student_id: str
    original_entry_id: str
    month: str
    reason: str


@dataclass(frozen=True)
class ManualMetadata(_EntryMetadata):
    source: ClassVar[str] = "manual"

    memo: str
    student_id: str | None = None
    is_forfeiture: bool = False
    month_settled: str | None = None
    payment_type: str | None = None
    type: str | None = None


EntryMetadata = (
    AccrualMetadata
    | PaymentAllocationMetadata
    | UnappliedCreditMetadata
    | ReversalMetadata
    | ManualMetadata
)

METADATA_BY_SOURCE: dict[str, type[_EntryMetadata]] = {
    cls.source: cls
    for cls in (
        AccrualMetadata,
        PaymentAllocationMetadata,
        UnappliedCreditMetadata,
        ReversalMetadata,
        ManualMetadata,
    )
}


def parse_metadata(source: str, data: dict[str, Any] | None) -> EntryMetadata:
    """Build the metadata variant for an entry's source from stored JSON."""
    cls = METADATA_BY_SOURCE.get(source)
    if cls is None:
        raise InvalidMetadataError(source, "unknown entry source")
    return cls.from_dict(data)


def check_metadata(source: str, metadata: _EntryMetadata) -> None:
    """Raise unless ``metadata`` is the variant required for ``source``."""
    expected = METADATA_BY_SOURCE.get(source)
    if expected is None:
        raise InvalidMetadataError(source, "unknown entry source")
    if not isinstance(metadata, expected):
        raise InvalidMetadataError(
            source,
            f"expected {expected.__name__}, got {type(metadata).__name__}",
        )
