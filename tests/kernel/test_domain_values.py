"""
Tests for kernel value helpers: money rounding, month keys, idempotency keys
and typed entry metadata.
"""

from datetime import date
from decimal import Decimal

import pytest

from tenancy_kernel.domain.metadata import (
    AccrualMetadata,
    PaymentAllocationMetadata,
    ReversalMetadata,
    check_metadata,
    parse_metadata,
)
from tenancy_kernel.domain.money import is_positive, round_money, within_tolerance
from tenancy_kernel.domain.months import (
    iter_month_keys,
    make_month_key,
    month_bounds_for_key,
    next_month,
    parse_month_key,
)
from tenancy_kernel.exceptions import InvalidMetadataError
from tenancy_kernel.utils.idempotency import (
    accrual_key,
    generate_idempotency_key,
    parse_idempotency_key,
    settlement_key,
)


class TestMoney:
    def test_round_half_up(self):
        assert round_money("2.345") == Decimal("2.35")
        assert round_money("2.344") == Decimal("2.34")

    def test_float_goes_through_str(self):
        assert round_money(0.1 + 0.2) == Decimal("0.30")

    def test_none_is_zero(self):
        assert round_money(None) == Decimal("0.00")

    def test_is_positive_needs_a_cent(self):
        assert is_positive("0.01")
        assert not is_positive("0.004")

    def test_within_tolerance(self):
        assert within_tolerance("100.00", "100.01")
        assert not within_tolerance("100.00", "100.02")


class TestMonthKeys:
    def test_make_and_parse(self):
        assert make_month_key(2025, 6) == "2025-06"
        assert parse_month_key("2025-06") == (2025, 6)

    @pytest.mark.parametrize("bad", ["2025-13", "2025-6", "June", "", "2025-00"])
    def test_parse_rejects_invalid(self, bad):
        with pytest.raises(ValueError):
            parse_month_key(bad)

    def test_make_rejects_month_out_of_range(self):
        with pytest.raises(ValueError):
            make_month_key(2025, 0)

    def test_bounds(self):
        assert month_bounds_for_key("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))

    def test_next_month_wraps_year(self):
        assert next_month(2025, 12) == (2026, 1)

    def test_iter_inclusive(self):
        keys = list(iter_month_keys(date(2025, 11, 20), date(2026, 1, 3)))

        assert keys == ["2025-11", "2025-12", "2026-01"]

    def test_string_order_is_chronological(self):
        assert sorted(["2026-01", "2025-12", "2025-02"]) == ["2025-02", "2025-12", "2026-01"]


class TestIdempotencyKeys:
    def test_accrual_key(self):
        assert accrual_key("stu-1", "2025-06") == "rental_accrual:stu-1:2025-06"

    def test_settlement_key(self):
        assert settlement_key("pay-7", "2025-06", "rent") == "payment:pay-7:2025-06:rent"

    def test_needs_a_part(self):
        with pytest.raises(ValueError):
            generate_idempotency_key("manual")

    def test_parse(self):
        assert parse_idempotency_key("payment:pay-7:2025-06:rent") == (
            "payment",
            "pay-7",
            "2025-06",
            "rent",
        )

    def test_parse_rejects_malformed(self):
        with pytest.raises(ValueError):
            parse_idempotency_key("payment:")


class TestEntryMetadata:
    """Each source carries exactly one typed metadata variant."""

    def test_to_dict_is_camel_case(self):
        metadata = PaymentAllocationMetadata(
            student_id="stu-1",
            payment_id="pay-1",
            payment_type="rent",
            month_settled="2025-06",
        )

        assert metadata.to_dict() == {
            "studentId": "stu-1",
            "paymentId": "pay-1",
            "paymentType": "rent",
            "monthSettled": "2025-06",
            "allocationType": "payment_allocation",
        }

    def test_parse_restores_decimals(self):
        stored = AccrualMetadata(
            student_id="stu-1",
            month="2025-06",
            rent_amount=Decimal("150.00"),
            prorated=True,
        ).to_dict()

        parsed = parse_metadata("rental_accrual", stored)

        assert parsed.rent_amount == Decimal("150.00")
        assert parsed.prorated is True
        assert parsed.accrual_type == "monthly_rent_accrual"

    def test_parse_missing_required_field(self):
        with pytest.raises(InvalidMetadataError):
            parse_metadata("rental_accrual_reversal", {"studentId": "stu-1"})

    def test_parse_unknown_source(self):
        with pytest.raises(InvalidMetadataError):
            parse_metadata("journal", {})

    def test_variant_has_no_foreign_fields(self):
        """Reading a field another variant defines is an error, not None."""
        metadata = AccrualMetadata(student_id="stu-1", month="2025-06")

        with pytest.raises(AttributeError):
            metadata.payment_id  # noqa: B018

    def test_check_metadata_rejects_wrong_variant(self):
        reversal = ReversalMetadata(
            student_id="stu-1",
            original_entry_id="x",
            month="2025-06",
            reason="r",
        )

        check_metadata("rental_accrual_reversal", reversal)
        with pytest.raises(InvalidMetadataError):
            check_metadata("payment", reversal)
