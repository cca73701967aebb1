"""
Tests for the FIFO allocation engine.

Covers:
- Oldest-first funding
- Partial funding and excess
- Conservation of the allocated amount
- Error handling
"""

from decimal import Decimal

import pytest

from tenancy_engines.allocation import AllocationTarget, FifoAllocator


def _targets(*pairs):
    return [AllocationTarget(month, month, Decimal(amount)) for month, amount in pairs]


class TestFifoAllocation:
    """Tests for oldest-first sequential allocation."""

    def setup_method(self):
        self.engine = FifoAllocator()

    def test_oldest_month_funded_first(self):
        """75 against three months of 50 funds 50, then 25, then nothing."""
        result = self.engine.allocate(
            Decimal("75"),
            _targets(("2025-05", "50"), ("2025-06", "50"), ("2025-07", "50")),
        )

        assert [line.allocated for line in result.lines] == [
            Decimal("50.00"),
            Decimal("25.00"),
            Decimal("0.00"),
        ]
        assert [line.remaining for line in result.lines] == [
            Decimal("0.00"),
            Decimal("25.00"),
            Decimal("50.00"),
        ]
        assert result.unallocated == Decimal("0")
        assert result.is_fully_allocated

    def test_input_order_does_not_matter(self):
        result = self.engine.allocate(
            Decimal("60"),
            _targets(("2025-07", "50"), ("2025-05", "50")),
        )

        assert result.lines[0].month_key == "2025-05"
        assert result.lines[0].allocated == Decimal("50.00")
        assert result.lines[1].allocated == Decimal("10.00")

    def test_excess_is_unallocated(self):
        result = self.engine.allocate(
            Decimal("200"),
            _targets(("2025-06", "50"), ("2025-07", "50")),
        )

        assert result.total_allocated == Decimal("100.00")
        assert result.unallocated == Decimal("100.00")
        assert not result.is_fully_allocated

    def test_no_targets(self):
        result = self.engine.allocate(Decimal("40"), [])

        assert result.lines == ()
        assert result.unallocated == Decimal("40.00")

    def test_zero_amount(self):
        result = self.engine.allocate(Decimal("0"), _targets(("2025-06", "50")))

        assert result.total_allocated == Decimal("0")
        assert result.funded_lines == ()

    def test_funded_lines_skip_unfunded_targets(self):
        result = self.engine.allocate(
            Decimal("30"),
            _targets(("2025-06", "50"), ("2025-07", "50")),
        )

        assert [line.month_key for line in result.funded_lines] == ["2025-06"]

    def test_priority_orders_within_a_month(self):
        result = self.engine.allocate(
            Decimal("10"),
            [
                AllocationTarget("rent", "2025-06", Decimal("50"), priority=2),
                AllocationTarget("deposit", "2025-06", Decimal("50"), priority=1),
            ],
        )

        assert result.funded_lines[0].target_id == "deposit"

    @pytest.mark.parametrize(
        "amount",
        ["0.01", "49.99", "50.00", "123.45", "150.00", "999.99"],
    )
    def test_conservation(self, amount):
        """total_allocated + unallocated always equals the amount."""
        result = self.engine.allocate(
            Decimal(amount),
            _targets(("2025-05", "50"), ("2025-06", "50"), ("2025-07", "50")),
        )

        assert result.total_allocated + result.unallocated == Decimal(amount)
        assert all(line.allocated <= Decimal("50") for line in result.lines)


class TestAllocationErrors:
    """Invalid input is rejected."""

    def setup_method(self):
        self.engine = FifoAllocator()

    def test_negative_amount(self):
        with pytest.raises(ValueError):
            self.engine.allocate(Decimal("-1"), _targets(("2025-06", "50")))

    def test_negative_eligible_amount(self):
        with pytest.raises(ValueError):
            AllocationTarget("2025-06", "2025-06", Decimal("-5"))
