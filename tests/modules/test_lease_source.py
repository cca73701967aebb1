"""
Tests for OrmLeaseSource and StaticLeaseSource.
"""

from datetime import date
from decimal import Decimal

import pytest

from tenancy_modules.accruals import AccrualService
from tenancy_modules.lease import OrmLeaseSource, StaticLeaseSource
from tenancy_modules.lease.orm import LeaseModel, ResidenceModel


def _lease_row(student_id, start, end=None, status="active", residence="res-1", rent="180.00"):
    return LeaseModel(
        lease_code=f"lease-{student_id}-{start.isoformat()}",
        student_id=student_id,
        student_name=f"Student {student_id}",
        residence_code=residence,
        room="B2",
        start_date=start,
        end_date=end,
        monthly_rent=Decimal(rent) if rent is not None else None,
        monthly_admin_fee=Decimal("20.00"),
        deposit_amount=Decimal("180.00"),
        status=status,
    )


@pytest.fixture
def stored_leases(session):
    session.add(ResidenceModel(residence_code="res-1", name="North Hall"))
    session.add_all(
        [
            _lease_row("stu-1", date(2025, 6, 1), date(2025, 12, 31)),
            _lease_row("stu-2", date(2025, 6, 15), None),
            _lease_row("stu-3", date(2025, 1, 1), date(2025, 5, 31)),
            _lease_row("stu-4", date(2025, 6, 1), date(2025, 12, 31), status="cancelled"),
        ]
    )
    session.commit()
    return OrmLeaseSource(session)


class TestOrmLeaseSource:
    def test_active_leases_for_month(self, stored_leases):
        leases = stored_leases.active_leases(2025, 6)

        assert [lease.student_id for lease in leases] == ["stu-1", "stu-2"]
        assert leases[0].monthly_rent == Decimal("180.00")
        assert leases[1].lease_end is None

    def test_ended_lease_not_active(self, stored_leases):
        assert [l.student_id for l in stored_leases.active_leases(2025, 5)] == ["stu-3"]

    def test_lease_for_student_is_most_recent(self, stored_leases, session):
        session.add(_lease_row("stu-3", date(2026, 1, 1), date(2026, 6, 30)))
        session.commit()

        lease = stored_leases.lease_for_student("stu-3")

        assert lease.lease_start == date(2026, 1, 1)

    def test_cancelled_lease_is_invisible(self, stored_leases):
        assert stored_leases.lease_for_student("stu-4") is None

    def test_residence_exists(self, stored_leases):
        assert stored_leases.residence_exists("res-1")
        assert not stored_leases.residence_exists("res-9")

    def test_feeds_monthly_accruals(self, stored_leases, session, chart, settings, deterministic_clock):
        service = AccrualService(session, stored_leases, settings=settings, clock=deterministic_clock)

        result = service.create_monthly_accruals(6, 2025)

        assert result.created == 2
        summary = service.accrual_summary(6, 2025)
        # stu-2 starts on the 15th: 16 of 30 days
        assert summary.rent == Decimal("276.00")


class TestStaticLeaseSource:
    def test_residence_check(self, make_lease):
        open_source = StaticLeaseSource([make_lease()])
        restricted = StaticLeaseSource([make_lease()], residences=["res-2"])

        assert open_source.residence_exists("res-1")
        assert not open_source.residence_exists("")
        assert not restricted.residence_exists("res-1")

    def test_orders_by_student(self, make_lease):
        source = StaticLeaseSource([make_lease("stu-b"), make_lease("stu-a")])

        assert [l.student_id for l in source.active_leases(2025, 6)] == ["stu-a", "stu-b"]
