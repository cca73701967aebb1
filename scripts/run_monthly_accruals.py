#!/usr/bin/env python3
"""
Run the monthly rent accrual batch.

Accrues rent, admin fee and (in lease-start months) the security deposit for
every lease active in the month.  Safe to re-run: students already accrued
for the month are skipped.

Usage:
    python3 scripts/run_monthly_accruals.py --month 6 --year 2025
    python3 scripts/run_monthly_accruals.py --database-url postgresql://... --json

Exit codes:
    0  batch completed, no failures (skips for missing data are not failures)
    1  could not connect or configure
    2  batch completed with failed students
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DEFAULT_DB_URL = os.environ.get("DATABASE_URL", "sqlite:///tenancy_ledger.db")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create monthly rent accruals for all active leases.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--month", type=int, help="Month 1-12 (default: current month)")
    parser.add_argument("--year", type=int, help="Year (default: current year)")
    parser.add_argument(
        "--database-url",
        default=DEFAULT_DB_URL,
        help="SQLAlchemy database URL (default: $DATABASE_URL or local SQLite)",
    )
    parser.add_argument("--config", help="Ledger config YAML (default: packaged defaults)")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Structured logs to stderr")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    from tenancy_config import get_active_config
    from tenancy_kernel.db.engine import get_session, init_engine_from_url
    from tenancy_kernel.db.immutability import register_immutability_listeners
    from tenancy_kernel.domain.clock import SystemClock
    from tenancy_kernel.exceptions import TenancyLedgerError
    from tenancy_kernel.logging_config import configure_logging
    from tenancy_kernel.services.chart_of_accounts import ChartOfAccountsService
    from tenancy_modules._orm_registry import create_all_tables
    from tenancy_modules.accruals import AccrualService
    from tenancy_modules.lease import OrmLeaseSource
    from tenancy_modules.reporting import render_to_dict

    if args.verbose:
        configure_logging(level=logging.INFO)
    else:
        logging.disable(logging.CRITICAL)

    clock = SystemClock()
    today = clock.today()
    month = args.month or today.month
    year = args.year or today.year

    # -----------------------------------------------------------------
    # Connect and configure
    # -----------------------------------------------------------------
    try:
        settings = get_active_config(args.config)
        init_engine_from_url(args.database_url)
        create_all_tables()
        register_immutability_listeners()
    except (TenancyLedgerError, OSError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    session = get_session()
    try:
        ChartOfAccountsService(session, settings.account_codes.receivable_control).seed(
            settings.chart_of_accounts
        )
        session.commit()

        service = AccrualService(
            session,
            OrmLeaseSource(session),
            settings=settings,
            clock=clock,
        )
        result = service.create_monthly_accruals(month, year)

        if args.json:
            payload = render_to_dict(result)
            payload["failed"] = result.failed
            print(json.dumps(payload, indent=2))
        else:
            print(f"  Accruals for {result.month_key} (batch {result.batch_id})")
            print(f"    created: {result.created}")
            print(f"    skipped: {result.skipped}")
            for error in result.errors:
                print(f"    [{error.code}] {error.student_id}: {error.message}")

        return 2 if result.failed else 0
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
