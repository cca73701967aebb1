"""
Reporting Configuration Schema.

Report presentation options plus the account codes the statements need to
know about (receivable roll-up, retained earnings, cash accounts).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from tenancy_config.schema import LedgerSettings
from tenancy_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass(frozen=True)
class ReportingConfig:
    """Controls how statements are classified and presented."""

    entity_name: str = "Student Residences"
    currency: str = "USD"

    # Per-student receivables {control}-{studentId} roll up under the control
    receivable_control: str = "1100"
    retained_earnings: str = "3100"
    unapplied_credit: str = "2200"
    rental_income: str = "4000"
    admin_income: str = "4100"
    cash_accounts: tuple[str, ...] = ("1000", "1001")

    include_zero_balances: bool = False

    def __post_init__(self):
        if len(self.currency) != 3:
            raise ValueError("currency must be a 3-letter ISO 4217 code")

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_settings(cls, settings: LedgerSettings, entity_name: str | None = None) -> Self:
        codes = settings.account_codes
        return cls(
            entity_name=entity_name or cls.entity_name,
            currency=settings.currency,
            receivable_control=codes.receivable_control,
            retained_earnings=codes.retained_earnings,
            unapplied_credit=codes.unapplied_credit,
            rental_income=codes.rental_income,
            admin_income=codes.admin_income,
            cash_accounts=tuple(sorted(codes.cash_accounts)),
        )

    def is_student_receivable(self, code: str) -> bool:
        return code.startswith(f"{self.receivable_control}-")

    def income_account_for(self, category: str | None) -> str | None:
        """Income account cash received for a category is reported under; deposits have none."""
        if category == "rent":
            return self.rental_income
        if category == "admin":
            return self.admin_income
        return None
