"""
Configuration schema (``tenancy_config.schema``).

Frozen dataclasses produced by the loader.  Validation happens in
``__post_init__`` so an invalid configuration can never be constructed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from tenancy_kernel.exceptions import ConfigError
from tenancy_kernel.models.account import AccountType

_CATEGORIES = frozenset({"rent", "admin", "deposit"})


@dataclass(frozen=True)
class AccountCodes:
    """Account codes the services post to."""

    cash: str = "1000"
    bank: str = "1001"
    receivable_control: str = "1100"
    security_deposits: str = "2020"
    unapplied_credit: str = "2200"
    owners_capital: str = "3000"
    retained_earnings: str = "3100"
    rental_income: str = "4000"
    admin_income: str = "4100"
    forfeited_deposit_income: str = "4200"

    def __post_init__(self) -> None:
        for name, value in vars(self).items():
            if not value or not str(value).strip():
                raise ConfigError(f"account_codes.{name} must be set")

    @property
    def cash_accounts(self) -> frozenset[str]:
        return frozenset({self.cash, self.bank})

    def receivable_for(self, student_id: str) -> str:
        return f"{self.receivable_control}-{student_id}"

    def income_for(self, category: str) -> str:
        """Income account credited when a category is accrued."""
        if category == "rent":
            return self.rental_income
        if category == "admin":
            return self.admin_income
        if category == "deposit":
            # Deposits are a liability, not income
            return self.security_deposits
        raise ValueError(f"Unknown category: {category}")


@dataclass(frozen=True)
class ChartAccountDef:
    code: str
    name: str
    account_type: AccountType
    parent_code: str | None = None


@dataclass(frozen=True)
class LedgerSettings:
    """Everything the services read from configuration."""

    currency: str = "USD"
    balance_tolerance: Decimal = Decimal("0.01")
    account_codes: AccountCodes = field(default_factory=AccountCodes)
    bank_payment_keywords: tuple[str, ...] = ("bank", "transfer", "ecocash")
    allocation_category_order: tuple[str, ...] = ("deposit", "admin", "rent")
    chart_of_accounts: tuple[ChartAccountDef, ...] = ()

    def __post_init__(self) -> None:
        if len(self.currency) != 3:
            raise ConfigError(f"currency must be an ISO 4217 code: {self.currency!r}")
        if self.balance_tolerance < 0:
            raise ConfigError("balance_tolerance cannot be negative")
        order = set(self.allocation_category_order)
        if order != _CATEGORIES or len(self.allocation_category_order) != 3:
            raise ConfigError(
                f"allocation_category_order must list rent, admin, deposit once each: "
                f"{self.allocation_category_order}"
            )
        codes = [a.code for a in self.chart_of_accounts]
        if len(codes) != len(set(codes)):
            raise ConfigError("chart_of_accounts has duplicate codes")
        required = set(vars(self.account_codes).values())
        if self.chart_of_accounts and not required.issubset(codes):
            missing = sorted(required - set(codes))
            raise ConfigError(f"chart_of_accounts is missing configured codes: {missing}")

    def cash_account_for(self, payment_method: str | None) -> str:
        """Bank account for bank/transfer/ecocash methods, cash otherwise."""
        method = (payment_method or "").lower()
        if any(word in method for word in self.bank_payment_keywords):
            return self.account_codes.bank
        return self.account_codes.cash
