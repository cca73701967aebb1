"""
Module: tenancy_kernel.services.chart_of_accounts
Responsibility: Seeding, lookup and lazy creation of ledger accounts,
    including per-student receivables ``{control}-{studentId}``.
Architecture position: Kernel > Services.  Participates in the caller's
    transaction; never commits.

Failure modes:
    - AccountNotFoundError for unknown codes.
    - AccountInactiveError when a posting targets a closed account.
"""

from collections.abc import Iterable

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session

from tenancy_kernel.exceptions import AccountInactiveError, AccountNotFoundError
from tenancy_kernel.logging_config import get_logger
from tenancy_kernel.models.account import Account, AccountType

logger = get_logger("services.chart_of_accounts")

DEFAULT_RECEIVABLE_CONTROL = "1100"


class ChartOfAccountsService:
    """Chart of accounts backed by the ``accounts`` table."""

    def __init__(self, session: Session, receivable_control: str = DEFAULT_RECEIVABLE_CONTROL):
        self._session = session
        self._receivable_control = receivable_control
        self._cache: dict[str, Account] = {}

    def seed(self, definitions: Iterable) -> int:
        """
        Insert accounts that do not exist yet.

        ``definitions`` items need ``code``, ``name``, ``account_type`` and
        optionally ``parent_code``.  Existing codes are left untouched.

        Returns:
            Number of accounts created.
        """
        existing = set(self._session.scalars(select(Account.code)).all())
        created = 0
        for definition in definitions:
            if definition.code in existing:
                continue
            account_type = AccountType(definition.account_type)
            self._session.add(
                Account(
                    code=definition.code,
                    name=definition.name,
                    account_type=account_type.value,
                    normal_balance=account_type.normal_balance.value,
                    is_active=True,
                    parent_code=getattr(definition, "parent_code", None),
                )
            )
            existing.add(definition.code)
            created += 1
        self._session.flush()
        logger.info("chart_seeded", extra={"accounts_created": created})
        return created

    def find(self, code: str) -> Account | None:
        account = self._cache.get(code)
        if account is not None and not inspect(account).persistent:
            # Created in a transaction that has since rolled back
            del self._cache[code]
            account = None
        if account is None:
            account = self._session.scalars(
                select(Account).where(Account.code == code)
            ).one_or_none()
            if account is not None:
                self._cache[code] = account
        return account

    def get(self, code: str) -> Account:
        account = self.find(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def require_postable(self, code: str) -> Account:
        """Account that may receive a new posting."""
        account = self.get(code)
        if not account.is_active:
            raise AccountInactiveError(code)
        return account

    def receivable_code(self, student_id: str) -> str:
        return f"{self._receivable_control}-{student_id}"

    def ensure_receivable(self, student_id: str, student_name: str | None = None) -> Account:
        """The student's receivable account, created under the control account if absent."""
        code = self.receivable_code(student_id)
        account = self.find(code)
        if account is not None:
            return account

        control = self.get(self._receivable_control)
        account = Account(
            code=code,
            name=f"{control.name} - {student_name or student_id}",
            account_type=AccountType.ASSET.value,
            normal_balance=AccountType.ASSET.normal_balance.value,
            is_active=True,
            parent_code=control.code,
        )
        self._session.add(account)
        self._session.flush()
        self._cache[code] = account
        logger.info(
            "receivable_account_created",
            extra={"account_code": code, "student_id": student_id},
        )
        return account

    def deactivate(self, code: str) -> Account:
        account = self.get(code)
        account.is_active = False
        self._session.flush()
        logger.info("account_deactivated", extra={"account_code": code})
        return account

    def list_accounts(self, account_type: AccountType | None = None) -> list[Account]:
        stmt = select(Account).order_by(Account.code)
        if account_type is not None:
            stmt = stmt.where(Account.account_type == account_type.value)
        return list(self._session.scalars(stmt).all())
