"""
Typed exception hierarchy for the tenancy ledger.

Every error has a typed class (catch by type, not message), a machine-readable
``code`` class attribute, and structured attributes for the data involved.
The excluded web layer maps these to 4xx responses using ``code``.

    TenancyLedgerError (base)
    |
    +-- PostingError
    |   +-- UnbalancedEntryError
    |   +-- InvalidLineError
    |   +-- InvalidMetadataError
    |   +-- DuplicateEntryError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- AccountInactiveError
    |
    +-- ImmutabilityViolationError
    |
    +-- AccrualError
    |   +-- MissingReferenceDataError
    |
    +-- AllocationError
    |   +-- InvalidPaymentError
    |   +-- PaymentAlreadyAllocatedError
    |   +-- OverSettlementError
    |
    +-- ReversalError
    |   +-- EntryNotFoundError
    |   +-- EntryAlreadyReversedError
    |   +-- InvalidReversalTargetError
    |   +-- AccrualSettledError
    |
    +-- DepositError
    |   +-- DepositAlreadyPaidError
    |   +-- DepositNotHeldError
    |
    +-- ConfigError
"""


class TenancyLedgerError(Exception):
    """Base exception for all tenancy ledger errors."""

    code: str = "TENANCY_LEDGER_ERROR"


# Posting


class PostingError(TenancyLedgerError):
    """Base exception for ledger write failures."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, total_debit: str, total_credit: str):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Unbalanced entry: debits={total_debit}, credits={total_credit}"
        )


class InvalidLineError(PostingError):
    """A line is malformed (both sides set, negative, or empty)."""

    code: str = "INVALID_LINE"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Invalid line on account {account_code}: {reason}")


class InvalidMetadataError(PostingError):
    """Metadata does not match the variant required by the entry source."""

    code: str = "INVALID_METADATA"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid metadata for source {source}: {reason}")


class DuplicateEntryError(PostingError):
    """An entry with the same idempotency key already exists."""

    code: str = "DUPLICATE_ENTRY"

    def __init__(self, idempotency_key: str, existing_entry_id: str | None = None):
        self.idempotency_key = idempotency_key
        self.existing_entry_id = existing_entry_id
        super().__init__(f"Entry already exists for key {idempotency_key}")


# Accounts


class AccountError(TenancyLedgerError):
    """Base exception for chart-of-accounts errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account code does not exist in the chart."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account not found: {account_code}")


class AccountInactiveError(AccountError):
    """Account exists but is closed for new postings."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account is inactive: {account_code}")


# Immutability


class ImmutabilityViolationError(TenancyLedgerError):
    """Attempt to modify or delete a posted ledger record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


# Accruals


class AccrualError(TenancyLedgerError):
    """Base exception for accrual generation failures."""

    code: str = "ACCRUAL_ERROR"


class MissingReferenceDataError(AccrualError):
    """A lease is missing data needed to accrue it (residence, rent)."""

    code: str = "MISSING_REFERENCE_DATA"

    def __init__(self, student_id: str, field: str, reason: str):
        self.student_id = student_id
        self.field = field
        self.reason = reason
        super().__init__(f"Student {student_id}: {reason}")


# Allocation


class AllocationError(TenancyLedgerError):
    """Base exception for payment allocation failures."""

    code: str = "ALLOCATION_ERROR"


class InvalidPaymentError(AllocationError):
    """Payment amounts are negative, empty, or otherwise unusable."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, reason: str, payment_id: str | None = None):
        self.reason = reason
        self.payment_id = payment_id
        label = f"Invalid payment {payment_id}" if payment_id else "Invalid payment"
        super().__init__(f"{label}: {reason}")


class PaymentAlreadyAllocatedError(AllocationError):
    """Payment ID has already produced settlement entries."""

    code: str = "PAYMENT_ALREADY_ALLOCATED"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment already allocated: {payment_id}")


class OverSettlementError(AllocationError):
    """A month/category would be settled beyond what is owed."""

    code: str = "OVER_SETTLEMENT"

    def __init__(self, student_id: str, month_key: str, category: str, outstanding: str):
        self.student_id = student_id
        self.month_key = month_key
        self.category = category
        self.outstanding = outstanding
        super().__init__(
            f"Over-settlement for {student_id} {month_key} {category}: "
            f"outstanding={outstanding}"
        )


# Reversals


class ReversalError(TenancyLedgerError):
    """Base exception for reversal failures."""

    code: str = "REVERSAL_ERROR"


class EntryNotFoundError(ReversalError):
    """Ledger entry does not exist."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry not found: {entry_id}")


class EntryAlreadyReversedError(ReversalError):
    """Ledger entry already has a reversal."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_id: str):
        self.entry_id = entry_id
        self.reversal_id = reversal_id
        super().__init__(f"Entry {entry_id} already reversed by {reversal_id}")


class InvalidReversalTargetError(ReversalError):
    """Entry cannot be reversed through this path."""

    code: str = "INVALID_REVERSAL_TARGET"

    def __init__(self, entry_id: str, source: str):
        self.entry_id = entry_id
        self.source = source
        super().__init__(f"Entry {entry_id} with source {source} cannot be reversed here")


class AccrualSettledError(ReversalError):
    """Accrual month already has settlements against it."""

    code: str = "ACCRUAL_SETTLED"

    def __init__(self, entry_id: str, month_key: str, paid: str):
        self.entry_id = entry_id
        self.month_key = month_key
        self.paid = paid
        super().__init__(
            f"Accrual {entry_id} for {month_key} has {paid} settled against it"
        )


# Deposits


class DepositError(TenancyLedgerError):
    """Base exception for security deposit operations."""

    code: str = "DEPOSIT_ERROR"


class DepositAlreadyPaidError(DepositError):
    """Deposit is fully paid, there is nothing to reverse."""

    code: str = "DEPOSIT_ALREADY_PAID"

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"Deposit for {student_id} is fully paid")


class DepositNotHeldError(DepositError):
    """Forfeiture exceeds the deposit actually held for the student."""

    code: str = "DEPOSIT_NOT_HELD"

    def __init__(self, student_id: str, requested: str, held: str):
        self.student_id = student_id
        self.requested = requested
        self.held = held
        super().__init__(
            f"Cannot forfeit {requested} for {student_id}: only {held} held"
        )


# Configuration


class ConfigError(TenancyLedgerError):
    """Configuration file is missing or invalid."""

    code: str = "CONFIG_ERROR"

    def __init__(self, reason: str, path: str | None = None):
        self.reason = reason
        self.path = path
        super().__init__(f"{reason} ({path})" if path else reason)
