"""
Idempotency key generation.

Every ledger write carries a key with a UNIQUE constraint, so retries and
re-runs of the same business operation can never post twice.

    rental_accrual:{studentId}:{YYYY-MM}
    payment:{paymentId}:{YYYY-MM}:{category}
    advance_payment:{paymentId}:{category}
    rental_accrual_reversal:{originalEntryId}
"""

from uuid import UUID


def generate_idempotency_key(source: str, *parts: UUID | str) -> str:
    """
    Join a source tag and its identifying parts with ``:``.

    Example:
        >>> generate_idempotency_key("rental_accrual", "stu-1", "2025-06")
        "rental_accrual:stu-1:2025-06"
    """
    if not parts:
        raise ValueError("Idempotency key needs at least one identifying part")
    return ":".join([source, *(str(p) for p in parts)])


def accrual_key(student_id: str, month_key: str) -> str:
    return generate_idempotency_key("rental_accrual", student_id, month_key)


def settlement_key(payment_id: str, month_key: str, category: str) -> str:
    return generate_idempotency_key("payment", payment_id, month_key, category)


def parse_idempotency_key(key: str) -> tuple[str, ...]:
    """Split a key into (source, *parts)."""
    parts = tuple(key.split(":"))
    if len(parts) < 2 or not all(parts):
        raise ValueError(f"Invalid idempotency key format: {key}")
    return parts
