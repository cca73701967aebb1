"""
ORM-level immutability for posted ledger records.

A posted LedgerEntry, and every LedgerLine belonging to one, can never be
updated or deleted through the ORM.  Corrections are new entries (reversals,
manual adjustments) that leave a visible trail.

    session.flush()
         |
         v
    [before_update] --> _check_entry_update() / _check_line_update()
    [before_delete] --> _check_entry_delete() / _check_line_delete()
         |
         v
    SQL sent to database (only if checks pass)

The DRAFT -> POSTED transition is allowed; changes are blocked once the
entry *was* posted, detected through attribute history.  updated_at is audit
metadata and may change.

Usage:
    from tenancy_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from tenancy_kernel.exceptions import ImmutabilityViolationError
from tenancy_kernel.logging_config import get_logger
from tenancy_kernel.models.ledger import EntryStatus, LedgerEntry, LedgerLine

logger = get_logger("db.immutability")

_MUTABLE_ENTRY_FIELDS = frozenset({"updated_at", "lines"})


def _was_posted(entry: LedgerEntry) -> bool:
    history = get_history(entry, "status")
    if history.deleted:
        return history.deleted[0] == EntryStatus.POSTED.value
    if history.added:
        # First assignment in this unit of work, i.e. draft being posted now
        return False
    return entry.status == EntryStatus.POSTED.value


def _reject(entity_type: str, entity_id, reason: str) -> None:
    logger.error(
        "immutability_violation",
        extra={"entity_type": entity_type, "entity_id": str(entity_id), "reason": reason},
    )
    raise ImmutabilityViolationError(entity_type, str(entity_id), reason)


def _check_entry_update(mapper, connection, target: LedgerEntry) -> None:
    if not _was_posted(target):
        return

    changed = []
    for attr in mapper.column_attrs:
        if attr.key in _MUTABLE_ENTRY_FIELDS:
            continue
        if get_history(target, attr.key).has_changes():
            changed.append(attr.key)

    if changed:
        _reject("LedgerEntry", target.id, f"posted entry fields modified: {sorted(changed)}")


def _check_entry_delete(mapper, connection, target: LedgerEntry) -> None:
    if target.status == EntryStatus.POSTED.value or _was_posted(target):
        _reject("LedgerEntry", target.id, "posted entries cannot be deleted")


def _parent_posted(line: LedgerLine) -> bool:
    entry = line.entry
    return entry is not None and entry.status == EntryStatus.POSTED.value


def _check_line_update(mapper, connection, target: LedgerLine) -> None:
    if _parent_posted(target):
        _reject("LedgerLine", target.id, "lines of a posted entry cannot be modified")


def _check_line_delete(mapper, connection, target: LedgerLine) -> None:
    if _parent_posted(target):
        _reject("LedgerLine", target.id, "lines of a posted entry cannot be deleted")


_LISTENERS = (
    (LedgerEntry, "before_update", _check_entry_update),
    (LedgerEntry, "before_delete", _check_entry_delete),
    (LedgerLine, "before_update", _check_line_update),
    (LedgerLine, "before_delete", _check_line_delete),
)


def register_immutability_listeners() -> None:
    """Install the listeners (idempotent)."""
    for model, name, fn in _LISTENERS:
        if not event.contains(model, name, fn):
            event.listen(model, name, fn)


def unregister_immutability_listeners() -> None:
    """Remove the listeners. TESTS ONLY."""
    for model, name, fn in _LISTENERS:
        if event.contains(model, name, fn):
            event.remove(model, name, fn)
