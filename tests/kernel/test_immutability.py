"""
Tests for ORM-level immutability of posted ledger entries.

Posted entries and their lines cannot be updated or deleted; corrections are
new entries.
"""

from datetime import date
from decimal import Decimal

import pytest

from tenancy_kernel.domain.metadata import ManualMetadata
from tenancy_kernel.exceptions import ImmutabilityViolationError
from tenancy_kernel.models.ledger import EntrySource, EntryStatus
from tenancy_kernel.services.ledger_repository import EntryDraft, LineDraft


class TestPostedEntryImmutability:
    """Updates and deletes of posted records fail at flush."""

    def test_update_posted_entry_description(self, post_manual, session):
        entry = post_manual("5000", "1000", "40.00", date(2025, 6, 3))

        entry.description = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_update_posted_entry_date(self, post_manual, session):
        entry = post_manual("5000", "1000", "40.00", date(2025, 6, 3))

        entry.entry_date = date(2025, 5, 31)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_update_posted_line_amount(self, post_manual, session):
        entry = post_manual("5000", "1000", "40.00", date(2025, 6, 3))

        entry.lines[0].debit = Decimal("41.00")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_posted_entry(self, post_manual, session):
        entry = post_manual("5000", "1000", "40.00", date(2025, 6, 3))

        session.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_is_logged(self, post_manual, session, captured_logs):
        entry = post_manual("5000", "1000", "40.00", date(2025, 6, 3))

        entry.description = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        records = [r for r in captured_logs() if r["message"] == "immutability_violation"]
        assert records
        assert records[0]["entity_type"] == "LedgerEntry"


class TestDraftEntries:
    """Drafts stay editable until posted."""

    def test_draft_can_be_edited_then_posted(self, repository, session):
        draft = repository.post_entry(
            EntryDraft(
                entry_date=date(2025, 6, 3),
                description="draft",
                source=EntrySource.MANUAL,
                lines=(LineDraft.dr("5100", "12.50"), LineDraft.cr("1000", "12.50")),
                idempotency_key="manual:draft:1",
                metadata=ManualMetadata(memo="utilities"),
                status=EntryStatus.DRAFT,
            )
        )
        session.commit()

        draft.description = "Utilities June"
        session.commit()

        posted = repository.post_draft(draft.id)
        session.commit()

        posted.description = "changed after posting"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
