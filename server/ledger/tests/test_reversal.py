from datetime import date
from decimal import Decimal

import pytest

from ledger.accounting import journal
from ledger.accounting.audit import list_entry_events
from ledger.accounting.exceptions import AlreadyReversedError, LedgerValidationError, PostingStateError
from ledger.accounting.reversal import flip_side
from ledger.config import settings
from ledger.models import JournalEntry
from ledger.tests.factories import create_accounts, credit, debit, make_draft, make_posted


def _reverse(db, entry_id, reversal_date=date(2024, 4, 1)):
    return journal.run_in_transaction(
        db, lambda: journal.reverse_entry(db, 1, entry_id, reversal_date=reversal_date, user_id=1)
    )


def test_flip_side():
    assert flip_side("debit") == "credit"
    assert flip_side("credit") == "debit"


def test_reversal_mirrors_lines_with_flipped_sides(db):
    accounts = create_accounts(db)
    entry = make_posted(
        db,
        [
            debit(accounts["311"], "1200.00"),
            credit(accounts["602"], "1000.00", description="Sluzby"),
            credit(accounts["343"], "200.00", cost_center="HQ"),
        ],
    )
    entry_id = entry.id

    result = _reverse(db, entry_id)
    original, mirror = result.original, result.reversal

    assert original.status == "reversed"
    assert original.reversed_by_id == mirror.id
    assert mirror.status == "posted"
    assert mirror.reversal_of_id == original.id
    assert mirror.number == "FA-2024-0002"
    assert mirror.entry_date == date(2024, 4, 1)
    assert mirror.description == "STORNO: Faktura za sluzby (original document FA-2024-0001)"
    assert mirror.total_debit == mirror.total_credit == Decimal("1200.00")
    assert [(line.account_id, line.side, line.amount) for line in mirror.lines] == [
        (accounts["311"].id, "credit", Decimal("1200.00")),
        (accounts["602"].id, "debit", Decimal("1000.00")),
        (accounts["343"].id, "debit", Decimal("200.00")),
    ]
    assert mirror.lines[1].description == "STORNO: Sluzby"
    assert mirror.lines[2].cost_center == "HQ"

    # The original lines are untouched.
    reloaded = db.get(JournalEntry, entry_id)
    assert [line.side for line in reloaded.lines] == ["debit", "credit", "credit"]
    assert [event.action for event in list_entry_events(db, 1, entry_id)] == ["CREATE", "POST", "REVERSE"]
    assert [event.action for event in list_entry_events(db, 1, mirror.id)] == ["POST"]


def test_second_reversal_rejected(db):
    accounts = create_accounts(db)
    entry = make_posted(db, [debit(accounts["311"], "50.00"), credit(accounts["602"], "50.00")])
    entry_id = entry.id
    _reverse(db, entry_id)

    with pytest.raises(AlreadyReversedError) as excinfo:
        _reverse(db, entry_id)
    assert excinfo.value.code == "ALREADY_REVERSED"
    assert db.query(JournalEntry).count() == 2


def test_draft_cannot_be_reversed(db):
    accounts = create_accounts(db)
    entry = make_draft(db, [debit(accounts["311"], "50.00"), credit(accounts["602"], "50.00")])
    with pytest.raises(PostingStateError):
        _reverse(db, entry.id)


def test_reversal_date_before_entry_date_rejected(db):
    accounts = create_accounts(db)
    entry = make_posted(db, [debit(accounts["311"], "50.00"), credit(accounts["602"], "50.00")])
    with pytest.raises(LedgerValidationError):
        _reverse(db, entry.id, reversal_date=date(2024, 3, 1))
    assert db.get(JournalEntry, entry.id).status == "posted"


def test_reversal_in_next_fiscal_year_uses_that_years_series(db):
    accounts = create_accounts(db)
    entry = make_posted(
        db, [debit(accounts["311"], "50.00"), credit(accounts["602"], "50.00")], entry_date=date(2024, 12, 20)
    )
    mirror = _reverse(db, entry.id, reversal_date=date(2025, 1, 10)).reversal
    assert mirror.fiscal_year == 2025
    assert mirror.number == "FA-2025-0001"


def test_reversal_of_reversal(db, monkeypatch):
    accounts = create_accounts(db)
    entry = make_posted(db, [debit(accounts["311"], "50.00"), credit(accounts["602"], "50.00")])
    mirror_id = _reverse(db, entry.id).reversal.id

    monkeypatch.setattr(settings, "ALLOW_REVERSAL_OF_REVERSAL", False)
    with pytest.raises(PostingStateError):
        _reverse(db, mirror_id)

    monkeypatch.setattr(settings, "ALLOW_REVERSAL_OF_REVERSAL", True)
    restored = _reverse(db, mirror_id, reversal_date=date(2024, 4, 2)).reversal
    assert [line.side for line in restored.lines] == ["debit", "credit"]
    assert restored.description.startswith("STORNO: STORNO: ")


def test_reversed_entry_cannot_be_edited(db):
    accounts = create_accounts(db)
    entry = make_posted(db, [debit(accounts["311"], "50.00"), credit(accounts["602"], "50.00")])
    entry_id = entry.id
    _reverse(db, entry_id)

    with pytest.raises(PostingStateError):
        journal.run_in_transaction(
            db, lambda: journal.update_draft(db, 1, entry_id, changes={"description": "edited"})
        )

    original = db.get(JournalEntry, entry_id)
    original.status = "posted"
    with pytest.raises(PostingStateError):
        db.flush()
    db.rollback()
