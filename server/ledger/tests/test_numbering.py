from datetime import date

import pytest

from ledger.accounting import numbering
from ledger.accounting.exceptions import InvalidDocumentTypeError, LedgerValidationError
from ledger.models import Company
from ledger.tests.factories import create_accounts, credit, debit, make_posted


@pytest.mark.parametrize(
    "entry_date,start_month,expected",
    [
        (date(2024, 3, 1), 1, 2024),
        (date(2024, 12, 31), 1, 2024),
        (date(2024, 6, 30), 7, 2023),
        (date(2024, 7, 1), 7, 2024),
    ],
)
def test_fiscal_year_for(entry_date, start_month, expected):
    assert numbering.fiscal_year_for(entry_date, start_month) == expected


def test_numbers_are_sequential_per_type_and_year(db):
    assert numbering.next_number(db, 1, "FA", 2024) == "FA-2024-0001"
    assert numbering.next_number(db, 1, "FA", 2024) == "FA-2024-0002"
    assert numbering.next_number(db, 1, "ID", 2024) == "ID-2024-0001"
    assert numbering.next_number(db, 1, "FA", 2025) == "FA-2025-0001"
    assert numbering.next_number(db, 2, "FA", 2024) == "FA-2024-0001"
    db.commit()
    assert numbering.next_number(db, 1, "fa", 2024) == "FA-2024-0003"


def test_rolled_back_number_is_reused(db):
    assert numbering.next_number(db, 1, "BV", 2024) == "BV-2024-0001"
    db.commit()
    assert numbering.next_number(db, 1, "BV", 2024) == "BV-2024-0002"
    db.rollback()
    assert numbering.next_number(db, 1, "BV", 2024) == "BV-2024-0002"


def test_unknown_document_type_rejected(db):
    with pytest.raises(InvalidDocumentTypeError):
        numbering.next_number(db, 1, "XYZ", 2024)


def test_custom_series_format(db):
    numbering.set_series_format(db, 1, "PFA", prefix="DF", separator="/", padding=6)
    db.commit()

    assert numbering.next_number(db, 1, "PFA", 2024) == "DF/2024/000001"
    assert numbering.get_series_format(db, 1, "PFA").format(2024, 12) == "DF/2024/000012"
    assert numbering.get_series_format(db, 2, "PFA").format(2024, 12) == "PFA-2024-0012"

    with pytest.raises(LedgerValidationError):
        numbering.set_series_format(db, 1, "PFA", prefix="", padding=4)
    with pytest.raises(LedgerValidationError):
        numbering.set_series_format(db, 1, "PFA", prefix="DF", padding=0)


def test_posting_uses_company_fiscal_year(db):
    db.get(Company, 1).fiscal_year_start_month = 7
    db.commit()
    accounts = create_accounts(db)

    entry = make_posted(
        db, [debit(accounts["311"], "10.00"), credit(accounts["602"], "10.00")], entry_date=date(2024, 3, 15)
    )
    assert entry.fiscal_year == 2023
    assert entry.number == "FA-2023-0001"


def test_check_numbering_reports_gaps(db):
    accounts = create_accounts(db)
    lines = [debit(accounts["311"], "10.00"), credit(accounts["602"], "10.00")]
    make_posted(db, lines)
    # Consume numbers without posting to leave holes in the series.
    numbering.next_number(db, 1, "FA", 2024)
    db.commit()
    make_posted(db, lines)
    numbering.next_number(db, 1, "FA", 2024)
    numbering.next_number(db, 1, "FA", 2024)
    db.commit()
    make_posted(db, lines)
    make_posted(db, lines, document_type="ID")

    results = {(check.document_type, check.fiscal_year): check for check in numbering.check_numbering(db, 1)}

    invoices = results[("FA", 2024)]
    assert invoices.count == 3
    assert invoices.first_number == "FA-2024-0001"
    assert invoices.last_number == "FA-2024-0006"
    assert invoices.gaps == ["missing 2", "missing 4-5"]
    assert invoices.duplicates == []
    assert invoices.has_issues

    internal = results[("ID", 2024)]
    assert internal.gaps == []
    assert not internal.has_issues

    assert numbering.check_numbering(db, 1, fiscal_year=2023) == []
