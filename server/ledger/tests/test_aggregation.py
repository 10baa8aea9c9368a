from datetime import date
from decimal import Decimal

import pytest

from ledger.accounting import aggregation, journal
from ledger.accounting.aggregation import AccountFilter, compute_account_balance
from ledger.accounting.chart import register_account
from ledger.accounting.exceptions import LedgerOutOfBalanceError, LedgerValidationError
from ledger.models import Account, JournalEntry, JournalLine
from ledger.tests.factories import create_accounts, credit, debit, make_draft, make_posted


def _by_code(result):
    return {account.code: item for account, item in result.items()}


def _invoice(db, accounts, amount="1200.00", **kwargs):
    return make_posted(db, [debit(accounts["311"], amount), credit(accounts["602"], amount)], **kwargs)


def test_compute_account_balance():
    asset = Account(type="asset")
    revenue = Account(type="revenue")
    assert compute_account_balance(asset, Decimal("100"), Decimal("30")) == Decimal("70")
    assert compute_account_balance(revenue, Decimal("100"), Decimal("30")) == Decimal("-70")


def test_balances_over_posted_entries(db):
    accounts = create_accounts(db)
    _invoice(db, accounts)

    result = _by_code(aggregation.balances(db, 1, date_from=date(2024, 1, 1), date_to=date(2024, 3, 31)))

    assert set(result) == {"311", "602"}
    assert (result["311"].debit_total, result["311"].credit_total, result["311"].net_balance) == (
        Decimal("1200.00"),
        Decimal("0.00"),
        Decimal("1200.00"),
    )
    assert (result["602"].debit_total, result["602"].credit_total, result["602"].net_balance) == (
        Decimal("0.00"),
        Decimal("1200.00"),
        Decimal("1200.00"),
    )


def test_reversal_nets_to_zero_but_history_keeps_original(db):
    accounts = create_accounts(db)
    entry = _invoice(db, accounts)
    entry_id = entry.id
    journal.run_in_transaction(db, lambda: journal.reverse_entry(db, 1, entry_id, reversal_date=date(2024, 4, 1)))

    after = _by_code(aggregation.balances(db, 1, date_from=date(2024, 1, 1), date_to=date(2024, 4, 30)))
    for code in ("311", "602"):
        assert after[code].debit_total == Decimal("1200.00")
        assert after[code].credit_total == Decimal("1200.00")
        assert after[code].net_balance == Decimal("0.00")

    before = _by_code(aggregation.balances(db, 1, date_from=date(2024, 1, 1), date_to=date(2024, 3, 31)))
    assert before["311"].net_balance == Decimal("1200.00")
    assert before["602"].net_balance == Decimal("1200.00")


def test_drafts_never_contribute(db):
    accounts = create_accounts(db)
    _invoice(db, accounts)
    make_draft(db, [debit(accounts["518"], "50.00")], document_type="ID")

    result = _by_code(aggregation.balances(db, 1))
    assert "518" not in result
    assert aggregation.is_balanced(db, 1)


def test_as_of_and_range_are_exclusive(db):
    accounts = create_accounts(db)
    _invoice(db, accounts)
    _invoice(db, accounts, amount="300.00", entry_date=date(2024, 5, 1))

    as_of = _by_code(aggregation.balances(db, 1, as_of=date(2024, 4, 30)))
    assert as_of["311"].debit_total == Decimal("1200.00")

    with pytest.raises(LedgerValidationError):
        aggregation.balances(db, 1, date_from=date(2024, 1, 1), as_of=date(2024, 4, 30))
    with pytest.raises(LedgerValidationError):
        aggregation.balances(db, 1, date_from=date(2024, 5, 1), date_to=date(2024, 4, 1))


def test_account_filters(db):
    accounts = create_accounts(db)
    memo = register_account(db, 1, code="799", name="Evidencne ucty", type="asset", is_off_balance=True)
    db.commit()
    _invoice(db, accounts)
    make_posted(db, [debit(memo, "5.00"), credit(memo, "5.00")], document_type="ID")

    assert set(_by_code(aggregation.balances(db, 1, AccountFilter.build(types=["Revenue"])))) == {"602"}
    assert set(_by_code(aggregation.balances(db, 1, AccountFilter.build(code_prefix="3")))) == {"311"}
    assert set(_by_code(aggregation.balances(db, 1, AccountFilter.build(account_ids=[memo.id])))) == {"799"}
    assert set(_by_code(aggregation.balances(db, 1, AccountFilter.build(exclude_off_balance=True)))) == {"311", "602"}
    assert set(_by_code(aggregation.balances(db, 1))) == {"311", "602", "799"}
    assert aggregation.balances(db, 2) == {}


def test_export_guard_detects_corrupt_ledger(db, caplog):
    accounts = create_accounts(db)
    _invoice(db, accounts)
    aggregation.export_guard(db, 1)

    # Written straight through the ORM, bypassing the posting validator.
    db.add(
        JournalEntry(
            company_id=1,
            number="ID-2024-9999",
            document_type="ID",
            fiscal_year=2024,
            entry_date=date(2024, 3, 20),
            description="Poskodeny zapis",
            status="posted",
            total_debit=Decimal("10.00"),
            total_credit=Decimal("0.00"),
            lines=[JournalLine(position=1, account_id=accounts["518"].id, side="debit", amount=Decimal("10.00"))],
        )
    )
    db.commit()

    assert not aggregation.is_balanced(db, 1)
    with pytest.raises(LedgerOutOfBalanceError) as excinfo:
        aggregation.export_guard(db, 1)
    assert excinfo.value.http_status == 500
    assert "out of balance" in caplog.text
    aggregation.export_guard(db, 1, date_to=date(2024, 3, 15))


def test_trial_balance(db):
    accounts = create_accounts(db)
    _invoice(db, accounts)
    make_posted(
        db,
        [debit(accounts["221"], "500.00"), credit(accounts["311"], "500.00")],
        document_type="BV",
        entry_date=date(2024, 4, 10),
    )

    report = aggregation.trial_balance(db, 1, date(2024, 4, 1), date(2024, 4, 30))

    rows = {row.account.code: row for row in report.rows}
    assert list(rows) == ["221", "311", "602"]
    assert rows["221"].period_debit == Decimal("500.00")
    assert rows["221"].closing_balance == Decimal("500.00")
    assert rows["311"].opening_debit == Decimal("1200.00")
    assert rows["311"].period_credit == Decimal("500.00")
    assert rows["311"].closing_balance == Decimal("700.00")
    assert rows["602"].opening_credit == Decimal("1200.00")
    assert rows["602"].closing_balance == Decimal("1200.00")
    assert report.summary["closing_debit"] == report.summary["closing_credit"] == Decimal("1700.00")
    assert report.is_balanced

    with pytest.raises(LedgerValidationError):
        aggregation.trial_balance(db, 1, date(2024, 4, 30), date(2024, 4, 1))


def test_account_ledger_running_balance(db):
    accounts = create_accounts(db)
    _invoice(db, accounts)
    make_posted(
        db,
        [debit(accounts["221"], "500.00"), credit(accounts["311"], "500.00")],
        document_type="BV",
        entry_date=date(2024, 4, 10),
    )
    receivables = db.get(Account, accounts["311"].id)

    full = aggregation.account_ledger(db, 1, receivables)
    assert full.opening_balance == Decimal("0.00")
    assert [(m.number, m.side, m.balance) for m in full.movements] == [
        ("FA-2024-0001", "debit", Decimal("1200.00")),
        ("BV-2024-0001", "credit", Decimal("700.00")),
    ]
    assert full.closing_balance == Decimal("700.00")

    april = aggregation.account_ledger(db, 1, receivables, date_from=date(2024, 4, 1))
    assert april.opening_balance == Decimal("1200.00")
    assert [m.balance for m in april.movements] == [Decimal("700.00")]

    empty = aggregation.account_ledger(db, 1, receivables, date_from=date(2024, 6, 1))
    assert empty.movements == []
    assert empty.closing_balance == Decimal("700.00")
