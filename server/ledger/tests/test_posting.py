from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from ledger.accounting.exceptions import (
    EmptyEntryError,
    IncompleteCurrencyError,
    InvalidAmountError,
    UnbalancedEntryError,
    UnknownAccountError,
)
from ledger.accounting.posting import (
    JournalLineInput,
    build_invoice_entry,
    build_payment_entry,
    ensure_balanced,
)


def _line(account_id, side, amount, **kwargs):
    return JournalLineInput(account_id=account_id, side=side, amount=Decimal(amount), **kwargs)


def test_balanced_entry_passes():
    lines = [_line(1, "debit", "10.00"), _line(2, "credit", "10.00")]
    result = ensure_balanced(lines)
    assert result.debit_total == Decimal("10.00")
    assert result.credit_total == Decimal("10.00")
    assert result.difference == Decimal("0.00")


def test_unbalanced_entry_reports_totals():
    lines = [_line(1, "debit", "10.00"), _line(2, "credit", "9.00")]
    with pytest.raises(UnbalancedEntryError) as excinfo:
        ensure_balanced(lines)
    assert excinfo.value.debit_total == Decimal("10.00")
    assert excinfo.value.credit_total == Decimal("9.00")
    assert excinfo.value.difference == Decimal("1.00")
    assert isinstance(excinfo.value, ValueError)


def test_difference_below_half_a_cent_is_balanced():
    lines = [_line(1, "debit", "10.004"), _line(2, "credit", "10.00")]
    # Amounts are rounded to cents before comparison.
    ensure_balanced(lines)


def test_one_cent_difference_is_unbalanced():
    lines = [_line(1, "debit", "10.01"), _line(2, "credit", "10.00")]
    with pytest.raises(UnbalancedEntryError):
        ensure_balanced(lines)


def test_empty_entry_rejected():
    with pytest.raises(EmptyEntryError):
        ensure_balanced([])


@pytest.mark.parametrize("amount", ["0", "-5.00"])
def test_non_positive_amount_rejected(amount):
    lines = [_line(1, "debit", amount), _line(2, "credit", "5.00")]
    with pytest.raises(InvalidAmountError) as excinfo:
        ensure_balanced(lines)
    assert excinfo.value.position == 1


def test_partial_currency_triple_rejected():
    lines = [
        _line(1, "debit", "100.00", amount_currency=Decimal("110.00"), currency="USD"),
        _line(2, "credit", "100.00"),
    ]
    with pytest.raises(IncompleteCurrencyError):
        ensure_balanced(lines)


def test_full_currency_triple_accepted():
    lines = [
        _line(1, "debit", "100.00", amount_currency=Decimal("108.50"), currency="USD", exchange_rate=Decimal("1.085")),
        _line(2, "credit", "100.00"),
    ]
    ensure_balanced(lines)


def test_accounts_must_exist_and_be_active():
    accounts = {1: SimpleNamespace(id=1, is_active=True), 2: SimpleNamespace(id=2, is_active=False)}
    lines = [_line(1, "debit", "5.00"), _line(2, "credit", "5.00")]
    with pytest.raises(UnknownAccountError) as excinfo:
        ensure_balanced(lines, accounts=accounts)
    assert excinfo.value.reason == "disabled"

    lines = [_line(1, "debit", "5.00"), _line(None, "credit", "5.00")]
    with pytest.raises(UnknownAccountError) as excinfo:
        ensure_balanced(lines, accounts=accounts)
    assert excinfo.value.reason == "missing"

    lines = [_line(1, "debit", "5.00"), _line(99, "credit", "5.00")]
    with pytest.raises(UnknownAccountError) as excinfo:
        ensure_balanced(lines, accounts=accounts)
    assert excinfo.value.account_id == 99


def test_invoice_entry_balances():
    entry = build_invoice_entry(
        company_id=1,
        entry_date=date(2024, 3, 15),
        receivable_account_id=1,
        revenue_account_id=2,
        vat_account_id=3,
        net_amount=Decimal("1000.00"),
        vat_amount=Decimal("200.00"),
        description="Faktura 2024001",
    )
    assert entry.document_type == "FA"
    result = ensure_balanced(entry.lines)
    assert result.debit_total == Decimal("1200.00")
    assert [line.side for line in entry.lines] == ["debit", "credit", "credit"]


def test_invoice_without_vat_has_two_lines():
    entry = build_invoice_entry(
        company_id=1,
        entry_date=date(2024, 3, 15),
        receivable_account_id=1,
        revenue_account_id=2,
        vat_account_id=None,
        net_amount=Decimal("50"),
        description="Faktura bez DPH",
    )
    assert len(entry.lines) == 2


def test_payment_entry_balances():
    entry = build_payment_entry(
        company_id=1,
        entry_date=date(2024, 4, 2),
        bank_account_id=4,
        receivable_account_id=1,
        amount=Decimal("1200.00"),
        description="Uhrada faktury",
        source_document_id=7,
    )
    assert entry.document_type == "BV"
    assert entry.source_document_id == 7
    ensure_balanced(entry.lines)
