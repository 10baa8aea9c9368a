from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from ledger.accounting.exceptions import (
    EmptyEntryError,
    IncompleteCurrencyError,
    InvalidAmountError,
    LedgerValidationError,
    UnbalancedEntryError,
    UnknownAccountError,
)
from ledger.config import settings
from ledger.models import SIDE_CREDIT, SIDE_DEBIT, SIDES, Account
from ledger.utils import ZERO_MONEY, nets_to_zero, quantize_money


@dataclass(frozen=True)
class JournalLineInput:
    account_id: Optional[int]
    side: str
    amount: Decimal
    description: Optional[str] = None
    amount_currency: Optional[Decimal] = None
    currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    cost_center: Optional[str] = None
    project: Optional[str] = None
    account_label: Optional[str] = None


@dataclass(frozen=True)
class JournalEntryInput:
    company_id: int
    document_type: str
    entry_date: date
    description: str
    lines: List[JournalLineInput] = field(default_factory=list)
    source_document_type: Optional[str] = None
    source_document_id: Optional[int] = None


@dataclass(frozen=True)
class BalanceResult:
    debit_total: Decimal
    credit_total: Decimal

    @property
    def difference(self) -> Decimal:
        return self.debit_total - self.credit_total


def line_totals(lines: Iterable) -> BalanceResult:
    debit_total = ZERO_MONEY
    credit_total = ZERO_MONEY
    for line in lines:
        amount = Decimal(line.amount or 0)
        if line.side == SIDE_DEBIT:
            debit_total += amount
        else:
            credit_total += amount
    return BalanceResult(quantize_money(debit_total), quantize_money(credit_total))


def _position(line, index: int) -> int:
    return getattr(line, "position", None) or index


def ensure_balanced(
    lines: List,
    accounts: Optional[Mapping[int, Account]] = None,
    tolerance: Optional[Decimal] = None,
) -> BalanceResult:
    """Validate a complete line set and return its totals.

    Works on ``JournalLineInput`` values and on persisted ``JournalLine`` rows.
    When ``accounts`` is given every line must reference an active account from
    it. Checks run in a fixed order so callers always see the first problem:
    empty entry, amounts, currency triple, accounts, balance.
    """
    if not lines:
        raise EmptyEntryError()

    for index, line in enumerate(lines, start=1):
        if line.side not in SIDES:
            position = _position(line, index)
            raise LedgerValidationError(f"Line {position} has invalid side '{line.side}'.", position=position)
        amount = Decimal(line.amount if line.amount is not None else 0)
        if amount <= 0:
            raise InvalidAmountError(_position(line, index), amount)

    for index, line in enumerate(lines, start=1):
        triple = (line.amount_currency, line.currency, line.exchange_rate)
        present = [value is not None and value != "" for value in triple]
        if any(present) and not all(present):
            raise IncompleteCurrencyError(_position(line, index))

    if accounts is not None:
        for index, line in enumerate(lines, start=1):
            if line.account_id is None:
                raise UnknownAccountError(_position(line, index), None, reason="missing")
            account = accounts.get(line.account_id)
            if account is None:
                raise UnknownAccountError(_position(line, index), line.account_id)
            if not account.is_active:
                raise UnknownAccountError(_position(line, index), line.account_id, reason="disabled")

    result = line_totals(lines)
    limit = settings.BALANCE_TOLERANCE if tolerance is None else tolerance
    if not nets_to_zero(result.debit_total, result.credit_total, limit):
        raise UnbalancedEntryError(result.debit_total, result.credit_total)
    return result


def build_invoice_entry(
    *,
    company_id: int,
    entry_date: date,
    receivable_account_id: int,
    revenue_account_id: int,
    vat_account_id: Optional[int],
    net_amount: Decimal,
    vat_amount: Decimal = ZERO_MONEY,
    description: str,
    source_document_id: Optional[int] = None,
) -> JournalEntryInput:
    """Issued invoice: receivable on the debit side, revenue and output VAT on the credit side."""
    net_amount = quantize_money(net_amount)
    vat_amount = quantize_money(vat_amount)
    lines = [
        JournalLineInput(account_id=receivable_account_id, side=SIDE_DEBIT, amount=net_amount + vat_amount),
        JournalLineInput(account_id=revenue_account_id, side=SIDE_CREDIT, amount=net_amount),
    ]
    if vat_amount > 0:
        lines.append(JournalLineInput(account_id=vat_account_id, side=SIDE_CREDIT, amount=vat_amount))
    ensure_balanced(lines)
    return JournalEntryInput(
        company_id=company_id,
        document_type="FA",
        entry_date=entry_date,
        description=description,
        lines=lines,
        source_document_type="invoice",
        source_document_id=source_document_id,
    )


def build_payment_entry(
    *,
    company_id: int,
    entry_date: date,
    bank_account_id: int,
    receivable_account_id: int,
    amount: Decimal,
    description: str,
    source_document_id: Optional[int] = None,
) -> JournalEntryInput:
    amount = quantize_money(amount)
    lines = [
        JournalLineInput(account_id=bank_account_id, side=SIDE_DEBIT, amount=amount),
        JournalLineInput(account_id=receivable_account_id, side=SIDE_CREDIT, amount=amount),
    ]
    ensure_balanced(lines)
    return JournalEntryInput(
        company_id=company_id,
        document_type="BV",
        entry_date=entry_date,
        description=description,
        lines=lines,
        source_document_type="payment",
        source_document_id=source_document_id,
    )
