"""Balances and reports over the posted record.

Only posted history counts. A reversed original and its storno mirror are both
part of that history, so both contribute; together they net to zero. Drafts
never contribute.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ledger.accounting.exceptions import LedgerOutOfBalanceError, LedgerValidationError
from ledger.config import settings
from ledger.models import ENTRY_POSTED, ENTRY_REVERSED, SIDE_CREDIT, SIDE_DEBIT, Account, JournalEntry, JournalLine
from ledger.utils import ZERO_MONEY, nets_to_zero, quantize_money, sum_money

logger = logging.getLogger(__name__)

COUNTED_STATUSES = (ENTRY_POSTED, ENTRY_REVERSED)


def compute_account_balance(account: Account, debit: Decimal, credit: Decimal) -> Decimal:
    """Balance on the account's normal side: debit-normal types increase on debit, others on credit."""
    if account.is_debit_normal:
        return debit - credit
    return credit - debit


@dataclass(frozen=True)
class AccountFilter:
    types: Optional[frozenset] = None
    code_prefix: Optional[str] = None
    account_ids: Optional[frozenset] = None
    exclude_off_balance: bool = False

    @classmethod
    def build(
        cls,
        *,
        types: Optional[Iterable[str]] = None,
        code_prefix: Optional[str] = None,
        account_ids: Optional[Iterable[int]] = None,
        exclude_off_balance: bool = False,
    ) -> "AccountFilter":
        return cls(
            types=frozenset(t.lower() for t in types) if types else None,
            code_prefix=code_prefix or None,
            account_ids=frozenset(account_ids) if account_ids else None,
            exclude_off_balance=exclude_off_balance,
        )

    def apply(self, query):
        if self.types:
            query = query.filter(Account.type.in_(sorted(self.types)))
        if self.code_prefix:
            query = query.filter(Account.code.startswith(self.code_prefix))
        if self.account_ids:
            query = query.filter(Account.id.in_(sorted(self.account_ids)))
        if self.exclude_off_balance:
            query = query.filter(Account.is_off_balance.is_(False))
        return query


ALL_ACCOUNTS = AccountFilter()


@dataclass(frozen=True)
class AccountBalance:
    account: Account
    debit_total: Decimal
    credit_total: Decimal

    @property
    def net_balance(self) -> Decimal:
        return compute_account_balance(self.account, self.debit_total, self.credit_total)


def _resolve_window(
    date_from: Optional[date], date_to: Optional[date], as_of: Optional[date]
) -> tuple[Optional[date], Optional[date]]:
    if as_of is not None:
        if date_from is not None or date_to is not None:
            raise LedgerValidationError("Use either as_of or a date range, not both.")
        return None, as_of
    if date_from and date_to and date_from > date_to:
        raise LedgerValidationError("date_from must not be after date_to.", date_from=date_from, date_to=date_to)
    return date_from, date_to


def _sums(db: Session, company_id: int, account_filter: AccountFilter, date_from, date_to):
    debit_sum = func.coalesce(func.sum(case((JournalLine.side == SIDE_DEBIT, JournalLine.amount), else_=0)), 0)
    credit_sum = func.coalesce(func.sum(case((JournalLine.side == SIDE_CREDIT, JournalLine.amount), else_=0)), 0)
    query = (
        db.query(Account, debit_sum.label("debit_total"), credit_sum.label("credit_total"))
        .join(JournalLine, JournalLine.account_id == Account.id)
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .filter(
            Account.company_id == company_id,
            JournalEntry.company_id == company_id,
            JournalEntry.status.in_(COUNTED_STATUSES),
        )
    )
    if date_from is not None:
        query = query.filter(JournalEntry.entry_date >= date_from)
    if date_to is not None:
        query = query.filter(JournalEntry.entry_date <= date_to)
    query = account_filter.apply(query)
    return query.group_by(Account.id).order_by(Account.code.asc(), Account.analytic.asc()).all()


def balances(
    db: Session,
    company_id: int,
    account_filter: AccountFilter = ALL_ACCOUNTS,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    as_of: Optional[date] = None,
) -> dict[Account, AccountBalance]:
    """Debit and credit turnover per account for a period range or up to ``as_of``."""
    date_from, date_to = _resolve_window(date_from, date_to, as_of)
    result: dict[Account, AccountBalance] = {}
    for account, debit_total, credit_total in _sums(db, company_id, account_filter, date_from, date_to):
        result[account] = AccountBalance(account, quantize_money(debit_total), quantize_money(credit_total))
    return result


def is_balanced(
    db: Session,
    company_id: int,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    as_of: Optional[date] = None,
) -> bool:
    totals = balances(db, company_id, date_from=date_from, date_to=date_to, as_of=as_of).values()
    debit = sum_money(item.debit_total for item in totals)
    credit = sum_money(item.credit_total for item in totals)
    return nets_to_zero(debit, credit, settings.BALANCE_TOLERANCE)


def export_guard(db: Session, company_id: int, *, date_from: Optional[date] = None, date_to: Optional[date] = None) -> None:
    """Refuse a regulatory export over a ledger that does not net to zero."""
    totals = balances(db, company_id, date_from=date_from, date_to=date_to).values()
    debit = sum_money(item.debit_total for item in totals)
    credit = sum_money(item.credit_total for item in totals)
    if not nets_to_zero(debit, credit, settings.BALANCE_TOLERANCE):
        logger.error(
            "Ledger out of balance for company_id=%s window=%s..%s: debit=%s credit=%s",
            company_id,
            date_from,
            date_to,
            debit,
            credit,
        )
        raise LedgerOutOfBalanceError(
            "Posted ledger does not balance; export refused.",
            debit_total=debit,
            credit_total=credit,
            date_from=date_from,
            date_to=date_to,
        )


@dataclass
class TrialBalanceRow:
    account: Account
    opening_debit: Decimal = ZERO_MONEY
    opening_credit: Decimal = ZERO_MONEY
    period_debit: Decimal = ZERO_MONEY
    period_credit: Decimal = ZERO_MONEY

    @property
    def closing_debit(self) -> Decimal:
        return self.opening_debit + self.period_debit

    @property
    def closing_credit(self) -> Decimal:
        return self.opening_credit + self.period_credit

    @property
    def closing_balance(self) -> Decimal:
        return compute_account_balance(self.account, self.closing_debit, self.closing_credit)


@dataclass
class TrialBalance:
    date_from: date
    date_to: date
    rows: list[TrialBalanceRow] = field(default_factory=list)

    def _total(self, name: str) -> Decimal:
        return sum_money(getattr(row, name) for row in self.rows)

    @property
    def summary(self) -> dict[str, Decimal]:
        return {
            name: self._total(name)
            for name in (
                "opening_debit",
                "opening_credit",
                "period_debit",
                "period_credit",
                "closing_debit",
                "closing_credit",
            )
        }

    @property
    def is_balanced(self) -> bool:
        summary = self.summary
        return (
            nets_to_zero(summary["period_debit"], summary["period_credit"], settings.BALANCE_TOLERANCE)
            and nets_to_zero(summary["closing_debit"], summary["closing_credit"], settings.BALANCE_TOLERANCE)
        )


def trial_balance(
    db: Session,
    company_id: int,
    date_from: date,
    date_to: date,
    account_filter: AccountFilter = ALL_ACCOUNTS,
) -> TrialBalance:
    """Opening balance before ``date_from``, period turnover and closing, per account with activity."""
    if date_from > date_to:
        raise LedgerValidationError("date_from must not be after date_to.", date_from=date_from, date_to=date_to)
    report = TrialBalance(date_from=date_from, date_to=date_to)
    rows: dict[int, TrialBalanceRow] = {}

    opening = balances(db, company_id, account_filter, as_of=date_from - timedelta(days=1))
    for account, item in opening.items():
        row = rows.setdefault(account.id, TrialBalanceRow(account))
        row.opening_debit = item.debit_total
        row.opening_credit = item.credit_total

    period = balances(db, company_id, account_filter, date_from=date_from, date_to=date_to)
    for account, item in period.items():
        row = rows.setdefault(account.id, TrialBalanceRow(account))
        row.period_debit = item.debit_total
        row.period_credit = item.credit_total

    report.rows = sorted(rows.values(), key=lambda row: (row.account.code, row.account.analytic or ""))
    return report


@dataclass(frozen=True)
class LedgerMovement:
    entry_id: int
    number: Optional[str]
    entry_date: date
    document_type: str
    description: Optional[str]
    side: str
    amount: Decimal
    balance: Decimal


@dataclass
class AccountLedger:
    account: Account
    opening_balance: Decimal
    movements: list[LedgerMovement] = field(default_factory=list)

    @property
    def closing_balance(self) -> Decimal:
        if self.movements:
            return self.movements[-1].balance
        return self.opening_balance


def account_ledger(
    db: Session,
    company_id: int,
    account: Account,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> AccountLedger:
    """Every posted movement on one account, with a running balance on its normal side."""
    opening_balance = ZERO_MONEY
    if date_from is not None:
        opening = balances(
            db, company_id, AccountFilter.build(account_ids=[account.id]), as_of=date_from - timedelta(days=1)
        )
        item = opening.get(account)
        if item is not None:
            opening_balance = item.net_balance

    query = (
        db.query(JournalLine, JournalEntry)
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .filter(
            JournalEntry.company_id == company_id,
            JournalEntry.status.in_(COUNTED_STATUSES),
            JournalLine.account_id == account.id,
        )
    )
    if date_from is not None:
        query = query.filter(JournalEntry.entry_date >= date_from)
    if date_to is not None:
        query = query.filter(JournalEntry.entry_date <= date_to)
    rows = query.order_by(JournalEntry.entry_date.asc(), JournalEntry.number.asc(), JournalLine.position.asc()).all()

    ledger = AccountLedger(account=account, opening_balance=opening_balance)
    running = opening_balance
    for line, entry in rows:
        amount = quantize_money(line.amount)
        debit, credit = (amount, ZERO_MONEY) if line.side == SIDE_DEBIT else (ZERO_MONEY, amount)
        running += compute_account_balance(account, debit, credit)
        ledger.movements.append(
            LedgerMovement(
                entry_id=entry.id,
                number=entry.number,
                entry_date=entry.entry_date,
                document_type=entry.document_type,
                description=line.description or entry.description,
                side=line.side,
                amount=amount,
                balance=running,
            )
        )
    return ledger
