from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from ledger.accounting.chart import register_account
from ledger.accounting.journal import create_draft, post_entry, run_in_transaction
from ledger.accounting.posting import JournalEntryInput, JournalLineInput
from ledger.models import SIDE_CREDIT, SIDE_DEBIT, Account, JournalEntry

BASIC_ACCOUNTS = [
    ("311", "Odberatelia", "asset"),
    ("321", "Dodavatelia", "liability"),
    ("343", "DPH", "liability"),
    ("221", "Bankove ucty", "asset"),
    ("518", "Ostatne sluzby", "expense"),
    ("602", "Trzby z predaja sluzieb", "revenue"),
]


def create_accounts(db: Session, company_id: int = 1) -> dict[str, Account]:
    accounts = {
        code: register_account(db, company_id, code=code, name=name, type=account_type)
        for code, name, account_type in BASIC_ACCOUNTS
    }
    db.commit()
    return accounts


def debit(account: Account | None, amount: str, **kwargs) -> JournalLineInput:
    return JournalLineInput(
        account_id=account.id if account else None, side=SIDE_DEBIT, amount=Decimal(amount), **kwargs
    )


def credit(account: Account | None, amount: str, **kwargs) -> JournalLineInput:
    return JournalLineInput(
        account_id=account.id if account else None, side=SIDE_CREDIT, amount=Decimal(amount), **kwargs
    )


def make_draft(
    db: Session,
    lines: list[JournalLineInput],
    *,
    entry_date: date = date(2024, 3, 15),
    document_type: str = "FA",
    description: str = "Faktura za sluzby",
    company_id: int = 1,
) -> JournalEntry:
    data = JournalEntryInput(
        company_id=company_id,
        document_type=document_type,
        entry_date=entry_date,
        description=description,
        lines=lines,
    )
    return run_in_transaction(db, lambda: create_draft(db, data, user_id=1))


def make_posted(db: Session, lines: list[JournalLineInput], **kwargs) -> JournalEntry:
    entry = make_draft(db, lines, **kwargs)
    entry_id = entry.id
    company_id = kwargs.get("company_id", 1)
    return run_in_transaction(db, lambda: post_entry(db, company_id, entry_id, user_id=1))
