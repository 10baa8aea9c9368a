"""Chart of accounts registry.

Accounts are scoped to a company and identified by their synthetic code plus
an optional analytic suffix. Lookups return a tagged ``Found | NotFound`` so
callers have to handle the unknown-account path explicitly.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger.accounting.exceptions import (
    AccountInUseError,
    AccountNotFoundError,
    DuplicateAccountError,
    InvalidAccountCodeError,
    LedgerValidationError,
)
from ledger.models import ACCOUNT_TYPES, ENTRY_DRAFT, Account, JournalEntry, JournalLine
from ledger.seed_chart_of_accounts import STANDARD_ACCOUNTS

logger = logging.getLogger(__name__)

SYNTHETIC_CODE_RE = re.compile(r"^\d{3}$")
ANALYTIC_CODE_RE = re.compile(r"^[0-9A-Za-z]{0,6}$")


@dataclass(frozen=True)
class Found:
    account: Account


@dataclass(frozen=True)
class NotFound:
    code: str
    analytic: str = ""

    @property
    def label(self) -> str:
        return f"Unknown account {format_code(self.code, self.analytic)}"


LookupResult = Union[Found, NotFound]


def format_code(code: str, analytic: str = "") -> str:
    return f"{code}.{analytic}" if analytic else code


def split_code(full_code: str) -> tuple[str, str]:
    code, _, analytic = (full_code or "").strip().partition(".")
    return code, analytic


def validate_account_code(code: str, analytic: str = "") -> tuple[str, str]:
    code = (code or "").strip()
    analytic = (analytic or "").strip()
    if not SYNTHETIC_CODE_RE.match(code):
        raise InvalidAccountCodeError(f"Synthetic account code must be exactly 3 digits, got '{code}'.", code=code)
    if not ANALYTIC_CODE_RE.match(analytic):
        raise InvalidAccountCodeError(
            f"Analytic suffix must be up to 6 letters or digits, got '{analytic}'.", code=code, analytic=analytic
        )
    return code, analytic


def _validate_type(account_type: str) -> str:
    account_type = (account_type or "").lower()
    if account_type not in ACCOUNT_TYPES:
        raise LedgerValidationError(
            f"Account type must be one of {', '.join(ACCOUNT_TYPES)}, got '{account_type}'.", type=account_type
        )
    return account_type


def _existing_account_id(db: Session, company_id: int, code: str, analytic: str) -> Optional[int]:
    row = (
        db.query(Account.id)
        .filter(Account.company_id == company_id, Account.code == code, Account.analytic == analytic)
        .first()
    )
    return row[0] if row else None


def register_account(
    db: Session,
    company_id: int,
    *,
    code: str,
    analytic: str = "",
    name: str,
    type: str,
    is_tax_relevant: bool = True,
    is_off_balance: bool = False,
    is_active: bool = True,
) -> Account:
    code, analytic = validate_account_code(code, analytic)
    account_type = _validate_type(type)

    if _existing_account_id(db, company_id, code, analytic):
        raise DuplicateAccountError(code, analytic)

    account = Account(
        company_id=company_id,
        code=code,
        analytic=analytic,
        name=name,
        type=account_type,
        is_tax_relevant=is_tax_relevant,
        is_off_balance=is_off_balance,
        is_active=is_active,
    )
    # A savepoint keeps the caller's pending work when a concurrent insert wins.
    try:
        with db.begin_nested():
            db.add(account)
            db.flush()
    except IntegrityError:
        raise DuplicateAccountError(code, analytic) from None
    logger.info("Registered account %s for company_id=%s", account.full_code, company_id)
    return account


def get_account(db: Session, company_id: int, account_id: int) -> Account:
    account = db.query(Account).filter(Account.company_id == company_id, Account.id == account_id).first()
    if not account:
        raise AccountNotFoundError(account_id)
    return account


def lookup_account(
    db: Session,
    company_id: int,
    code: str,
    analytic: str = "",
    *,
    include_inactive: bool = False,
) -> LookupResult:
    code = (code or "").strip()
    analytic = (analytic or "").strip()
    query = db.query(Account).filter(
        Account.company_id == company_id,
        Account.code == code,
        Account.analytic == analytic,
    )
    if not include_inactive:
        query = query.filter(Account.is_active.is_(True))
    account = query.first()
    if account is None:
        return NotFound(code=code, analytic=analytic)
    return Found(account)


def list_accounts(
    db: Session,
    company_id: int,
    *,
    type: Optional[str] = None,
    active: Optional[bool] = None,
    class_prefix: Optional[str] = None,
    q: Optional[str] = None,
) -> list[Account]:
    query = db.query(Account).filter(Account.company_id == company_id)
    if type:
        query = query.filter(Account.type == type.lower())
    if active is not None:
        query = query.filter(Account.is_active.is_(active))
    if class_prefix:
        query = query.filter(Account.code.startswith(class_prefix))
    if q:
        like = f"%{q}%"
        query = query.filter((Account.name.ilike(like)) | (Account.code.ilike(like)))
    return query.order_by(Account.code.asc(), Account.analytic.asc()).all()


def account_is_referenced(db: Session, account_id: int, *, posted_only: bool = False) -> bool:
    query = db.query(JournalLine.id).filter(JournalLine.account_id == account_id)
    if posted_only:
        query = query.join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id).filter(
            JournalEntry.status != ENTRY_DRAFT
        )
    return query.first() is not None


def set_account_active(db: Session, company_id: int, account_id: int, active: bool) -> Account:
    account = get_account(db, company_id, account_id)
    account.is_active = active
    db.flush()
    logger.info("Account %s %s", account.full_code, "enabled" if active else "disabled")
    return account


def disable_account(db: Session, company_id: int, account_id: int) -> Account:
    return set_account_active(db, company_id, account_id, False)


def enable_account(db: Session, company_id: int, account_id: int) -> Account:
    return set_account_active(db, company_id, account_id, True)


def update_account(db: Session, company_id: int, account_id: int, changes: dict) -> Account:
    """Apply a partial update.

    The name and flags can always change. Code, analytic suffix and type define
    how posted lines are reported, so they are frozen once a posted line uses
    the account.
    """
    account = get_account(db, company_id, account_id)

    code = changes.get("code") or account.code
    analytic = (changes["analytic"] or "") if "analytic" in changes else account.analytic
    account_type = _validate_type(changes["type"]) if changes.get("type") else account.type
    identity_changed = (code, analytic) != (account.code, account.analytic)

    if identity_changed or account_type != account.type:
        if account_is_referenced(db, account.id, posted_only=True):
            raise AccountInUseError(
                f"Account {account.full_code} is used by posted entries; its code and type cannot change.",
                account_id=account.id,
            )
    if identity_changed:
        code, analytic = validate_account_code(code, analytic)
        clash = (
            db.query(Account.id)
            .filter(
                Account.company_id == company_id,
                Account.code == code,
                Account.analytic == analytic,
                Account.id != account.id,
            )
            .first()
        )
        if clash:
            raise DuplicateAccountError(code, analytic)
        account.code = code
        account.analytic = analytic
    account.type = account_type

    for key in ["name", "is_tax_relevant", "is_off_balance", "is_active"]:
        if key in changes and changes[key] is not None:
            setattr(account, key, changes[key])
    db.flush()
    return account


def delete_account(db: Session, company_id: int, account_id: int) -> None:
    account = get_account(db, company_id, account_id)
    if account_is_referenced(db, account.id):
        raise AccountInUseError(
            f"Account {account.full_code} is referenced by journal lines; disable it instead.",
            account_id=account.id,
        )
    db.delete(account)
    db.flush()
    logger.info("Deleted account %s for company_id=%s", account.full_code, company_id)


class ChartSnapshot:
    """Read-only image of a company's active accounts keyed by code."""

    def __init__(self, accounts: Iterable[Account]):
        self._by_code = {(account.code, account.analytic or ""): account for account in accounts}

    @classmethod
    def load(cls, db: Session, company_id: int) -> "ChartSnapshot":
        return cls(list_accounts(db, company_id, active=True))

    def lookup(self, code: str, analytic: str = "") -> LookupResult:
        key = ((code or "").strip(), (analytic or "").strip())
        account = self._by_code.get(key)
        if account is None:
            return NotFound(code=key[0], analytic=key[1])
        return Found(account)

    def __contains__(self, code) -> bool:
        if isinstance(code, tuple):
            return isinstance(self.lookup(*code), Found)
        return isinstance(self.lookup(code), Found)

    def __len__(self) -> int:
        return len(self._by_code)


def seed_standard_chart(db: Session, company_id: int) -> tuple[int, int]:
    """Upsert the standard Slovak chart by code. Returns (inserted, updated)."""

    existing = {
        account.code: account
        for account in db.query(Account).filter(Account.company_id == company_id, Account.analytic == "").all()
    }
    inserted = 0
    updated = 0
    for code, name, account_type, off_balance in STANDARD_ACCOUNTS:
        account = existing.get(code)
        if account is None:
            db.add(
                Account(
                    company_id=company_id,
                    code=code,
                    analytic="",
                    name=name,
                    type=account_type,
                    is_off_balance=off_balance,
                    is_tax_relevant=not off_balance,
                    is_active=True,
                )
            )
            inserted += 1
            continue
        # Accounts with posted history keep their classification.
        if account.name != name:
            account.name = name
            updated += 1
    db.flush()
    logger.info("Seeded chart of accounts for company_id=%s: inserted=%s updated=%s", company_id, inserted, updated)
    return inserted, updated
