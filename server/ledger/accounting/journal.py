"""Journal entry store and posting lifecycle.

Entries are created as drafts, edited freely while draft, posted once and then
only ever reversed. Service functions never commit; wrap each logical
operation in ``run_in_transaction`` so it commits or rolls back as a unit.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from ledger.accounting.audit import entry_fingerprint, record_entry_event
from ledger.accounting.exceptions import (
    AlreadyReversedError,
    ConcurrentModificationError,
    EntryNotFoundError,
    InvalidAmountError,
    LedgerIntegrityError,
    LedgerValidationError,
    PostingStateError,
    UnknownAccountError,
)
from ledger.accounting.numbering import company_fiscal_year, ensure_document_type, next_number
from ledger.accounting.periods import ensure_period_open
from ledger.accounting.posting import JournalEntryInput, JournalLineInput, ensure_balanced, line_totals
from ledger.accounting.reversal import build_reversal
from ledger.config import settings
from ledger.db import SNAPSHOT_READ, shares_one_connection
from ledger.models import (
    ENTRY_DRAFT,
    ENTRY_POSTED,
    ENTRY_REVERSED,
    ENTRY_STATUSES,
    SIDE_DEBIT,
    SIDES,
    Account,
    JournalEntry,
    JournalLine,
)
from ledger.utils import ZERO_MONEY, quantize_money, sum_money

logger = logging.getLogger(__name__)

T = TypeVar("T")

EDITABLE_HEADER_FIELDS = ("document_type", "entry_date", "description", "source_document_type", "source_document_id")
EDITABLE_LINE_FIELDS = (
    "account_id",
    "account_label",
    "side",
    "amount",
    "amount_currency",
    "currency",
    "exchange_rate",
    "cost_center",
    "project",
    "description",
)


@dataclass(frozen=True)
class ReversalResult:
    original: JournalEntry
    reversal: JournalEntry


def run_in_transaction(db: Session, operation: Callable[[], T], *, retries: Optional[int] = None) -> T:
    """Run ``operation`` and commit, rolling back on any error.

    A stale version on flush means another request changed the same entry
    first. The operation is retried with fresh state a bounded number of
    times; if the retry finds the entry already moved on, the caller gets
    ``ConcurrentModificationError`` rather than a lifecycle error.
    """
    attempts = max(1, settings.CONCURRENCY_RETRIES if retries is None else retries)
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
            return result
        except StaleDataError as exc:
            db.rollback()
            if attempt == attempts:
                raise ConcurrentModificationError(
                    message="The journal entry was modified concurrently; re-read it before retrying."
                ) from exc
            logger.warning("Concurrent modification detected, retrying (attempt %s of %s)", attempt, attempts)
        except PostingStateError as exc:
            db.rollback()
            if attempt > 1:
                entry_id = exc.details.get("entry_id")
                raise ConcurrentModificationError(
                    entry_id,
                    f"Journal entry {entry_id} was changed by a concurrent request; re-read it before retrying.",
                ) from exc
            raise
        except Exception:
            db.rollback()
            raise
    raise AssertionError("unreachable")


def _entry_query(db: Session, company_id: int):
    return (
        db.query(JournalEntry)
        .options(selectinload(JournalEntry.lines))
        .filter(JournalEntry.company_id == company_id)
    )


def get_entry(db: Session, company_id: int, entry_id: int) -> JournalEntry:
    entry = _entry_query(db, company_id).filter(JournalEntry.id == entry_id).first()
    if not entry:
        raise EntryNotFoundError(entry_id)
    return entry


def _committed_version(db: Session, company_id: int, entry_id: int) -> Optional[int]:
    """Version of the entry as last committed, read outside this session's transaction.

    Writers queue on the entry's row lock (SQLite: the database write lock). The
    version seen here, before queueing, tells a caller that waited behind a
    concurrent writer apart from one that arrived after it finished.
    """
    bind = db.get_bind()
    if db.in_transaction() or shares_one_connection(bind):
        return None
    with bind.connect() as conn:
        conn = conn.execution_options(**{SNAPSHOT_READ: True})
        return conn.execute(
            select(JournalEntry.version).where(JournalEntry.id == entry_id, JournalEntry.company_id == company_id)
        ).scalar()


def _load_for_write(db: Session, company_id: int, entry_id: int, expected_version: Optional[int]) -> JournalEntry:
    observed_version = _committed_version(db, company_id, entry_id) if expected_version is None else None
    entry = (
        _entry_query(db, company_id)
        .filter(JournalEntry.id == entry_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if not entry:
        raise EntryNotFoundError(entry_id)
    if expected_version is not None and entry.version != expected_version:
        raise ConcurrentModificationError(
            entry.id,
            f"Journal entry {entry.id} is at version {entry.version}, not {expected_version}; re-read it before retrying.",
        )
    if observed_version is not None and entry.version != observed_version:
        raise ConcurrentModificationError(
            entry.id,
            f"Journal entry {entry.id} was changed by a concurrent request while this one waited; "
            "re-read it before retrying.",
        )
    return entry


def _ensure_draft(entry: JournalEntry, action: str) -> None:
    if entry.status != ENTRY_DRAFT:
        raise PostingStateError(
            f"Cannot {action} journal entry {entry.id} because it is {entry.status}. "
            "Posted entries are immutable; create a reversal instead.",
            entry_id=entry.id,
            status=entry.status,
        )


def _load_accounts(db: Session, company_id: int, account_ids: Iterable[Optional[int]]) -> dict[int, Account]:
    ids = {account_id for account_id in account_ids if account_id is not None}
    if not ids:
        return {}
    accounts = db.query(Account).filter(Account.company_id == company_id, Account.id.in_(ids)).all()
    return {account.id: account for account in accounts}


def _validate_draft_line(line, position: int, accounts: dict[int, Account]) -> None:
    """Drafts may be incomplete, but what is there must already make sense."""
    if line.side not in SIDES:
        raise LedgerValidationError(f"Line {position} has invalid side '{line.side}'.", position=position)
    amount = Decimal(line.amount if line.amount is not None else 0)
    if amount < 0:
        raise InvalidAmountError(position, amount)
    if line.account_id is not None:
        account = accounts.get(line.account_id)
        if account is None:
            raise UnknownAccountError(position, line.account_id)
        if not account.is_active:
            raise UnknownAccountError(position, line.account_id, reason="disabled")


def _build_line(position: int, line: JournalLineInput) -> JournalLine:
    return JournalLine(
        position=position,
        account_id=line.account_id,
        account_label=line.account_label,
        side=line.side,
        amount=quantize_money(line.amount if line.amount is not None else 0),
        amount_currency=quantize_money(line.amount_currency),
        currency=line.currency.upper() if line.currency else None,
        exchange_rate=line.exchange_rate,
        cost_center=line.cost_center,
        project=line.project,
        description=line.description,
    )


def _replace_lines(db: Session, entry: JournalEntry, lines: list[JournalLineInput]) -> None:
    accounts = _load_accounts(db, entry.company_id, (line.account_id for line in lines))
    for position, line in enumerate(lines, start=1):
        _validate_draft_line(line, position, accounts)
    if entry.lines:
        entry.lines.clear()
        db.flush()
    entry.lines = [_build_line(position, line) for position, line in enumerate(lines, start=1)]


def recalculate_totals(entry: JournalEntry) -> None:
    totals = line_totals(entry.lines)
    entry.total_debit = totals.debit_total
    entry.total_credit = totals.credit_total


def _touch(entry: JournalEntry) -> None:
    # Line edits must bump the entry version too.
    entry.updated_at = datetime.utcnow()
    recalculate_totals(entry)


def verify_entry_totals(db: Session, entry: JournalEntry) -> None:
    """Read the stored lines back and compare them with the stored totals."""
    rows = (
        db.query(JournalLine.side, func.coalesce(func.sum(JournalLine.amount), 0))
        .filter(JournalLine.journal_entry_id == entry.id)
        .group_by(JournalLine.side)
        .all()
    )
    sums = {side: quantize_money(total) for side, total in rows}
    debit = sums.get(SIDE_DEBIT, ZERO_MONEY)
    credit = sum_money(total for side, total in sums.items() if side != SIDE_DEBIT)
    if debit != quantize_money(entry.total_debit) or credit != quantize_money(entry.total_credit):
        logger.error(
            "Totals mismatch on entry_id=%s number=%s: stored debit=%s credit=%s, lines debit=%s credit=%s",
            entry.id,
            entry.number,
            entry.total_debit,
            entry.total_credit,
            debit,
            credit,
        )
        raise LedgerIntegrityError(
            f"Journal entry {entry.id} totals do not match its lines.",
            entry_id=entry.id,
            stored_debit=entry.total_debit,
            stored_credit=entry.total_credit,
            line_debit=debit,
            line_credit=credit,
        )


def create_draft(db: Session, data: JournalEntryInput, *, user_id: Optional[int] = None) -> JournalEntry:
    document_type = ensure_document_type(data.document_type)
    ensure_period_open(db, data.company_id, data.entry_date)

    entry = JournalEntry(
        company_id=data.company_id,
        document_type=document_type,
        fiscal_year=company_fiscal_year(db, data.company_id, data.entry_date),
        entry_date=data.entry_date,
        description=data.description or "",
        status=ENTRY_DRAFT,
        source_document_type=data.source_document_type,
        source_document_id=data.source_document_id,
        created_by=user_id,
    )
    _replace_lines(db, entry, list(data.lines))
    recalculate_totals(entry)
    db.add(entry)
    db.flush()
    record_entry_event(db, entry, "CREATE", user_id=user_id)
    logger.info("Created draft entry_id=%s document_type=%s company_id=%s", entry.id, document_type, entry.company_id)
    return entry


def update_draft(
    db: Session,
    company_id: int,
    entry_id: int,
    *,
    changes: Optional[dict] = None,
    lines: Optional[list[JournalLineInput]] = None,
    expected_version: Optional[int] = None,
    user_id: Optional[int] = None,
) -> JournalEntry:
    entry = _load_for_write(db, company_id, entry_id, expected_version)
    _ensure_draft(entry, "edit")
    before = entry_fingerprint(entry)
    changes = changes or {}

    new_date = changes.get("entry_date") or entry.entry_date
    ensure_period_open(db, company_id, entry.entry_date, new_date)
    for key in EDITABLE_HEADER_FIELDS:
        if key not in changes:
            continue
        value = changes[key]
        if key in ("document_type", "entry_date", "description") and value is None:
            continue
        if key == "document_type":
            value = ensure_document_type(value)
        setattr(entry, key, value)
    entry.fiscal_year = company_fiscal_year(db, company_id, entry.entry_date)

    if lines is not None:
        _replace_lines(db, entry, lines)
    _touch(entry)
    db.flush()
    record_entry_event(db, entry, "UPDATE", user_id=user_id, before_hash=before)
    return entry


def _line_at(entry: JournalEntry, position: int) -> JournalLine:
    for line in entry.lines:
        if line.position == position:
            return line
    raise LedgerValidationError(f"Journal entry {entry.id} has no line {position}.", position=position)


def add_line(
    db: Session,
    company_id: int,
    entry_id: int,
    line: JournalLineInput,
    *,
    expected_version: Optional[int] = None,
    user_id: Optional[int] = None,
) -> JournalEntry:
    entry = _load_for_write(db, company_id, entry_id, expected_version)
    _ensure_draft(entry, "add a line to")
    before = entry_fingerprint(entry)
    ensure_period_open(db, company_id, entry.entry_date)
    position = max((existing.position for existing in entry.lines), default=0) + 1
    _validate_draft_line(line, position, _load_accounts(db, company_id, [line.account_id]))
    entry.lines.append(_build_line(position, line))
    _touch(entry)
    db.flush()
    record_entry_event(db, entry, "UPDATE", user_id=user_id, before_hash=before)
    return entry


def update_line(
    db: Session,
    company_id: int,
    entry_id: int,
    position: int,
    changes: dict,
    *,
    expected_version: Optional[int] = None,
    user_id: Optional[int] = None,
) -> JournalEntry:
    entry = _load_for_write(db, company_id, entry_id, expected_version)
    _ensure_draft(entry, "edit a line of")
    before = entry_fingerprint(entry)
    ensure_period_open(db, company_id, entry.entry_date)
    line = _line_at(entry, position)

    merged = {key: getattr(line, key) for key in EDITABLE_LINE_FIELDS}
    merged.update({key: value for key, value in changes.items() if key in EDITABLE_LINE_FIELDS})
    candidate = JournalLineInput(**merged)
    _validate_draft_line(candidate, position, _load_accounts(db, company_id, [candidate.account_id]))

    replacement = _build_line(position, candidate)
    for key in EDITABLE_LINE_FIELDS:
        setattr(line, key, getattr(replacement, key))
    _touch(entry)
    db.flush()
    record_entry_event(db, entry, "UPDATE", user_id=user_id, before_hash=before)
    return entry


def remove_line(
    db: Session,
    company_id: int,
    entry_id: int,
    position: int,
    *,
    expected_version: Optional[int] = None,
    user_id: Optional[int] = None,
) -> JournalEntry:
    entry = _load_for_write(db, company_id, entry_id, expected_version)
    _ensure_draft(entry, "remove a line from")
    before = entry_fingerprint(entry)
    ensure_period_open(db, company_id, entry.entry_date)
    line = _line_at(entry, position)
    entry.lines.remove(line)
    # Flush the delete first so renumbering never collides on (entry, position).
    db.flush()
    for remaining in sorted(entry.lines, key=lambda item: item.position):
        if remaining.position > position:
            remaining.position -= 1
            db.flush()
    _touch(entry)
    db.flush()
    record_entry_event(db, entry, "UPDATE", user_id=user_id, before_hash=before)
    return entry


def delete_draft(
    db: Session,
    company_id: int,
    entry_id: int,
    *,
    expected_version: Optional[int] = None,
    user_id: Optional[int] = None,
) -> None:
    entry = _load_for_write(db, company_id, entry_id, expected_version)
    _ensure_draft(entry, "delete")
    ensure_period_open(db, company_id, entry.entry_date)
    before = entry_fingerprint(entry)
    record_entry_event(db, entry, "DELETE", user_id=user_id, before_hash=before)
    db.delete(entry)
    db.flush()
    logger.info("Deleted draft entry_id=%s company_id=%s", entry_id, company_id)


def post_entry(
    db: Session,
    company_id: int,
    entry_id: int,
    *,
    user_id: Optional[int] = None,
    expected_version: Optional[int] = None,
    posted_at: Optional[datetime] = None,
) -> JournalEntry:
    entry = _load_for_write(db, company_id, entry_id, expected_version)
    if entry.status != ENTRY_DRAFT:
        raise PostingStateError(
            f"Journal entry {entry.id} is {entry.status}; only drafts can be posted.",
            entry_id=entry.id,
            status=entry.status,
        )
    ensure_period_open(db, company_id, entry.entry_date)

    lines = list(entry.lines)
    accounts = _load_accounts(db, company_id, (line.account_id for line in lines))
    totals = ensure_balanced(lines, accounts=accounts)
    before = entry_fingerprint(entry)

    entry.fiscal_year = company_fiscal_year(db, company_id, entry.entry_date)
    entry.number = next_number(db, company_id, entry.document_type, entry.fiscal_year)
    entry.total_debit = totals.debit_total
    entry.total_credit = totals.credit_total
    entry.status = ENTRY_POSTED
    entry.posted_at = posted_at or datetime.utcnow()
    entry.posted_by = user_id
    db.flush()

    verify_entry_totals(db, entry)
    record_entry_event(db, entry, "POST", user_id=user_id, before_hash=before)
    logger.info("Posted entry_id=%s number=%s company_id=%s", entry.id, entry.number, company_id)
    return entry


def reverse_entry(
    db: Session,
    company_id: int,
    entry_id: int,
    *,
    reversal_date: Optional[date] = None,
    user_id: Optional[int] = None,
    expected_version: Optional[int] = None,
) -> ReversalResult:
    entry = _load_for_write(db, company_id, entry_id, expected_version)
    if entry.status == ENTRY_REVERSED:
        raise AlreadyReversedError(entry.id, entry.reversed_by_id)
    if entry.status != ENTRY_POSTED:
        raise PostingStateError(
            f"Journal entry {entry.id} is {entry.status}; only posted entries can be reversed.",
            entry_id=entry.id,
            status=entry.status,
        )
    if entry.reversal_of_id is not None and not settings.ALLOW_REVERSAL_OF_REVERSAL:
        raise PostingStateError(
            f"Journal entry {entry.id} is itself a reversal and cannot be reversed again.",
            entry_id=entry.id,
            status=entry.status,
        )
    if not entry.lines:
        logger.error("Posted entry_id=%s has no lines", entry.id)
        raise LedgerIntegrityError(f"Posted journal entry {entry.id} has no lines.", entry_id=entry.id)

    reversal_date = reversal_date or date.today()
    if reversal_date < entry.entry_date:
        raise LedgerValidationError(
            f"Reversal date {reversal_date} is before the original entry date {entry.entry_date}.",
            reversal_date=reversal_date,
            entry_date=entry.entry_date,
        )
    ensure_period_open(db, company_id, reversal_date)

    fiscal_year = company_fiscal_year(db, company_id, reversal_date)
    number = next_number(db, company_id, entry.document_type, fiscal_year)
    before = entry_fingerprint(entry)
    mirror = build_reversal(entry, number=number, reversal_date=reversal_date, fiscal_year=fiscal_year, user_id=user_id)
    db.add(mirror)
    db.flush()

    entry.status = ENTRY_REVERSED
    entry.reversed_by_id = mirror.id
    db.flush()

    verify_entry_totals(db, mirror)
    record_entry_event(db, mirror, "POST", user_id=user_id, metadata=f"reversal_of={entry.id}")
    record_entry_event(db, entry, "REVERSE", user_id=user_id, before_hash=before, metadata=f"reversed_by={mirror.id}")
    logger.info(
        "Reversed entry_id=%s number=%s with entry_id=%s number=%s", entry.id, entry.number, mirror.id, mirror.number
    )
    return ReversalResult(original=entry, reversal=mirror)


def create_and_post(db: Session, data: JournalEntryInput, *, user_id: Optional[int] = None) -> JournalEntry:
    """Entry point for posting bridges that hand over a complete line set."""
    entry = create_draft(db, data, user_id=user_id)
    return post_entry(db, data.company_id, entry.id, user_id=user_id)


def list_entries(
    db: Session,
    company_id: int,
    *,
    status: Optional[str] = None,
    document_type: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    account_id: Optional[int] = None,
    source_document_type: Optional[str] = None,
    source_document_id: Optional[int] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[JournalEntry]:
    query = _entry_query(db, company_id)
    if status:
        if status not in ENTRY_STATUSES:
            raise LedgerValidationError(f"Unknown status '{status}'.", status=status)
        query = query.filter(JournalEntry.status == status)
    if document_type:
        query = query.filter(JournalEntry.document_type == document_type.upper())
    if date_from:
        query = query.filter(JournalEntry.entry_date >= date_from)
    if date_to:
        query = query.filter(JournalEntry.entry_date <= date_to)
    if source_document_type:
        query = query.filter(JournalEntry.source_document_type == source_document_type)
    if source_document_id is not None:
        query = query.filter(JournalEntry.source_document_id == source_document_id)
    if account_id is not None:
        query = query.filter(JournalEntry.lines.any(JournalLine.account_id == account_id))
    if search:
        like = f"%{search}%"
        query = query.filter((JournalEntry.description.ilike(like)) | (JournalEntry.number.ilike(like)))
    return (
        query.order_by(JournalEntry.entry_date.desc(), JournalEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
