"""Document numbering per (company, document type, fiscal year).

The counter is a persisted row incremented inside the caller's transaction.
``UPDATE ... SET last_value = last_value + 1`` takes the row lock before the
value is read back, so concurrent callers serialize on the row and a rolled
back transaction gives its number back. Nothing here commits.
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ledger.accounting.exceptions import InvalidDocumentTypeError, LedgerIntegrityError, LedgerValidationError
from ledger.config import settings
from ledger.models import DOCUMENT_TYPES, ENTRY_DRAFT, Company, JournalEntry, NumberingSeries, NumberSequence

logger = logging.getLogger(__name__)

TRAILING_DIGITS_RE = re.compile(r"(\d+)\s*$")


@dataclass(frozen=True)
class SeriesFormat:
    document_type: str
    prefix: str
    separator: str
    padding: int

    def format(self, fiscal_year: int, value: int) -> str:
        return f"{self.prefix}{self.separator}{fiscal_year}{self.separator}{value:0{self.padding}d}"


@dataclass
class NumberingCheck:
    document_type: str
    fiscal_year: int
    count: int = 0
    first_number: Optional[str] = None
    last_number: Optional[str] = None
    gaps: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.gaps or self.duplicates)


def ensure_document_type(document_type: str) -> str:
    document_type = (document_type or "").strip().upper()
    if document_type not in DOCUMENT_TYPES:
        raise InvalidDocumentTypeError(document_type)
    return document_type


def fiscal_year_for(entry_date: date, start_month: int = 1) -> int:
    """Fiscal years are named after the calendar year they start in."""
    if start_month <= 1 or entry_date.month >= start_month:
        return entry_date.year
    return entry_date.year - 1


def company_fiscal_year(db: Session, company_id: int, entry_date: date) -> int:
    start_month = db.query(Company.fiscal_year_start_month).filter(Company.id == company_id).scalar()
    return fiscal_year_for(entry_date, start_month or 1)


def get_series_format(db: Session, company_id: int, document_type: str) -> SeriesFormat:
    series = (
        db.query(NumberingSeries)
        .filter(NumberingSeries.company_id == company_id, NumberingSeries.document_type == document_type)
        .first()
    )
    if series is None:
        return SeriesFormat(document_type, document_type, settings.NUMBER_SEPARATOR, settings.NUMBER_PADDING)
    return SeriesFormat(document_type, series.prefix, series.separator, series.padding)


def list_series(db: Session, company_id: int) -> list[SeriesFormat]:
    return [get_series_format(db, company_id, document_type) for document_type in DOCUMENT_TYPES]


def set_series_format(
    db: Session,
    company_id: int,
    document_type: str,
    *,
    prefix: str,
    separator: str = "-",
    padding: int = 4,
) -> SeriesFormat:
    document_type = ensure_document_type(document_type)
    if not prefix or len(prefix) > 20:
        raise LedgerValidationError("Prefix must be 1 to 20 characters.", prefix=prefix)
    if padding < 1 or padding > 10:
        raise LedgerValidationError("Padding must be between 1 and 10 digits.", padding=padding)

    series = (
        db.query(NumberingSeries)
        .filter(NumberingSeries.company_id == company_id, NumberingSeries.document_type == document_type)
        .first()
    )
    if series is None:
        series = NumberingSeries(company_id=company_id, document_type=document_type)
        db.add(series)
    series.prefix = prefix
    series.separator = separator
    series.padding = padding
    db.flush()
    return SeriesFormat(document_type, prefix, separator, padding)


def _ensure_sequence_row(db: Session, company_id: int, document_type: str, fiscal_year: int) -> None:
    values = {"company_id": company_id, "document_type": document_type, "fiscal_year": fiscal_year, "last_value": 0}
    conflict_columns = ["company_id", "document_type", "fiscal_year"]
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        db.execute(pg_insert(NumberSequence).values(**values).on_conflict_do_nothing(index_elements=conflict_columns))
    elif dialect == "sqlite":
        db.execute(sqlite_insert(NumberSequence).values(**values).on_conflict_do_nothing(index_elements=conflict_columns))
    else:
        exists = db.execute(
            select(NumberSequence.id).where(
                NumberSequence.company_id == company_id,
                NumberSequence.document_type == document_type,
                NumberSequence.fiscal_year == fiscal_year,
            )
        ).first()
        if exists is None:
            db.add(NumberSequence(**values))
            db.flush()


def next_sequence_value(db: Session, company_id: int, document_type: str, fiscal_year: int) -> int:
    _ensure_sequence_row(db, company_id, document_type, fiscal_year)
    match = (
        NumberSequence.company_id == company_id,
        NumberSequence.document_type == document_type,
        NumberSequence.fiscal_year == fiscal_year,
    )
    db.execute(
        update(NumberSequence)
        .where(*match)
        .values(last_value=NumberSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    return db.execute(select(NumberSequence.last_value).where(*match)).scalar_one()


def next_number(db: Session, company_id: int, document_type: str, fiscal_year: int) -> str:
    document_type = ensure_document_type(document_type)
    value = next_sequence_value(db, company_id, document_type, fiscal_year)
    number = get_series_format(db, company_id, document_type).format(fiscal_year, value)

    collision = (
        db.query(JournalEntry.id)
        .filter(
            JournalEntry.company_id == company_id,
            JournalEntry.document_type == document_type,
            JournalEntry.number == number,
        )
        .first()
    )
    if collision:
        logger.error(
            "Numbering collision company_id=%s document_type=%s fiscal_year=%s number=%s entry_id=%s",
            company_id,
            document_type,
            fiscal_year,
            number,
            collision.id,
        )
        raise LedgerIntegrityError(f"Document number {number} is already assigned.", number=number)

    logger.debug("Allocated number %s for company_id=%s", number, company_id)
    return number


def check_numbering(db: Session, company_id: int, fiscal_year: Optional[int] = None) -> list[NumberingCheck]:
    """Report gaps and duplicates in assigned numbers per document type and fiscal year."""
    query = db.query(JournalEntry.document_type, JournalEntry.fiscal_year, JournalEntry.number).filter(
        JournalEntry.company_id == company_id,
        JournalEntry.status != ENTRY_DRAFT,
        JournalEntry.number.isnot(None),
    )
    if fiscal_year is not None:
        query = query.filter(JournalEntry.fiscal_year == fiscal_year)

    grouped: dict[tuple[str, int], list[str]] = defaultdict(list)
    for document_type, year, number in query.all():
        grouped[(document_type, year)].append(number)

    results: list[NumberingCheck] = []
    for (document_type, year), numbers in sorted(grouped.items()):
        check = NumberingCheck(document_type=document_type, fiscal_year=year, count=len(numbers))
        by_value: dict[int, str] = {}
        seen: set[int] = set()
        for number in numbers:
            match = TRAILING_DIGITS_RE.search(number)
            if not match:
                continue
            value = int(match.group(1))
            if value in seen:
                check.duplicates.append(number)
            seen.add(value)
            by_value.setdefault(value, number)

        ordered = sorted(seen)
        if ordered:
            check.first_number = by_value[ordered[0]]
            check.last_number = by_value[ordered[-1]]
        for previous, current in zip(ordered, ordered[1:]):
            if current - previous == 2:
                check.gaps.append(f"missing {previous + 1}")
            elif current - previous > 2:
                check.gaps.append(f"missing {previous + 1}-{current - 1}")
        results.append(check)
    return results
