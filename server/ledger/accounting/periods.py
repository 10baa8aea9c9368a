import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ledger.accounting.exceptions import LedgerNotFoundError, LedgerValidationError, PeriodLockedError
from ledger.models import PeriodLock

logger = logging.getLogger(__name__)


def find_lock(db: Session, company_id: int, on_date: date) -> Optional[PeriodLock]:
    return (
        db.query(PeriodLock)
        .filter(
            PeriodLock.company_id == company_id,
            PeriodLock.locked.is_(True),
            PeriodLock.period_start <= on_date,
            PeriodLock.period_end >= on_date,
        )
        .order_by(PeriodLock.period_start.asc())
        .first()
    )


def ensure_period_open(db: Session, company_id: int, *dates: Optional[date]) -> None:
    for on_date in dates:
        if on_date is None:
            continue
        lock = find_lock(db, company_id, on_date)
        if lock is not None:
            raise PeriodLockedError(on_date, lock.period_start, lock.period_end)


def list_locks(db: Session, company_id: int, fiscal_year: Optional[int] = None) -> list[PeriodLock]:
    query = db.query(PeriodLock).filter(PeriodLock.company_id == company_id)
    if fiscal_year is not None:
        query = query.filter(
            PeriodLock.period_start >= date(fiscal_year, 1, 1),
            PeriodLock.period_end <= date(fiscal_year, 12, 31),
        )
    return query.order_by(PeriodLock.period_start.asc()).all()


def set_period_lock(
    db: Session,
    company_id: int,
    period_start: date,
    period_end: date,
    *,
    locked: bool = True,
    user_id: Optional[int] = None,
) -> PeriodLock:
    if period_start > period_end:
        raise LedgerValidationError(
            "Period start must not be after period end.", period_start=period_start, period_end=period_end
        )

    lock = (
        db.query(PeriodLock)
        .filter(
            PeriodLock.company_id == company_id,
            PeriodLock.period_start == period_start,
            PeriodLock.period_end == period_end,
        )
        .first()
    )
    if lock is None:
        lock = PeriodLock(company_id=company_id, period_start=period_start, period_end=period_end)
        db.add(lock)
    lock.locked = locked
    lock.locked_at = datetime.utcnow()
    lock.locked_by = user_id
    db.flush()
    logger.info(
        "Period %s..%s %s for company_id=%s", period_start, period_end, "locked" if locked else "unlocked", company_id
    )
    return lock


def remove_period_lock(db: Session, company_id: int, period_start: date, period_end: date) -> None:
    lock = (
        db.query(PeriodLock)
        .filter(
            PeriodLock.company_id == company_id,
            PeriodLock.period_start == period_start,
            PeriodLock.period_end == period_end,
        )
        .first()
    )
    if lock is None:
        raise LedgerNotFoundError(
            f"No period lock for {period_start} to {period_end}.", period_start=period_start, period_end=period_end
        )
    db.delete(lock)
    db.flush()
    logger.info("Period lock %s..%s removed for company_id=%s", period_start, period_end, company_id)
