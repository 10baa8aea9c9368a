from typing import Callable, TypeVar

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ledger.accounting.exceptions import LedgerError
from ledger.accounting.journal import run_in_transaction
from ledger.models import User

T = TypeVar("T")


def company_id_for(user: User) -> int:
    return user.company_id


def run_ledger_operation(db: Session, operation: Callable[[], T]) -> T:
    """Run one service call as a transaction and translate domain errors for the API."""
    try:
        return run_in_transaction(db, operation)
    except LedgerError as exc:
        raise HTTPException(status_code=exc.http_status, detail=exc.to_dict()) from exc
