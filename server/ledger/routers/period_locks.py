from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ledger.accounting import periods, schemas
from ledger.auth import get_current_user, require_module
from ledger.db import get_db
from ledger.models import User
from ledger.module_keys import ModuleKey
from ledger.routers.deps import company_id_for, run_ledger_operation

router = APIRouter(
    prefix="/api/period-locks",
    tags=["period-locks"],
    dependencies=[Depends(require_module(ModuleKey.CLOSING))],
)


@router.get("", response_model=list[schemas.PeriodLockResponse])
def list_period_locks(
    fiscal_year: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    locks = periods.list_locks(db, company_id_for(current_user), fiscal_year)
    return [schemas.PeriodLockResponse.model_validate(lock) for lock in locks]


@router.post("", response_model=schemas.PeriodLockResponse, status_code=status.HTTP_201_CREATED)
def set_period_lock(
    payload: schemas.PeriodLockCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    lock = run_ledger_operation(
        db,
        lambda: periods.set_period_lock(
            db,
            company_id_for(current_user),
            payload.period_start,
            payload.period_end,
            locked=payload.locked,
            user_id=current_user.id,
        ),
    )
    return schemas.PeriodLockResponse.model_validate(lock)


@router.delete("", response_model=dict)
def remove_period_lock(
    period_start: date,
    period_end: date,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    run_ledger_operation(
        db, lambda: periods.remove_period_lock(db, company_id_for(current_user), period_start, period_end)
    )
    return {"status": "ok"}
