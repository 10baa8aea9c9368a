from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ledger.accounting import chart
from ledger.auth import get_current_user, require_module
from ledger.chart_of_accounts import schemas
from ledger.db import get_db
from ledger.models import Account, User
from ledger.module_keys import ModuleKey
from ledger.routers.deps import company_id_for, run_ledger_operation

router = APIRouter(
    prefix="/api/chart-of-accounts",
    tags=["chart-of-accounts"],
    dependencies=[Depends(require_module(ModuleKey.CHART_OF_ACCOUNTS))],
)


def _serialize_account(account: Account) -> schemas.ChartAccountResponse:
    return schemas.ChartAccountResponse.model_validate(account)


@router.get("", response_model=List[schemas.ChartAccountResponse])
def list_chart_of_accounts(
    type: Optional[schemas.AccountType] = None,
    active: Optional[bool] = None,
    class_prefix: Optional[str] = Query(None, max_length=3),
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    accounts = chart.list_accounts(
        db, company_id_for(current_user), type=type, active=active, class_prefix=class_prefix, q=q
    )
    return [_serialize_account(account) for account in accounts]


@router.post("", response_model=schemas.ChartAccountResponse, status_code=status.HTTP_201_CREATED)
def create_chart_account(
    payload: schemas.ChartAccountCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    account = run_ledger_operation(
        db, lambda: chart.register_account(db, company_id_for(current_user), **payload.model_dump())
    )
    return _serialize_account(account)


@router.get("/lookup", response_model=schemas.AccountLookupResponse)
def lookup_chart_account(
    code: str,
    analytic: str = "",
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not analytic:
        code, analytic = chart.split_code(code)
    result = chart.lookup_account(
        db, company_id_for(current_user), code, analytic, include_inactive=include_inactive
    )
    if isinstance(result, chart.Found):
        account = result.account
        return schemas.AccountLookupResponse(
            found=True, label=f"{account.full_code} {account.name}", account=_serialize_account(account)
        )
    return schemas.AccountLookupResponse(found=False, label=result.label)


@router.post("/seed", response_model=schemas.ChartSeedResponse)
def seed_chart_of_accounts(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    inserted, updated = run_ledger_operation(db, lambda: chart.seed_standard_chart(db, company_id_for(current_user)))
    return schemas.ChartSeedResponse(inserted=inserted, updated=updated)


@router.get("/{account_id}", response_model=schemas.ChartAccountResponse)
def get_chart_account(account_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    account = run_ledger_operation(db, lambda: chart.get_account(db, company_id_for(current_user), account_id))
    return _serialize_account(account)


@router.patch("/{account_id}", response_model=schemas.ChartAccountResponse)
def update_chart_account(
    account_id: int,
    payload: schemas.ChartAccountUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = payload.model_dump(exclude_unset=True)
    account = run_ledger_operation(
        db, lambda: chart.update_account(db, company_id_for(current_user), account_id, data)
    )
    return _serialize_account(account)


@router.post("/{account_id}/disable", response_model=schemas.ChartAccountResponse)
def disable_chart_account(
    account_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    account = run_ledger_operation(db, lambda: chart.disable_account(db, company_id_for(current_user), account_id))
    return _serialize_account(account)


@router.post("/{account_id}/enable", response_model=schemas.ChartAccountResponse)
def enable_chart_account(
    account_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    account = run_ledger_operation(db, lambda: chart.enable_account(db, company_id_for(current_user), account_id))
    return _serialize_account(account)


@router.delete("/{account_id}", response_model=dict)
def delete_chart_account(
    account_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    run_ledger_operation(db, lambda: chart.delete_account(db, company_id_for(current_user), account_id))
    return {"status": "ok"}
