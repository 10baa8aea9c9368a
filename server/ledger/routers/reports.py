from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledger.accounting import aggregation, schemas
from ledger.accounting.chart import get_account
from ledger.auth import get_current_user, require_module
from ledger.db import get_db
from ledger.models import User
from ledger.module_keys import ModuleKey
from ledger.routers.deps import company_id_for, run_ledger_operation

router = APIRouter(
    prefix="/api/reports",
    tags=["reports"],
    dependencies=[Depends(require_module(ModuleKey.REPORTS))],
)


@router.get("/balances", response_model=list[schemas.AccountBalanceRow])
def get_balances(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    as_of: Optional[date] = None,
    types: Optional[list[str]] = Query(None),
    code_prefix: Optional[str] = Query(None, max_length=3),
    account_ids: Optional[list[int]] = Query(None),
    exclude_off_balance: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    account_filter = aggregation.AccountFilter.build(
        types=types, code_prefix=code_prefix, account_ids=account_ids, exclude_off_balance=exclude_off_balance
    )
    result = run_ledger_operation(
        db,
        lambda: aggregation.balances(
            db, company_id_for(current_user), account_filter, date_from=date_from, date_to=date_to, as_of=as_of
        ),
    )
    return [
        schemas.AccountBalanceRow(
            account_id=account.id,
            code=account.code,
            full_code=account.full_code,
            name=account.name,
            type=account.type,
            debit_total=item.debit_total,
            credit_total=item.credit_total,
            net_balance=item.net_balance,
        )
        for account, item in result.items()
    ]


@router.get("/is-balanced", response_model=schemas.IsBalancedResponse)
def get_is_balanced(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    balanced = run_ledger_operation(
        db,
        lambda: aggregation.is_balanced(
            db, company_id_for(current_user), date_from=date_from, date_to=date_to, as_of=as_of
        ),
    )
    return schemas.IsBalancedResponse(is_balanced=balanced)


@router.get("/trial-balance", response_model=schemas.TrialBalanceResponse)
def get_trial_balance(
    date_from: date,
    date_to: date,
    exclude_off_balance: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    account_filter = aggregation.AccountFilter.build(exclude_off_balance=exclude_off_balance)
    report = run_ledger_operation(
        db, lambda: aggregation.trial_balance(db, company_id_for(current_user), date_from, date_to, account_filter)
    )
    return schemas.TrialBalanceResponse(
        date_from=report.date_from,
        date_to=report.date_to,
        rows=[
            schemas.TrialBalanceRowResponse(
                account_id=row.account.id,
                full_code=row.account.full_code,
                name=row.account.name,
                type=row.account.type,
                opening_debit=row.opening_debit,
                opening_credit=row.opening_credit,
                period_debit=row.period_debit,
                period_credit=row.period_credit,
                closing_debit=row.closing_debit,
                closing_credit=row.closing_credit,
                closing_balance=row.closing_balance,
            )
            for row in report.rows
        ],
        summary=report.summary,
        is_balanced=report.is_balanced,
    )


@router.get("/ledger/{account_id}", response_model=schemas.AccountLedgerResponse)
def get_account_ledger(
    account_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    company_id = company_id_for(current_user)

    def build():
        account = get_account(db, company_id, account_id)
        return aggregation.account_ledger(db, company_id, account, date_from=date_from, date_to=date_to)

    ledger = run_ledger_operation(db, build)
    return schemas.AccountLedgerResponse(
        account_id=ledger.account.id,
        full_code=ledger.account.full_code,
        name=ledger.account.name,
        opening_balance=ledger.opening_balance,
        closing_balance=ledger.closing_balance,
        movements=[
            schemas.LedgerMovementResponse(
                entry_id=movement.entry_id,
                number=movement.number,
                entry_date=movement.entry_date,
                document_type=movement.document_type,
                description=movement.description,
                side=movement.side,
                amount=movement.amount,
                balance=movement.balance,
            )
            for movement in ledger.movements
        ],
    )
