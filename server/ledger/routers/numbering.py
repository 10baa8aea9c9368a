from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledger.accounting import numbering, schemas
from ledger.auth import get_current_user, require_module
from ledger.db import get_db
from ledger.models import User
from ledger.module_keys import ModuleKey
from ledger.routers.deps import company_id_for, run_ledger_operation

router = APIRouter(
    prefix="/api/numbering",
    tags=["numbering"],
    dependencies=[Depends(require_module(ModuleKey.SETTINGS))],
)


def _series_response(series: numbering.SeriesFormat) -> schemas.NumberingSeriesResponse:
    return schemas.NumberingSeriesResponse(
        document_type=series.document_type,
        prefix=series.prefix,
        separator=series.separator,
        padding=series.padding,
        example=series.format(date.today().year, 1),
    )


@router.get("/check", response_model=list[schemas.NumberingCheckResponse])
def check_numbering(
    fiscal_year: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    results = numbering.check_numbering(db, company_id_for(current_user), fiscal_year)
    return [
        schemas.NumberingCheckResponse(
            document_type=item.document_type,
            fiscal_year=item.fiscal_year,
            count=item.count,
            first_number=item.first_number,
            last_number=item.last_number,
            gaps=item.gaps,
            duplicates=item.duplicates,
            has_issues=item.has_issues,
        )
        for item in results
    ]


@router.get("/series", response_model=list[schemas.NumberingSeriesResponse])
def list_numbering_series(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return [_series_response(series) for series in numbering.list_series(db, company_id_for(current_user))]


@router.put("/series/{document_type}", response_model=schemas.NumberingSeriesResponse)
def update_numbering_series(
    document_type: str,
    payload: schemas.NumberingSeriesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    series = run_ledger_operation(
        db,
        lambda: numbering.set_series_format(
            db,
            company_id_for(current_user),
            document_type,
            prefix=payload.prefix,
            separator=payload.separator,
            padding=payload.padding,
        ),
    )
    return _series_response(series)
