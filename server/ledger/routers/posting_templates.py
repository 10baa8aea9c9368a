from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ledger.accounting import schemas, templates
from ledger.accounting.chart import ChartSnapshot
from ledger.auth import get_current_user, require_module
from ledger.db import get_db
from ledger.models import PostingTemplate, User
from ledger.module_keys import ModuleKey
from ledger.routers.deps import company_id_for, run_ledger_operation

router = APIRouter(
    prefix="/api/posting-templates",
    tags=["posting-templates"],
    dependencies=[Depends(require_module(ModuleKey.POSTING_TEMPLATES))],
)


def _to_response(template: PostingTemplate) -> schemas.PostingTemplateResponse:
    return schemas.PostingTemplateResponse.model_validate(template)


def _line_specs(lines: list[schemas.TemplateLineCreate]) -> list[templates.TemplateLineSpec]:
    return [templates.TemplateLineSpec(**line.model_dump()) for line in lines]


@router.get("", response_model=list[schemas.PostingTemplateResponse])
def list_posting_templates(
    document_type: Optional[schemas.DocumentType] = None,
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items = templates.list_templates(db, company_id_for(current_user), document_type=document_type, active=active)
    return [_to_response(template) for template in items]


@router.post("", response_model=schemas.PostingTemplateResponse, status_code=status.HTTP_201_CREATED)
def create_posting_template(
    payload: schemas.PostingTemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    template = run_ledger_operation(
        db,
        lambda: templates.create_template(
            db,
            company_id_for(current_user),
            name=payload.name,
            document_type=payload.document_type,
            description=payload.description,
            is_active=payload.is_active,
            lines=_line_specs(payload.lines),
        ),
    )
    return _to_response(template)


@router.post("/seed", response_model=schemas.TemplateSeedResponse)
def seed_posting_templates(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    inserted = run_ledger_operation(db, lambda: templates.seed_preset_templates(db, company_id_for(current_user)))
    return schemas.TemplateSeedResponse(inserted=inserted)


@router.get("/{template_id}", response_model=schemas.PostingTemplateResponse)
def get_posting_template(
    template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    template = run_ledger_operation(db, lambda: templates.get_template(db, company_id_for(current_user), template_id))
    return _to_response(template)


@router.put("/{template_id}", response_model=schemas.PostingTemplateResponse)
@router.patch("/{template_id}", response_model=schemas.PostingTemplateResponse)
def update_posting_template(
    template_id: int,
    payload: schemas.PostingTemplateUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True, exclude={"lines"})
    lines = _line_specs(payload.lines) if payload.lines is not None else None
    template = run_ledger_operation(
        db, lambda: templates.update_template(db, company_id_for(current_user), template_id, changes, lines)
    )
    return _to_response(template)


@router.delete("/{template_id}", response_model=dict)
def delete_posting_template(
    template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    run_ledger_operation(db, lambda: templates.delete_template(db, company_id_for(current_user), template_id))
    return {"status": "ok"}


@router.post("/{template_id}/apply", response_model=list[schemas.AppliedLineResponse])
def apply_posting_template(
    template_id: int,
    payload: Optional[schemas.ApplyTemplateRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    company_id = company_id_for(current_user)
    base_amount = payload.base_amount if payload else None

    def expand():
        template = templates.get_template(db, company_id, template_id)
        return templates.apply_template(template, ChartSnapshot.load(db, company_id), base_amount)

    lines = run_ledger_operation(db, expand)
    return [
        schemas.AppliedLineResponse(
            position=position,
            account_id=line.account_id,
            account_label=line.account_label,
            side=line.side,
            amount=line.amount,
            description=line.description,
        )
        for position, line in enumerate(lines, start=1)
    ]
