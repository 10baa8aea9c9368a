from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ledger.accounting import journal, schemas
from ledger.accounting.audit import list_entry_events
from ledger.accounting.posting import JournalEntryInput, JournalLineInput
from ledger.accounting.templates import create_draft_from_template
from ledger.auth import get_current_user, require_module
from ledger.db import get_db
from ledger.models import JournalEntry, User
from ledger.module_keys import ModuleKey
from ledger.routers.deps import company_id_for, run_ledger_operation

router = APIRouter(
    prefix="/api/journal-entries",
    tags=["journal-entries"],
    dependencies=[Depends(require_module(ModuleKey.JOURNAL))],
)


def _to_response(entry: JournalEntry) -> schemas.JournalEntryResponse:
    return schemas.JournalEntryResponse.model_validate(entry)


def _line_input(line: schemas.JournalLineCreate) -> JournalLineInput:
    return JournalLineInput(**line.model_dump())


@router.get("", response_model=list[schemas.JournalEntryResponse])
def list_journal_entries(
    status_filter: Optional[schemas.EntryStatus] = Query(None, alias="status"),
    document_type: Optional[schemas.DocumentType] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    account_id: Optional[int] = None,
    source_document_type: Optional[str] = None,
    source_document_id: Optional[int] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entries = run_ledger_operation(
        db,
        lambda: journal.list_entries(
            db,
            company_id_for(current_user),
            status=status_filter,
            document_type=document_type,
            date_from=date_from,
            date_to=date_to,
            account_id=account_id,
            source_document_type=source_document_type,
            source_document_id=source_document_id,
            search=search,
            limit=limit,
            offset=offset,
        ),
    )
    return [_to_response(entry) for entry in entries]


@router.post("", response_model=schemas.JournalEntryResponse, status_code=status.HTTP_201_CREATED)
def create_journal_entry(
    payload: schemas.JournalEntryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = JournalEntryInput(
        company_id=company_id_for(current_user),
        document_type=payload.document_type,
        entry_date=payload.entry_date,
        description=payload.description,
        lines=[_line_input(line) for line in payload.lines],
        source_document_type=payload.source_document_type,
        source_document_id=payload.source_document_id,
    )
    entry = run_ledger_operation(db, lambda: journal.create_draft(db, data, user_id=current_user.id))
    return _to_response(entry)


@router.post("/from-template", response_model=schemas.JournalEntryResponse, status_code=status.HTTP_201_CREATED)
def create_journal_entry_from_template(
    payload: schemas.FromTemplateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entry = run_ledger_operation(
        db,
        lambda: create_draft_from_template(
            db,
            company_id_for(current_user),
            payload.template_id,
            entry_date=payload.entry_date,
            description=payload.description,
            base_amount=payload.base_amount,
            user_id=current_user.id,
        ),
    )
    return _to_response(entry)


@router.get("/{entry_id}", response_model=schemas.JournalEntryResponse)
def get_journal_entry(entry_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    entry = run_ledger_operation(db, lambda: journal.get_entry(db, company_id_for(current_user), entry_id))
    return _to_response(entry)


@router.put("/{entry_id}", response_model=schemas.JournalEntryResponse)
def update_journal_entry(
    entry_id: int,
    payload: schemas.JournalEntryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True, exclude={"lines", "expected_version"})
    lines = [_line_input(line) for line in payload.lines] if payload.lines is not None else None
    entry = run_ledger_operation(
        db,
        lambda: journal.update_draft(
            db,
            company_id_for(current_user),
            entry_id,
            changes=changes,
            lines=lines,
            expected_version=payload.expected_version,
            user_id=current_user.id,
        ),
    )
    return _to_response(entry)


@router.delete("/{entry_id}", response_model=dict)
def delete_journal_entry(
    entry_id: int,
    expected_version: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    run_ledger_operation(
        db,
        lambda: journal.delete_draft(
            db, company_id_for(current_user), entry_id, expected_version=expected_version, user_id=current_user.id
        ),
    )
    return {"status": "ok"}


@router.post("/{entry_id}/lines", response_model=schemas.JournalEntryResponse, status_code=status.HTTP_201_CREATED)
def add_journal_line(
    entry_id: int,
    payload: schemas.JournalLineAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    line = JournalLineInput(**payload.model_dump(exclude={"expected_version"}))
    entry = run_ledger_operation(
        db,
        lambda: journal.add_line(
            db,
            company_id_for(current_user),
            entry_id,
            line,
            expected_version=payload.expected_version,
            user_id=current_user.id,
        ),
    )
    return _to_response(entry)


@router.patch("/{entry_id}/lines/{position}", response_model=schemas.JournalEntryResponse)
def update_journal_line(
    entry_id: int,
    position: int,
    payload: schemas.JournalLineUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True, exclude={"expected_version"})
    entry = run_ledger_operation(
        db,
        lambda: journal.update_line(
            db,
            company_id_for(current_user),
            entry_id,
            position,
            changes,
            expected_version=payload.expected_version,
            user_id=current_user.id,
        ),
    )
    return _to_response(entry)


@router.delete("/{entry_id}/lines/{position}", response_model=schemas.JournalEntryResponse)
def remove_journal_line(
    entry_id: int,
    position: int,
    expected_version: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entry = run_ledger_operation(
        db,
        lambda: journal.remove_line(
            db,
            company_id_for(current_user),
            entry_id,
            position,
            expected_version=expected_version,
            user_id=current_user.id,
        ),
    )
    return _to_response(entry)


@router.post("/{entry_id}/post", response_model=schemas.JournalEntryResponse)
def post_journal_entry(
    entry_id: int,
    payload: schemas.VersionedAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entry = run_ledger_operation(
        db,
        lambda: journal.post_entry(
            db,
            company_id_for(current_user),
            entry_id,
            user_id=current_user.id,
            expected_version=payload.expected_version,
        ),
    )
    return _to_response(entry)


@router.post("/{entry_id}/reverse", response_model=schemas.ReversalResponse)
def reverse_journal_entry(
    entry_id: int,
    payload: schemas.ReverseRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = run_ledger_operation(
        db,
        lambda: journal.reverse_entry(
            db,
            company_id_for(current_user),
            entry_id,
            reversal_date=payload.reversal_date,
            user_id=current_user.id,
            expected_version=payload.expected_version,
        ),
    )
    return schemas.ReversalResponse(original=_to_response(result.original), reversal=_to_response(result.reversal))


@router.get("/{entry_id}/audit", response_model=list[schemas.AuditEventResponse])
def list_journal_entry_audit(
    entry_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    events = list_entry_events(db, company_id_for(current_user), entry_id)
    return [schemas.AuditEventResponse.model_validate(event) for event in events]
