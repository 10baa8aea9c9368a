"""Posting templates (predkontacie).

A template is a reusable line blueprint keyed by account code. Applying it
against a chart snapshot yields draft lines; nothing is validated for balance
until the resulting draft is posted.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ledger.accounting.chart import ChartSnapshot, Found
from ledger.accounting.exceptions import LedgerValidationError, TemplateNotFoundError
from ledger.accounting.journal import create_draft
from ledger.accounting.numbering import ensure_document_type
from ledger.accounting.posting import JournalEntryInput, JournalLineInput
from ledger.models import SIDE_CREDIT, SIDE_DEBIT, SIDES, JournalEntry, PostingTemplate, PostingTemplateLine
from ledger.utils import ZERO_MONEY, quantize_money

logger = logging.getLogger(__name__)

AMOUNT_FIXED = "fixed"
AMOUNT_PERCENT = "percent"
AMOUNT_KINDS = (AMOUNT_FIXED, AMOUNT_PERCENT)


@dataclass(frozen=True)
class TemplateLineSpec:
    account_code: str
    side: str
    amount_kind: str = AMOUNT_FIXED
    value: Decimal = ZERO_MONEY
    analytic: str = ""
    description: Optional[str] = None


def _percent_line(code: str, side: str, percent: int, description: str) -> TemplateLineSpec:
    return TemplateLineSpec(code, side, AMOUNT_PERCENT, Decimal(percent), description=description)


D = SIDE_DEBIT
C = SIDE_CREDIT

PRESET_TEMPLATES = [
    (
        "Nakup materialu",
        "PFA",
        "Nakup materialu s DPH",
        [
            _percent_line("501", D, 100, "Spotreba materialu"),
            _percent_line("343", D, 20, "DPH na vstupe"),
            _percent_line("321", C, 120, "Dodavatelia"),
        ],
    ),
    (
        "Nakup sluzieb",
        "PFA",
        "Nakup sluzieb s DPH",
        [
            _percent_line("518", D, 100, "Ostatne sluzby"),
            _percent_line("343", D, 20, "DPH na vstupe"),
            _percent_line("321", C, 120, "Dodavatelia"),
        ],
    ),
    (
        "Energie",
        "PFA",
        "Nakup energii s DPH",
        [
            _percent_line("502", D, 100, "Spotreba energie"),
            _percent_line("343", D, 20, "DPH na vstupe"),
            _percent_line("321", C, 120, "Dodavatelia"),
        ],
    ),
    (
        "Predaj tovaru",
        "FA",
        "Predaj tovaru s DPH",
        [
            _percent_line("311", D, 120, "Odberatelia"),
            _percent_line("604", C, 100, "Trzby za tovar"),
            _percent_line("343", C, 20, "DPH na vystupe"),
        ],
    ),
    (
        "Predaj sluzieb",
        "FA",
        "Predaj sluzieb s DPH",
        [
            _percent_line("311", D, 120, "Odberatelia"),
            _percent_line("602", C, 100, "Trzby z predaja sluzieb"),
            _percent_line("343", C, 20, "DPH na vystupe"),
        ],
    ),
    (
        "Mzdy - hruba mzda",
        "ID",
        "Zauctovanie hrubej mzdy",
        [
            _percent_line("521", D, 100, "Mzdove naklady"),
            _percent_line("331", C, 100, "Zamestnanci"),
        ],
    ),
    (
        "Mzdy - odvody zamestnavatela",
        "ID",
        "Zauctovanie odvodov zamestnavatela",
        [
            _percent_line("524", D, 100, "Zakonne socialne poistenie"),
            _percent_line("336", C, 100, "Zuctovanie so SP a ZP"),
        ],
    ),
    (
        "Bankove poplatky",
        "BV",
        "Zauctovanie bankovych poplatkov",
        [
            _percent_line("568", D, 100, "Ostatne financne naklady"),
            _percent_line("221", C, 100, "Bankove ucty"),
        ],
    ),
    (
        "Uroky prijate",
        "BV",
        "Zauctovanie prijatych urokov",
        [
            _percent_line("221", D, 100, "Bankove ucty"),
            _percent_line("662", C, 100, "Uroky"),
        ],
    ),
    (
        "Uroky zaplatene",
        "BV",
        "Zauctovanie zaplatenych urokov",
        [
            _percent_line("562", D, 100, "Uroky"),
            _percent_line("221", C, 100, "Bankove ucty"),
        ],
    ),
    (
        "Pokladna prijem",
        "PPD",
        "Prijmovy pokladnicny doklad",
        [
            _percent_line("211", D, 100, "Pokladnica"),
            _percent_line("xxx", C, 100, "Protiucet (doplnit)"),
        ],
    ),
    (
        "Pokladna vydaj",
        "VPD",
        "Vydavkovy pokladnicny doklad",
        [
            _percent_line("xxx", D, 100, "Protiucet (doplnit)"),
            _percent_line("211", C, 100, "Pokladnica"),
        ],
    ),
]


def apply_template(
    template: PostingTemplate,
    snapshot: ChartSnapshot,
    base_amount: Optional[Decimal] = None,
) -> list[JournalLineInput]:
    """Expand a template into ordered draft lines.

    Unresolved codes never fail the expansion: the line keeps an empty account
    and a readable label so the user can pick the account before posting.
    """
    lines: list[JournalLineInput] = []
    for template_line in sorted(template.lines, key=lambda item: item.position):
        result = snapshot.lookup(template_line.account_code, template_line.analytic or "")
        if isinstance(result, Found):
            account_id = result.account.id
            label = f"{result.account.full_code} {result.account.name}"
        else:
            account_id = None
            label = result.label

        if template_line.amount_kind == AMOUNT_PERCENT:
            if base_amount is None:
                amount = ZERO_MONEY
            else:
                amount = quantize_money(Decimal(base_amount) * Decimal(template_line.value) / Decimal("100"))
        else:
            amount = quantize_money(template_line.value)

        lines.append(
            JournalLineInput(
                account_id=account_id,
                account_label=label,
                side=template_line.side,
                amount=amount,
                description=template_line.description,
            )
        )
    return lines


def get_template(db: Session, company_id: int, template_id: int) -> PostingTemplate:
    template = (
        db.query(PostingTemplate)
        .options(selectinload(PostingTemplate.lines))
        .filter(PostingTemplate.company_id == company_id, PostingTemplate.id == template_id)
        .first()
    )
    if not template:
        raise TemplateNotFoundError(template_id)
    return template


def list_templates(
    db: Session,
    company_id: int,
    *,
    document_type: Optional[str] = None,
    active: Optional[bool] = None,
) -> list[PostingTemplate]:
    query = (
        db.query(PostingTemplate)
        .options(selectinload(PostingTemplate.lines))
        .filter(PostingTemplate.company_id == company_id)
    )
    if document_type:
        query = query.filter(PostingTemplate.document_type == document_type.upper())
    if active is not None:
        query = query.filter(PostingTemplate.is_active.is_(active))
    return query.order_by(PostingTemplate.name.asc()).all()


def _build_template_lines(lines: list[TemplateLineSpec]) -> list[PostingTemplateLine]:
    if not lines:
        raise LedgerValidationError("A posting template needs at least one line.")
    built = []
    for position, line in enumerate(lines, start=1):
        if line.side not in SIDES:
            raise LedgerValidationError(f"Template line {position} has invalid side '{line.side}'.", position=position)
        if line.amount_kind not in AMOUNT_KINDS:
            raise LedgerValidationError(
                f"Template line {position} has invalid amount kind '{line.amount_kind}'.", position=position
            )
        if Decimal(line.value) < 0:
            raise LedgerValidationError(f"Template line {position} value cannot be negative.", position=position)
        code = (line.account_code or "").strip()
        if not code or len(code) > 3:
            raise LedgerValidationError(f"Template line {position} needs a 3 character account code.", position=position)
        built.append(
            PostingTemplateLine(
                position=position,
                account_code=code,
                analytic=(line.analytic or "").strip(),
                side=line.side,
                amount_kind=line.amount_kind,
                value=Decimal(line.value),
                description=line.description,
            )
        )
    return built


def _ensure_unique_name(db: Session, company_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(PostingTemplate.id).filter(PostingTemplate.company_id == company_id, PostingTemplate.name == name)
    if exclude_id is not None:
        query = query.filter(PostingTemplate.id != exclude_id)
    if query.first():
        raise LedgerValidationError(f"A posting template named '{name}' already exists.", name=name)


def create_template(
    db: Session,
    company_id: int,
    *,
    name: str,
    document_type: str,
    lines: list[TemplateLineSpec],
    description: Optional[str] = None,
    is_active: bool = True,
) -> PostingTemplate:
    name = (name or "").strip()
    if not name:
        raise LedgerValidationError("Template name is required.")
    _ensure_unique_name(db, company_id, name)
    template = PostingTemplate(
        company_id=company_id,
        name=name,
        document_type=ensure_document_type(document_type),
        description=description,
        is_active=is_active,
    )
    template.lines = _build_template_lines(lines)
    db.add(template)
    db.flush()
    return template


def update_template(
    db: Session,
    company_id: int,
    template_id: int,
    changes: dict,
    lines: Optional[list[TemplateLineSpec]] = None,
) -> PostingTemplate:
    template = get_template(db, company_id, template_id)
    if changes.get("name"):
        name = changes["name"].strip()
        _ensure_unique_name(db, company_id, name, exclude_id=template.id)
        template.name = name
    if changes.get("document_type"):
        template.document_type = ensure_document_type(changes["document_type"])
    if "description" in changes:
        template.description = changes["description"]
    if changes.get("is_active") is not None:
        template.is_active = changes["is_active"]
    if lines is not None:
        template.lines.clear()
        db.flush()
        template.lines = _build_template_lines(lines)
    db.flush()
    return template


def delete_template(db: Session, company_id: int, template_id: int) -> None:
    template = get_template(db, company_id, template_id)
    db.delete(template)
    db.flush()


def create_draft_from_template(
    db: Session,
    company_id: int,
    template_id: int,
    *,
    entry_date: date,
    description: Optional[str] = None,
    base_amount: Optional[Decimal] = None,
    user_id: Optional[int] = None,
) -> JournalEntry:
    template = get_template(db, company_id, template_id)
    if not template.is_active:
        raise LedgerValidationError(f"Posting template {template.name} is inactive.", template_id=template.id)
    lines = apply_template(template, ChartSnapshot.load(db, company_id), base_amount)
    return create_draft(
        db,
        JournalEntryInput(
            company_id=company_id,
            document_type=template.document_type,
            entry_date=entry_date,
            description=description or template.description or template.name,
            lines=lines,
            source_document_type="posting_template",
            source_document_id=template.id,
        ),
        user_id=user_id,
    )


def seed_preset_templates(db: Session, company_id: int) -> int:
    """Insert the preset templates that are missing by name. Returns the count inserted."""
    existing = {name for (name,) in db.query(PostingTemplate.name).filter(PostingTemplate.company_id == company_id)}
    inserted = 0
    for name, document_type, description, lines in PRESET_TEMPLATES:
        if name in existing:
            continue
        create_template(db, company_id, name=name, document_type=document_type, description=description, lines=lines)
        inserted += 1
    logger.info("Seeded %s posting templates for company_id=%s", inserted, company_id)
    return inserted
