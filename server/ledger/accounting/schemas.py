from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DocumentType = Literal["FA", "PFA", "ID", "BV", "PPD", "VPD"]
JournalSide = Literal["debit", "credit"]
EntryStatus = Literal["draft", "posted", "reversed"]
AmountKind = Literal["fixed", "percent"]


class JournalLineCreate(BaseModel):
    account_id: Optional[int] = None
    side: JournalSide
    amount: Decimal = Field(Decimal("0"), ge=Decimal("0"))
    description: Optional[str] = None
    amount_currency: Optional[Decimal] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    exchange_rate: Optional[Decimal] = Field(None, gt=Decimal("0"))
    cost_center: Optional[str] = Field(None, max_length=50)
    project: Optional[str] = Field(None, max_length=50)
    account_label: Optional[str] = Field(None, max_length=200)


class JournalLineUpdate(BaseModel):
    account_id: Optional[int] = None
    side: Optional[JournalSide] = None
    amount: Optional[Decimal] = Field(None, ge=Decimal("0"))
    description: Optional[str] = None
    amount_currency: Optional[Decimal] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    exchange_rate: Optional[Decimal] = Field(None, gt=Decimal("0"))
    cost_center: Optional[str] = Field(None, max_length=50)
    project: Optional[str] = Field(None, max_length=50)
    account_label: Optional[str] = Field(None, max_length=200)
    expected_version: Optional[int] = None


class JournalLineAdd(JournalLineCreate):
    expected_version: Optional[int] = None


class JournalEntryCreate(BaseModel):
    document_type: DocumentType
    entry_date: date
    description: str = ""
    source_document_type: Optional[str] = Field(None, max_length=50)
    source_document_id: Optional[int] = None
    lines: list[JournalLineCreate] = Field(default_factory=list)


class JournalEntryUpdate(BaseModel):
    document_type: Optional[DocumentType] = None
    entry_date: Optional[date] = None
    description: Optional[str] = None
    source_document_type: Optional[str] = Field(None, max_length=50)
    source_document_id: Optional[int] = None
    lines: Optional[list[JournalLineCreate]] = None
    expected_version: Optional[int] = None


class VersionedAction(BaseModel):
    expected_version: int


class ReverseRequest(VersionedAction):
    reversal_date: Optional[date] = None


class FromTemplateRequest(BaseModel):
    template_id: int
    entry_date: date
    description: Optional[str] = None
    base_amount: Optional[Decimal] = Field(None, ge=Decimal("0"))


class JournalLineResponse(BaseModel):
    id: int
    position: int
    account_id: Optional[int] = None
    account_label: Optional[str] = None
    side: JournalSide
    amount: Decimal
    amount_currency: Optional[Decimal] = None
    currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    cost_center: Optional[str] = None
    project: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class JournalEntryResponse(BaseModel):
    id: int
    number: Optional[str] = None
    document_type: str
    fiscal_year: int
    entry_date: date
    description: str
    status: EntryStatus
    total_debit: Decimal
    total_credit: Decimal
    source_document_type: Optional[str] = None
    source_document_id: Optional[int] = None
    reversal_of_id: Optional[int] = None
    reversed_by_id: Optional[int] = None
    created_at: datetime
    posted_at: Optional[datetime] = None
    version: int
    lines: list[JournalLineResponse]

    model_config = ConfigDict(from_attributes=True)


class ReversalResponse(BaseModel):
    original: JournalEntryResponse
    reversal: JournalEntryResponse


class TemplateLineCreate(BaseModel):
    account_code: str = Field(..., min_length=1, max_length=3)
    analytic: str = Field("", max_length=6)
    side: JournalSide
    amount_kind: AmountKind = "fixed"
    value: Decimal = Field(Decimal("0"), ge=Decimal("0"))
    description: Optional[str] = None


class TemplateLineResponse(TemplateLineCreate):
    id: int
    position: int

    model_config = ConfigDict(from_attributes=True)


class PostingTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    document_type: DocumentType
    description: Optional[str] = None
    is_active: bool = True
    lines: list[TemplateLineCreate]

    @field_validator("lines")
    @classmethod
    def validate_lines(cls, value: list[TemplateLineCreate]) -> list[TemplateLineCreate]:
        if not value:
            raise ValueError("A posting template needs at least one line.")
        return value


class PostingTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    document_type: Optional[DocumentType] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    lines: Optional[list[TemplateLineCreate]] = None


class PostingTemplateResponse(BaseModel):
    id: int
    name: str
    document_type: str
    description: Optional[str] = None
    is_active: bool
    lines: list[TemplateLineResponse]

    model_config = ConfigDict(from_attributes=True)


class ApplyTemplateRequest(BaseModel):
    base_amount: Optional[Decimal] = Field(None, ge=Decimal("0"))


class AppliedLineResponse(BaseModel):
    position: int
    account_id: Optional[int] = None
    account_label: Optional[str] = None
    side: JournalSide
    amount: Decimal
    description: Optional[str] = None


class TemplateSeedResponse(BaseModel):
    inserted: int


class AccountBalanceRow(BaseModel):
    account_id: int
    code: str
    full_code: str
    name: str
    type: str
    debit_total: Decimal
    credit_total: Decimal
    net_balance: Decimal


class IsBalancedResponse(BaseModel):
    is_balanced: bool


class TrialBalanceRowResponse(BaseModel):
    account_id: int
    full_code: str
    name: str
    type: str
    opening_debit: Decimal
    opening_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    closing_debit: Decimal
    closing_credit: Decimal
    closing_balance: Decimal


class TrialBalanceResponse(BaseModel):
    date_from: date
    date_to: date
    rows: list[TrialBalanceRowResponse]
    summary: dict[str, Decimal]
    is_balanced: bool


class LedgerMovementResponse(BaseModel):
    entry_id: int
    number: Optional[str] = None
    entry_date: date
    document_type: str
    description: Optional[str] = None
    side: JournalSide
    amount: Decimal
    balance: Decimal


class AccountLedgerResponse(BaseModel):
    account_id: int
    full_code: str
    name: str
    opening_balance: Decimal
    closing_balance: Decimal
    movements: list[LedgerMovementResponse]


class NumberingCheckResponse(BaseModel):
    document_type: str
    fiscal_year: int
    count: int
    first_number: Optional[str] = None
    last_number: Optional[str] = None
    gaps: list[str]
    duplicates: list[str]
    has_issues: bool


class NumberingSeriesResponse(BaseModel):
    document_type: str
    prefix: str
    separator: str
    padding: int
    example: str


class NumberingSeriesUpdate(BaseModel):
    prefix: str = Field(..., min_length=1, max_length=20)
    separator: str = Field("-", max_length=5)
    padding: int = Field(4, ge=1, le=10)


class PeriodLockCreate(BaseModel):
    period_start: date
    period_end: date
    locked: bool = True


class PeriodLockResponse(BaseModel):
    id: int
    period_start: date
    period_end: date
    locked: bool
    locked_at: datetime
    locked_by: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class AuditEventResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: str
    before_hash: Optional[str] = None
    after_hash: Optional[str] = None
    event_metadata: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
