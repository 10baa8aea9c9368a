from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
    select,
)
from sqlalchemy.orm import relationship

from .accounting.exceptions import PostingStateError
from .db import Base

ACCOUNT_TYPES = ("asset", "liability", "revenue", "expense")
DEBIT_NORMAL_TYPES = {"asset", "expense"}

ENTRY_DRAFT = "draft"
ENTRY_POSTED = "posted"
ENTRY_REVERSED = "reversed"
ENTRY_STATUSES = (ENTRY_DRAFT, ENTRY_POSTED, ENTRY_REVERSED)

SIDE_DEBIT = "debit"
SIDE_CREDIT = "credit"
SIDES = (SIDE_DEBIT, SIDE_CREDIT)

DOCUMENT_TYPES = {
    "FA": "Issued invoice",
    "PFA": "Received invoice",
    "ID": "Internal document",
    "BV": "Bank statement",
    "PPD": "Cash receipt",
    "VPD": "Cash disbursement",
}


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    base_currency = Column(String(3), nullable=False, default="EUR")
    fiscal_year_start_month = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="company")
    accounts = relationship("Account", back_populates="company")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    full_name = Column(String(200), nullable=True)
    role = Column(String(50), nullable=False, default="ACCOUNTANT")
    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    company = relationship("Company", back_populates="users")


class Module(Base):
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True)
    key = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=False)


class UserModuleAccess(Base):
    __tablename__ = "user_module_access"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "module_id", name="uq_user_module_access"),)


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    code = Column(String(3), nullable=False)
    analytic = Column(String(6), nullable=False, default="")
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False)
    is_tax_relevant = Column(Boolean, default=True, nullable=False)
    is_off_balance = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    company = relationship("Company", back_populates="accounts")

    __table_args__ = (
        UniqueConstraint("company_id", "code", "analytic", name="uq_account_company_code"),
        CheckConstraint("type IN ('asset', 'liability', 'revenue', 'expense')", name="ck_account_type"),
    )

    @property
    def full_code(self) -> str:
        if self.analytic:
            return f"{self.code}.{self.analytic}"
        return self.code

    @property
    def is_debit_normal(self) -> bool:
        return self.type in DEBIT_NORMAL_TYPES


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    number = Column(String(40), nullable=True)
    document_type = Column(String(10), nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    entry_date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default=ENTRY_DRAFT)
    total_debit = Column(Numeric(14, 2), nullable=False, default=0)
    total_credit = Column(Numeric(14, 2), nullable=False, default=0)
    source_document_type = Column(String(50), nullable=True)
    source_document_id = Column(Integer, nullable=True)
    reversal_of_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    reversed_by_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    posted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    posted_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    lines = relationship(
        "JournalLine",
        back_populates="journal_entry",
        order_by="JournalLine.position",
        cascade="all, delete-orphan",
    )
    reversal_of = relationship("JournalEntry", remote_side=[id], foreign_keys=[reversal_of_id], viewonly=True)
    reversed_by = relationship("JournalEntry", remote_side=[id], foreign_keys=[reversed_by_id], viewonly=True)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("company_id", "document_type", "number", name="uq_journal_entry_number"),
        CheckConstraint("status IN ('draft', 'posted', 'reversed')", name="ck_journal_entry_status"),
    )


class JournalLine(Base):
    __tablename__ = "journal_lines"

    id = Column(Integer, primary_key=True)
    journal_entry_id = Column(Integer, ForeignKey("journal_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True, index=True)
    account_label = Column(String(200), nullable=True)
    side = Column(String(10), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False, default=0)
    amount_currency = Column(Numeric(14, 2), nullable=True)
    currency = Column(String(3), nullable=True)
    exchange_rate = Column(Numeric(18, 6), nullable=True)
    cost_center = Column(String(50), nullable=True)
    project = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)

    journal_entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("Account")

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "position", name="uq_journal_line_position"),
        CheckConstraint("side IN ('debit', 'credit')", name="ck_journal_line_side"),
    )


class PostingTemplate(Base):
    __tablename__ = "posting_templates"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    name = Column(String(200), nullable=False)
    document_type = Column(String(10), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    lines = relationship(
        "PostingTemplateLine",
        back_populates="template",
        order_by="PostingTemplateLine.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (UniqueConstraint("company_id", "name", name="uq_posting_template_name"),)


class PostingTemplateLine(Base):
    __tablename__ = "posting_template_lines"

    id = Column(Integer, primary_key=True)
    template_id = Column(Integer, ForeignKey("posting_templates.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    account_code = Column(String(3), nullable=False)
    analytic = Column(String(6), nullable=False, default="")
    side = Column(String(10), nullable=False)
    amount_kind = Column(String(10), nullable=False, default="fixed")
    value = Column(Numeric(14, 2), nullable=False, default=0)
    description = Column(Text, nullable=True)

    template = relationship("PostingTemplate", back_populates="lines")


class NumberSequence(Base):
    __tablename__ = "number_sequences"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    document_type = Column(String(10), nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    last_value = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("company_id", "document_type", "fiscal_year", name="uq_number_sequence"),
    )


class NumberingSeries(Base):
    __tablename__ = "numbering_series"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    document_type = Column(String(10), nullable=False)
    prefix = Column(String(20), nullable=False)
    separator = Column(String(5), nullable=False, default="-")
    padding = Column(Integer, nullable=False, default=4)

    __table_args__ = (UniqueConstraint("company_id", "document_type", name="uq_numbering_series"),)


class PeriodLock(Base):
    __tablename__ = "period_locks"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    locked = Column(Boolean, default=True, nullable=False)
    locked_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    locked_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("company_id", "period_start", "period_end", name="uq_period_lock"),
        CheckConstraint("period_start <= period_end", name="ck_period_lock_range"),
    )


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(50), nullable=False)
    before_hash = Column(String(64), nullable=True)
    after_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    event_metadata = Column(Text, nullable=True)


# Posted history is append-only. These flush guards back up the service layer
# so that no code path, including direct ORM use, can rewrite a posted entry.

FROZEN_ENTRY_FIELDS = (
    "company_id",
    "number",
    "document_type",
    "fiscal_year",
    "entry_date",
    "description",
    "total_debit",
    "total_credit",
    "source_document_type",
    "source_document_id",
    "reversal_of_id",
    "created_by",
    "posted_by",
    "posted_at",
)


def _persisted_status(connection, entry: "JournalEntry") -> str | None:
    state = inspect(entry)
    if not state.has_identity:
        return None
    history = state.attrs.status.history
    previous = list(history.deleted) or list(history.unchanged)
    if previous:
        return previous[0]
    # Expired after commit; the row still holds the persisted value.
    return connection.execute(select(JournalEntry.status).where(JournalEntry.id == entry.id)).scalar()


def _line_parent_status(connection, line: "JournalLine") -> str | None:
    entry = inspect(line).dict.get("journal_entry")
    if entry is not None:
        return _persisted_status(connection, entry)
    if line.journal_entry_id is None:
        return None
    return connection.execute(
        select(JournalEntry.status).where(JournalEntry.id == line.journal_entry_id)
    ).scalar()


@event.listens_for(JournalEntry, "before_update")
def _guard_posted_entry_update(mapper, connection, target):
    previous = _persisted_status(connection, target)
    if previous in (None, ENTRY_DRAFT):
        return
    state = inspect(target)
    changed = [name for name in FROZEN_ENTRY_FIELDS if state.attrs[name].history.has_changes()]
    if changed:
        raise PostingStateError(
            f"Journal entry {target.id} is {previous}; fields {', '.join(changed)} are frozen. Use a reversal instead.",
            entry_id=target.id,
            status=previous,
        )
    if target.status != previous and (previous, target.status) != (ENTRY_POSTED, ENTRY_REVERSED):
        raise PostingStateError(
            f"Journal entry {target.id} cannot move from {previous} to {target.status}.",
            entry_id=target.id,
            status=previous,
        )


@event.listens_for(JournalEntry, "before_delete")
def _guard_posted_entry_delete(mapper, connection, target):
    previous = _persisted_status(connection, target)
    if previous not in (None, ENTRY_DRAFT):
        raise PostingStateError(
            f"Journal entry {target.id} is {previous} and cannot be deleted. Use a reversal instead.",
            entry_id=target.id,
            status=previous,
        )


@event.listens_for(JournalLine, "before_insert")
@event.listens_for(JournalLine, "before_update")
@event.listens_for(JournalLine, "before_delete")
def _guard_posted_entry_lines(mapper, connection, target):
    status = _line_parent_status(connection, target)
    if status not in (None, ENTRY_DRAFT):
        raise PostingStateError(
            f"Lines of journal entry {target.journal_entry_id} are frozen because it is {status}. Use a reversal instead.",
            entry_id=target.journal_entry_id,
            status=status,
        )
