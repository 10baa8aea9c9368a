"""journal entries and numbering

Revision ID: 0002_journal_numbering
Revises: 0001_initial
Create Date: 2026-09-03 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


revision = "0002_journal_numbering"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("number", sa.String(length=40), nullable=True),
        sa.Column("document_type", sa.String(length=10), nullable=False),
        sa.Column("fiscal_year", sa.Integer(), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("total_debit", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_credit", sa.Numeric(14, 2), nullable=False),
        sa.Column("source_document_type", sa.String(length=50), nullable=True),
        sa.Column("source_document_id", sa.Integer(), nullable=True),
        sa.Column("reversal_of_id", sa.Integer(), sa.ForeignKey("journal_entries.id"), nullable=True),
        sa.Column("reversed_by_id", sa.Integer(), sa.ForeignKey("journal_entries.id"), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("posted_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.UniqueConstraint("company_id", "document_type", "number", name="uq_journal_entry_number"),
        sa.CheckConstraint("status IN ('draft', 'posted', 'reversed')", name="ck_journal_entry_status"),
    )
    op.create_index("ix_journal_entries_company_id", "journal_entries", ["company_id"], unique=False)
    op.create_index("ix_journal_entries_entry_date", "journal_entries", ["entry_date"], unique=False)

    op.create_table(
        "journal_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "journal_entry_id",
            sa.Integer(),
            sa.ForeignKey("journal_entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=True),
        sa.Column("account_label", sa.String(length=200), nullable=True),
        sa.Column("side", sa.String(length=10), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("amount_currency", sa.Numeric(14, 2), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=True),
        sa.Column("cost_center", sa.String(length=50), nullable=True),
        sa.Column("project", sa.String(length=50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.UniqueConstraint("journal_entry_id", "position", name="uq_journal_line_position"),
        sa.CheckConstraint("side IN ('debit', 'credit')", name="ck_journal_line_side"),
    )
    op.create_index("ix_journal_lines_journal_entry_id", "journal_lines", ["journal_entry_id"], unique=False)
    op.create_index("ix_journal_lines_account_id", "journal_lines", ["account_id"], unique=False)

    op.create_table(
        "number_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("document_type", sa.String(length=10), nullable=False),
        sa.Column("fiscal_year", sa.Integer(), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("company_id", "document_type", "fiscal_year", name="uq_number_sequence"),
    )
    op.create_table(
        "numbering_series",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("document_type", sa.String(length=10), nullable=False),
        sa.Column("prefix", sa.String(length=20), nullable=False),
        sa.Column("separator", sa.String(length=5), nullable=False, server_default="-"),
        sa.Column("padding", sa.Integer(), nullable=False, server_default="4"),
        sa.UniqueConstraint("company_id", "document_type", name="uq_numbering_series"),
    )


def downgrade() -> None:
    op.drop_table("numbering_series")
    op.drop_table("number_sequences")
    op.drop_index("ix_journal_lines_account_id", table_name="journal_lines")
    op.drop_index("ix_journal_lines_journal_entry_id", table_name="journal_lines")
    op.drop_table("journal_lines")
    op.drop_index("ix_journal_entries_entry_date", table_name="journal_entries")
    op.drop_index("ix_journal_entries_company_id", table_name="journal_entries")
    op.drop_table("journal_entries")
