"""posting templates, period locks and audit events

Revision ID: 0003_templates_locks_audit
Revises: 0002_journal_numbering
Create Date: 2026-09-10 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


revision = "0003_templates_locks_audit"
down_revision = "0002_journal_numbering"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "posting_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("document_type", sa.String(length=10), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("company_id", "name", name="uq_posting_template_name"),
    )
    op.create_table(
        "posting_template_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("posting_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("account_code", sa.String(length=3), nullable=False),
        sa.Column("analytic", sa.String(length=6), nullable=False, server_default=""),
        sa.Column("side", sa.String(length=10), nullable=False),
        sa.Column("amount_kind", sa.String(length=10), nullable=False, server_default="fixed"),
        sa.Column("value", sa.Numeric(14, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_table(
        "period_locks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("locked", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("locked_at", sa.DateTime(), nullable=False),
        sa.Column("locked_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.UniqueConstraint("company_id", "period_start", "period_end", name="uq_period_lock"),
        sa.CheckConstraint("period_start <= period_end", name="ck_period_lock_range"),
    )
    op.create_index("ix_period_locks_company_id", "period_locks", ["company_id"], unique=False)
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_hash", sa.String(length=64), nullable=True),
        sa.Column("after_hash", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("event_metadata", sa.Text(), nullable=True),
    )
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_events_entity", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("ix_period_locks_company_id", table_name="period_locks")
    op.drop_table("period_locks")
    op.drop_table("posting_template_lines")
    op.drop_table("posting_templates")
