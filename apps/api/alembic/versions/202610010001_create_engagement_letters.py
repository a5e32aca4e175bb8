"""create clients, engagement letters and audit log

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_name", sa.String(length=255), nullable=True),
        sa.Column("contact_name", sa.String(length=255), nullable=True),
        sa.Column("matter_type", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=False, server_default="Intake"),
        sa.Column("letter_sent", sa.Date(), nullable=True),
        sa.Column("letter_executed", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "engagement_letters",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("boldsign_document_id", sa.String(length=128), nullable=True),
        sa.Column("esign_status", sa.String(length=32), nullable=False, server_default="unsent"),
        sa.Column("signed_pdf_path", sa.Text(), nullable=True),
        sa.Column("approval_status", sa.String(length=32), nullable=False, server_default="Draft"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_engagement_letters_client_id", "engagement_letters", ["client_id"], unique=False)
    op.create_index(
        "idx_engagement_letters_boldsign_doc_id",
        "engagement_letters",
        ["boldsign_document_id"],
        unique=False,
        postgresql_where=sa.text("boldsign_document_id IS NOT NULL"),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=True),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_log_created", "audit_log", ["created_at"], unique=False)
    op.create_index("idx_audit_log_entity", "audit_log", ["entity_type", "entity_id"], unique=False)
    op.create_index("idx_audit_log_action", "audit_log", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_audit_log_action", table_name="audit_log")
    op.drop_index("idx_audit_log_entity", table_name="audit_log")
    op.drop_index("idx_audit_log_created", table_name="audit_log")
    op.drop_table("audit_log")

    op.drop_index("idx_engagement_letters_boldsign_doc_id", table_name="engagement_letters")
    op.drop_index("ix_engagement_letters_client_id", table_name="engagement_letters")
    op.drop_table("engagement_letters")

    op.drop_table("clients")
