"""create_newsletter_pipeline_tables

Revision ID: 3a9c1e7b5d20
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "3a9c1e7b5d20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "emails",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("newsletter_name", sa.String(length=256), nullable=True),
        sa.Column("subject", sa.String(length=1024), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("clean_text", sa.Text(), nullable=True),
        sa.Column("raw_html", sa.Text(), nullable=True),
        sa.Column("processing_status", sa.String(length=32), nullable=False),
        sa.Column("extraction_status", sa.String(length=32), nullable=False),
        sa.Column("extraction_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("extraction_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("companies_extracted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("extraction_error", sa.String(length=4096), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_emails")),
    )
    with op.batch_alter_table("emails", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_emails_user_id"), ["user_id"], unique=False)
        batch_op.create_index(
            "ix_emails_user_status_received", ["user_id", "processing_status", "received_at"], unique=False
        )

    op.create_table(
        "companies",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("normalized_name", sa.String(length=600), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("industry", sa.JSON(), nullable=False),
        sa.Column("mention_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_companies")),
        sa.UniqueConstraint("user_id", "name", name="uq_companies_user_name"),
    )
    with op.batch_alter_table("companies", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_companies_user_id"), ["user_id"], unique=False)

    op.create_table(
        "company_mentions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("company_id", sa.String(length=36), nullable=False),
        sa.Column("email_id", sa.String(length=36), nullable=False),
        sa.Column("context", sa.Text(), nullable=True),
        sa.Column("sentiment", sa.String(length=16), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("extracted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["company_id"], ["companies.id"], name=op.f("fk_company_mentions_company_id_companies"), ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["email_id"], ["emails.id"], name=op.f("fk_company_mentions_email_id_emails"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_company_mentions")),
    )
    with op.batch_alter_table("company_mentions", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_company_mentions_company_id"), ["company_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_company_mentions_email_id"), ["email_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_company_mentions_user_id"), ["user_id"], unique=False)

    op.create_table(
        "pipeline_runs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("trigger", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("companies_extracted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("remaining", sa.Integer(), nullable=True),
        sa.Column("follow_up_triggered", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("error_summary", sa.String(length=4096), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_pipeline_runs")),
    )
    with op.batch_alter_table("pipeline_runs", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_pipeline_runs_user_id"), ["user_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_pipeline_runs_status"), ["status"], unique=False)
        batch_op.create_index("ix_pipeline_runs_user_id_started_at", ["user_id", "started_at"], unique=False)

    op.create_table(
        "pipeline_updates",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("update_json", sa.Text(), nullable=False),
        sa.Column("consumed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_pipeline_updates")),
    )
    with op.batch_alter_table("pipeline_updates", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_pipeline_updates_user_id"), ["user_id"], unique=False)
        batch_op.create_index(
            "ix_pipeline_updates_user_consumed_created", ["user_id", "consumed", "created_at"], unique=False
        )

    op.create_table(
        "pipeline_locks",
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("holder", sa.String(length=64), nullable=False),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id", name=op.f("pk_pipeline_locks")),
    )


def downgrade() -> None:
    op.drop_table("pipeline_locks")
    with op.batch_alter_table("pipeline_updates", schema=None) as batch_op:
        batch_op.drop_index("ix_pipeline_updates_user_consumed_created")
        batch_op.drop_index(batch_op.f("ix_pipeline_updates_user_id"))
    op.drop_table("pipeline_updates")
    with op.batch_alter_table("pipeline_runs", schema=None) as batch_op:
        batch_op.drop_index("ix_pipeline_runs_user_id_started_at")
        batch_op.drop_index(batch_op.f("ix_pipeline_runs_status"))
        batch_op.drop_index(batch_op.f("ix_pipeline_runs_user_id"))
    op.drop_table("pipeline_runs")
    with op.batch_alter_table("company_mentions", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_company_mentions_user_id"))
        batch_op.drop_index(batch_op.f("ix_company_mentions_email_id"))
        batch_op.drop_index(batch_op.f("ix_company_mentions_company_id"))
    op.drop_table("company_mentions")
    with op.batch_alter_table("companies", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_companies_user_id"))
    op.drop_table("companies")
    with op.batch_alter_table("emails", schema=None) as batch_op:
        batch_op.drop_index("ix_emails_user_status_received")
        batch_op.drop_index(batch_op.f("ix_emails_user_id"))
    op.drop_table("emails")
