"""Initial schema: clients, packages, components, progress steps, annotations.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Clients and what they bought ─────────────────────────

    op.create_table(
        "clients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("business_name", sa.String(255)),
        sa.Column("email", sa.String(255)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36),
                  sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("package_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), server_default="Pending"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "components",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36),
                  sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("invoice_id", sa.String(36),
                  sa.ForeignKey("invoices.id", ondelete="CASCADE"), index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Progress tracking ────────────────────────────────────

    op.create_table(
        "progress_steps",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36),
                  sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("package_id", sa.String(36),
                  sa.ForeignKey("invoices.id", ondelete="SET NULL"), index=True),
        sa.Column("component_id", sa.String(36),
                  sa.ForeignKey("components.id", ondelete="SET NULL"), index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("deadline", sa.DateTime()),
        sa.Column("completed", sa.Boolean(), server_default="false"),
        sa.Column("completed_date", sa.DateTime()),
        sa.Column("important", sa.Boolean(), server_default="false"),
        sa.Column("onboarding_deadline", sa.DateTime()),
        sa.Column("first_draft_deadline", sa.DateTime()),
        sa.Column("second_draft_deadline", sa.DateTime()),
        sa.Column("onboarding_completed", sa.Boolean(), server_default="false"),
        sa.Column("first_draft_completed", sa.Boolean(), server_default="false"),
        sa.Column("second_draft_completed", sa.Boolean(), server_default="false"),
        sa.Column("onboarding_completed_date", sa.DateTime()),
        sa.Column("first_draft_completed_date", sa.DateTime()),
        sa.Column("second_draft_completed_date", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), index=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "progress_step_comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("step_id", sa.String(36),
                  sa.ForeignKey("progress_steps.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("text", sa.Text(), server_default=""),
        sa.Column("attachment_url", sa.Text()),
        sa.Column("attachment_type", sa.String(100)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Client files and links ───────────────────────────────

    op.create_table(
        "client_files",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36),
                  sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_size", sa.String(50)),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_type", sa.String(100)),
        sa.Column("created_by", sa.String(20), server_default="admin"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "client_links",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36),
                  sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(20), server_default="admin"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("client_links")
    op.drop_table("client_files")
    op.drop_table("progress_step_comments")
    op.drop_table("progress_steps")
    op.drop_table("components")
    op.drop_table("invoices")
    op.drop_table("clients")
