"""initial schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


invoice_status = postgresql.ENUM(
    "Draft", "Sent", "For county report", name="invoice_status", create_type=False
)


def upgrade() -> None:
    invoice_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("auth_subject", sa.String(length=128), nullable=False, unique=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "counties",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "report_format",
            sa.String(length=32),
            nullable=False,
            server_default=sa.text("'csv_line_per_invoice'"),
        ),
        sa.Column("next_due_rule", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_counties_owner_id", "counties", ["owner_id"])

    op.create_table(
        "invoices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "county_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("counties.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("case_number", sa.String(length=128), nullable=False),
        sa.Column("matter", sa.String(length=1000), nullable=False),
        sa.Column("contact", sa.String(length=320), nullable=False),
        sa.Column("hours", sa.Numeric(10, 2), nullable=True, server_default=sa.text("0")),
        sa.Column("rate", sa.Numeric(12, 2), nullable=True, server_default=sa.text("0")),
        sa.Column("status", invoice_status, nullable=False, server_default=sa.text("'Draft'")),
        sa.Column("due", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("hours >= 0", name="ck_invoices_hours_non_negative"),
        sa.CheckConstraint("rate >= 0", name="ck_invoices_rate_non_negative"),
    )
    op.create_index("ix_invoices_owner_created", "invoices", ["owner_id", "created_at"])
    op.create_index("ix_invoices_owner_county_status", "invoices", ["owner_id", "county_id", "status"])


def downgrade() -> None:
    op.drop_index("ix_invoices_owner_county_status", table_name="invoices")
    op.drop_index("ix_invoices_owner_created", table_name="invoices")
    op.drop_table("invoices")

    op.drop_index("ix_counties_owner_id", table_name="counties")
    op.drop_table("counties")

    op.drop_table("users")

    invoice_status.drop(op.get_bind(), checkfirst=True)
