"""ORM entities for HarmonyDesk billing schema."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from harmonydesk.db.base import Base


class ReportFormat(str, enum.Enum):
    CSV_LINE_PER_INVOICE = "csv_line_per_invoice"
    PDF_LINE_PER_INVOICE = "pdf_line_per_invoice"
    PDF_GROUPED_BY_CASE = "pdf_grouped_by_case"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    FOR_COUNTY_REPORT = "For county report"


DEFAULT_INVOICE_DUE = "Draft – set due date"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    auth_subject: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class County(Base):
    __tablename__ = "counties"
    __table_args__ = (Index("ix_counties_owner_id", "owner_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Plain string so rows written by older clients still load; see normalize_report_format.
    report_format: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ReportFormat.CSV_LINE_PER_INVOICE.value
    )
    next_due_rule: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint("hours >= 0", name="ck_invoices_hours_non_negative"),
        CheckConstraint("rate >= 0", name="ck_invoices_rate_non_negative"),
        Index("ix_invoices_owner_created", "owner_id", "created_at"),
        Index("ix_invoices_owner_county_status", "owner_id", "county_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    county_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("counties.id", ondelete="SET NULL"), nullable=True
    )
    case_number: Mapped[str] = mapped_column(String(128), nullable=False)
    matter: Mapped[str] = mapped_column(String(1000), nullable=False)
    contact: Mapped[str] = mapped_column(String(320), nullable=False)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True, default=Decimal("0.00"))
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True, default=Decimal("0.00"))
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(
            InvoiceStatus,
            name="invoice_status",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=InvoiceStatus.DRAFT,
    )
    due: Mapped[str | None] = mapped_column(String(255), nullable=True, default=DEFAULT_INVOICE_DUE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
