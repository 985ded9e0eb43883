"""Invoice register and the send-to-client lifecycle."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from harmonydesk.core.auth import RequestUserContext
from harmonydesk.core.errors import CountyNotFound, InvoiceNotFound, InvoiceUpdateAfterSendFailed
from harmonydesk.models.entities import DEFAULT_INVOICE_DUE, Invoice, InvoiceStatus
from harmonydesk.repositories.billing_repository import BillingRepository, storage_guard
from harmonydesk.services.email_service import EmailDelivery, InvoiceEmailSender, build_invoice_email
from harmonydesk.services.report_rendering import q2, to_decimal

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(slots=True)
class InvoiceCreateData:
    case_number: str
    matter: str
    contact: str
    hours: Decimal
    rate: Decimal
    county_id: UUID | None = None
    due: str | None = None


@dataclass(slots=True)
class InvoiceUpdateData:
    status: InvoiceStatus | None = None
    due: str | None = None
    # _UNSET keeps the current county; None detaches the invoice.
    county_id: object = _UNSET
    to_email: str | None = None

    def is_empty(self) -> bool:
        return self.status is None and self.due is None and self.county_id is _UNSET


@dataclass(slots=True)
class InvoiceSendResult:
    invoice: Invoice
    delivery: EmailDelivery


class InvoiceService:
    def __init__(self, db: Session, email_sender: InvoiceEmailSender | None = None) -> None:
        self.db = db
        self.repo = BillingRepository(db)
        self.email_sender = email_sender or InvoiceEmailSender()

    # ---------- Serialization ----------
    @staticmethod
    def serialize_invoice(row: Invoice) -> dict[str, object]:
        hours = to_decimal(row.hours)
        rate = to_decimal(row.rate)
        return {
            "id": str(row.id),
            "caseNumber": row.case_number,
            "matter": row.matter,
            "contact": row.contact,
            "hours": float(hours),
            "rate": float(rate),
            "total": float(q2(hours * rate)),
            "status": row.status.value,
            "due": row.due or "",
            "countyId": str(row.county_id) if row.county_id is not None else None,
            "createdAt": row.created_at.isoformat() if row.created_at else None,
        }

    @staticmethod
    def serialize_send_result(result: InvoiceSendResult) -> dict[str, object]:
        return {
            "invoice": InvoiceService.serialize_invoice(result.invoice),
            "email": {
                "provider": result.delivery.provider,
                "messageId": result.delivery.message_id,
                "to": result.delivery.to,
            },
        }

    # ---------- Helpers ----------
    def _ensure_county(self, context: RequestUserContext, county_id: UUID | None) -> None:
        if county_id is None:
            return
        if self.repo.get_county(county_id, owner_id=context.user_id) is None:
            raise CountyNotFound()

    def _commit(self, detail: str, *, pending: Callable[[], object] | None = None, **log_context: object) -> None:
        with storage_guard(detail, **log_context):
            try:
                if pending is not None:
                    pending()
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Invoice violates database constraints.",
                ) from exc
            except SQLAlchemyError:
                self.db.rollback()
                raise

    # ---------- CRUD ----------
    def list_invoices(self, *, context: RequestUserContext) -> list[Invoice]:
        return self.repo.list_invoices(context.user_id)

    def get_invoice(self, *, context: RequestUserContext, invoice_id: UUID) -> Invoice:
        invoice = self.repo.get_invoice(invoice_id, owner_id=context.user_id)
        if invoice is None:
            raise InvoiceNotFound()
        return invoice

    def create_invoice(self, *, context: RequestUserContext, data: InvoiceCreateData) -> Invoice:
        case_number = data.case_number.strip()
        matter = data.matter.strip()
        contact = data.contact.strip()
        if not case_number or not matter or not contact:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="caseNumber, matter and contact are required.",
            )
        self._ensure_county(context, data.county_id)

        invoice = Invoice(
            owner_id=context.user_id,
            county_id=data.county_id,
            case_number=case_number,
            matter=matter,
            contact=contact,
            hours=q2(data.hours),
            rate=q2(data.rate),
            status=InvoiceStatus.DRAFT,
            due=(data.due or "").strip() or DEFAULT_INVOICE_DUE,
            created_at=datetime.utcnow(),
        )
        self._commit(
            "Failed to create invoice.",
            pending=lambda: self.repo.add_invoice(invoice),
            owner_id=context.user_id,
        )
        self.db.refresh(invoice)
        return invoice

    def update_invoice(
        self,
        *,
        context: RequestUserContext,
        invoice_id: UUID,
        data: InvoiceUpdateData,
    ) -> Invoice | InvoiceSendResult:
        if data.is_empty():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="No fields to update.",
            )

        invoice = self.get_invoice(context=context, invoice_id=invoice_id)
        if data.county_id is not _UNSET:
            self._ensure_county(context, data.county_id)
            invoice.county_id = data.county_id
        if data.due is not None:
            invoice.due = data.due.strip() or None

        # Marking Sent is only honest once the email actually went out.
        if data.status is InvoiceStatus.SENT:
            return self._send(invoice=invoice, to_email=data.to_email)

        if data.status is not None:
            invoice.status = data.status
        self._commit("Failed to update invoice.", invoice_id=invoice_id)
        self.db.refresh(invoice)
        return invoice

    def delete_invoice(self, *, context: RequestUserContext, invoice_id: UUID) -> None:
        invoice = self.get_invoice(context=context, invoice_id=invoice_id)
        self._commit(
            "Failed to delete invoice.",
            pending=lambda: self.repo.delete_invoice(invoice),
            invoice_id=invoice_id,
        )

    # ---------- Send flow ----------
    def send_invoice(
        self,
        *,
        context: RequestUserContext,
        invoice_id: UUID,
        to_email: str | None,
    ) -> InvoiceSendResult:
        invoice = self.get_invoice(context=context, invoice_id=invoice_id)
        return self._send(invoice=invoice, to_email=to_email)

    def _send(
        self,
        *,
        invoice: Invoice,
        to_email: str | None,
    ) -> InvoiceSendResult:
        if invoice.status is not InvoiceStatus.DRAFT:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only Draft invoices can be sent.",
            )

        recipient = self.email_sender.resolve_recipient(to_email, invoice.contact)
        if recipient is None:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Missing recipient email. Provide toEmail or store an email in the invoice contact.",
            )

        message = build_invoice_email(invoice)
        try:
            delivery = self.email_sender.send(to=recipient, message=message)
        except HTTPException:
            # Provider failure leaves the invoice exactly as it was.
            self.db.rollback()
            raise

        logger.info(
            "Invoice email sent invoice_id=%s provider=%s message_id=%s to=%s",
            invoice.id,
            delivery.provider,
            delivery.message_id,
            delivery.to,
        )

        invoice.status = InvoiceStatus.SENT
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Marking invoice %s as Sent failed after email send", invoice.id)
            raise InvoiceUpdateAfterSendFailed(provider=delivery.provider, message_id=delivery.message_id) from exc

        self.db.refresh(invoice)
        return InvoiceSendResult(invoice=invoice, delivery=delivery)
