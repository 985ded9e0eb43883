"""Invoice register and send endpoints."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.orm import Session

from harmonydesk.core.auth import RequestUserContext, get_current_user_context
from harmonydesk.db.dependencies import get_db_session
from harmonydesk.models.entities import InvoiceStatus
from harmonydesk.services.email_service import InvoiceEmailSender, get_email_sender
from harmonydesk.services.invoice_service import (
    InvoiceCreateData,
    InvoiceSendResult,
    InvoiceService,
    InvoiceUpdateData,
)

router = APIRouter(prefix="/invoices", tags=["invoices"])


class InvoiceCreatePayload(BaseModel):
    case_number: str = Field(
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("caseNumber", "case_number"),
    )
    matter: str = Field(min_length=1, max_length=1000)
    contact: str = Field(min_length=1, max_length=320)
    hours: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    rate: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    county_id: UUID | None = Field(default=None, validation_alias=AliasChoices("countyId", "county_id"))
    due: str | None = Field(default=None, max_length=255)


class InvoiceUpdatePayload(BaseModel):
    status: InvoiceStatus | None = None
    due: str | None = Field(default=None, max_length=255)
    county_id: UUID | None = Field(default=None, validation_alias=AliasChoices("countyId", "county_id"))
    to_email: str | None = Field(default=None, max_length=320, validation_alias=AliasChoices("toEmail", "to_email"))


class InvoiceSendPayload(BaseModel):
    to_email: str | None = Field(default=None, max_length=320, validation_alias=AliasChoices("toEmail", "to_email"))


def _invoice_service(db: Session, email_sender: InvoiceEmailSender) -> InvoiceService:
    return InvoiceService(db, email_sender=email_sender)


@router.get("")
def list_invoices(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    email_sender: InvoiceEmailSender = Depends(get_email_sender),
) -> dict[str, list[object]]:
    service = _invoice_service(db, email_sender)
    rows = service.list_invoices(context=context)
    return {"items": [service.serialize_invoice(row) for row in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    email_sender: InvoiceEmailSender = Depends(get_email_sender),
) -> dict[str, object]:
    service = _invoice_service(db, email_sender)
    invoice = service.create_invoice(
        context=context,
        data=InvoiceCreateData(
            case_number=payload.case_number,
            matter=payload.matter,
            contact=payload.contact,
            hours=payload.hours,
            rate=payload.rate,
            county_id=payload.county_id,
            due=payload.due,
        ),
    )
    return service.serialize_invoice(invoice)


@router.get("/{invoice_id}")
def get_invoice(
    invoice_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    email_sender: InvoiceEmailSender = Depends(get_email_sender),
) -> dict[str, object]:
    service = _invoice_service(db, email_sender)
    return service.serialize_invoice(service.get_invoice(context=context, invoice_id=invoice_id))


@router.patch("/{invoice_id}")
def update_invoice(
    invoice_id: UUID,
    payload: InvoiceUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    email_sender: InvoiceEmailSender = Depends(get_email_sender),
) -> dict[str, object]:
    service = _invoice_service(db, email_sender)
    data = InvoiceUpdateData(status=payload.status, due=payload.due, to_email=payload.to_email)
    if "county_id" in payload.model_fields_set:
        data.county_id = payload.county_id

    result = service.update_invoice(context=context, invoice_id=invoice_id, data=data)
    if isinstance(result, InvoiceSendResult):
        return service.serialize_send_result(result)
    return service.serialize_invoice(result)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    email_sender: InvoiceEmailSender = Depends(get_email_sender),
) -> Response:
    service = _invoice_service(db, email_sender)
    service.delete_invoice(context=context, invoice_id=invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{invoice_id}/send")
def send_invoice(
    invoice_id: UUID,
    payload: InvoiceSendPayload | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    email_sender: InvoiceEmailSender = Depends(get_email_sender),
) -> dict[str, object]:
    service = _invoice_service(db, email_sender)
    result = service.send_invoice(
        context=context,
        invoice_id=invoice_id,
        to_email=payload.to_email if payload is not None else None,
    )
    return service.serialize_send_result(result)
