"""Repository helpers for counties and invoices, always scoped by owner."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from harmonydesk.core.errors import StorageUnavailable
from harmonydesk.models.entities import County, Invoice, InvoiceStatus

logger = logging.getLogger(__name__)


@contextmanager
def storage_guard(detail: str, **log_context: object) -> Iterator[None]:
    """Translate driver/ORM failures into ``StorageUnavailable``."""

    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("%s %s", detail, log_context)
        raise StorageUnavailable(detail) from exc


class BillingRepository:
    """Persistence operations used by county, invoice and report services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Counties ----------
    def list_counties(self, owner_id: UUID) -> list[County]:
        with storage_guard("Failed to load counties.", owner_id=owner_id):
            return self.db.scalars(
                select(County).where(County.owner_id == owner_id).order_by(County.name.asc())
            ).all()

    def get_county(self, county_id: UUID, *, owner_id: UUID) -> County | None:
        with storage_guard("Failed to load county.", county_id=county_id, owner_id=owner_id):
            return self.db.scalar(
                select(County).where(County.id == county_id, County.owner_id == owner_id)
            )

    def add_county(self, county: County) -> County:
        self.db.add(county)
        self.db.flush()
        return county

    def delete_county(self, county: County) -> None:
        self.db.delete(county)
        self.db.flush()

    # ---------- Invoices ----------
    def list_invoices(self, owner_id: UUID) -> list[Invoice]:
        with storage_guard("Failed to load invoices.", owner_id=owner_id):
            return self.db.scalars(
                select(Invoice).where(Invoice.owner_id == owner_id).order_by(Invoice.created_at.desc())
            ).all()

    def get_invoice(self, invoice_id: UUID, *, owner_id: UUID) -> Invoice | None:
        with storage_guard("Failed to load invoice.", invoice_id=invoice_id, owner_id=owner_id):
            return self.db.scalar(
                select(Invoice).where(Invoice.id == invoice_id, Invoice.owner_id == owner_id)
            )

    def list_sent_invoices_for_county(self, county_id: UUID, *, owner_id: UUID) -> list[Invoice]:
        with storage_guard("Failed to load invoices for export.", county_id=county_id, owner_id=owner_id):
            return self.db.scalars(
                select(Invoice)
                .where(
                    Invoice.owner_id == owner_id,
                    Invoice.county_id == county_id,
                    Invoice.status == InvoiceStatus.SENT,
                )
                .order_by(Invoice.created_at.desc())
            ).all()

    def add_invoice(self, invoice: Invoice) -> Invoice:
        self.db.add(invoice)
        self.db.flush()
        return invoice

    def delete_invoice(self, invoice: Invoice) -> None:
        self.db.delete(invoice)
        self.db.flush()
