"""County month-end report selection, rendering and preview."""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass
from urllib.parse import quote
from uuid import UUID

from sqlalchemy.orm import Session

from harmonydesk.core.auth import RequestUserContext
from harmonydesk.core.config import Settings, get_settings
from harmonydesk.core.errors import CountyNotFound
from harmonydesk.models.entities import County
from harmonydesk.repositories.billing_repository import BillingRepository
from harmonydesk.services.report_formats import ExportKind, normalize_report_format, resolve_export_kind
from harmonydesk.services.report_rendering import (
    ReportLayout,
    ReportRow,
    ReportTotals,
    layout_report_pages,
    render_csv,
    render_pdf,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReportSelection:
    county: County
    export_kind: ExportKind
    rows: list[ReportRow]
    totals: ReportTotals


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes

    @property
    def content_disposition(self) -> str:
        """ASCII ``filename`` for older clients plus RFC 5987 ``filename*`` with the real name."""

        fallback = unicodedata.normalize("NFKD", self.filename).encode("ascii", "ignore").decode("ascii")
        if fallback.startswith("-report."):
            fallback = f"county{fallback}"
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(self.filename, safe='')}"


def _attachment_filename(county_name: str, extension: str) -> str:
    cleaned = "".join(ch for ch in county_name if ch not in '"\\\r\n').strip() or "county"
    return f"{cleaned}-report.{extension}"


class CountyReportService:
    """Builds the county report from the caller's Sent invoices."""

    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self.db = db
        self.repo = BillingRepository(db)
        self.settings = settings or get_settings()

    @property
    def layout(self) -> ReportLayout:
        return ReportLayout(
            matter_max_chars=self.settings.report_matter_max_chars,
            contact_max_chars=self.settings.report_contact_max_chars,
        )

    def select(
        self,
        *,
        context: RequestUserContext,
        county_id: UUID,
        format_override: str | None,
    ) -> ReportSelection:
        county = self.repo.get_county(county_id, owner_id=context.user_id)
        if county is None:
            raise CountyNotFound()

        export_kind = resolve_export_kind(override=format_override, stored_format=county.report_format)
        invoices = self.repo.list_sent_invoices_for_county(county.id, owner_id=context.user_id)
        rows = [ReportRow.from_invoice(invoice) for invoice in invoices]
        return ReportSelection(
            county=county,
            export_kind=export_kind,
            rows=rows,
            totals=ReportTotals.from_rows(rows),
        )

    def render(self, selection: ReportSelection) -> ExportFilePayload:
        county = selection.county
        if selection.export_kind is ExportKind.CSV:
            return ExportFilePayload(
                media_type="text/csv; charset=utf-8",
                filename=_attachment_filename(county.name, "csv"),
                content=render_csv(selection.rows),
            )

        pages = layout_report_pages(
            county_name=county.name,
            stored_format=normalize_report_format(county.report_format),
            totals=selection.totals,
            rows=selection.rows,
            layout=self.layout,
        )
        return ExportFilePayload(
            media_type="application/pdf",
            filename=_attachment_filename(county.name, "pdf"),
            content=render_pdf(pages, title=f"{county.name} - Month End Report"),
        )

    def export(
        self,
        *,
        context: RequestUserContext,
        county_id: UUID,
        format_override: str | None,
    ) -> ExportFilePayload:
        selection = self.select(context=context, county_id=county_id, format_override=format_override)
        exported = self.render(selection)
        logger.info(
            "County report exported county_id=%s kind=%s invoices=%d",
            selection.county.id,
            selection.export_kind.value,
            selection.totals.cases,
        )
        return exported

    def preview(
        self,
        *,
        context: RequestUserContext,
        county_id: UUID,
        format_override: str | None,
    ) -> dict[str, object]:
        selection = self.select(context=context, county_id=county_id, format_override=format_override)
        county = selection.county
        totals = selection.totals
        return {
            "county": {
                "id": str(county.id),
                "name": county.name,
                "reportFormat": county.report_format,
            },
            "exportKind": selection.export_kind.value,
            "totals": {
                "cases": totals.cases,
                "hours": float(totals.hours),
                "amount": float(totals.amount),
            },
            "invoices": [
                {
                    "id": str(row.id),
                    "caseNumber": row.case_number,
                    "matter": row.matter,
                    "contact": row.contact,
                    "hours": float(row.hours),
                    "rate": float(row.rate),
                    "total": float(row.total),
                    "createdAt": row.created_at.isoformat() if row.created_at else None,
                }
                for row in selection.rows[: self.settings.report_preview_limit]
            ],
        }
