"""Rendering of county month-end reports to CSV and paginated PDF."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from uuid import UUID

from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from harmonydesk.models.entities import Invoice, ReportFormat

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")

CSV_HEADER = ("Case Number", "Matter", "Bill To", "Hours", "Rate", "Total")
COLUMN_HEADERS = ("Case #", "Matter", "Hours", "Total ($)", "Bill To")
GROUPED_FORMAT_LABEL = "Format: PDF (grouped by case)"

PAGE_SIZE = landscape(letter)
FONT_NAME = "Helvetica"


def q2(value: Decimal) -> Decimal:
    return value.quantize(Q2, rounding=ROUND_HALF_UP)


def to_decimal(value: object) -> Decimal:
    """Coerce a stored numeric field; missing or non-numeric values count as zero."""

    if value is None or isinstance(value, bool):
        return ZERO
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not number.is_finite():
        return ZERO
    return number


def format_2dp(value: Decimal) -> str:
    return format(q2(value), ".2f")


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


@dataclass(frozen=True, slots=True)
class ReportRow:
    id: UUID
    case_number: str
    matter: str
    contact: str
    hours: Decimal
    rate: Decimal
    created_at: datetime | None

    @property
    def total(self) -> Decimal:
        return q2(self.hours * self.rate)

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> ReportRow:
        return cls(
            id=invoice.id,
            case_number=invoice.case_number or "",
            matter=invoice.matter or "",
            contact=invoice.contact or "",
            hours=to_decimal(invoice.hours),
            rate=to_decimal(invoice.rate),
            created_at=invoice.created_at,
        )


@dataclass(frozen=True, slots=True)
class ReportTotals:
    cases: int
    hours: Decimal
    amount: Decimal

    @classmethod
    def from_rows(cls, rows: Iterable[ReportRow]) -> ReportTotals:
        cases = 0
        hours = ZERO
        amount = ZERO
        for row in rows:
            cases += 1
            hours += row.hours
            # Sum unrounded products; round once at the end.
            amount += row.hours * row.rate
        return cls(cases=cases, hours=q2(hours), amount=q2(amount))


# ---------- CSV ----------
def render_csv(rows: Sequence[ReportRow]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(
            [
                row.case_number,
                row.matter,
                row.contact,
                format_2dp(row.hours),
                format_2dp(row.rate),
                format_2dp(row.total),
            ]
        )
    return buffer.getvalue().removesuffix("\n").encode("utf-8")


# ---------- Paginated document ----------
@dataclass(frozen=True, slots=True)
class ReportLayout:
    """Page geometry in millimetres measured from the top-left corner."""

    margin_left: float = 10
    top: float = 20
    max_y: float = 190
    title_gap: float = 8
    label_gap: float = 6
    header_gap: float = 10
    line_height: float = 6
    title_font_size: int = 14
    summary_font_size: int = 11
    body_font_size: int = 10
    column_offsets: tuple[float, float, float, float, float] = (0, 40, 120, 150, 190)
    matter_max_chars: int = 40
    contact_max_chars: int = 30


@dataclass(frozen=True, slots=True)
class TextLine:
    x: float
    y: float
    text: str
    font_size: int


@dataclass(slots=True)
class ReportPage:
    lines: list[TextLine] = field(default_factory=list)

    def add(self, x: float, y: float, text: str, font_size: int) -> None:
        self.lines.append(TextLine(x=x, y=y, text=text, font_size=font_size))

    @property
    def texts(self) -> list[str]:
        return [line.text for line in self.lines]


def summary_line(totals: ReportTotals) -> str:
    return (
        f"Total invoices: {totals.cases}    "
        f"Total hours: {format_2dp(totals.hours)}    "
        f"Total amount: ${format_2dp(totals.amount)}"
    )


def _emit_column_header(page: ReportPage, cursor: float, layout: ReportLayout) -> float:
    for offset, label in zip(layout.column_offsets, COLUMN_HEADERS):
        page.add(layout.margin_left + offset, cursor, label, layout.body_font_size)
    return cursor + layout.line_height


def layout_report_pages(
    *,
    county_name: str,
    stored_format: ReportFormat | None,
    totals: ReportTotals,
    rows: Sequence[ReportRow],
    layout: ReportLayout,
) -> list[ReportPage]:
    """Place every text line of the report; page breaks depend only on row count."""

    page = ReportPage()
    pages = [page]
    cursor = layout.top

    page.add(layout.margin_left, cursor, f"{county_name} - Month End Report", layout.title_font_size)
    cursor += layout.title_gap
    page.add(layout.margin_left, cursor, summary_line(totals), layout.summary_font_size)

    # Label only; rows are not grouped or subtotalled.
    if stored_format is ReportFormat.PDF_GROUPED_BY_CASE:
        cursor += layout.label_gap
        page.add(layout.margin_left, cursor, GROUPED_FORMAT_LABEL, layout.summary_font_size)

    cursor += layout.header_gap
    cursor = _emit_column_header(page, cursor, layout)

    for row in rows:
        if cursor > layout.max_y:
            page = ReportPage()
            pages.append(page)
            cursor = _emit_column_header(page, layout.top, layout)

        cells = (
            row.case_number,
            truncate(row.matter, layout.matter_max_chars),
            format_2dp(row.hours),
            format_2dp(row.total),
            truncate(row.contact, layout.contact_max_chars),
        )
        for offset, cell in zip(layout.column_offsets, cells):
            page.add(layout.margin_left + offset, cursor, cell, layout.body_font_size)
        cursor += layout.line_height

    return pages


def render_pdf(pages: Sequence[ReportPage], *, title: str) -> bytes:
    buffer = io.BytesIO()
    _, page_height = PAGE_SIZE
    # invariant=1 drops timestamps and random ids so output is reproducible.
    pdf = canvas.Canvas(buffer, pagesize=PAGE_SIZE, invariant=1)
    pdf.setTitle(title)
    for page in pages:
        for line in page.lines:
            pdf.setFont(FONT_NAME, line.font_size)
            pdf.drawString(line.x * mm, page_height - line.y * mm, line.text)
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()
