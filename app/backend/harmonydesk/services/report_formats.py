"""County report format vocabulary and normalization."""

from __future__ import annotations

import enum
import logging

from harmonydesk.models.entities import ReportFormat

logger = logging.getLogger(__name__)


class ExportKind(str, enum.Enum):
    CSV = "csv"
    PDF = "pdf"


# Short forms written by older UI versions.
LEGACY_REPORT_FORMATS: dict[str, ReportFormat] = {
    "csv": ReportFormat.CSV_LINE_PER_INVOICE,
    "pdf": ReportFormat.PDF_LINE_PER_INVOICE,
}

EXPORT_KIND_BY_FORMAT: dict[ReportFormat, ExportKind] = {
    ReportFormat.CSV_LINE_PER_INVOICE: ExportKind.CSV,
    ReportFormat.PDF_LINE_PER_INVOICE: ExportKind.PDF,
    ReportFormat.PDF_GROUPED_BY_CASE: ExportKind.PDF,
}


def normalize_report_format(raw: object) -> ReportFormat | None:
    """Map a stored or caller-supplied value to a canonical format.

    Returns ``None`` for empty and unrecognized values.
    """

    if raw is None:
        return None
    value = str(raw.value if isinstance(raw, enum.Enum) else raw).strip().lower()
    if not value:
        return None
    if value in LEGACY_REPORT_FORMATS:
        return LEGACY_REPORT_FORMATS[value]
    try:
        return ReportFormat(value)
    except ValueError:
        return None


def resolve_export_kind(*, override: str | None, stored_format: str | None) -> ExportKind:
    """Pick the export kind: explicit override, then stored preference, then CSV."""

    requested = normalize_report_format(override)
    if requested is not None:
        return EXPORT_KIND_BY_FORMAT[requested]

    # Unrecognized overrides fall through to the stored preference.
    stored = normalize_report_format(stored_format)
    if stored is None:
        logger.warning("Unrecognized stored report format %r; falling back to CSV.", stored_format)
        return ExportKind.CSV
    return EXPORT_KIND_BY_FORMAT[stored]
