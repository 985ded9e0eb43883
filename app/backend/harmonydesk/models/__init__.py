"""ORM model package."""

from harmonydesk.models.entities import County, Invoice, InvoiceStatus, ReportFormat, User

__all__ = [
    "County",
    "Invoice",
    "InvoiceStatus",
    "ReportFormat",
    "User",
]
