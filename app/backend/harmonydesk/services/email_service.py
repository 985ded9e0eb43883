"""Outbound invoice email through Resend.

Recipients are checked with ``email_validator``; when deliverability checks are
enabled it also resolves the recipient domain through ``dnspython`` so a typo in
the domain is caught before the provider is called.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from decimal import Decimal

import resend
from email_validator import EmailNotValidError, validate_email

from harmonydesk.core.config import Settings, get_settings
from harmonydesk.core.errors import EmailSendFailed
from harmonydesk.models.entities import Invoice
from harmonydesk.services.report_rendering import q2, to_decimal

logger = logging.getLogger(__name__)

PROVIDER = "resend"
PRODUCT_NAME = "HarmonyDesk"


@dataclass(slots=True)
class EmailMessage:
    subject: str
    text: str
    html: str


@dataclass(slots=True)
class EmailDelivery:
    provider: str
    message_id: str | None
    to: str


def _money(value: Decimal) -> str:
    return f"${q2(value):.2f}"


def build_invoice_email(invoice: Invoice) -> EmailMessage:
    case_number = (invoice.case_number or "").strip() or "—"
    matter = (invoice.matter or "").strip() or "—"
    hours = to_decimal(invoice.hours)
    rate = to_decimal(invoice.rate)
    total = hours * rate
    due = (invoice.due or "").strip()

    subject = f"Invoice {case_number} — {PRODUCT_NAME}"

    text_lines = [
        f"Invoice from {PRODUCT_NAME}",
        "",
        f"Case: {case_number}",
        f"Matter: {matter}",
        f"Hours: {hours.normalize():f}",
        f"Rate: {_money(rate)}",
        f"Total: {_money(total)}",
    ]
    if due:
        text_lines.append(f"Due: {due}")
    text_lines.extend(["", "If you have questions, reply to this email.", ""])

    rows = [
        ("Case", case_number),
        ("Matter", matter),
        ("Hours", f"{hours.normalize():f}"),
        ("Rate", _money(rate)),
        ("Total", _money(total)),
    ]
    if due:
        rows.append(("Due", due))
    body = "".join(
        f'<div style="margin:0 0 8px 0"><strong>{label}:</strong> {html.escape(value)}</div>'
        for label, value in rows
    )
    html_content = (
        '<div style="font-family:ui-sans-serif,system-ui,-apple-system,Segoe UI,Roboto,Helvetica,Arial;line-height:1.4">'
        '<h2 style="margin:0 0 12px 0">Invoice</h2>'
        f"{body}"
        '<hr style="border:none;border-top:1px solid #e5e7eb;margin:16px 0" />'
        '<div style="color:#374151">If you have questions, reply to this email.</div>'
        "</div>"
    )

    return EmailMessage(subject=subject, text="\n".join(text_lines), html=html_content)


class InvoiceEmailSender:
    """Validates recipients and hands messages to the transactional provider."""

    provider = PROVIDER

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def normalize_recipient(self, candidate: str | None) -> str | None:
        """Return the normalized address, or ``None`` if it cannot receive mail."""

        value = (candidate or "").strip()
        if not value:
            return None
        try:
            validated = validate_email(
                value,
                check_deliverability=self.settings.email_check_deliverability,
            )
        except EmailNotValidError as exc:
            logger.info("Rejected recipient %r: %s", value, exc)
            return None
        return validated.normalized

    def resolve_recipient(self, *candidates: str | None) -> str | None:
        for candidate in candidates:
            recipient = self.normalize_recipient(candidate)
            if recipient is not None:
                return recipient
        return None

    def send(self, *, to: str, message: EmailMessage) -> EmailDelivery:
        if not self.settings.resend_api_key:
            raise EmailSendFailed(provider=self.provider, message="Missing RESEND_API_KEY")
        if not self.settings.email_from:
            raise EmailSendFailed(provider=self.provider, message="Missing EMAIL_FROM")

        resend.api_key = self.settings.resend_api_key
        params = {
            "from": self.settings.email_from,
            "to": [to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        try:
            response = resend.Emails.send(params)
        except Exception as exc:
            logger.error("Resend send to %s failed: %s", to, exc)
            raise EmailSendFailed(provider=self.provider, message=str(exc) or "Email provider error") from exc

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        return EmailDelivery(
            provider=self.provider,
            message_id=str(message_id) if message_id else None,
            to=to,
        )


def get_email_sender() -> InvoiceEmailSender:
    """FastAPI dependency; tests override it with a recording double."""

    return InvoiceEmailSender()
