"""HTTP-mapped error types shared by services and routes."""

from __future__ import annotations

from fastapi import HTTPException, status


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "Missing verified caller identity.") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class CountyNotFound(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail="County not found.")


class InvoiceNotFound(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found.")


class StorageUnavailable(HTTPException):
    """Data store read or write failed; nothing partial is returned."""

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class EmailSendFailed(HTTPException):
    """Transactional email provider rejected or never received the message."""

    def __init__(self, *, provider: str, message: str) -> None:
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "EMAIL_SEND_FAILED", "provider": provider, "message": message},
        )
        self.provider = provider
        self.message = message


class InvoiceUpdateAfterSendFailed(HTTPException):
    """Email went out but the invoice row could not be marked as sent."""

    def __init__(self, *, provider: str, message_id: str | None) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "DB_UPDATE_FAILED_AFTER_EMAIL",
                "provider": provider,
                "messageId": message_id,
            },
        )
