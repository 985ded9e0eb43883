"""Authentication context extraction for trusted identity headers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from harmonydesk.core.config import get_settings
from harmonydesk.core.errors import Unauthenticated
from harmonydesk.db.dependencies import get_db_session
from harmonydesk.models.entities import User


@dataclass(frozen=True)
class RequestUserContext:
    """Authenticated request actor resolved from headers and DB state.

    ``user_id`` is the owner key every county and invoice query is scoped by.
    """

    user_id: UUID
    auth_subject: str
    email: str
    display_name: str
    status: str


def _require_identity_headers(
    x_auth_subject: str | None,
    x_auth_email: str | None,
    x_auth_display_name: str | None,
) -> tuple[str, str, str]:
    if not x_auth_subject or not x_auth_email:
        raise Unauthenticated(
            "Missing identity headers. Expected X-AUTH-SUBJECT and X-AUTH-EMAIL or enable development principal fallback."
        )

    display_name = x_auth_display_name or x_auth_email
    return x_auth_subject.strip(), x_auth_email.strip().lower(), display_name.strip()


def _resolve_identity(
    x_auth_subject: str | None,
    x_auth_email: str | None,
    x_auth_display_name: str | None,
) -> tuple[str, str, str]:
    settings = get_settings()
    if x_auth_subject and x_auth_email:
        return _require_identity_headers(x_auth_subject, x_auth_email, x_auth_display_name)

    if settings.auth_allow_dev_principal:
        return (
            settings.auth_dev_subject.strip(),
            settings.auth_dev_email.strip().lower(),
            settings.auth_dev_display_name.strip(),
        )

    return _require_identity_headers(x_auth_subject, x_auth_email, x_auth_display_name)


def _upsert_user(db: Session, *, auth_subject: str, email: str, display_name: str) -> User:
    user = db.scalar(select(User).where(User.auth_subject == auth_subject))
    now = datetime.utcnow()

    if user is None:
        user = User(
            auth_subject=auth_subject,
            email=email,
            display_name=display_name,
            status="active",
            last_login_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        db.flush()
        return user

    changed = False
    if user.email != email:
        user.email = email
        changed = True
    if user.display_name != display_name:
        user.display_name = display_name
        changed = True

    user.last_login_at = now
    if changed:
        user.updated_at = now
    db.flush()
    return user


def ensure_user_principal(
    db: Session,
    *,
    auth_subject: str,
    email: str,
    display_name: str,
) -> User:
    """Ensure user exists and return persisted row.

    Utility exported for tests and seed helpers.
    """

    normalized_subject = auth_subject.strip()
    normalized_email = email.strip().lower()
    normalized_display_name = display_name.strip() or normalized_email

    user = _upsert_user(
        db,
        auth_subject=normalized_subject,
        email=normalized_email,
        display_name=normalized_display_name,
    )
    db.commit()
    db.refresh(user)
    return user


def get_current_user_context(
    x_auth_subject: str | None = Header(default=None, alias="X-AUTH-SUBJECT"),
    x_auth_email: str | None = Header(default=None, alias="X-AUTH-EMAIL"),
    x_auth_display_name: str | None = Header(default=None, alias="X-AUTH-DISPLAY-NAME"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Resolve current request user.

    The hosted auth provider verifies the magic-link session and forwards the
    verified subject and email as trusted headers; this dependency never sees
    raw credentials.
    """

    auth_subject, email, display_name = _resolve_identity(x_auth_subject, x_auth_email, x_auth_display_name)
    try:
        user = _upsert_user(db, auth_subject=auth_subject, email=email, display_name=display_name)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email is already linked to another identity.",
        ) from exc

    return RequestUserContext(
        user_id=user.id,
        auth_subject=user.auth_subject,
        email=user.email,
        display_name=user.display_name,
        status=user.status,
    )
