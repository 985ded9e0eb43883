"""Liveness and readiness endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from harmonydesk.db.dependencies import get_db_session
from harmonydesk.repositories.billing_repository import storage_guard

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Process is up; does not touch the database."""

    return {"status": "ok"}


@router.get("/health/ready")
def readiness(db: Session = Depends(get_db_session)) -> dict[str, str]:
    with storage_guard("Database is not reachable."):
        db.execute(text("SELECT 1"))
    return {"status": "ready"}
