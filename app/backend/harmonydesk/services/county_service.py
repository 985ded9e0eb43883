"""County registry: per-owner reporting jurisdictions."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from harmonydesk.core.auth import RequestUserContext
from harmonydesk.core.errors import CountyNotFound
from harmonydesk.models.entities import County, ReportFormat
from harmonydesk.repositories.billing_repository import BillingRepository, storage_guard
from harmonydesk.services.report_formats import normalize_report_format

_UNSET = object()


@dataclass(slots=True)
class CountyCreateData:
    name: str
    report_format: str | None
    next_due_rule: str | None


@dataclass(slots=True)
class CountyUpdateData:
    name: str | None = None
    report_format: str | None = None
    # _UNSET keeps the stored rule; None or blank clears it.
    next_due_rule: object = _UNSET

    def is_empty(self) -> bool:
        return self.name is None and self.report_format is None and self.next_due_rule is _UNSET


def _clean_rule(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _require_report_format(raw: str | None) -> ReportFormat:
    report_format = normalize_report_format(raw)
    if report_format is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid report format.",
        )
    return report_format


class CountyService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = BillingRepository(db)

    @staticmethod
    def serialize_county(county: County) -> dict[str, object]:
        return {
            "id": str(county.id),
            "name": county.name,
            "reportFormat": county.report_format,
            "nextDueRule": county.next_due_rule,
        }

    def _commit(self, detail: str, *, pending: Callable[[], object] | None = None, **log_context: object) -> None:
        with storage_guard(detail, **log_context):
            try:
                if pending is not None:
                    pending()
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="County violates database constraints.",
                ) from exc
            except SQLAlchemyError:
                self.db.rollback()
                raise

    def list_counties(self, *, context: RequestUserContext) -> list[County]:
        return self.repo.list_counties(context.user_id)

    def get_county(self, *, context: RequestUserContext, county_id: UUID) -> County:
        county = self.repo.get_county(county_id, owner_id=context.user_id)
        if county is None:
            raise CountyNotFound()
        return county

    def create_county(self, *, context: RequestUserContext, data: CountyCreateData) -> County:
        name = data.name.strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Missing county name.",
            )
        report_format = _require_report_format(data.report_format)

        now = datetime.utcnow()
        county = County(
            owner_id=context.user_id,
            name=name,
            report_format=report_format.value,
            next_due_rule=_clean_rule(data.next_due_rule),
            created_at=now,
            updated_at=now,
        )
        self._commit(
            "Failed to create county.",
            pending=lambda: self.repo.add_county(county),
            owner_id=context.user_id,
        )
        self.db.refresh(county)
        return county

    def update_county(
        self,
        *,
        context: RequestUserContext,
        county_id: UUID,
        data: CountyUpdateData,
    ) -> County:
        if data.is_empty():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="No fields to update.",
            )

        county = self.get_county(context=context, county_id=county_id)

        if data.name is not None:
            name = data.name.strip()
            if not name:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="County name cannot be blank.",
                )
            county.name = name
        if data.report_format is not None:
            county.report_format = _require_report_format(data.report_format).value
        if data.next_due_rule is not _UNSET:
            county.next_due_rule = _clean_rule(data.next_due_rule)
        county.updated_at = datetime.utcnow()

        self._commit("Failed to update county.", county_id=county_id)
        self.db.refresh(county)
        return county

    def delete_county(self, *, context: RequestUserContext, county_id: UUID) -> None:
        county = self.get_county(context=context, county_id=county_id)
        self._commit(
            "Failed to delete county.",
            pending=lambda: self.repo.delete_county(county),
            county_id=county_id,
        )
