"""County registry endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.orm import Session

from harmonydesk.core.auth import RequestUserContext, get_current_user_context
from harmonydesk.db.dependencies import get_db_session
from harmonydesk.services.county_service import CountyCreateData, CountyService, CountyUpdateData

router = APIRouter(prefix="/counties", tags=["counties"])


class CountyCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    # Legacy "csv"/"pdf" short forms are normalized before write.
    report_format: str | None = Field(
        default=None,
        max_length=64,
        validation_alias=AliasChoices("reportFormat", "report_format"),
    )
    next_due_rule: str | None = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("nextDueRule", "next_due_rule"),
    )


class CountyUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    report_format: str | None = Field(
        default=None,
        max_length=64,
        validation_alias=AliasChoices("reportFormat", "report_format"),
    )
    next_due_rule: str | None = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("nextDueRule", "next_due_rule"),
    )


def _county_service(db: Session) -> CountyService:
    return CountyService(db)


@router.get("")
def list_counties(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _county_service(db)
    rows = service.list_counties(context=context)
    return {"items": [service.serialize_county(row) for row in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_county(
    payload: CountyCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _county_service(db)
    county = service.create_county(
        context=context,
        data=CountyCreateData(
            name=payload.name,
            report_format=payload.report_format,
            next_due_rule=payload.next_due_rule,
        ),
    )
    return service.serialize_county(county)


@router.get("/{county_id}")
def get_county(
    county_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _county_service(db)
    return service.serialize_county(service.get_county(context=context, county_id=county_id))


@router.patch("/{county_id}")
def update_county(
    county_id: UUID,
    payload: CountyUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _county_service(db)
    data = CountyUpdateData(name=payload.name, report_format=payload.report_format)
    if "next_due_rule" in payload.model_fields_set:
        data.next_due_rule = payload.next_due_rule
    county = service.update_county(context=context, county_id=county_id, data=data)
    return service.serialize_county(county)


@router.delete("/{county_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_county(
    county_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _county_service(db)
    service.delete_county(context=context, county_id=county_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
