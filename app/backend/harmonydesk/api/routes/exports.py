"""County month-end report export endpoint."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from harmonydesk.core.auth import RequestUserContext, get_current_user_context
from harmonydesk.db.dependencies import get_db_session
from harmonydesk.services.county_report_service import CountyReportService

router = APIRouter(prefix="/counties", tags=["exports"])


def _service(db: Session) -> CountyReportService:
    return CountyReportService(db)


@router.get("/{county_id}/export")
def export_county_report(
    county_id: UUID,
    preview: bool = Query(default=False),
    format_override: str | None = Query(default=None, alias="format"),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _service(db)
    if preview:
        return JSONResponse(
            service.preview(context=context, county_id=county_id, format_override=format_override)
        )

    exported = service.export(context=context, county_id=county_id, format_override=format_override)
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": exported.content_disposition},
    )
