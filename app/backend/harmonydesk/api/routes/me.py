"""Current user endpoint."""

from fastapi import APIRouter, Depends

from harmonydesk.core.auth import RequestUserContext, get_current_user_context

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(context: RequestUserContext = Depends(get_current_user_context)) -> dict[str, object]:
    """Return current authenticated mediator profile."""

    return {
        "id": str(context.user_id),
        "auth_subject": context.auth_subject,
        "email": context.email,
        "display_name": context.display_name,
        "status": context.status,
    }
