"""Top-level API router."""

from fastapi import APIRouter

from harmonydesk.api.routes.counties import router as counties_router
from harmonydesk.api.routes.exports import router as exports_router
from harmonydesk.api.routes.health import router as health_router
from harmonydesk.api.routes.invoices import router as invoices_router
from harmonydesk.api.routes.me import router as me_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(counties_router)
api_router.include_router(exports_router)
api_router.include_router(invoices_router)
