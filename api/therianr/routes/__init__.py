from fastapi import APIRouter, FastAPI

from .blocks import router as blocks_router
from .discover import router as discover_router
from .matches import router as matches_router
from .notifications import router as notifications_router
from .reports import router as reports_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(discover_router, tags=["discover"])
    app.include_router(matches_router, tags=["matches"])
    app.include_router(blocks_router, tags=["blocks"])
    app.include_router(reports_router, tags=["reports"])
    app.include_router(notifications_router, tags=["notifications"])


__all__ = ["include_modular_routers", "APIRouter"]
