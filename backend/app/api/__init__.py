"""API routers for the E/M Level Service."""

from app.api.em import router as em_router

__all__ = [
    "em_router",
]
