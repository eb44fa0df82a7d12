"""API routers."""

from flexbook.routers.appointments import router as appointments_router
from flexbook.routers.analytics import router as analytics_router

__all__ = [
    "appointments_router",
    "analytics_router",
]
