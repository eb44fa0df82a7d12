"""FlexBook API application: availability, booking and dashboard analytics."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from flexbook.core.config import settings
from flexbook.core.rate_limit import limiter
from flexbook.core.structured_logging import configure_logging
from flexbook.db.session import engine
from flexbook.routers import analytics, appointments

configure_logging()
logger = logging.getLogger(__name__)

IDENTITY_HEADERS = ["X-Tenant-ID", "X-User-ID", "X-User-Role"]

_expose_docs = settings.ENV == "dev"

app = FastAPI(
    title="FlexBook API",
    description="Multi-tenant appointment availability, booking and analytics API",
    version=settings.VERSION,
    docs_url="/docs" if _expose_docs else None,
    redoc_url="/redoc" if _expose_docs else None,
)

# Booking endpoint limits (429 on excess)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", *IDENTITY_HEADERS],
)

app.include_router(appointments.router)
app.include_router(analytics.router)

logger.info(f"FlexBook API {settings.VERSION} ready (env={settings.ENV})")


@app.get("/health")
def health():
    """Liveness plus a database round trip."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
