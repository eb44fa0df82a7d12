"""Rate limiting configuration for the booking API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from flexbook.core.config import settings

# memory:// per process; point RATE_LIMIT_STORAGE_URI at Redis for multi-worker deployments
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED and settings.RATE_LIMIT_BOOKINGS > 0,
)


def booking_limit() -> str:
    return f"{max(settings.RATE_LIMIT_BOOKINGS, 1)}/minute"
