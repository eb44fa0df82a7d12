"""Structured logging helpers (PII-safe)."""

import logging
from typing import Any
from uuid import UUID

from flexbook.core.config import settings


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once at process start."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )


def build_log_context(
    *,
    tenant_id: UUID | str | None = None,
    user_id: UUID | str | None = None,
    appointment_id: UUID | str | None = None,
    professional_id: UUID | str | None = None,
    subscription_id: UUID | str | None = None,
    status: str | None = None,
    code: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict.

    Only identifiers and enum values are accepted; names, emails and notes
    never reach the log stream.
    """
    context: dict[str, Any] = {}
    if tenant_id:
        context["tenant_id"] = str(tenant_id)
    if user_id:
        context["user_id"] = str(user_id)
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if professional_id:
        context["professional_id"] = str(professional_id)
    if subscription_id:
        context["subscription_id"] = str(subscription_id)
    if status:
        context["status"] = status
    if code:
        context["code"] = code
    return context
