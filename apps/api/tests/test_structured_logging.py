"""Tests for structured logging helpers."""

import logging
import uuid

from flexbook.core.structured_logging import build_log_context, configure_logging


def test_build_log_context_includes_only_provided_fields():
    tenant_id = uuid.uuid4()
    context = build_log_context(
        tenant_id=tenant_id,
        appointment_id="appt-1",
        status="confirmed",
        code="SLOT_TAKEN",
    )

    assert context == {
        "tenant_id": str(tenant_id),
        "appointment_id": "appt-1",
        "status": "confirmed",
        "code": "SLOT_TAKEN",
    }


def test_build_log_context_ignores_empty_fields():
    context = build_log_context(
        user_id="",
        tenant_id=None,
        subscription_id="sub-1",
    )

    assert context == {"subscription_id": "sub-1"}


def test_context_is_accepted_as_log_extra(caplog):
    configure_logging("debug")
    logger = logging.getLogger("flexbook.tests")

    with caplog.at_level(logging.INFO, logger="flexbook.tests"):
        logger.info("Booking rejected", extra=build_log_context(code="NO_CREDIT", status="pending"))

    record = caplog.records[-1]
    assert record.code == "NO_CREDIT"
    assert record.status == "pending"
