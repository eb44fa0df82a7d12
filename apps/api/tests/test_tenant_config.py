"""Tests for the typed tenant configuration."""

from datetime import time
from types import SimpleNamespace

from flexbook.db.enums import PaymentGateway
from flexbook.schemas.tenant_config import TenantConfig, WorkingHoursConfig


def test_defaults_for_empty_document():
    config = TenantConfig.from_raw(None)
    assert config.modules.plans is True
    assert config.modules.online_payments is True
    assert config.working_hours is None
    assert config.payment.enabled_gateways == []


def test_camel_case_keys_are_read():
    config = TenantConfig.from_raw({
        "modules": {"plans": False, "onlinePayments": False},
        "workingHours": {"start": "08:30", "end": "19:00", "days": [1, 2, 3]},
        "payment": {"stripeEnabled": True, "paypalEnabled": True},
    })
    assert config.modules.plans is False
    assert config.modules.online_payments is False
    assert config.working_hours == WorkingHoursConfig(start=time(8, 30), end=time(19, 0), days=frozenset({1, 2, 3}))
    assert config.payment.enabled_gateways == [PaymentGateway.STRIPE, PaymentGateway.PAYPAL]


def test_mercado_pago_requires_access_token():
    without_token = TenantConfig.from_raw({"payment": {"mpEnabled": True}})
    with_token = TenantConfig.from_raw({"payment": {"mpEnabled": True, "mpAccessToken": "APP_USR-1"}})

    assert not without_token.payment.is_gateway_enabled(PaymentGateway.MERCADO_PAGO)
    assert with_token.payment.is_gateway_enabled("MERCADO_PAGO")


def test_unknown_gateway_is_disabled():
    config = TenantConfig.from_raw({"payment": {"stripeEnabled": True}})
    assert not config.payment.is_gateway_enabled("BITCOIN")
    assert not config.payment.is_gateway_enabled(None)


def test_invalid_section_falls_back_to_default():
    config = TenantConfig.from_raw({
        "workingHours": {"start": "09:00", "end": "18:00", "days": [9]},
        "payment": {"stripeEnabled": True},
    })
    assert config.working_hours is None
    assert config.payment.stripe_enabled is True


def test_null_sections_are_ignored():
    config = TenantConfig.from_raw({"workingHours": None, "modules": None})
    assert config.working_hours is None
    assert config.modules.plans is True


def test_from_tenant_reads_config_column():
    tenant = SimpleNamespace(config={"workingHours": {"days": [6]}})
    config = TenantConfig.from_tenant(tenant)
    assert config.working_hours.days == frozenset({6})
    assert config.working_hours.start == time(9, 0)
