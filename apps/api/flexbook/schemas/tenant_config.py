"""Typed view over the tenant ``config`` JSON document.

The stored document keeps the camelCase keys written by the admin UI
(``workingHours``, ``mpEnabled`` ...). Everything in the scheduling core
reads it through ``TenantConfig.from_tenant`` so that missing or malformed
values fall back to validated defaults in one place.
"""

from __future__ import annotations

import logging
from datetime import time
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from flexbook.db.enums import PaymentGateway

if TYPE_CHECKING:
    from flexbook.db.models import Tenant

logger = logging.getLogger(__name__)


class _ConfigSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class ModulesConfig(_ConfigSection):
    """Feature switches of the tenant's booking site."""

    plans: bool = True
    reviews: bool = True
    online_payments: bool = Field(True, alias="onlinePayments")


class WorkingHoursConfig(_ConfigSection):
    """Tenant-wide opening hours. days uses Sunday=0 ... Saturday=6."""

    start: time = time(9, 0)
    end: time = time(18, 0)
    days: frozenset[int] = frozenset({1, 2, 3, 4, 5})

    @field_validator("days")
    @classmethod
    def _valid_days(cls, value: frozenset[int]) -> frozenset[int]:
        invalid = sorted(d for d in value if d < 0 or d > 6)
        if invalid:
            raise ValueError(f"Invalid weekday(s) {invalid}; expected 0 (Sunday) to 6 (Saturday)")
        return value


class PaymentConfig(_ConfigSection):
    """Online gateway switches. Mercado Pago also needs an access token."""

    stripe_enabled: bool = Field(False, alias="stripeEnabled")
    mercado_pago_enabled: bool = Field(False, alias="mpEnabled")
    mercado_pago_access_token: str | None = Field(None, alias="mpAccessToken", repr=False)
    paypal_enabled: bool = Field(False, alias="paypalEnabled")

    def is_gateway_enabled(self, gateway: PaymentGateway | str | None) -> bool:
        if gateway is None:
            return False
        try:
            gateway = PaymentGateway(gateway)
        except ValueError:
            return False
        if gateway == PaymentGateway.STRIPE:
            return self.stripe_enabled
        if gateway == PaymentGateway.MERCADO_PAGO:
            return self.mercado_pago_enabled and bool(self.mercado_pago_access_token)
        if gateway == PaymentGateway.PAYPAL:
            return self.paypal_enabled
        return False

    @property
    def enabled_gateways(self) -> list[PaymentGateway]:
        return [g for g in PaymentGateway if self.is_gateway_enabled(g)]


class TenantConfig(_ConfigSection):
    """Validated tenant configuration, passed by value into the core."""

    modules: ModulesConfig = ModulesConfig()
    # None means "not configured": the resolver chain moves on to the hard default
    working_hours: WorkingHoursConfig | None = Field(None, alias="workingHours")
    payment: PaymentConfig = PaymentConfig()

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @classmethod
    def from_raw(cls, raw: dict[str, Any] | None) -> "TenantConfig":
        """Parse a stored document; invalid sections degrade to defaults."""
        raw = raw or {}
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            logger.warning(f"Invalid tenant config, falling back per section: {exc.error_count()} error(s)")
        sections: dict[str, Any] = {}
        for key, model in (
            ("modules", ModulesConfig),
            ("workingHours", WorkingHoursConfig),
            ("payment", PaymentConfig),
        ):
            value = raw.get(key)
            if value is None:
                continue
            try:
                sections[key] = model.model_validate(value)
            except ValidationError:
                logger.warning(f"Ignoring invalid tenant config section '{key}'")
        return cls.model_validate(sections)

    @classmethod
    def from_tenant(cls, tenant: "Tenant") -> "TenantConfig":
        return cls.from_raw(tenant.config)
