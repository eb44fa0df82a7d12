"""Working-hours resolution.

Opening hours for a date come from an ordered chain of resolvers. Each one
either decides (a window, or closed) or defers to the next:

1. professional_hours - a professional with any weekly entries is governed
   by them alone; a weekday without an entry is closed.
2. tenant_hours - the tenant's configured hours and active weekdays.
3. default_hours - 09:00-18:00 Monday to Friday, so unconfigured tenants
   still show slots.

Weekdays use Sunday=0 ... Saturday=6 throughout.
"""

from __future__ import annotations

from datetime import date, time
from typing import Callable, NamedTuple, Protocol, Sequence

from flexbook.schemas.tenant_config import TenantConfig
from flexbook.utils.datetime_utils import sunday_weekday


class DayWindow(NamedTuple):
    """Open/close time-of-day for one date."""
    start: time
    end: time


class HoursDecision(NamedTuple):
    """Outcome of a resolver. window=None means closed."""
    window: DayWindow | None
    source: str

    @property
    def is_closed(self) -> bool:
        return self.window is None


class WorkingHoursEntry(Protocol):
    day_of_week: int
    start_time: time
    end_time: time


HoursResolver = Callable[
    [TenantConfig | None, Sequence[WorkingHoursEntry] | None, date],
    HoursDecision | None,
]

DEFAULT_WINDOW = DayWindow(start=time(9, 0), end=time(18, 0))
DEFAULT_DAYS = frozenset({1, 2, 3, 4, 5})


def professional_hours(
    config: TenantConfig | None,
    entries: Sequence[WorkingHoursEntry] | None,
    day: date,
) -> HoursDecision | None:
    if not entries:
        return None
    weekday = sunday_weekday(day)
    for entry in entries:
        if entry.day_of_week == weekday:
            return HoursDecision(DayWindow(entry.start_time, entry.end_time), "professional")
    # No fallback to tenant hours: the professional is off that day
    return HoursDecision(None, "professional")


def tenant_hours(
    config: TenantConfig | None,
    entries: Sequence[WorkingHoursEntry] | None,
    day: date,
) -> HoursDecision | None:
    if config is None or config.working_hours is None:
        return None
    hours = config.working_hours
    if sunday_weekday(day) not in hours.days:
        return HoursDecision(None, "tenant")
    return HoursDecision(DayWindow(hours.start, hours.end), "tenant")


def default_hours(
    config: TenantConfig | None,
    entries: Sequence[WorkingHoursEntry] | None,
    day: date,
) -> HoursDecision:
    if sunday_weekday(day) not in DEFAULT_DAYS:
        return HoursDecision(None, "default")
    return HoursDecision(DEFAULT_WINDOW, "default")


RESOLVER_CHAIN: tuple[HoursResolver, ...] = (
    professional_hours,
    tenant_hours,
    default_hours,
)


def resolve_hours_decision(
    config: TenantConfig | None,
    entries: Sequence[WorkingHoursEntry] | None,
    day: date,
    chain: Sequence[HoursResolver] = RESOLVER_CHAIN,
) -> HoursDecision:
    """Run the chain and return the first decision, with its source."""
    for resolver in chain:
        decision = resolver(config, entries, day)
        if decision is not None:
            return decision
    return HoursDecision(None, "none")


def resolve_working_hours(
    config: TenantConfig | None,
    entries: Sequence[WorkingHoursEntry] | None,
    day: date,
    chain: Sequence[HoursResolver] = RESOLVER_CHAIN,
) -> DayWindow | None:
    """Opening window for ``day``, or None when closed."""
    return resolve_hours_decision(config, entries, day, chain).window
