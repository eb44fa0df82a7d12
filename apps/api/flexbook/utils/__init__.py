"""Utility modules."""

from flexbook.utils.datetime_utils import (
    combine_local,
    get_timezone,
    local_day_bounds,
    month_bounds,
    sunday_weekday,
    utcnow,
    week_bounds,
)
from flexbook.utils.pagination import PageRequest, page_request

__all__ = [
    # Dates
    "combine_local",
    "get_timezone",
    "local_day_bounds",
    "month_bounds",
    "sunday_weekday",
    "utcnow",
    "week_bounds",
    # Pagination
    "PageRequest",
    "page_request",
]
