"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    User roles within a tenant.

    - ADMIN: Business owner/manager (all appointments, analytics, bulk delete)
    - STAFF: Professional login (own appointments only)
    - CLIENT: End customer (books and cancels own appointments)
    """

    ADMIN = "admin"
    STAFF = "staff"
    CLIENT = "client"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
