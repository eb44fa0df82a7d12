"""Subscription and plan enums."""

from enum import Enum


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    CANCELED = "canceled"


class PlanInterval(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"
