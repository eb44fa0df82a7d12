"""Subscription credit ledger.

Credits are consumed when a PLAN_CREDIT booking is created and restored when
it is canceled. Neither function commits: both run inside the caller's
transaction so the credit change and the appointment write land together.
"""

import logging
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from flexbook.core.structured_logging import build_log_context
from flexbook.db.enums import SubscriptionStatus
from flexbook.db.models import Subscription
from flexbook.services.errors import InsufficientCreditError, NotFoundError
from flexbook.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def get_active_subscription(
    db: Session,
    tenant_id: UUID,
    client_id: UUID,
    *,
    with_credit: bool = False,
    lock: bool = False,
) -> Subscription | None:
    """
    The client's active subscription, oldest first.

    with_credit restricts to subscriptions with credits_remaining > 0.
    lock takes a row lock (SELECT ... FOR UPDATE) where the backend supports it.
    """
    query = db.query(Subscription).filter(
        Subscription.tenant_id == tenant_id,
        Subscription.client_id == client_id,
        Subscription.status == SubscriptionStatus.ACTIVE.value,
    )
    if with_credit:
        query = query.filter(Subscription.credits_remaining > 0)
    if lock:
        query = query.with_for_update()
    return query.order_by(Subscription.starts_at, Subscription.created_at).first()


def consume(db: Session, subscription_id: UUID) -> int:
    """
    Take one credit from an active subscription.

    Conditional UPDATE so two concurrent consumers can never push the balance
    below zero. Returns the remaining credits.

    Raises:
        InsufficientCreditError: subscription inactive or out of credits
    """
    result = db.execute(
        update(Subscription)
        .where(
            Subscription.id == subscription_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.credits_remaining > 0,
        )
        .values(
            credits_remaining=Subscription.credits_remaining - 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        logger.info(
            "Credit consume rejected",
            extra=build_log_context(subscription_id=subscription_id, code=InsufficientCreditError.code),
        )
        raise InsufficientCreditError(f"Subscription {subscription_id} has no credit available")

    remaining = db.query(Subscription.credits_remaining).filter(
        Subscription.id == subscription_id
    ).scalar()
    logger.info(
        f"Credit consumed, {remaining} remaining",
        extra=build_log_context(subscription_id=subscription_id),
    )
    return remaining


def restore(db: Session, subscription_id: UUID) -> int:
    """
    Give one credit back, regardless of subscription status.

    Returns the new balance.

    Raises:
        NotFoundError: subscription no longer exists
    """
    result = db.execute(
        update(Subscription)
        .where(Subscription.id == subscription_id)
        .values(
            credits_remaining=Subscription.credits_remaining + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        raise NotFoundError(f"Subscription {subscription_id} not found")

    remaining = db.query(Subscription.credits_remaining).filter(
        Subscription.id == subscription_id
    ).scalar()
    logger.info(
        f"Credit restored, {remaining} remaining",
        extra=build_log_context(subscription_id=subscription_id),
    )
    return remaining
