"""
Subscription selection.

A customer may hold overlapping subscriptions while moving between plans.
The current one is the highest tier still inside its paid window; among
equal tiers, the one paid furthest into the future.
"""

from collections.abc import Iterable
from datetime import datetime

from paysync.billing.config import get_billing_config
from paysync.billing.models import (
    Customer,
    Subscription,
    SubscriptionStatus,
    ensure_utc,
    utcnow,
)


def _priority(subscription: Subscription) -> tuple[int, datetime]:
    return subscription.plan.level, subscription.paid_through_date  # type: ignore[return-value]


def is_valid_at(subscription: Subscription, as_of: datetime) -> bool:
    """True when the subscription has started billing and is paid through ``as_of``."""
    if subscription.deleted:
        return False
    if subscription.first_billing_date is None or subscription.paid_through_date is None:
        return False
    as_of = ensure_utc(as_of)  # type: ignore[assignment]
    return subscription.first_billing_date < as_of <= subscription.paid_through_date


def valid_subscriptions(
    customer: Customer,
    as_of: datetime | None = None,
    *,
    alive_only: bool = False,
    alive_statuses: Iterable[str] | None = None,
) -> list[Subscription]:
    """
    Subscriptions inside their paid window, best first.

    Args:
        customer: Customer aggregate
        as_of: Reference date, defaults to now
        alive_only: Also require a status from ``alive_statuses``
        alive_statuses: Overrides the configured "still alive" statuses

    Returns:
        Subscriptions sorted by plan level, then paid through date, both descending
    """
    date = ensure_utc(as_of) or utcnow()
    candidates = [sub for sub in customer.subscriptions if is_valid_at(sub, date)]

    if alive_only:
        if alive_statuses is None:
            alive_statuses = get_billing_config().subscriptions.alive_statuses
        allowed = {SubscriptionStatus(status) for status in alive_statuses}
        candidates = [sub for sub in candidates if sub.status in allowed]

    return sorted(candidates, key=_priority, reverse=True)


def active_subscriptions(customer: Customer, as_of: datetime | None = None) -> list[Subscription]:
    """Valid subscriptions whose status is Active."""
    return [
        sub
        for sub in valid_subscriptions(customer, as_of)
        if sub.status == SubscriptionStatus.ACTIVE
    ]


def current_subscription(customer: Customer, as_of: datetime | None = None) -> Subscription | None:
    """The highest priority valid subscription, if any."""
    subscriptions = valid_subscriptions(customer, as_of)
    return subscriptions[0] if subscriptions else None
