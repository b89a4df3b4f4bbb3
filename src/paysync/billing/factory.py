"""
Subscription creation.

A new subscription must not double bill a tier the customer already paid
for, and an upgrade credits the unused part of the subscription it
replaces.
"""

from datetime import datetime

import structlog

from paysync.billing.discounts import build_previous_subscription_discount
from paysync.billing.models import (
    AndroidPayCard,
    ApplePayCard,
    CreditCard,
    Customer,
    PayPalAccount,
    Plan,
    Subscription,
    ensure_utc,
    utcnow,
)
from paysync.billing.money_utils import create_money, format_money
from paysync.billing.processor import ProcessorState
from paysync.billing.selection import valid_subscriptions

logger = structlog.get_logger(__name__)


def _by_paid_through(subscriptions: list[Subscription]) -> list[Subscription]:
    """Paid through date descending, then level descending, then id ascending."""
    ordered = sorted(subscriptions, key=lambda sub: sub.id)
    return sorted(
        ordered,
        key=lambda sub: (sub.paid_through_date, sub.plan.level),
        reverse=True,
    )


def add_subscription(
    customer: Customer,
    plan: Plan,
    payment_method: CreditCard | PayPalAccount | ApplePayCard | AndroidPayCard | None = None,
    active_date: datetime | None = None,
) -> Subscription:
    """
    Create a subscription to ``plan`` and append it to the customer.

    Subscriptions at the same or a higher tier push the start date back to
    the earliest of their paid through dates. The lower tier subscription
    paid furthest into the future, unless it is local only, is credited
    through a proration discount.

    Args:
        customer: Customer aggregate
        plan: Plan to subscribe to
        payment_method: Payment method to bill, if already known
        active_date: Reference date, defaults to now

    Returns:
        The new subscription (INITIAL, not yet pushed)
    """
    date = ensure_utc(active_date) or utcnow()

    non_trial = [sub for sub in valid_subscriptions(customer, date) if not sub.is_trial]

    wait_for = _by_paid_through([sub for sub in non_trial if sub.plan.level >= plan.level])
    refundable = _by_paid_through(
        [
            sub
            for sub in non_trial
            if sub.plan.level < plan.level and sub.processor.state != ProcessorState.LOCAL
        ]
    )

    if wait_for:
        first_billing_date = min(sub.paid_through_date for sub in wait_for)  # type: ignore
    else:
        first_billing_date = date

    subscription = Subscription(
        plan=plan,
        price=plan.price,
        first_billing_date=first_billing_date,
    )

    previous = refundable[0] if refundable else None
    subscription.add_discounts(
        lambda new_sub: [build_previous_subscription_discount(new_sub, previous)]
    )

    if payment_method is not None:
        subscription.payment_method_id = payment_method.id

    customer.subscriptions.append(subscription)

    logger.debug(
        "Subscription added",
        customer_id=customer.id,
        subscription_id=subscription.id,
        plan_id=plan.id,
        price=format_money(create_money(plan.price, plan.currency)),
        first_billing_date=first_billing_date.isoformat(),
        waiting_for=[sub.id for sub in wait_for],
        prorated_from=previous.id if previous else None,
        discounts=len(subscription.discounts),
    )

    return subscription
