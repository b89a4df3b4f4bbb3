"""
Discount computation.

Two kinds of discount can be attached to a subscription:

- a proration credit for the unused part of a lower tier subscription
  being replaced by an upgrade
- a coupon discount

Failing eligibility is a normal outcome: builders return None instead of
raising.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import structlog

from paysync.billing.config import get_billing_config
from paysync.billing.coupons import CouponAmount, CouponPercent, CouponRepository
from paysync.billing.models import (
    Customer,
    DiscountCoupon,
    DiscountPreviousSubscription,
    Subscription,
    ensure_utc,
    utcnow,
)
from paysync.billing.money_utils import create_money, multiply_money, quantize_amount
from paysync.billing.processor import ProcessorState
from paysync.billing.tracking import Snapshot

logger = structlog.get_logger(__name__)


def build_previous_subscription_discount(
    subscription: Subscription,
    previous: Subscription | None,
    days_per_billing_frequency: int | None = None,
) -> DiscountPreviousSubscription | None:
    """
    Credit the unused paid time of ``previous`` onto ``subscription``.

    The credit is the previous price times the share of its billing cycle
    still paid for after the new subscription starts, capped at the new
    subscription's price.

    Args:
        subscription: The new subscription
        previous: The superseded subscription, if any
        days_per_billing_frequency: Overrides the configured cycle unit

    Returns:
        The discount, or None when there is nothing to credit
    """
    if previous is None or previous.paid_through_date is None:
        return None

    if days_per_billing_frequency is None:
        days_per_billing_frequency = get_billing_config().subscriptions.days_per_billing_frequency

    start = subscription.first_billing_date or utcnow()
    remaining = previous.paid_through_date - start
    if remaining <= timedelta(0):
        return None

    cycle = timedelta(days=previous.plan.billing_frequency * days_per_billing_frequency)
    share = min(
        Decimal(str(remaining.total_seconds())) / Decimal(str(cycle.total_seconds())),
        Decimal(1),
    )

    credit = multiply_money(create_money(previous.price, previous.plan.currency), share)
    amount = quantize_amount(min(credit.amount, subscription.price))
    if amount <= 0:
        return None

    return DiscountPreviousSubscription(
        subscription_id=previous.id,
        amount=amount,
        name=f"Refund for {previous.plan.name}",
    )


def _is_exhausted(coupon: CouponAmount | CouponPercent) -> bool:
    return coupon.used_count >= coupon.used_count_max


def _started_before(coupon: CouponAmount | CouponPercent, today: datetime) -> bool:
    # Kept as observed in production: a start date already in the past
    # disqualifies the coupon.
    return coupon.start_at is not None and coupon.start_at < today


def _is_expired(coupon: CouponAmount | CouponPercent, today: datetime) -> bool:
    return coupon.expire_at is not None and coupon.expire_at < today


def build_coupon_discount(
    subscription: Subscription,
    coupon: CouponAmount | CouponPercent,
    current_date: datetime | None = None,
) -> DiscountCoupon | None:
    """
    Build a coupon discount for ``subscription``.

    Returns None when the coupon is used up, outside its date window, or
    worth nothing for this subscription.
    """
    today = ensure_utc(current_date) or utcnow()

    if _is_exhausted(coupon):
        return None

    if _started_before(coupon, today):
        return None

    if _is_expired(coupon, today):
        return None

    amount = coupon.current_amount(subscription)
    if not amount or amount <= 0:
        return None

    return DiscountCoupon(
        coupon_id=coupon.id,
        amount=quantize_amount(amount),
        name=coupon.name,
    )


async def redeem_confirmed_coupons(
    before: Snapshot,
    customer: Customer,
    coupons: CouponRepository,
) -> list[str]:
    """
    Count coupon redemptions confirmed by the processor.

    A coupon discount is redeemed when it was INITIAL in ``before`` and is
    SAVED in ``customer``, so a redemption is counted exactly once and
    abandoned drafts never count.

    Returns:
        Ids of the coupons whose usage was incremented
    """
    redeemed: list[str] = []

    for subscription in customer.subscriptions:
        for discount in subscription.discounts:
            if discount.kind != "DiscountCoupon":
                continue
            if before.state_of(discount.id) != ProcessorState.INITIAL:
                continue
            if discount.processor.state != ProcessorState.SAVED:
                continue

            coupon = await coupons.get(discount.coupon_id)
            if coupon is None:
                logger.warning(
                    "Redeemed coupon not found",
                    customer_id=customer.id,
                    subscription_id=subscription.id,
                    coupon_id=discount.coupon_id,
                )
                continue

            coupon.used_count += 1
            await coupons.save(coupon)
            redeemed.append(coupon.id)

            logger.info(
                "Coupon redemption counted",
                customer_id=customer.id,
                subscription_id=subscription.id,
                coupon_id=coupon.id,
                used_count=coupon.used_count,
            )

    return redeemed
