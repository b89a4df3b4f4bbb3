"""
Data mappers for the customer aggregate.

Transforms between the aggregate and its persisted record: a plain dict
with nested lists, where polymorphic entries carry their variant tag.
"""

from typing import Any

from paysync.billing.coupons import CouponAmount, CouponPercent
from paysync.billing.models import Customer, Subscription
from paysync.billing.registry import VariantRegistries


class CustomerRecordMapper:
    """Encode and decode customer records through explicit variant registries."""

    def __init__(self, registries: VariantRegistries) -> None:
        self.registries = registries

    def subscription_to_record(self, subscription: Subscription) -> dict[str, Any]:
        record = subscription.model_dump(mode="json", exclude={"discounts"})
        record["discounts"] = [
            self.registries.discounts.encode(discount) for discount in subscription.discounts
        ]
        return record

    def subscription_from_record(self, record: dict[str, Any]) -> Subscription:
        data = dict(record)
        data["discounts"] = [
            self.registries.discounts.decode(item) for item in record.get("discounts", [])
        ]
        return Subscription.model_validate(data)

    def to_record(self, customer: Customer) -> dict[str, Any]:
        """Convert a customer into its persisted record."""
        record = customer.model_dump(
            mode="json", exclude={"payment_methods", "transactions", "subscriptions"}
        )
        record["payment_methods"] = [
            self.registries.payment_methods.encode(item) for item in customer.payment_methods
        ]
        record["transactions"] = [
            self.registries.transactions.encode(item) for item in customer.transactions
        ]
        record["subscriptions"] = [
            self.subscription_to_record(item) for item in customer.subscriptions
        ]
        return record

    def from_record(self, record: dict[str, Any]) -> Customer:
        """Rebuild a customer from its persisted record."""
        data = dict(record)
        data["payment_methods"] = [
            self.registries.payment_methods.decode(item)
            for item in record.get("payment_methods", [])
        ]
        data["transactions"] = [
            self.registries.transactions.decode(item) for item in record.get("transactions", [])
        ]
        data["subscriptions"] = [
            self.subscription_from_record(item) for item in record.get("subscriptions", [])
        ]
        return Customer.model_validate(data)

    def coupon_to_record(self, coupon: CouponAmount | CouponPercent) -> dict[str, Any]:
        return self.registries.coupons.encode(coupon)

    def coupon_from_record(self, record: dict[str, Any]) -> CouponAmount | CouponPercent:
        return self.registries.coupons.decode(record)  # type: ignore[no-any-return]
