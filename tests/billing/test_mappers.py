"""Tests for variant registries and customer record mapping."""

from decimal import Decimal

import pytest

from paysync.billing.coupons import CouponAmount, CouponPercent
from paysync.billing.exceptions import UnknownVariantError
from paysync.billing.models import (
    AndroidPayCard,
    CreditCard,
    DiscountCoupon,
    DiscountPreviousSubscription,
    TransactionPayPalAccount,
)
from paysync.billing.registry import TAG_FIELD, VariantRegistry
from tests.billing.factories import make_customer, make_subscription, saved


@pytest.mark.unit
class TestVariantRegistry:
    """Test tag dispatch."""

    def test_default_families_are_registered(self, registries):
        assert registries.payment_methods.tags == [
            "CreditCard",
            "PayPalAccount",
            "ApplePayCard",
            "AndroidPayCard",
        ]
        assert registries.discounts.tags == ["DiscountPreviousSubscription", "DiscountCoupon"]
        assert registries.coupons.tags == ["CouponAmount", "CouponPercent"]
        assert len(registries.transactions.tags) == 4

    def test_encode_writes_tag_field(self, registries):
        record = registries.payment_methods.encode(AndroidPayCard(virtual_card_last4="4242"))

        assert record[TAG_FIELD] == "AndroidPayCard"
        assert "kind" not in record
        assert record["virtual_card_last4"] == "4242"

    def test_decode_dispatches_on_tag(self, registries):
        record = {TAG_FIELD: "DiscountCoupon", "coupon_id": "c1", "amount": "5.00"}

        discount = registries.discounts.decode(record)

        assert isinstance(discount, DiscountCoupon)
        assert discount.amount == Decimal("5.00")

    def test_unknown_tag_is_rejected(self, registries):
        with pytest.raises(UnknownVariantError) as exc_info:
            registries.payment_methods.decode({TAG_FIELD: "Bitcoin"})

        assert exc_info.value.context == {"family": "payment_method", "tag": "Bitcoin"}

    def test_missing_tag_is_rejected(self, registries):
        with pytest.raises(UnknownVariantError):
            registries.transactions.decode({"amount": "1.00"})

    def test_duplicate_registration_is_rejected(self):
        registry = VariantRegistry("payment_method")
        registry.register("CreditCard", CreditCard)

        with pytest.raises(ValueError, match="already registered"):
            registry.register("CreditCard", CreditCard)

    def test_custom_codecs(self):
        registry = VariantRegistry("coupon", tag_field="type")
        registry.register(
            "legacy",
            CouponAmount,
            decode=lambda data: CouponAmount(name=data["label"], amount=Decimal(data["value"])),
            encode=lambda coupon: {"label": coupon.name, "value": str(coupon.amount)},
        )

        coupon = registry.decode({"type": "legacy", "label": "Old", "value": "7"})

        assert coupon.name == "Old"
        assert coupon.amount == Decimal("7")


@pytest.mark.unit
class TestCustomerRecordMapper:
    """Test persisting the aggregate as a record."""

    def test_record_round_trip(self, mapper):
        subscription = make_subscription(processor=saved("sub_1"))
        subscription.discounts.append(
            DiscountPreviousSubscription(subscription_id=subscription.id, amount=Decimal("3.00"))
        )
        customer = make_customer(
            processor=saved("cust_1"),
            subscriptions=[subscription],
            transactions=[TransactionPayPalAccount(amount=Decimal("12.00"), payer_email="p@x.io")],
        )
        address = customer.add_address(locality="Sofia")
        customer.add_payment_method_nonce("nonce", address)

        record = mapper.to_record(customer)
        restored = mapper.from_record(record)

        assert record["payment_methods"][0][TAG_FIELD] == "CreditCard"
        assert record["transactions"][0][TAG_FIELD] == "TransactionPayPalAccount"
        assert record["subscriptions"][0]["discounts"][0][TAG_FIELD] == (
            "DiscountPreviousSubscription"
        )
        assert restored.model_dump() == customer.model_dump()

    def test_record_with_unknown_tag_fails(self, mapper, customer):
        record = mapper.to_record(customer)
        record["payment_methods"] = [{TAG_FIELD: "Bitcoin"}]

        with pytest.raises(UnknownVariantError):
            mapper.from_record(record)

    def test_coupon_records(self, mapper):
        coupon = CouponPercent(name="Half", percent=Decimal("50"), used_count=1)

        record = mapper.coupon_to_record(coupon)

        assert record[TAG_FIELD] == "CouponPercent"
        assert mapper.coupon_from_record(record).model_dump() == coupon.model_dump()
