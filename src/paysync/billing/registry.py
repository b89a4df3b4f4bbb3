"""
Variant registries for polymorphic records.

Payment methods, transactions, discounts and coupons are stored as plain
records tagged with their variant name. A ``VariantRegistry`` maps each
tag to the functions that decode and encode that variant. Registries are
built once at start-up with ``build_registries()`` and handed to whoever
needs them.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from paysync.billing.coupons import CouponAmount, CouponPercent
from paysync.billing.exceptions import UnknownVariantError
from paysync.billing.models import (
    AndroidPayCard,
    ApplePayCard,
    CreditCard,
    DiscountCoupon,
    DiscountPreviousSubscription,
    PayPalAccount,
    TransactionAndroidPayCard,
    TransactionApplePayCard,
    TransactionCreditCard,
    TransactionPayPalAccount,
)

TAG_FIELD = "__t"

Decoder = Callable[[dict[str, Any]], BaseModel]
Encoder = Callable[[BaseModel], dict[str, Any]]


@dataclass(frozen=True)
class Variant:
    tag: str
    model: type[BaseModel]
    decode: Decoder
    encode: Encoder


class VariantRegistry:
    """Tag to codec mapping for one family of variants."""

    def __init__(self, family: str, tag_field: str = TAG_FIELD) -> None:
        self.family = family
        self.tag_field = tag_field
        self._variants: dict[str, Variant] = {}

    def register(
        self,
        tag: str,
        model: type[BaseModel],
        decode: Decoder | None = None,
        encode: Encoder | None = None,
    ) -> None:
        """Register a variant. Default codecs go through the pydantic model."""
        if tag in self._variants:
            raise ValueError(f"Variant {tag!r} already registered for {self.family}")

        if decode is None:

            def decode(data: dict[str, Any]) -> BaseModel:
                return model.model_validate({**data, "kind": tag})

        if encode is None:

            def encode(entity: BaseModel) -> dict[str, Any]:
                return entity.model_dump(mode="json", exclude={"kind"})

        self._variants[tag] = Variant(tag=tag, model=model, decode=decode, encode=encode)

    @property
    def tags(self) -> list[str]:
        return list(self._variants)

    def _lookup(self, tag: str | None) -> Variant:
        variant = self._variants.get(tag) if tag else None
        if variant is None:
            raise UnknownVariantError(
                f"Unknown {self.family} variant: {tag!r}", family=self.family, tag=tag
            )
        return variant

    def decode(self, record: dict[str, Any]) -> Any:
        """Build the entity a tagged record describes."""
        variant = self._lookup(record.get(self.tag_field))
        data = {key: value for key, value in record.items() if key != self.tag_field}
        return variant.decode(data)

    def encode(self, entity: Any) -> dict[str, Any]:
        """Turn an entity into a tagged record."""
        variant = self._lookup(getattr(entity, "kind", None))
        record = variant.encode(entity)
        record[self.tag_field] = variant.tag
        return record


@dataclass(frozen=True)
class VariantRegistries:
    payment_methods: VariantRegistry
    transactions: VariantRegistry
    discounts: VariantRegistry
    coupons: VariantRegistry


def build_registries() -> VariantRegistries:
    """Create the registries for every polymorphic record family."""
    payment_methods = VariantRegistry("payment_method")
    for model in (CreditCard, PayPalAccount, ApplePayCard, AndroidPayCard):
        payment_methods.register(model.model_fields["kind"].default, model)

    transactions = VariantRegistry("transaction")
    for model in (
        TransactionCreditCard,
        TransactionPayPalAccount,
        TransactionApplePayCard,
        TransactionAndroidPayCard,
    ):
        transactions.register(model.model_fields["kind"].default, model)

    discounts = VariantRegistry("discount")
    discounts.register("DiscountPreviousSubscription", DiscountPreviousSubscription)
    discounts.register("DiscountCoupon", DiscountCoupon)

    coupons = VariantRegistry("coupon")
    coupons.register("CouponAmount", CouponAmount)
    coupons.register("CouponPercent", CouponPercent)

    return VariantRegistries(
        payment_methods=payment_methods,
        transactions=transactions,
        discounts=discounts,
        coupons=coupons,
    )
