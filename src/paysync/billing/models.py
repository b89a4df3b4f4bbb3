"""
Customer aggregate and the entities it owns.

The customer exclusively owns its addresses, payment methods,
subscriptions and transactions. References between them (payment method
to billing address, subscription to payment method) are plain ids
resolved inside the same aggregate.

Polymorphic entities (payment methods, transactions, discounts) are
tagged unions: each variant carries a literal ``kind`` and callers
dispatch on it.
"""

import re
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, Literal, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from paysync.billing.config import get_billing_config
from paysync.billing.exceptions import (
    AddressNotFoundError,
    ConsistencyError,
    CustomerValidationError,
    PaymentMethodNotFoundError,
    SubscriptionNotFoundError,
    TransactionNotFoundError,
)
from paysync.billing.processor import ProcessorItem

if TYPE_CHECKING:
    from paysync.billing.tracking import Snapshot

EMAIL_PATTERN = re.compile(r"^[\w\-.+]+@([\w-]+\.)+[\w-]{2,6}$")


def _new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Read naive datetimes as UTC so they compare with ``utcnow()``."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _default_currency() -> str:
    return get_billing_config().currency.default_currency


class ProcessorEntity(BaseModel):
    """Fields shared by every entity tracked against the processor."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_id, description="Local identifier")
    processor: ProcessorItem = Field(default_factory=ProcessorItem)


# ============================================================================
# Addresses
# ============================================================================


class Address(ProcessorEntity):
    """Postal address, used as a billing address by payment methods."""

    name: str | None = None
    company: str | None = None
    country: str | None = Field(None, max_length=2, description="ISO 3166-1 alpha-2 code")
    locality: str | None = None
    region: str | None = None
    postal_code: str | None = None
    street_address: str | None = None
    extended_address: str | None = None


# ============================================================================
# Payment methods
# ============================================================================


class PaymentMethodBase(ProcessorEntity):
    billing_address_id: str | None = None
    nonce: str | None = Field(None, description="One-time token from the processor client SDK")


class CreditCard(PaymentMethodBase):
    kind: Literal["CreditCard"] = "CreditCard"
    card_type: str | None = None
    last4: str | None = Field(None, max_length=4)
    expiration_month: str | None = None
    expiration_year: str | None = None
    cardholder_name: str | None = None
    country_of_issuance: str | None = None


class PayPalAccount(PaymentMethodBase):
    kind: Literal["PayPalAccount"] = "PayPalAccount"
    email: str | None = None
    payer_id: str | None = None


class ApplePayCard(PaymentMethodBase):
    kind: Literal["ApplePayCard"] = "ApplePayCard"
    card_type: str | None = None
    payment_instrument_name: str | None = None
    last4: str | None = Field(None, max_length=4)
    expiration_month: str | None = None
    expiration_year: str | None = None


class AndroidPayCard(PaymentMethodBase):
    kind: Literal["AndroidPayCard"] = "AndroidPayCard"
    source_card_type: str | None = None
    source_card_last4: str | None = Field(None, max_length=4)
    virtual_card_type: str | None = None
    virtual_card_last4: str | None = Field(None, max_length=4)
    expiration_month: str | None = None
    expiration_year: str | None = None


PaymentMethod = Annotated[
    CreditCard | PayPalAccount | ApplePayCard | AndroidPayCard,
    Field(discriminator="kind"),
]

PaymentMethodT = TypeVar("PaymentMethodT", bound=PaymentMethodBase)


# ============================================================================
# Transactions
# ============================================================================


class TransactionType(str, Enum):
    SALE = "sale"
    CREDIT = "credit"


class TransactionBase(ProcessorEntity):
    """Immutable record of a charge or refund made by the processor."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(description="Transaction amount")
    currency: str = Field(default_factory=_default_currency, max_length=3)
    status: str = Field("submitted_for_settlement", description="Processor status")
    transaction_type: TransactionType = TransactionType.SALE
    subscription_id: str | None = None
    refunded_transaction_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)  # type: ignore[return-value]


class TransactionCreditCard(TransactionBase):
    kind: Literal["TransactionCreditCard"] = "TransactionCreditCard"
    card_type: str | None = None
    last4: str | None = Field(None, max_length=4)
    cardholder_name: str | None = None


class TransactionPayPalAccount(TransactionBase):
    kind: Literal["TransactionPayPalAccount"] = "TransactionPayPalAccount"
    payer_email: str | None = None
    payment_id: str | None = None


class TransactionApplePayCard(TransactionBase):
    kind: Literal["TransactionApplePayCard"] = "TransactionApplePayCard"
    card_type: str | None = None
    payment_instrument_name: str | None = None


class TransactionAndroidPayCard(TransactionBase):
    kind: Literal["TransactionAndroidPayCard"] = "TransactionAndroidPayCard"
    source_card_type: str | None = None
    source_card_last4: str | None = Field(None, max_length=4)


Transaction = Annotated[
    TransactionCreditCard
    | TransactionPayPalAccount
    | TransactionApplePayCard
    | TransactionAndroidPayCard,
    Field(discriminator="kind"),
]


# ============================================================================
# Plans, discounts and subscriptions
# ============================================================================


class Plan(ProcessorEntity):
    """Subscription plan. ``level`` orders plans for upgrades and downgrades."""

    name: str
    price: Decimal = Field(ge=0)
    currency: str = Field(default_factory=_default_currency, max_length=3)
    billing_frequency: int = Field(1, ge=1, description="Billing cycle length in months")
    level: int = Field(0, description="Tier; higher is better")


class SubscriptionStatus(str, Enum):
    """Subscription status as reported by the processor."""

    PENDING = "Pending"
    ACTIVE = "Active"
    PAST_DUE = "Past Due"
    CANCELED = "Canceled"
    EXPIRED = "Expired"


CANCELABLE_STATUSES = frozenset(
    {SubscriptionStatus.PENDING, SubscriptionStatus.PAST_DUE, SubscriptionStatus.ACTIVE}
)


class DiscountBase(ProcessorEntity):
    amount: Decimal = Field(ge=0)
    name: str | None = None


class DiscountPreviousSubscription(DiscountBase):
    """Proration credit for the unused part of a superseded subscription."""

    kind: Literal["DiscountPreviousSubscription"] = "DiscountPreviousSubscription"
    subscription_id: str = Field(description="Superseded subscription")


class DiscountCoupon(DiscountBase):
    """Discount granted by a coupon."""

    kind: Literal["DiscountCoupon"] = "DiscountCoupon"
    coupon_id: str = Field(description="Redeemed coupon")


Discount = Annotated[
    DiscountPreviousSubscription | DiscountCoupon,
    Field(discriminator="kind"),
]


class Subscription(ProcessorEntity):
    plan: Plan
    payment_method_id: str | None = None
    price: Decimal = Field(ge=0)
    first_billing_date: datetime | None = None
    paid_through_date: datetime | None = None
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    is_trial: bool = False
    deleted: bool = False
    discounts: list[Discount] = Field(default_factory=list)

    @field_validator("first_billing_date", "paid_through_date")
    @classmethod
    def validate_dates(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    def add_discounts(
        self,
        builder: Callable[
            ["Subscription"],
            Iterable[DiscountPreviousSubscription | DiscountCoupon | None],
        ],
    ) -> "Subscription":
        """Append the discounts produced by ``builder``, skipping empty results."""
        for discount in builder(self):
            if discount is not None:
                self.discounts.append(discount)
        return self

    @property
    def discount_total(self) -> Decimal:
        return sum((discount.amount for discount in self.discounts), Decimal("0"))


# ============================================================================
# Customer aggregate
# ============================================================================


class Customer(ProcessorEntity):
    """Billing customer: the aggregate root."""

    name: str = Field(description="Customer name")
    email: str = Field(description="Contact email, stored lowercase")
    phone: str | None = None
    ip_address: str | None = None
    addresses: list[Address] = Field(default_factory=list)
    payment_methods: list[PaymentMethod] = Field(default_factory=list)
    default_payment_method_id: str | None = None
    subscriptions: list[Subscription] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)

    _snapshot: Any = PrivateAttr(default=None)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Customer name is required")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError(f"Invalid email address: {v!r}")
        return v

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> "Snapshot | None":
        """State captured at the last load or persist, if any."""
        return self._snapshot

    def attach_snapshot(self, snapshot: "Snapshot") -> None:
        self._snapshot = snapshot

    def clear_snapshot(self) -> None:
        self._snapshot = None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_address(self, address_id: str) -> Address:
        for address in self.addresses:
            if address.id == address_id:
                return address
        raise AddressNotFoundError(f"Address not found: {address_id}", address_id=address_id)

    def get_payment_method(
        self, payment_method_id: str
    ) -> CreditCard | PayPalAccount | ApplePayCard | AndroidPayCard:
        for payment_method in self.payment_methods:
            if payment_method.id == payment_method_id:
                return payment_method
        raise PaymentMethodNotFoundError(
            f"Payment method not found: {payment_method_id}",
            payment_method_id=payment_method_id,
        )

    def get_subscription(self, subscription_id: str) -> Subscription:
        for subscription in self.subscriptions:
            if subscription.id == subscription_id:
                return subscription
        raise SubscriptionNotFoundError(
            f"Subscription not found: {subscription_id}", subscription_id=subscription_id
        )

    def get_transaction(
        self, transaction_id: str
    ) -> (
        TransactionCreditCard
        | TransactionPayPalAccount
        | TransactionApplePayCard
        | TransactionAndroidPayCard
    ):
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        raise TransactionNotFoundError(
            f"Transaction not found: {transaction_id}", transaction_id=transaction_id
        )

    def default_payment_method(
        self,
    ) -> CreditCard | PayPalAccount | ApplePayCard | AndroidPayCard | None:
        """Resolve the default payment method, None when unset."""
        if not self.default_payment_method_id:
            return None
        return self.get_payment_method(self.default_payment_method_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_address(self, **data: Any) -> Address:
        address = Address(**data)
        self.addresses.append(address)
        return address

    def add_payment_method_nonce(
        self,
        nonce: str,
        address: Address,
        variant: type[PaymentMethodT] = CreditCard,  # type: ignore[assignment]
    ) -> PaymentMethodT:
        """
        Add a payment method draft from a client-side nonce and make it the default.

        The processor fills in the variant specific fields on save.
        """
        payment_method = variant(billing_address_id=address.id, nonce=nonce)
        self.payment_methods.append(payment_method)  # type: ignore[arg-type]
        self.default_payment_method_id = payment_method.id
        return payment_method

    def cancel_subscriptions(self) -> "Customer":
        """Mark every pending, active or past due subscription as canceled."""
        for subscription in self.subscriptions:
            if subscription.status in CANCELABLE_STATUSES:
                subscription.status = SubscriptionStatus.CANCELED
        return self

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_identity(self) -> None:
        """Re-check identity fields that may have bypassed model validation."""
        if not (self.name or "").strip():
            raise CustomerValidationError("Customer name is required", field="name")
        if not EMAIL_PATTERN.match((self.email or "").strip().lower()):
            raise CustomerValidationError(f"Invalid email address: {self.email!r}", field="email")

    def check_consistency(self) -> None:
        """
        Verify references inside the aggregate.

        Raises:
            ConsistencyError: a reference points at an entity the customer does not own
        """
        if self.default_payment_method_id:
            self.get_payment_method(self.default_payment_method_id)

        address_ids = {address.id for address in self.addresses}
        for payment_method in self.payment_methods:
            address_id = payment_method.billing_address_id
            if address_id and address_id not in address_ids:
                raise AddressNotFoundError(
                    f"Payment method {payment_method.id} references missing billing address "
                    f"{address_id}",
                    address_id=address_id,
                )

        payment_method_ids = {payment_method.id for payment_method in self.payment_methods}
        for subscription in self.subscriptions:
            payment_method_id = subscription.payment_method_id
            if payment_method_id and payment_method_id not in payment_method_ids:
                raise PaymentMethodNotFoundError(
                    f"Subscription {subscription.id} references missing payment method "
                    f"{payment_method_id}",
                    payment_method_id=payment_method_id,
                )

        subscription_ids = {subscription.id for subscription in self.subscriptions}
        for subscription in self.subscriptions:
            for discount in subscription.discounts:
                if discount.kind != "DiscountPreviousSubscription":
                    continue
                if discount.subscription_id not in subscription_ids:
                    raise ConsistencyError(
                        f"Discount {discount.id} references missing subscription "
                        f"{discount.subscription_id}",
                        context={
                            "discount_id": discount.id,
                            "subscription_id": discount.subscription_id,
                        },
                    )
