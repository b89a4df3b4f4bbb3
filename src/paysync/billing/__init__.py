"""
Billing customer synchronization.

Provides:
- Customer aggregate with addresses, payment methods, subscriptions and transactions
- Processor sync state tracking and local change detection
- Subscription selection and creation with upgrade proration
- Coupon discounts
- Orchestration of load, save, cancel and refund against the payment processor
"""

from paysync.billing.coupons import (
    CouponAmount,
    CouponPercent,
    CouponRepository,
    InMemoryCouponRepository,
)
from paysync.billing.discounts import (
    build_coupon_discount,
    build_previous_subscription_discount,
    redeem_confirmed_coupons,
)
from paysync.billing.exceptions import (
    AddressNotFoundError,
    BillingError,
    ConsistencyError,
    CustomerValidationError,
    GatewayError,
    InvalidRefundAmountError,
    PaymentMethodNotFoundError,
    SubscriptionNotFoundError,
    TransactionNotFoundError,
    UnknownVariantError,
)
from paysync.billing.factory import add_subscription
from paysync.billing.gateway import (
    CustomerRepository,
    InMemoryCustomerRepository,
    ProcessorGateway,
)
from paysync.billing.mappers import CustomerRecordMapper
from paysync.billing.models import (
    Address,
    AndroidPayCard,
    ApplePayCard,
    CreditCard,
    Customer,
    DiscountCoupon,
    DiscountPreviousSubscription,
    PayPalAccount,
    Plan,
    Subscription,
    SubscriptionStatus,
    TransactionAndroidPayCard,
    TransactionApplePayCard,
    TransactionCreditCard,
    TransactionPayPalAccount,
    TransactionType,
)
from paysync.billing.processor import ProcessorItem, ProcessorState
from paysync.billing.registry import VariantRegistries, VariantRegistry, build_registries
from paysync.billing.selection import (
    active_subscriptions,
    current_subscription,
    valid_subscriptions,
)
from paysync.billing.sync import ProcessorSync
from paysync.billing.tracking import ChangeSet, Snapshot, mark_changed, take_snapshot

__all__ = [
    # Exceptions
    "BillingError",
    "CustomerValidationError",
    "GatewayError",
    "ConsistencyError",
    "SubscriptionNotFoundError",
    "TransactionNotFoundError",
    "PaymentMethodNotFoundError",
    "AddressNotFoundError",
    "InvalidRefundAmountError",
    "UnknownVariantError",
    # Sync state
    "ProcessorItem",
    "ProcessorState",
    # Aggregate
    "Customer",
    "Address",
    "CreditCard",
    "PayPalAccount",
    "ApplePayCard",
    "AndroidPayCard",
    "Plan",
    "Subscription",
    "SubscriptionStatus",
    "TransactionCreditCard",
    "TransactionPayPalAccount",
    "TransactionApplePayCard",
    "TransactionAndroidPayCard",
    "TransactionType",
    "DiscountPreviousSubscription",
    "DiscountCoupon",
    # Coupons
    "CouponAmount",
    "CouponPercent",
    "CouponRepository",
    "InMemoryCouponRepository",
    # Change tracking
    "Snapshot",
    "ChangeSet",
    "take_snapshot",
    "mark_changed",
    # Subscriptions and discounts
    "valid_subscriptions",
    "active_subscriptions",
    "current_subscription",
    "add_subscription",
    "build_previous_subscription_discount",
    "build_coupon_discount",
    "redeem_confirmed_coupons",
    # Records
    "VariantRegistry",
    "VariantRegistries",
    "build_registries",
    "CustomerRecordMapper",
    # Collaborators
    "ProcessorGateway",
    "CustomerRepository",
    "InMemoryCustomerRepository",
    "ProcessorSync",
]
