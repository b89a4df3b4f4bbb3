"""
Billing system exceptions.

Custom exceptions for customer synchronization with clear error messages.
Each error carries a machine-readable code, context and a recovery hint.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from paysync.billing.tracking import Snapshot


class BillingError(Exception):
    """
    Base billing system error with enhanced context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        status_code: HTTP status code for this error type
        context: Additional context data about the error
        recovery_hint: Suggested action to resolve the error
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 400,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code or "BILLING_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


class CustomerValidationError(BillingError):
    """Malformed customer identity fields, rejected before any remote call."""

    def __init__(self, message: str, field: str | None = None) -> None:
        context = {}
        if field:
            context["field"] = field

        super().__init__(
            message,
            "CUSTOMER_VALIDATION_ERROR",
            status_code=422,
            context=context,
            recovery_hint="Provide a non-empty name and a well-formed email address",
        )


class GatewayError(BillingError):
    """
    Failure reported by the payment processor collaborator.

    Never retried automatically. The customer's snapshot taken before the
    remote call is attached so the caller can inspect it and retry.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        customer_id: str | None = None,
        snapshot: "Snapshot | None" = None,
    ):
        context = {}
        if operation:
            context["operation"] = operation
        if customer_id:
            context["customer_id"] = customer_id

        super().__init__(
            message,
            "GATEWAY_ERROR",
            status_code=502,
            context=context,
            recovery_hint=(
                "Local state was not advanced. Retry once the processor is reachable"
            ),
        )
        self.operation = operation
        self.customer_id = customer_id
        self.snapshot = snapshot


class ConsistencyError(BillingError):
    """Reference to an entity that does not exist inside the aggregate."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message,
            "CONSISTENCY_ERROR",
            status_code=409,
            context=context,
            recovery_hint=recovery_hint or "Fix the dangling reference before syncing",
        )


class SubscriptionNotFoundError(ConsistencyError):
    """Subscription not found in the customer aggregate."""

    def __init__(self, message: str, subscription_id: str | None = None) -> None:
        context = {}
        if subscription_id:
            context["subscription_id"] = subscription_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Verify the subscription ID belongs to this customer",
        )
        self.error_code = "SUBSCRIPTION_NOT_FOUND"
        self.status_code = 404


class TransactionNotFoundError(ConsistencyError):
    """Transaction not found in the customer aggregate."""

    def __init__(self, message: str, transaction_id: str | None = None) -> None:
        context = {}
        if transaction_id:
            context["transaction_id"] = transaction_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Verify the transaction ID belongs to this customer",
        )
        self.error_code = "TRANSACTION_NOT_FOUND"
        self.status_code = 404


class PaymentMethodNotFoundError(ConsistencyError):
    """Payment method not found in the customer aggregate."""

    def __init__(self, message: str, payment_method_id: str | None = None) -> None:
        context = {}
        if payment_method_id:
            context["payment_method_id"] = payment_method_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Add the payment method to the customer or clear the reference",
        )
        self.error_code = "PAYMENT_METHOD_NOT_FOUND"
        self.status_code = 404


class AddressNotFoundError(ConsistencyError):
    """Address not found in the customer aggregate."""

    def __init__(self, message: str, address_id: str | None = None) -> None:
        context = {}
        if address_id:
            context["address_id"] = address_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Add the address to the customer or clear the reference",
        )
        self.error_code = "ADDRESS_NOT_FOUND"
        self.status_code = 404


class InvalidRefundAmountError(BillingError):
    """Refund amount is not positive or exceeds the refunded transaction."""

    def __init__(self, message: str, transaction_id: str, amount: Any) -> None:
        super().__init__(
            message,
            "INVALID_REFUND_AMOUNT",
            status_code=422,
            context={"transaction_id": transaction_id, "amount": str(amount)},
            recovery_hint="Refund a positive amount no larger than the original transaction",
        )


class UnknownVariantError(BillingError):
    """A persisted record carries a variant tag nobody registered."""

    def __init__(self, message: str, family: str, tag: str | None) -> None:
        super().__init__(
            message,
            "UNKNOWN_VARIANT",
            status_code=422,
            context={"family": family, "tag": tag},
            recovery_hint="Register the variant before decoding records that use it",
        )


__all__ = [
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
]
