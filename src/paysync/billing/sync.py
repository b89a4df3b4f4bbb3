"""
Processor synchronization.

Drives load, save, cancel and refund against the payment processor.
Every remote call follows the same sequence:

1. capture a snapshot of the aggregate before any sync markers change
2. call the processor with a copy of the aggregate
3. on success, reconcile the returned customer, persist it, then count
   coupon redemptions against what was persisted
4. on failure, leave local state untouched and raise ``GatewayError``
   carrying the snapshot so the caller can retry

No lock is taken: callers must not run two operations on the same
customer at once.
"""

from collections.abc import Awaitable, Callable
from decimal import Decimal

import structlog

from paysync.billing.coupons import CouponRepository
from paysync.billing.discounts import redeem_confirmed_coupons
from paysync.billing.exceptions import GatewayError, InvalidRefundAmountError
from paysync.billing.gateway import CustomerRepository, ProcessorGateway
from paysync.billing.models import Customer
from paysync.billing.processor import ProcessorState, is_forward
from paysync.billing.tracking import Snapshot, mark_changed

logger = structlog.get_logger(__name__)

PRUNED_COLLECTIONS = ("addresses", "payment_methods", "subscriptions")


def _is_unpushed_draft(entity: object) -> bool:
    processor = entity.processor  # type: ignore[attr-defined]
    return processor.state == ProcessorState.INITIAL and not processor.is_remote


class ProcessorSync:
    """Keeps a customer aggregate consistent with the payment processor."""

    def __init__(
        self,
        gateway: ProcessorGateway,
        repository: CustomerRepository,
        coupons: CouponRepository | None = None,
    ) -> None:
        self.gateway = gateway
        self.repository = repository
        self.coupons = coupons

    async def load_processor(self, customer: Customer) -> Customer:
        """
        Refresh the customer from the processor and persist it.

        A customer without a processor id has never been pushed and is
        persisted as is, without contacting the processor. Otherwise drafts
        the processor does not know about are dropped.
        """
        if not customer.processor.is_remote:
            logger.debug("Customer is local only, skipping processor load", customer_id=customer.id)
            return await self.repository.save(customer)

        async def remote(copy: Customer) -> Customer:
            return await self.gateway.load(copy)

        return await self._sync("load", customer, remote, prune_drafts=True)

    async def save_processor(self, customer: Customer) -> Customer:
        """Push local changes to the processor and persist the confirmed state."""
        customer.validate_identity()
        customer.check_consistency()
        before = Snapshot.capture(customer)
        mark_changed(customer)

        async def remote(copy: Customer) -> Customer:
            return await self.gateway.save(copy)

        return await self._sync("save", customer, remote, before=before)

    async def cancel_processor(self, customer: Customer, subscription_id: str) -> Customer:
        """Cancel one subscription at the processor and persist the confirmed state."""
        customer.validate_identity()
        customer.get_subscription(subscription_id)

        async def remote(copy: Customer) -> Customer:
            return await self.gateway.cancel_subscription(copy, subscription_id)

        return await self._sync("cancel", customer, remote)

    async def refund_processor(
        self, customer: Customer, transaction_id: str, amount: Decimal | None = None
    ) -> Customer:
        """Refund a transaction, fully when ``amount`` is None, and persist the confirmed state."""
        customer.validate_identity()
        transaction = customer.get_transaction(transaction_id)

        if amount is not None and not (Decimal("0") < amount <= transaction.amount):
            raise InvalidRefundAmountError(
                f"Refund amount {amount} is outside (0, {transaction.amount}]",
                transaction_id=transaction_id,
                amount=amount,
            )

        async def remote(copy: Customer) -> Customer:
            return await self.gateway.refund_transaction(copy, transaction_id, amount)

        return await self._sync("refund", customer, remote)

    async def _sync(
        self,
        operation: str,
        customer: Customer,
        remote: Callable[[Customer], Awaitable[Customer]],
        prune_drafts: bool = False,
        before: Snapshot | None = None,
    ) -> Customer:
        if before is None:
            before = Snapshot.capture(customer)
        log = logger.bind(operation=operation, customer_id=customer.id)
        log.info("Processor call started")

        try:
            confirmed = await remote(customer.model_copy(deep=True))
        except GatewayError as e:
            if e.snapshot is None:
                e.snapshot = before
            e.customer_id = e.customer_id or customer.id
            e.context.setdefault("customer_id", e.customer_id)
            log.error("Processor call failed", error=str(e))
            raise
        except Exception as e:
            log.error("Processor call failed", error=str(e), error_type=type(e).__name__)
            raise GatewayError(
                f"Processor {operation} failed: {e}",
                operation=operation,
                customer_id=customer.id,
                snapshot=before,
            ) from e

        confirmed.clear_snapshot()
        self._keep_states_forward(before, confirmed)

        if prune_drafts:
            self._prune_drafts(confirmed)

        persisted = await self.repository.save(confirmed)

        # Counted only once the confirmed state is stored
        if self.coupons is not None:
            await redeem_confirmed_coupons(before, persisted, self.coupons)

        log.info("Processor call succeeded", processor_id=persisted.processor.id)
        return persisted

    def _keep_states_forward(self, before: Snapshot, confirmed: Customer) -> None:
        entities = [confirmed]
        for collection in ("addresses", "payment_methods", "subscriptions", "transactions"):
            entities.extend(getattr(confirmed, collection))
        for subscription in confirmed.subscriptions:
            entities.extend(subscription.discounts)

        for entity in entities:
            previous = before.state_of(entity.id)
            if previous is None or is_forward(previous, entity.processor.state):
                continue
            logger.warning(
                "Processor returned an older sync state, keeping the local one",
                customer_id=confirmed.id,
                entity_id=entity.id,
                previous_state=previous.value,
                returned_state=entity.processor.state.value,
            )
            entity.processor.state = previous

    def _prune_drafts(self, customer: Customer) -> None:
        for collection in PRUNED_COLLECTIONS:
            items = getattr(customer, collection)
            kept = [item for item in items if not _is_unpushed_draft(item)]
            for item in items:
                if _is_unpushed_draft(item):
                    logger.info(
                        "Dropping draft unknown to the processor",
                        customer_id=customer.id,
                        collection=collection,
                        entity_id=item.id,
                    )
            setattr(customer, collection, kept)

        for subscription in customer.subscriptions:
            subscription.discounts = [
                discount for discount in subscription.discounts if not _is_unpushed_draft(discount)
            ]

        payment_method_ids = {payment_method.id for payment_method in customer.payment_methods}
        default_id = customer.default_payment_method_id
        if default_id and default_id not in payment_method_ids:
            logger.warning(
                "Default payment method was a dropped draft, clearing it",
                customer_id=customer.id,
                payment_method_id=default_id,
            )
            customer.default_payment_method_id = None
