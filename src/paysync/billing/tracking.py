"""
Change tracking for the customer aggregate.

A ``Snapshot`` is a shadow copy of the aggregate taken when it was last
loaded or persisted. Diffing the live aggregate against it tells which
entities were edited locally, and those already known to the processor
are flagged CHANGED so the next save pushes them as updates.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from paysync.billing.models import Customer
from paysync.billing.processor import ProcessorState, mark_changed as mark_item_changed

logger = structlog.get_logger(__name__)

IDENTITY_FIELDS = ("name", "email", "phone", "ip_address", "default_payment_method_id")
TRACKED_COLLECTIONS = ("addresses", "subscriptions", "payment_methods")


def _strip_processor(value: Any) -> Any:
    """Drop sync markers so only business content is compared."""
    if isinstance(value, dict):
        return {key: _strip_processor(item) for key, item in value.items() if key != "processor"}
    if isinstance(value, list):
        return [_strip_processor(item) for item in value]
    return value


def _collect_states(customer: Customer) -> dict[str, ProcessorState]:
    states = {customer.id: customer.processor.state}
    for collection in (*TRACKED_COLLECTIONS, "transactions"):
        for item in getattr(customer, collection):
            states[item.id] = item.processor.state
    for subscription in customer.subscriptions:
        for discount in subscription.discounts:
            states[discount.id] = discount.processor.state
    return states


@dataclass(frozen=True)
class ChangeSet:
    """Result of diffing an aggregate against its snapshot."""

    customer_fields: frozenset[str] = frozenset()
    elements: dict[str, frozenset[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.customer_fields and not any(self.elements.values())


@dataclass(frozen=True)
class Snapshot:
    """Shadow copy of a customer aggregate."""

    customer_id: str
    customer_fields: dict[str, Any]
    collections: dict[str, dict[str, Any]]
    states: dict[str, ProcessorState]
    taken_at: datetime

    @classmethod
    def capture(cls, customer: Customer) -> "Snapshot":
        dump = customer.model_dump(mode="json")
        return cls(
            customer_id=customer.id,
            customer_fields={name: dump[name] for name in IDENTITY_FIELDS},
            collections={
                collection: {item["id"]: _strip_processor(item) for item in dump[collection]}
                for collection in TRACKED_COLLECTIONS
            },
            states=_collect_states(customer),
            taken_at=datetime.now(UTC),
        )

    def state_of(self, entity_id: str) -> ProcessorState | None:
        """Sync state an entity had when the snapshot was taken."""
        return self.states.get(entity_id)

    def diff(self, customer: Customer) -> ChangeSet:
        """Compare the live aggregate with this snapshot."""
        dump = customer.model_dump(mode="json")

        customer_fields = frozenset(
            name for name in IDENTITY_FIELDS if dump[name] != self.customer_fields.get(name)
        )

        elements = {}
        for collection in TRACKED_COLLECTIONS:
            previous = self.collections.get(collection, {})
            elements[collection] = frozenset(
                item["id"]
                for item in dump[collection]
                if previous.get(item["id"]) != _strip_processor(item)
            )

        return ChangeSet(customer_fields=customer_fields, elements=elements)


def take_snapshot(customer: Customer) -> Snapshot:
    """Capture the aggregate and keep the snapshot on it."""
    snapshot = Snapshot.capture(customer)
    customer.attach_snapshot(snapshot)
    return snapshot


def mark_changed(customer: Customer, snapshot: Snapshot | None = None) -> Customer:
    """
    Flag edited entities as CHANGED.

    Entities without a processor id are left alone: they are still
    drafts and will be pushed as creations.

    Args:
        customer: Aggregate with pending in-memory edits
        snapshot: Baseline to diff against, defaults to the customer's own

    Returns:
        The same customer
    """
    snapshot = snapshot or customer.snapshot
    if snapshot is None:
        logger.debug("No snapshot to diff against, nothing marked", customer_id=customer.id)
        return customer

    changes = snapshot.diff(customer)
    if changes.is_empty:
        return customer

    if changes.customer_fields and mark_item_changed(customer):
        logger.debug(
            "Customer marked changed",
            customer_id=customer.id,
            fields=sorted(changes.customer_fields),
        )

    for collection in TRACKED_COLLECTIONS:
        changed_ids = changes.elements.get(collection, frozenset())
        for item in getattr(customer, collection):
            if item.id in changed_ids and mark_item_changed(item):
                logger.debug(
                    "Entity marked changed",
                    customer_id=customer.id,
                    collection=collection,
                    entity_id=item.id,
                )

    return customer
