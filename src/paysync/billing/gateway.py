"""
Collaborator interfaces.

The payment processor and the local store are consumed through these
abstractions only. Processor implementations are expected to raise
``GatewayError`` on failure and to return a new customer snapshot on
success: entities they created carry their remote ids and every pushed
entity is SAVED.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

from paysync.billing.mappers import CustomerRecordMapper
from paysync.billing.models import Customer
from paysync.billing.tracking import take_snapshot


class ProcessorGateway(ABC):
    """Remote payment processor."""

    @abstractmethod
    async def load(self, customer: Customer) -> Customer:
        """Fetch the authoritative remote state of the customer."""
        pass

    @abstractmethod
    async def save(self, customer: Customer) -> Customer:
        """Push local changes and return the confirmed state."""
        pass

    @abstractmethod
    async def cancel_subscription(self, customer: Customer, subscription_id: str) -> Customer:
        """Cancel one subscription and return the confirmed state."""
        pass

    @abstractmethod
    async def refund_transaction(
        self, customer: Customer, transaction_id: str, amount: Decimal | None = None
    ) -> Customer:
        """Refund a transaction, fully when ``amount`` is None."""
        pass


class CustomerRepository(ABC):
    """Local store for customer aggregates."""

    @abstractmethod
    async def get(self, customer_id: str) -> Customer | None:
        """Load a customer; the returned aggregate carries a fresh snapshot."""
        pass

    @abstractmethod
    async def save(self, customer: Customer) -> Customer:
        """Persist a customer; the returned aggregate carries a fresh snapshot."""
        pass


class InMemoryCustomerRepository(CustomerRepository):
    """Stores customer records in a dictionary."""

    def __init__(self, mapper: CustomerRecordMapper) -> None:
        self.mapper = mapper
        self.records: dict[str, dict[str, Any]] = {}

    async def get(self, customer_id: str) -> Customer | None:
        record = self.records.get(customer_id)
        if record is None:
            return None
        customer = self.mapper.from_record(record)
        take_snapshot(customer)
        return customer

    async def save(self, customer: Customer) -> Customer:
        self.records[customer.id] = self.mapper.to_record(customer)
        take_snapshot(customer)
        return customer
