"""Shared billing fixtures."""

import pytest

from paysync.billing.config import reset_billing_config
from paysync.billing.coupons import InMemoryCouponRepository
from paysync.billing.gateway import InMemoryCustomerRepository
from paysync.billing.mappers import CustomerRecordMapper
from paysync.billing.models import Customer
from paysync.billing.registry import build_registries
from paysync.billing.sync import ProcessorSync
from tests.billing.factories import make_customer
from tests.billing.fakes import MockProcessorGateway


@pytest.fixture(autouse=True)
def _fresh_billing_config():
    reset_billing_config()
    yield
    reset_billing_config()


@pytest.fixture
def customer() -> Customer:
    return make_customer()


@pytest.fixture
def registries():
    return build_registries()


@pytest.fixture
def mapper(registries) -> CustomerRecordMapper:
    return CustomerRecordMapper(registries)


@pytest.fixture
def repository(mapper) -> InMemoryCustomerRepository:
    return InMemoryCustomerRepository(mapper)


@pytest.fixture
def coupon_repository() -> InMemoryCouponRepository:
    return InMemoryCouponRepository()


@pytest.fixture
def gateway() -> MockProcessorGateway:
    return MockProcessorGateway()


@pytest.fixture
def processor_sync(gateway, repository, coupon_repository) -> ProcessorSync:
    return ProcessorSync(gateway, repository, coupons=coupon_repository)
