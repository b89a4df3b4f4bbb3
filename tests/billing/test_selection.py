"""Tests for subscription selection."""

from datetime import datetime

import pytest
from freezegun import freeze_time

from paysync.billing.config import BillingConfig, SubscriptionConfig, set_billing_config
from paysync.billing.models import SubscriptionStatus
from paysync.billing.selection import (
    active_subscriptions,
    current_subscription,
    is_valid_at,
    valid_subscriptions,
)
from tests.billing.factories import make_customer, make_subscription, utc

AS_OF = utc(2024, 1, 15)


@pytest.mark.unit
class TestIsValidAt:
    """Test the paid window check."""

    def test_inside_window(self):
        sub = make_subscription(
            first_billing_date=utc(2024, 1, 1), paid_through_date=utc(2024, 2, 1)
        )

        assert is_valid_at(sub, AS_OF) is True

    def test_first_billing_date_must_be_strictly_before(self):
        sub = make_subscription(first_billing_date=AS_OF, paid_through_date=utc(2024, 2, 1))

        assert is_valid_at(sub, AS_OF) is False

    def test_paid_through_date_is_inclusive(self):
        sub = make_subscription(first_billing_date=utc(2024, 1, 1), paid_through_date=AS_OF)

        assert is_valid_at(sub, AS_OF) is True

    def test_expired_window(self):
        sub = make_subscription(
            first_billing_date=utc(2023, 1, 1), paid_through_date=utc(2024, 1, 14)
        )

        assert is_valid_at(sub, AS_OF) is False

    def test_deleted_subscription_is_never_valid(self):
        sub = make_subscription(deleted=True)

        assert is_valid_at(sub, AS_OF) is False

    def test_missing_dates_are_not_valid(self):
        sub = make_subscription()
        sub.paid_through_date = None

        assert is_valid_at(sub, AS_OF) is False


@pytest.mark.unit
class TestValidSubscriptions:
    """Test filtering and ordering of valid subscriptions."""

    def test_excludes_subscriptions_outside_window(self):
        inside = make_subscription(level=1)
        not_started = make_subscription(level=2, first_billing_date=utc(2024, 2, 1))
        ended = make_subscription(level=3, paid_through_date=utc(2024, 1, 1))
        customer = make_customer(subscriptions=[inside, not_started, ended])

        assert valid_subscriptions(customer, AS_OF) == [inside]

    def test_sorted_by_level_descending(self):
        low = make_subscription(level=1)
        high = make_subscription(level=3)
        mid = make_subscription(level=2)
        customer = make_customer(subscriptions=[low, high, mid])

        assert valid_subscriptions(customer, AS_OF) == [high, mid, low]

    def test_ties_broken_by_paid_through_date_descending(self):
        shorter = make_subscription(level=2, paid_through_date=utc(2024, 2, 1))
        longer = make_subscription(level=2, paid_through_date=utc(2024, 6, 1))
        customer = make_customer(subscriptions=[shorter, longer])

        assert valid_subscriptions(customer, AS_OF) == [longer, shorter]

    def test_higher_level_wins_over_longer_paid_window(self):
        long_low = make_subscription(level=1, paid_through_date=utc(2025, 1, 1))
        short_high = make_subscription(level=2, paid_through_date=utc(2024, 2, 1))
        customer = make_customer(subscriptions=[long_low, short_high])

        assert valid_subscriptions(customer, AS_OF) == [short_high, long_low]

    def test_status_is_ignored_by_default(self):
        canceled = make_subscription(status=SubscriptionStatus.CANCELED)
        customer = make_customer(subscriptions=[canceled])

        assert valid_subscriptions(customer, AS_OF) == [canceled]

    def test_alive_only_filters_by_configured_statuses(self):
        active = make_subscription(level=1)
        past_due = make_subscription(level=2, status=SubscriptionStatus.PAST_DUE)
        canceled = make_subscription(level=3, status=SubscriptionStatus.CANCELED)
        customer = make_customer(subscriptions=[active, past_due, canceled])

        assert valid_subscriptions(customer, AS_OF, alive_only=True) == [past_due, active]

    def test_alive_only_with_explicit_statuses(self):
        active = make_subscription(level=1)
        past_due = make_subscription(level=2, status=SubscriptionStatus.PAST_DUE)
        customer = make_customer(subscriptions=[active, past_due])

        result = valid_subscriptions(customer, AS_OF, alive_only=True, alive_statuses=["Active"])

        assert result == [active]

    def test_alive_statuses_come_from_config(self):
        set_billing_config(
            BillingConfig(subscriptions=SubscriptionConfig(alive_statuses=["Canceled"]))
        )
        active = make_subscription(level=1)
        canceled = make_subscription(level=2, status=SubscriptionStatus.CANCELED)
        customer = make_customer(subscriptions=[active, canceled])

        assert valid_subscriptions(customer, AS_OF, alive_only=True) == [canceled]

    @freeze_time("2024-01-15T00:00:00Z")
    def test_defaults_to_now(self):
        sub = make_subscription()
        customer = make_customer(subscriptions=[sub])

        assert valid_subscriptions(customer) == [sub]

    @freeze_time("2024-01-15T00:00:00Z")
    def test_naive_dates_are_read_as_utc(self):
        sub = make_subscription(
            first_billing_date=datetime(2020, 1, 1), paid_through_date=datetime(2099, 1, 1)
        )
        customer = make_customer(subscriptions=[sub])

        assert valid_subscriptions(customer) == [sub]
        assert valid_subscriptions(customer, datetime(2024, 1, 15)) == [sub]

    def test_empty_customer(self, customer):
        assert valid_subscriptions(customer, AS_OF) == []


@pytest.mark.unit
class TestActiveAndCurrent:
    """Test active_subscriptions and current_subscription."""

    def test_active_subscriptions_only_returns_active(self):
        active = make_subscription(level=1)
        pending = make_subscription(level=2, status=SubscriptionStatus.PENDING)
        customer = make_customer(subscriptions=[active, pending])

        assert active_subscriptions(customer, AS_OF) == [active]

    def test_current_subscription_is_first_valid(self):
        low = make_subscription(level=1)
        high = make_subscription(level=2)
        customer = make_customer(subscriptions=[low, high])

        assert current_subscription(customer, AS_OF) is valid_subscriptions(customer, AS_OF)[0]
        assert current_subscription(customer, AS_OF) is high

    def test_current_subscription_none_when_nothing_valid(self):
        ended = make_subscription(paid_through_date=utc(2023, 12, 31))
        customer = make_customer(subscriptions=[ended])

        assert current_subscription(customer, AS_OF) is None
