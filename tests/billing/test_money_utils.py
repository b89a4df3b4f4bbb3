"""Tests for billing money_utils module."""

from decimal import Decimal

import pytest
from moneyed import Money

from paysync.billing.config import BillingConfig, CurrencyConfig, set_billing_config
from paysync.billing.money_utils import (
    MoneyHandler,
    create_money,
    format_money,
    money_handler,
    multiply_money,
    quantize_amount,
)


@pytest.mark.unit
class TestMoneyHandler:
    """Test MoneyHandler class."""

    def test_money_handler_initialization_defaults(self):
        handler = MoneyHandler()
        assert handler.default_currency.code == "USD"
        assert handler.default_locale == "en_US"

    def test_default_currency_follows_billing_config(self):
        set_billing_config(BillingConfig(currency=CurrencyConfig(default_currency="EUR")))

        assert money_handler.default_currency.code == "EUR"
        assert create_money("1").currency.code == "EUR"
        assert MoneyHandler().create_money("1").currency.code == "EUR"

    def test_explicit_default_currency_wins_over_config(self):
        set_billing_config(BillingConfig(currency=CurrencyConfig(default_currency="EUR")))

        assert MoneyHandler(default_currency="GBP").create_money("1").currency.code == "GBP"

    def test_explicit_default_currency_is_validated(self):
        with pytest.raises(ValueError, match="Invalid currency code"):
            MoneyHandler(default_currency="INVALID")

    def test_validate_currency_is_case_insensitive(self):
        assert MoneyHandler()._validate_currency("eur").code == "EUR"

    def test_validate_currency_invalid(self):
        with pytest.raises(ValueError) as exc_info:
            MoneyHandler()._validate_currency("INVALID")
        assert "Invalid currency code" in str(exc_info.value)

    def test_invalid_locale_falls_back_to_default(self):
        assert MoneyHandler()._validate_locale("invalid_locale") == "en_US"

    def test_create_money_from_float_keeps_decimal_text(self):
        money = money_handler.create_money(12.3, "USD")

        assert money.amount == Decimal("12.3")
        assert money.currency.code == "USD"

    def test_multiply_money_with_decimal_share(self):
        result = multiply_money(create_money("30.00", "USD"), Decimal("0.5"))

        assert isinstance(result, Money)
        assert result.amount == Decimal("15.000")

    def test_format_money(self):
        assert format_money(create_money("1234.5", "USD")) == "$1,234.50"

    def test_format_money_other_locale(self):
        formatted = format_money(create_money("1234.5", "EUR"), locale="de_DE")

        assert "1.234,50" in formatted
        assert "€" in formatted


@pytest.mark.unit
class TestQuantizeAmount:
    """Test rounding of stored discount amounts."""

    @pytest.mark.parametrize(
        ("amount", "expected"),
        [
            (Decimal("10"), "10.00"),
            (Decimal("3.455"), "3.46"),
            (Decimal("3.454"), "3.45"),
            ("0.005", "0.01"),
            (7, "7.00"),
        ],
    )
    def test_two_places_half_up(self, amount, expected):
        assert str(quantize_amount(amount)) == expected

    def test_explicit_places(self):
        assert quantize_amount(Decimal("1.23456"), places=3) == Decimal("1.235")

    def test_places_come_from_config(self):
        set_billing_config(BillingConfig(currency=CurrencyConfig(currency_decimal_places=0)))

        assert str(quantize_amount(Decimal("2.5"))) == "3"
