"""
Money and currency utilities using py-moneyed and Babel.

Provides currency handling with proper decimal precision,
locale-aware formatting, and currency validation.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from babel import Locale
from babel.core import UnknownLocaleError
from babel.numbers import format_currency
from moneyed import Currency, Money, get_currency
from moneyed.classes import CurrencyDoesNotExist

from paysync.billing.config import get_billing_config

# Default locale for formatting
DEFAULT_LOCALE = "en_US"


class MoneyHandler:
    """Central handler for money operations with proper error handling."""

    def __init__(
        self, default_currency: str | None = None, default_locale: str = DEFAULT_LOCALE
    ) -> None:
        # None follows the configured billing currency
        self._default_currency_code = default_currency
        if default_currency is not None:
            self._validate_currency(default_currency)
        self.default_locale = self._validate_locale(default_locale)

    @property
    def default_currency(self) -> Currency:
        code = self._default_currency_code or get_billing_config().currency.default_currency
        return self._validate_currency(code)

    def _validate_currency(self, currency_code: str) -> Currency:
        """Validate and return Currency object."""
        try:
            return get_currency(currency_code.upper())
        except CurrencyDoesNotExist:
            raise ValueError(f"Invalid currency code: {currency_code}")

    def _validate_locale(self, locale_code: str) -> str:
        """Validate locale code."""
        try:
            Locale.parse(locale_code)
            return locale_code
        except (UnknownLocaleError, ValueError):
            return DEFAULT_LOCALE

    def create_money(
        self, amount: int | float | Decimal | str, currency: str | None = None
    ) -> Money:
        """Create Money object with proper validation."""
        currency = currency or self.default_currency.code
        validated_currency = self._validate_currency(currency)

        # Convert to Decimal for precision
        if isinstance(amount, str):
            decimal_amount = Decimal(amount)
        else:
            decimal_amount = Decimal(str(amount))

        return Money(amount=decimal_amount, currency=validated_currency)

    def format_money(self, money: Money, locale: str | None = None, **kwargs: Any) -> str:
        """Format Money object with locale-aware formatting."""
        locale = locale or self.default_locale
        validated_locale = self._validate_locale(locale)

        try:
            return format_currency(
                number=money.amount, currency=money.currency.code, locale=validated_locale, **kwargs
            )
        except (TypeError, ValueError):
            # Fallback to simple formatting if locale issues
            return f"{money.currency.code} {money.amount}"

    def multiply_money(self, money: Money, multiplier: int | float | Decimal | str) -> Money:
        """Multiply Money by a number with proper precision."""
        if isinstance(multiplier, str):
            multiplier = Decimal(multiplier)
        elif not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))

        return money * multiplier


# Global instance for convenience
money_handler = MoneyHandler()


# Convenience functions
def create_money(amount: int | float | Decimal | str, currency: str | None = None) -> Money:
    """Create Money object with default handler."""
    return money_handler.create_money(amount, currency)


def format_money(money: Money, locale: str | None = None, **kwargs: Any) -> str:
    """Format Money with default handler."""
    return money_handler.format_money(money, locale, **kwargs)


def multiply_money(money: Money, multiplier: int | float | Decimal | str) -> Money:
    """Multiply Money with default handler."""
    return money_handler.multiply_money(money, multiplier)


def quantize_amount(amount: int | float | Decimal | str, places: int | None = None) -> Decimal:
    """Round an amount half up to the configured number of decimal places."""
    if places is None:
        places = get_billing_config().currency.currency_decimal_places
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


__all__ = [
    "MoneyHandler",
    "money_handler",
    "create_money",
    "format_money",
    "multiply_money",
    "quantize_amount",
]
