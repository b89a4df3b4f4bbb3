"""
Billing module configuration
"""

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CurrencyConfig(BaseModel):
    """Currency configuration - Single currency support"""

    model_config = ConfigDict()

    default_currency: str = Field("USD", description="Default currency code")
    currency_decimal_places: int = Field(2, description="Number of decimal places")


class SubscriptionConfig(BaseModel):
    """Subscription selection and proration configuration"""

    model_config = ConfigDict()

    days_per_billing_frequency: int = Field(
        30, ge=1, description="Days in one billing frequency unit, used for proration"
    )
    alive_statuses: list[str] = Field(
        default=["Pending", "Active", "Past Due"],
        description="Statuses counted by the strict subscription selector",
    )


def _default_currency_config() -> CurrencyConfig:
    """Create default CurrencyConfig instance"""
    return CurrencyConfig(default_currency="USD", currency_decimal_places=2)


def _default_subscription_config() -> SubscriptionConfig:
    """Create default SubscriptionConfig instance"""
    return SubscriptionConfig(
        days_per_billing_frequency=30,
        alive_statuses=["Pending", "Active", "Past Due"],
    )


class BillingConfig(BaseModel):
    """Main billing configuration"""

    model_config = ConfigDict()

    currency: CurrencyConfig = Field(default_factory=_default_currency_config)
    subscriptions: SubscriptionConfig = Field(default_factory=_default_subscription_config)

    @classmethod
    def from_env(cls) -> "BillingConfig":
        """Create configuration from environment variables"""

        config_dict: dict[str, Any] = {}

        # Currency configuration
        currency_config = CurrencyConfig(
            default_currency=os.getenv("PAYSYNC_DEFAULT_CURRENCY", "USD").upper(),
            currency_decimal_places=int(os.getenv("PAYSYNC_CURRENCY_DECIMAL_PLACES", "2")),
        )
        config_dict["currency"] = currency_config

        # Subscription configuration
        statuses = os.getenv("PAYSYNC_ALIVE_SUBSCRIPTION_STATUSES", "Pending,Active,Past Due")
        subscription_config = SubscriptionConfig(
            days_per_billing_frequency=int(os.getenv("PAYSYNC_DAYS_PER_BILLING_FREQUENCY", "30")),
            alive_statuses=[status.strip() for status in statuses.split(",") if status.strip()],
        )
        config_dict["subscriptions"] = subscription_config

        return cls(**config_dict)


# Global configuration instance
_billing_config: BillingConfig | None = None


def get_billing_config() -> BillingConfig:
    """Get the global billing configuration instance"""
    global _billing_config
    if _billing_config is None:
        _billing_config = BillingConfig.from_env()
    return _billing_config


def set_billing_config(config: BillingConfig) -> None:
    """Set the global billing configuration instance"""
    global _billing_config
    _billing_config = config


def reset_billing_config() -> None:
    """Drop the cached configuration so the next call re-reads the environment"""
    global _billing_config
    _billing_config = None
