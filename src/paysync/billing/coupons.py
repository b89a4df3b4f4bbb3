"""
Coupon catalog entities and their repository.

Coupons live outside the customer aggregate; discounts reference them by id.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from paysync.billing.models import Subscription, ensure_utc
from paysync.billing.money_utils import create_money, multiply_money


def _new_id() -> str:
    return uuid4().hex


class CouponAmount(BaseModel):
    """Coupon worth a fixed amount off each billing cycle."""

    model_config = ConfigDict(validate_assignment=True)

    kind: Literal["CouponAmount"] = "CouponAmount"
    id: str = Field(default_factory=_new_id)
    name: str = Field(description="Display name copied onto discounts")
    amount: Decimal = Field(ge=0, description="Fixed discount amount")
    used_count: int = Field(0, ge=0, description="Confirmed redemptions")
    used_count_max: int = Field(1, ge=0, description="Redemption limit")
    start_at: datetime | None = None
    expire_at: datetime | None = None

    @field_validator("start_at", "expire_at")
    @classmethod
    def validate_window(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    def current_amount(self, subscription: Subscription) -> Decimal:
        return self.amount


class CouponPercent(BaseModel):
    """Coupon worth a percentage of the subscription price."""

    model_config = ConfigDict(validate_assignment=True)

    kind: Literal["CouponPercent"] = "CouponPercent"
    id: str = Field(default_factory=_new_id)
    name: str = Field(description="Display name copied onto discounts")
    percent: Decimal = Field(ge=0, le=100, description="Percentage of the subscription price")
    used_count: int = Field(0, ge=0, description="Confirmed redemptions")
    used_count_max: int = Field(1, ge=0, description="Redemption limit")
    start_at: datetime | None = None
    expire_at: datetime | None = None

    @field_validator("start_at", "expire_at")
    @classmethod
    def validate_window(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    def current_amount(self, subscription: Subscription) -> Decimal:
        price = create_money(subscription.price, subscription.plan.currency)
        return multiply_money(price, self.percent / Decimal(100)).amount


Coupon = Annotated[CouponAmount | CouponPercent, Field(discriminator="kind")]


class CouponRepository(ABC):
    """Storage for coupons, used to resolve discounts and count redemptions."""

    @abstractmethod
    async def get(self, coupon_id: str) -> CouponAmount | CouponPercent | None:
        """Fetch a coupon by id."""
        pass

    @abstractmethod
    async def save(self, coupon: CouponAmount | CouponPercent) -> CouponAmount | CouponPercent:
        """Persist a coupon."""
        pass


class InMemoryCouponRepository(CouponRepository):
    """Dictionary-backed coupon storage."""

    def __init__(self, coupons: list[CouponAmount | CouponPercent] | None = None) -> None:
        self._coupons: dict[str, CouponAmount | CouponPercent] = {
            coupon.id: coupon for coupon in coupons or []
        }

    async def get(self, coupon_id: str) -> CouponAmount | CouponPercent | None:
        return self._coupons.get(coupon_id)

    async def save(self, coupon: CouponAmount | CouponPercent) -> CouponAmount | CouponPercent:
        self._coupons[coupon.id] = coupon
        return coupon
