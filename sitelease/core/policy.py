"""
Typed policy objects handed to services at construction.
Built from a Settings instance so services never read process-wide config.
"""
from __future__ import annotations

from decimal import Decimal, localcontext

from pydantic import BaseModel, Field

from sitelease.core.config import Settings


class QuotaPolicy(BaseModel):
    """Publish limits and the windows the usage counter reports on."""

    daily_limit: int = Field(1, ge=0)
    monthly_limit: int = Field(2, ge=0)
    live_limit: int = Field(2, ge=0)
    expiry_soon_days: int = Field(7, ge=0)
    initial_lifetime_days: int = Field(21, ge=1)

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings) -> "QuotaPolicy":
        return cls(
            daily_limit=settings.daily_publish_limit,
            monthly_limit=settings.monthly_publish_limit,
            live_limit=settings.live_sites_limit,
            expiry_soon_days=settings.expiry_soon_days,
            initial_lifetime_days=settings.initial_lifetime_days,
        )


class DonationPolicy(BaseModel):
    """How a contribution converts into extra days of validity."""

    currency: str = "usd"
    unit_amount: Decimal = Field(Decimal("5"), gt=0)
    unit_days: int = Field(30, ge=0)
    max_extension_days: int = Field(180, ge=0)
    max_amount: Decimal = Field(Decimal("1000000000000"), gt=0)

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings) -> "DonationPolicy":
        return cls(
            currency=settings.donation_currency,
            unit_amount=Decimal(settings.donation_unit_amount),
            unit_days=settings.donation_unit_days,
            max_extension_days=settings.max_extension_days,
            max_amount=Decimal(settings.donation_max_amount),
        )

    def extension_days(self, amount: Decimal) -> int:
        """Every complete unit buys unit_days; remainders are dropped."""
        if amount < self.unit_amount:
            return 0
        with localcontext() as ctx:
            # Enough digits for the whole-unit quotient of any finite amount.
            ctx.prec = max(ctx.prec, amount.adjusted() - self.unit_amount.adjusted() + 2)
            units = amount // self.unit_amount
        return int(units) * self.unit_days
