"""
Buy Me a Coffee "support" envelope:
{type: "support", data: {object: {amount, currency, fingerprint}}}
"""
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class SupportObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | int | None = None
    amount: Decimal = Field(allow_inf_nan=False)
    currency: StrictStr
    fingerprint: StrictStr

    @field_validator("amount", mode="before")
    @classmethod
    def reject_bool(cls, v: Any) -> Any:
        # bool is an int subclass; True must not read as a $1 donation
        if isinstance(v, bool):
            raise ValueError("amount must be numeric")
        return v

    @field_validator("fingerprint")
    @classmethod
    def strip_fingerprint(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("fingerprint must not be empty")
        return v

    @field_validator("currency")
    @classmethod
    def canonical_currency(cls, v: str) -> str:
        return v.strip().lower()


class SupportData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: SupportObject


class SupportEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | int | None = None
    type: StrictStr
    data: SupportData


class DonationEvent(BaseModel):
    """A verified, validated donation ready for the expiry ledger."""

    event_id: str
    fingerprint: str
    amount: Decimal
    currency: str

    model_config = {"frozen": True}


class WebhookOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    new_expiry: str = Field(alias="newExpiry")
    extended_days: int = Field(alias="extendedDays")
    duplicate: bool = False
