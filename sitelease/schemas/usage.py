from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UsageCounts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    publishes_today: int = Field(alias="publishesToday")
    published_this_month: int = Field(alias="publishedThisMonth")
    live_sites: int = Field(alias="liveSites")


class UsageLimits(BaseModel):
    daily: int
    monthly: int
    live: int


class UsageReport(BaseModel):
    """What the usage counter computes for one fingerprint at one instant."""

    fingerprint: str
    counts: UsageCounts
    limits: UsageLimits
    expiry_soon: bool
    next_reset_at: datetime

    model_config = {"frozen": True}


class QuotaDecision(BaseModel):
    """Which limit (if any) blocks another publish."""

    allowed: bool
    limit: str | None = None  # daily | monthly | live

    model_config = {"frozen": True}


class UsageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    admin: bool
    fingerprint: str
    counts: UsageCounts
    limits: UsageLimits
    next_reset_at: str = Field(alias="nextResetAt")
    expiry_soon: bool = Field(alias="expirySoon")
