from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from sitelease.utils.clock import as_utc, isoformat_z


class DeploymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    fingerprint: str
    repo: str
    homepage: str
    state: str
    live: bool
    created_at: datetime
    expires_at: datetime | None = None

    @field_validator("created_at", "expires_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @field_serializer("created_at", "expires_at")
    def _iso(self, value: datetime | None) -> str | None:
        return isoformat_z(value) if value is not None else None


class DeploymentListing(BaseModel):
    """Registry result: whether the caller resolved as admin, and the rows it may see."""

    admin: bool
    scope: str  # own | all
    sites: list[DeploymentOut]


class DeploymentsOut(BaseModel):
    ok: bool = True
    admin: bool
    sites: list[DeploymentOut] = Field(default_factory=list)
