from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from sitelease.schemas.deployments import DeploymentOut


class PublishIn(BaseModel):
    """Recorded after the hosting collaborator has created the page."""

    fingerprint: str | None = None
    repo: str = Field(min_length=3, max_length=200)
    homepage: str = Field(min_length=8, max_length=500)

    @field_validator("repo")
    @classmethod
    def validate_repo(cls, v: str) -> str:
        v = v.strip()
        owner, sep, name = v.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError("repo must look like owner/name")
        return v

    @field_validator("homepage")
    @classmethod
    def validate_homepage(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("https://"):
            raise ValueError("homepage must be an https URL")
        return v


class PublishResult(BaseModel):
    deployment: DeploymentOut
    account_expiry: datetime
    account_created: bool = False


class PublishOut(BaseModel):
    ok: bool = True
    deployment: DeploymentOut
    expiry: str
