import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String

from sitelease.db.base import Base


class DeploymentState(str, enum.Enum):
    CREATED = "created"
    DELETED = "deleted"
    ARCHIVED = "archived"
    ERROR = "error"


class Deployment(Base):
    __tablename__ = "deployments"
    __table_args__ = (
        Index("ix_deployments_fingerprint_created_at", "fingerprint", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    fingerprint = Column(String, ForeignKey("accounts.fingerprint"), nullable=False, index=True)
    repo = Column(String, nullable=False)       # "owner/repo"
    homepage = Column(String, nullable=False)   # pages url
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    # Synced from Account.expiry by the expiry ledger; may lag it otherwise.
    expires_at = Column(DateTime(timezone=True), nullable=True)
    # Serving only when live AND expires_at > now.
    live = Column(Boolean, nullable=False, default=True)
    state = Column(String, nullable=False, default=DeploymentState.CREATED.value)
