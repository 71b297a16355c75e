from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String

from sitelease.db.base import Base, JSONVariant


def _empty_donation_status() -> dict:
    return {"amount": 0, "extendedDays": 0}


class Account(Base):
    __tablename__ = "accounts"

    # Opaque client-side fingerprint; a correlation key, not a credential.
    fingerprint = Column(String, primary_key=True)
    expiry = Column(DateTime(timezone=True), nullable=False)
    # {"amount": number, "extendedDays": int}; only ever increases
    donation_status = Column(JSONVariant, nullable=False, default=_empty_donation_status)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
