"""
Ledger of applied donation events. event_id is the provider's id or a content
hash of the raw body; the primary key makes a redelivery a no-op.
"""
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Numeric, String

from sitelease.db.base import Base


class ProcessedWebhookEvent(Base):
    __tablename__ = "processed_webhook_events"

    event_id = Column(String, primary_key=True)
    fingerprint = Column(String, nullable=False, index=True)
    # Unconstrained: stores exactly what was added to donation_status.
    amount = Column(Numeric, nullable=False)
    extended_days = Column(BigInteger, nullable=False)
    new_expiry = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
