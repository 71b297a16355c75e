"""
UsageCounter: rolling publish counts and live-site counts for a fingerprint.

Windows are rolling (24h back, calendar month to date); next_reset_at is
informational only. The counter reports, the publish registrar enforces.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sitelease.core.errors import StoreFailure
from sitelease.core.policy import QuotaPolicy
from sitelease.models.deployment import Deployment
from sitelease.schemas.usage import QuotaDecision, UsageCounts, UsageLimits, UsageReport
from sitelease.utils.clock import (
    as_utc,
    first_of_next_utc_month,
    start_of_utc_month,
    utcnow,
)

logger = logging.getLogger(__name__)


class UsageCounter:
    def __init__(self, db: Session, policy: QuotaPolicy):
        self.db = db
        self.policy = policy

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------

    def _count(self, *criteria) -> int:
        return (
            self.db.query(func.count(Deployment.id))
            .filter(*criteria)
            .scalar()
            or 0
        )

    def usage(self, fingerprint: str, now: datetime | None = None) -> UsageReport:
        now = as_utc(now or utcnow())
        day_ago = now - timedelta(hours=24)
        month_start = start_of_utc_month(now)
        soon = now + timedelta(days=self.policy.expiry_soon_days)

        owned = Deployment.fingerprint == fingerprint
        live = (Deployment.live.is_(True), Deployment.expires_at > now)

        try:
            publishes_today = self._count(owned, Deployment.created_at > day_ago)
            published_this_month = self._count(owned, Deployment.created_at >= month_start)
            live_sites = self._count(owned, *live)
            expiring = self._count(owned, *live, Deployment.expires_at <= soon)
        except SQLAlchemyError as e:
            logger.exception("usage_query_failed", extra={"fingerprint": fingerprint})
            raise StoreFailure() from e

        return UsageReport(
            fingerprint=fingerprint,
            counts=UsageCounts(
                publishes_today=publishes_today,
                published_this_month=published_this_month,
                live_sites=live_sites,
            ),
            limits=UsageLimits(
                daily=self.policy.daily_limit,
                monthly=self.policy.monthly_limit,
                live=self.policy.live_limit,
            ),
            expiry_soon=expiring > 0,
            next_reset_at=first_of_next_utc_month(now),
        )

    # ------------------------------------------------------------------
    # Publish gate
    # ------------------------------------------------------------------

    def check_publish(
        self, fingerprint: str, admin: bool = False, now: datetime | None = None
    ) -> QuotaDecision:
        """Admins are exempt. Otherwise the first limit reached, in daily/monthly/live order."""
        if admin:
            return QuotaDecision(allowed=True)

        report = self.usage(fingerprint, now=now)
        counts = report.counts
        if counts.publishes_today >= self.policy.daily_limit:
            return QuotaDecision(allowed=False, limit="daily")
        if counts.published_this_month >= self.policy.monthly_limit:
            return QuotaDecision(allowed=False, limit="monthly")
        if counts.live_sites >= self.policy.live_limit:
            return QuotaDecision(allowed=False, limit="live")
        return QuotaDecision(allowed=True)
