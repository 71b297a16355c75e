"""
ExpiryLedger: the only writer of Account.expiry, Account.donation_status and
the post-donation Deployment.expires_at / live pair.

One donation is one transaction: lock the account row, re-read it, update the
account, fan the new expiry out to every deployment, revive them if the new
expiry is in the future, and record the event id. Nothing is committed unless
all of it succeeds.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sitelease.core.errors import NotFound, StoreFailure, ValidationFailure
from sitelease.core.policy import DonationPolicy
from sitelease.models.account import Account
from sitelease.models.deployment import Deployment
from sitelease.models.processed_webhook_event import ProcessedWebhookEvent
from sitelease.schemas.ledger import DonationResult
from sitelease.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)


def _as_number(value: Decimal) -> int | float:
    """JSON-friendly number for donation_status."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


class ExpiryLedger:
    def __init__(self, db: Session, policy: DonationPolicy):
        self.db = db
        self.policy = policy

    def compute_new_expiry(self, current_expiry: datetime, extended_days: int, now: datetime) -> datetime:
        """current + extension, capped at now + max_extension_days."""
        current = as_utc(current_expiry)
        cap = as_utc(now) + timedelta(days=self.policy.max_extension_days)
        # Compare in seconds first: a large extension does not fit in a timedelta.
        if extended_days * 86400 >= (cap - current).total_seconds():
            return cap
        return current + timedelta(days=extended_days)

    def apply_donation(
        self,
        fingerprint: str,
        amount: Decimal,
        event_id: str | None = None,
        now: datetime | None = None,
    ) -> DonationResult:
        now = as_utc(now or utcnow())
        amount = Decimal(amount)
        if not amount.is_finite() or amount > self.policy.max_amount:
            raise ValidationFailure("Donation amount too large")

        try:
            result = self._apply(fingerprint, amount, event_id, now)
            self.db.commit()
        except NotFound:
            self.db.rollback()
            raise
        except IntegrityError:
            # Lost the race against a concurrent delivery of the same event.
            self.db.rollback()
            if event_id is None:
                logger.exception("donation_integrity_error", extra={"fingerprint": fingerprint})
                raise StoreFailure()
            return self._duplicate_result(fingerprint, amount, event_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(
                "donation_apply_failed",
                extra={"fingerprint": fingerprint, "event_id": event_id},
            )
            raise StoreFailure() from e

        if result.duplicate:
            logger.info(
                "donation_duplicate_ignored",
                extra={"fingerprint": fingerprint, "event_id": event_id},
            )
        else:
            logger.info(
                "donation_applied",
                extra={
                    "fingerprint": fingerprint,
                    "event_id": event_id,
                    "amount": str(amount),
                    "extended_days": result.extended_days,
                    "new_expiry": result.new_expiry.isoformat(),
                },
            )
        return result

    # ------------------------------------------------------------------
    # Internals (run inside the caller's transaction)
    # ------------------------------------------------------------------

    def _apply(
        self, fingerprint: str, amount: Decimal, event_id: str | None, now: datetime
    ) -> DonationResult:
        account = (
            self.db.query(Account)
            .filter(Account.fingerprint == fingerprint)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if account is None:
            raise NotFound("Portfolio not found")

        if event_id is not None:
            seen = self.db.get(ProcessedWebhookEvent, event_id)
            if seen is not None:
                return DonationResult(
                    fingerprint=fingerprint,
                    amount=amount,
                    extended_days=seen.extended_days,
                    new_expiry=as_utc(seen.new_expiry),
                    duplicate=True,
                )

        extended_days = self.policy.extension_days(amount)
        new_expiry = self.compute_new_expiry(account.expiry or now, extended_days, now)

        current = account.donation_status or {}
        account.donation_status = {
            **current,
            "amount": _as_number(Decimal(str(current.get("amount", 0) or 0)) + amount),
            "extendedDays": int(current.get("extendedDays", 0) or 0) + extended_days,
        }
        account.expiry = new_expiry
        self.db.add(account)

        values: dict = {"expires_at": new_expiry}
        revived = new_expiry > now
        if revived:
            # Revival does not recreate the hosted artifact; that is the host's job.
            values["live"] = True
        res = self.db.execute(
            update(Deployment)
            .where(Deployment.fingerprint == fingerprint)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if event_id is not None:
            self.db.add(
                ProcessedWebhookEvent(
                    event_id=event_id,
                    fingerprint=fingerprint,
                    amount=amount,
                    extended_days=extended_days,
                    new_expiry=new_expiry,
                    created_at=now,
                )
            )
        self.db.flush()

        return DonationResult(
            fingerprint=fingerprint,
            amount=amount,
            extended_days=extended_days,
            new_expiry=new_expiry,
            deployments_updated=res.rowcount or 0,
            revived=revived,
        )

    def _duplicate_result(self, fingerprint: str, amount: Decimal, event_id: str) -> DonationResult:
        try:
            seen = self.db.get(ProcessedWebhookEvent, event_id)
        except SQLAlchemyError as e:
            logger.exception("donation_duplicate_lookup_failed", extra={"event_id": event_id})
            raise StoreFailure() from e
        if seen is None:
            raise StoreFailure()
        logger.info(
            "donation_duplicate_ignored",
            extra={"fingerprint": fingerprint, "event_id": event_id},
        )
        return DonationResult(
            fingerprint=fingerprint,
            amount=amount,
            extended_days=seen.extended_days,
            new_expiry=as_utc(seen.new_expiry),
            duplicate=True,
        )
