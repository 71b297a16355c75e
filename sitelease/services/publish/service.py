"""
PublishRegistrar: records a publish after the hosting collaborator created
the page. Creates the account on first publish and never rewrites an existing
account's expiry (only the expiry ledger does that).
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sitelease.core.errors import QuotaExceeded, StoreFailure
from sitelease.core.policy import QuotaPolicy
from sitelease.models.account import Account
from sitelease.models.deployment import Deployment, DeploymentState
from sitelease.schemas.deployments import DeploymentOut
from sitelease.schemas.publish import PublishResult
from sitelease.services.admin.service import AdminAuthorizer
from sitelease.services.usage.service import UsageCounter
from sitelease.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)


class PublishRegistrar:
    def __init__(
        self,
        db: Session,
        policy: QuotaPolicy,
        authorizer: AdminAuthorizer,
        counter: UsageCounter | None = None,
    ):
        self.db = db
        self.policy = policy
        self.authorizer = authorizer
        self.counter = counter or UsageCounter(db, policy)

    def register(
        self,
        fingerprint: str,
        repo: str,
        homepage: str,
        now: datetime | None = None,
        admin: bool | None = None,
    ) -> PublishResult:
        now = as_utc(now or utcnow())
        if admin is None:
            admin = self.authorizer.is_admin(fingerprint)

        try:
            # Held until commit: concurrent publishes of one account count one at a time.
            self._lock_account(fingerprint)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("publish_lock_failed", extra={"fingerprint": fingerprint})
            raise StoreFailure() from e

        decision = self.counter.check_publish(fingerprint, admin=admin, now=now)
        if not decision.allowed:
            self.db.rollback()
            logger.info(
                "publish_quota_denied",
                extra={"fingerprint": fingerprint, "limit": decision.limit},
            )
            raise QuotaExceeded(decision.limit or "publish")

        try:
            account, created = self._get_or_create_account(fingerprint, now)
            expiry = as_utc(account.expiry)
            deployment = Deployment(
                fingerprint=fingerprint,
                repo=repo,
                homepage=homepage,
                created_at=now,
                expires_at=expiry,
                live=expiry > now,
                state=DeploymentState.CREATED.value,
            )
            self.db.add(deployment)
            self.db.commit()
            self.db.refresh(deployment)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("publish_register_failed", extra={"fingerprint": fingerprint})
            raise StoreFailure() from e

        logger.info(
            "publish_registered",
            extra={
                "fingerprint": fingerprint,
                "deployment_id": deployment.id,
                "new_expiry": expiry.isoformat(),
            },
        )
        return PublishResult(
            deployment=DeploymentOut.model_validate(deployment),
            account_expiry=expiry,
            account_created=created,
        )

    def _lock_account(self, fingerprint: str) -> Account | None:
        return (
            self.db.query(Account)
            .filter(Account.fingerprint == fingerprint)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )

    def _get_or_create_account(self, fingerprint: str, now: datetime) -> tuple[Account, bool]:
        account = self.db.query(Account).filter(Account.fingerprint == fingerprint).one_or_none()
        if account:
            return account, False

        account = Account(
            fingerprint=fingerprint,
            expiry=now + timedelta(days=self.policy.initial_lifetime_days),
            donation_status={"amount": 0, "extendedDays": 0},
            is_admin=False,
            created_at=now,
        )
        self.db.add(account)
        try:
            self.db.flush()
        except IntegrityError:
            # A concurrent first publish inserted the same fingerprint.
            self.db.rollback()
            account = self.db.query(Account).filter(Account.fingerprint == fingerprint).one()
            return account, False
        return account, True
