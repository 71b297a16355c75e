from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from sitelease.api.deps import (
    Identity,
    get_authorizer,
    get_identity,
    get_quota_policy,
    get_settings,
    resolve_admin,
)
from sitelease.core.config import Settings
from sitelease.core.policy import QuotaPolicy
from sitelease.db.session import get_db
from sitelease.schemas.usage import UsageOut
from sitelease.services.admin.service import AdminAuthorizer
from sitelease.services.usage.service import UsageCounter
from sitelease.utils.clock import isoformat_z


router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/usage", response_model=UsageOut)
def get_usage(
    response: Response,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    policy: QuotaPolicy = Depends(get_quota_policy),
    authorizer: AdminAuthorizer = Depends(get_authorizer),
) -> UsageOut:
    admin = resolve_admin(identity, authorizer, settings)
    report = UsageCounter(db, policy).usage(identity.fingerprint)
    response.headers["Cache-Control"] = "no-store"
    return UsageOut(
        admin=admin,
        fingerprint=report.fingerprint,
        counts=report.counts,
        limits=report.limits,
        next_reset_at=isoformat_z(report.next_reset_at),
        expiry_soon=report.expiry_soon,
    )
