"""
Publish bookkeeping. The hosting collaborator creates the page; this records
the deployment against the caller's account, gated by the usage quota.
"""
from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from sitelease.api.deps import (
    get_authorizer,
    get_quota_policy,
    get_session_issuer,
    get_settings,
    resolve_admin,
    resolve_identity,
    bearer_token,
)
from sitelease.core.config import Settings
from sitelease.core.errors import QuotaExceeded, StoreFailure
from sitelease.core.policy import QuotaPolicy
from sitelease.db.session import get_db
from sitelease.schemas.publish import PublishIn, PublishOut
from sitelease.services.admin.service import AdminAuthorizer
from sitelease.services.publish.service import PublishRegistrar
from sitelease.services.sessions.service import SessionIssuer
from sitelease.services.status.service import PageStatusProbe
from sitelease.utils.clock import isoformat_z
from sitelease.utils.metrics import publishes_total


router = APIRouter(prefix="/api/publish", tags=["publish"])


@router.post("", response_model=PublishOut, status_code=status.HTTP_201_CREATED)
def register_publish(
    body: PublishIn,
    x_fingerprint: str | None = Header(default=None),
    x_session_token: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    policy: QuotaPolicy = Depends(get_quota_policy),
    issuer: SessionIssuer = Depends(get_session_issuer),
    authorizer: AdminAuthorizer = Depends(get_authorizer),
) -> PublishOut:
    identity = resolve_identity(
        issuer,
        bearer_token(authorization) or x_session_token,
        x_fingerprint,
        None,
        body.fingerprint,
    )
    admin = resolve_admin(identity, authorizer, settings)
    registrar = PublishRegistrar(db, policy, authorizer)
    try:
        result = registrar.register(identity.fingerprint, body.repo, body.homepage, admin=admin)
    except QuotaExceeded as exc:
        publishes_total.labels(outcome=f"quota_{exc.limit}").inc()
        raise
    except StoreFailure:
        publishes_total.labels(outcome="store_error").inc()
        raise
    publishes_total.labels(outcome="registered").inc()
    return PublishOut(deployment=result.deployment, expiry=isoformat_z(result.account_expiry))


@router.get("/status")
def publish_status(
    response: Response,
    url: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Whether a published page currently answers. https + hosting domain only."""
    probe = PageStatusProbe(settings.http_client_timeout, settings.status_probe_host_suffix)
    result = probe.probe(url)
    response.headers["Cache-Control"] = "no-store"
    return result
