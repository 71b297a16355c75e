from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from sitelease.api.deps import Identity, get_authorizer, get_identity, get_settings, resolve_admin
from sitelease.core.config import Settings
from sitelease.db.session import get_db
from sitelease.schemas.deployments import DeploymentsOut
from sitelease.services.admin.service import AdminAuthorizer
from sitelease.services.registry.service import DeploymentRegistry


router = APIRouter(prefix="/api", tags=["deployments"])


@router.get("/deployments", response_model=DeploymentsOut)
def list_deployments(
    response: Response,
    all: str | None = Query(default=None),
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    authorizer: AdminAuthorizer = Depends(get_authorizer),
) -> DeploymentsOut:
    """`all=1` widens the listing to every account, for admins only."""
    admin = resolve_admin(identity, authorizer, settings)
    listing = DeploymentRegistry(db, authorizer).list(
        identity.fingerprint,
        want_all=all == "1",
        admin=admin,
    )
    response.headers["Cache-Control"] = "no-store"
    return DeploymentsOut(admin=listing.admin, sites=listing.sites)
