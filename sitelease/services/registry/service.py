import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sitelease.core.errors import StoreFailure
from sitelease.models.deployment import Deployment
from sitelease.schemas.deployments import DeploymentListing, DeploymentOut
from sitelease.services.admin.service import AdminAuthorizer

logger = logging.getLogger(__name__)


class DeploymentRegistry:
    """Deployments visible to a caller, newest first. No pagination."""

    def __init__(self, db: Session, authorizer: AdminAuthorizer):
        self.db = db
        self.authorizer = authorizer

    def list(
        self,
        caller_fingerprint: str,
        want_all: bool = False,
        admin: bool | None = None,
    ) -> DeploymentListing:
        """
        want_all only widens the scope for admins; everyone else gets their own rows.
        Pass `admin` when the caller's privilege was already resolved upstream.
        """
        if admin is None:
            admin = self.authorizer.is_admin(caller_fingerprint)
        show_all = want_all and admin

        q = self.db.query(Deployment)
        if not show_all:
            q = q.filter(Deployment.fingerprint == caller_fingerprint)
        q = q.order_by(Deployment.created_at.desc())

        try:
            rows = q.all()
        except SQLAlchemyError as e:
            logger.exception("deployments_query_failed", extra={"fingerprint": caller_fingerprint})
            raise StoreFailure() from e

        return DeploymentListing(
            admin=admin,
            scope="all" if show_all else "own",
            sites=[DeploymentOut.model_validate(row) for row in rows],
        )
