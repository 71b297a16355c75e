import logging
from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sitelease.models.account import Account

logger = logging.getLogger(__name__)


class AdminAuthorizer:
    """
    Resolves elevated privilege for a fingerprint.

    Order: the account's is_admin flag first, then the operator allow-list.
    A failed store lookup is fail-closed: non-admin, allow-list not consulted.
    """

    def __init__(self, db: Session, admin_fingerprints: Iterable[str] = ()):
        self.db = db
        self.allow_list = frozenset(fp.strip() for fp in admin_fingerprints if fp and fp.strip())

    def is_admin(self, fingerprint: str | None) -> bool:
        fingerprint = (fingerprint or "").strip()
        if not fingerprint:
            return False

        try:
            flag = (
                self.db.query(Account.is_admin)
                .filter(Account.fingerprint == fingerprint)
                .scalar()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "admin_lookup_failed",
                extra={"fingerprint": fingerprint, "error": type(e).__name__},
            )
            return False

        if flag is True:
            return True
        return fingerprint in self.allow_list
