"""
Request-scoped dependencies: settings, services and caller identity.
"""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, Query, Request
from sqlalchemy.orm import Session

from sitelease.core.config import Settings
from sitelease.core.errors import ValidationFailure
from sitelease.core.policy import DonationPolicy, QuotaPolicy
from sitelease.db.session import get_db
from sitelease.services.admin.service import AdminAuthorizer
from sitelease.services.sessions.service import SessionIssuer


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_quota_policy(settings: Settings = Depends(get_settings)) -> QuotaPolicy:
    return QuotaPolicy.from_settings(settings)


def get_donation_policy(settings: Settings = Depends(get_settings)) -> DonationPolicy:
    return DonationPolicy.from_settings(settings)


def get_session_issuer(settings: Settings = Depends(get_settings)) -> SessionIssuer:
    return SessionIssuer(settings.session_secret, settings.session_ttl_seconds)


def get_authorizer(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AdminAuthorizer:
    return AdminAuthorizer(db, settings.admin_fingerprints_set)


async def get_raw_body(request: Request) -> bytes:
    """Raw request bytes; signatures are computed over these, never over re-serialized JSON."""
    return await request.body()


@dataclass(frozen=True)
class Identity:
    fingerprint: str
    verified: bool  # True when proven by a session token


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_identity(
    issuer: SessionIssuer,
    token: str | None,
    header_fp: str | None,
    query_fp: str | None,
    body_fp: str | None = None,
) -> Identity:
    """
    A presented token must verify and wins. Otherwise the fingerprint header,
    query parameter or body field is taken as an unverified identity.
    """
    if token:
        return Identity(fingerprint=issuer.verify(token), verified=True)
    raw = (header_fp or query_fp or body_fp or "").strip()
    if not raw:
        raise ValidationFailure("Missing fingerprint")
    return Identity(fingerprint=raw, verified=False)


def get_identity(
    fp: str | None = Query(default=None),
    x_fingerprint: str | None = Header(default=None),
    x_session_token: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> Identity:
    token = bearer_token(authorization) or x_session_token
    return resolve_identity(issuer, token, x_fingerprint, fp)


def resolve_admin(identity: Identity, authorizer: AdminAuthorizer, settings: Settings) -> bool:
    """Admin scope needs a proven identity unless sessions are not required."""
    if settings.admin_requires_session and not identity.verified:
        return False
    return authorizer.is_admin(identity.fingerprint)
