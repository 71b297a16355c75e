from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from sitelease.api.deps import get_session_issuer, get_settings
from sitelease.core.config import Settings
from sitelease.core.errors import RateLimited
from sitelease.services.sessions.rate_limit import check_session_rate_limit, get_client_ip
from sitelease.services.sessions.service import SessionIssuer
from sitelease.utils.metrics import sessions_issued_total


router = APIRouter(prefix="/api", tags=["sessions"])


class SessionRequest(BaseModel):
    fingerprint: str = Field(min_length=1, max_length=256)


class SessionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    token: str
    expires_in: int = Field(alias="expiresIn")


@router.post("/session", response_model=SessionOut)
def issue_session(
    request: Request,
    body: SessionRequest,
    settings: Settings = Depends(get_settings),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> SessionOut:
    """
    Exchange a fingerprint for a signed session token.
    Rate limited per client IP.
    """
    client_ip = get_client_ip(request, settings)
    if not check_session_rate_limit(client_ip, settings):
        raise RateLimited()

    token = issuer.issue(body.fingerprint.strip())
    sessions_issued_total.inc()
    return SessionOut(token=token, expires_in=settings.session_ttl_seconds)
