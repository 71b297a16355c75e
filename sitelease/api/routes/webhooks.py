"""
Buy Me a Coffee donation webhook. The signature is checked over the raw body
before anything is parsed; a verified event goes to the expiry ledger.
"""
import logging

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from sitelease.api.deps import get_donation_policy, get_raw_body, get_settings
from sitelease.core.config import Settings
from sitelease.core.errors import (
    AuthenticationFailure,
    NotFound,
    SiteleaseError,
    StoreFailure,
    ValidationFailure,
)
from sitelease.core.policy import DonationPolicy
from sitelease.db.session import get_db
from sitelease.schemas.webhooks import WebhookOut
from sitelease.services.ledger.service import ExpiryLedger
from sitelease.services.webhooks.verifier import WebhookVerifier
from sitelease.utils.clock import isoformat_z
from sitelease.utils.metrics import donations_extended_days_total, webhook_events_total

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhooks"])

OUTCOMES = {
    AuthenticationFailure: "unauthenticated",
    ValidationFailure: "invalid",
    NotFound: "not_found",
    StoreFailure: "store_error",
}


def _outcome(exc: SiteleaseError) -> str:
    for cls, name in OUTCOMES.items():
        if isinstance(exc, cls):
            return name
    return "error"


@router.post("/bmac-webhook", response_model=WebhookOut)
def bmac_webhook(
    raw_body: bytes = Depends(get_raw_body),
    x_bmac_signature: str | None = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    policy: DonationPolicy = Depends(get_donation_policy),
):
    verifier = WebhookVerifier(settings.bmac_webhook_secret, policy)
    ledger = ExpiryLedger(db, policy)
    try:
        event = verifier.verify(raw_body, x_bmac_signature)
        result = ledger.apply_donation(event.fingerprint, event.amount, event_id=event.event_id)
    except SiteleaseError as exc:
        outcome = _outcome(exc)
        webhook_events_total.labels(outcome=outcome).inc()
        logger.warning("webhook_rejected", extra={"reason": outcome, "error": exc.message})
        return JSONResponse({"success": False, "error": exc.message}, status_code=exc.status_code)

    if result.duplicate:
        webhook_events_total.labels(outcome="duplicate").inc()
    else:
        webhook_events_total.labels(outcome="applied").inc()
        donations_extended_days_total.inc(result.extended_days)

    return WebhookOut(
        new_expiry=isoformat_z(result.new_expiry),
        extended_days=result.extended_days,
        duplicate=result.duplicate,
    )
