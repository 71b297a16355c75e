"""
Donation webhook verification: HMAC-SHA256 over the raw body, then envelope
validation. Nothing is parsed before the signature matches.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging

from pydantic import ValidationError

from sitelease.core.errors import AuthenticationFailure, ValidationFailure
from sitelease.core.policy import DonationPolicy
from sitelease.schemas.webhooks import DonationEvent, SupportEnvelope

logger = logging.getLogger(__name__)

SUPPORT_EVENT_TYPE = "support"


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def content_event_id(raw_body: bytes) -> str:
    """Fallback event identity when the provider sends no id."""
    return "sha256:" + hashlib.sha256(raw_body).hexdigest()


class WebhookVerifier:
    def __init__(self, secret: str | None, policy: DonationPolicy):
        self.secret = secret or ""
        self.policy = policy

    def authenticate(self, raw_body: bytes, signature: str | None) -> None:
        if not signature or not self.secret:
            raise AuthenticationFailure("Missing signature or secret")
        expected = compute_signature(raw_body, self.secret)
        # Headers arrive latin-1 decoded; compare bytes so non-ASCII input is just a mismatch.
        presented = signature.strip().lower().encode("utf-8", "surrogateescape")
        if not hmac.compare_digest(expected.encode("ascii"), presented):
            raise AuthenticationFailure("Invalid signature")

    def verify(self, raw_body: bytes, signature: str | None) -> DonationEvent:
        self.authenticate(raw_body, signature)

        try:
            body = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            raise ValidationFailure("Invalid JSON") from e

        if not isinstance(body, dict) or body.get("type") != SUPPORT_EVENT_TYPE:
            raise ValidationFailure("Invalid webhook event")

        try:
            envelope = SupportEnvelope.model_validate(body)
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            logger.info("webhook_envelope_invalid", extra={"error": ",".join(fields)})
            raise ValidationFailure("Invalid webhook event") from e

        support = envelope.data.object
        if support.currency != self.policy.currency or support.amount < self.policy.unit_amount:
            raise ValidationFailure(
                f"Minimum ${self.policy.unit_amount} {self.policy.currency.upper()} donation required"
            )
        if support.amount > self.policy.max_amount:
            raise ValidationFailure("Donation amount too large")

        provider_id = envelope.id if envelope.id is not None else support.id
        event_id = f"bmac:{provider_id}" if provider_id is not None else content_event_id(raw_body)

        return DonationEvent(
            event_id=event_id,
            fingerprint=support.fingerprint,
            amount=support.amount,
            currency=support.currency,
        )
