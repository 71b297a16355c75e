"""
Fingerprint sessions: a server-signed, time-limited token binding a fingerprint.
Uses itsdangerous for tamper-proof tokens (FastAPI Sessions pattern).
The fingerprint stays the correlation key; the token is what proves it.
"""
import logging

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from sitelease.core.errors import AuthenticationFailure

logger = logging.getLogger(__name__)

SESSION_SALT = "fingerprint-session"


class SessionIssuer:
    def __init__(self, secret: str, ttl_seconds: int) -> None:
        self.serializer = URLSafeTimedSerializer(secret, salt=SESSION_SALT)
        self.ttl_seconds = ttl_seconds

    def issue(self, fingerprint: str) -> str:
        return self.serializer.dumps({"fp": fingerprint})

    def verify(self, token: str) -> str:
        """Return the bound fingerprint or raise AuthenticationFailure."""
        try:
            data = self.serializer.loads(token, max_age=self.ttl_seconds)
        except SignatureExpired as e:
            raise AuthenticationFailure("Session expired") from e
        except BadSignature as e:
            raise AuthenticationFailure("Invalid session") from e

        fingerprint = data.get("fp") if isinstance(data, dict) else None
        if not isinstance(fingerprint, str) or not fingerprint.strip():
            raise AuthenticationFailure("Invalid session")
        return fingerprint
