"""
Error taxonomy shared by services and the HTTP layer.
Services raise; routes turn the error into the endpoint's envelope.
`message` is safe to show to callers, store details never go there.
"""
from __future__ import annotations


class SiteleaseError(Exception):
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationFailure(SiteleaseError):
    status_code = 401
    default_message = "Invalid signature"


class ValidationFailure(SiteleaseError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(SiteleaseError):
    status_code = 404
    default_message = "Not found"


class QuotaExceeded(SiteleaseError):
    status_code = 429
    default_message = "Publish limit reached"

    def __init__(self, limit: str, message: str | None = None) -> None:
        self.limit = limit
        super().__init__(message or f"{limit.capitalize()} publish limit reached")


class RateLimited(SiteleaseError):
    status_code = 429
    default_message = "Too many requests. Try again later."


class StoreFailure(SiteleaseError):
    status_code = 500
    default_message = "Database error"
