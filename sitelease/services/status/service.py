"""
Liveness probe for a published page. Only https URLs on the hosting domain are
fetched, so the endpoint cannot be pointed at internal hosts.
"""
import logging
import time
from urllib.parse import urlsplit

import httpx

from sitelease.core.errors import ValidationFailure

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, max-age=0, must-revalidate",
    "Pragma": "no-cache",
}


class PageStatusProbe:
    def __init__(self, timeout: float, host_suffix: str = ".github.io", client: httpx.Client | None = None):
        self.timeout = timeout
        self.host_suffix = host_suffix
        self._client = client

    def validate_url(self, url: str | None) -> str:
        if not url:
            raise ValidationFailure("Missing url param")
        try:
            parts = urlsplit(url)
        except ValueError as e:
            raise ValidationFailure("Invalid url param") from e
        if parts.scheme != "https":
            raise ValidationFailure("Only https scheme allowed")
        host = (parts.hostname or "").lower()
        if not host.endswith(self.host_suffix):
            raise ValidationFailure("Host not allowed")
        return url

    def probe(self, url: str | None) -> dict:
        target = self.validate_url(url)
        sep = "&" if "?" in target else "?"
        busted = f"{target}{sep}_={int(time.time() * 1000)}"
        try:
            if self._client is not None:
                resp = self._client.get(busted, headers=NO_CACHE_HEADERS)
            else:
                with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                    resp = client.get(busted, headers=NO_CACHE_HEADERS)
        except httpx.HTTPError as e:
            logger.info("page_probe_failed", extra={"path": target, "error": type(e).__name__})
            return {"live": False, "status": 0}
        return {"live": resp.is_success, "status": resp.status_code}
