"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Secrets have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated origins. Empty = default list in code.
    cors_origins: str = ""
    # Trusted proxy IPs (comma-separated). Used for X-Forwarded-For in production.
    trusted_proxy_ips: str = ""

    # ===========================================
    # DATABASE
    # ===========================================
    database_url: str  # Required, no default
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_connect_timeout: int = 5
    db_statement_timeout_ms: int = 5000
    db_auto_create: bool = False

    # ===========================================
    # REDIS (session issuance rate limit)
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"

    # ===========================================
    # DONATION WEBHOOK (Buy Me a Coffee)
    # ===========================================
    bmac_webhook_secret: str  # Required, no default
    donation_currency: str = "usd"
    donation_unit_amount: int = 5  # every full unit buys donation_unit_days
    donation_unit_days: int = 30
    max_extension_days: int = 180  # cap measured from "now", not from prior expiry
    donation_max_amount: int = 1_000_000_000_000  # larger amounts are rejected as malformed

    # ===========================================
    # PUBLISH QUOTA
    # ===========================================
    daily_publish_limit: int = 1
    monthly_publish_limit: int = 2
    live_sites_limit: int = 2
    initial_lifetime_days: int = 21
    expiry_soon_days: int = 7

    # ===========================================
    # ADMIN
    # ===========================================
    # Operator allow-list, comma-separated fingerprints.
    admin_fingerprints: str = ""
    # Admin scope only for identities proven by a session token.
    admin_requires_session: bool = True

    # ===========================================
    # FINGERPRINT SESSIONS
    # ===========================================
    session_secret: str  # Required, no default
    session_ttl_seconds: int = 30 * 24 * 3600
    session_rate_limit_attempts: int = 20
    session_rate_limit_window_seconds: int = 900  # 15 min

    # ===========================================
    # OUTBOUND HTTP
    # ===========================================
    http_client_timeout: float = 10.0
    status_probe_host_suffix: str = ".github.io"

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("donation_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: str) -> str:
        """Ensure session secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("session_secret must be at least 16 characters")
        if v in ("changeme", "secret", "password", "admin"):
            raise ValueError("session_secret is too weak, please change it")
        return v

    @field_validator("bmac_webhook_secret")
    @classmethod
    def validate_webhook_secret(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("bmac_webhook_secret must not be empty")
        return v

    @property
    def admin_fingerprints_set(self) -> frozenset[str]:
        """Get admin allow-list as a set."""
        return frozenset(fp.strip() for fp in self.admin_fingerprints.split(",") if fp.strip())

    @property
    def trusted_proxy_ips_set(self) -> set[str]:
        """Get trusted proxy IPs as a set."""
        return {ip.strip() for ip in self.trusted_proxy_ips.split(",") if ip.strip()}

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
