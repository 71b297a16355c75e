import os
import sys
from datetime import datetime, timezone
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BMAC_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("SESSION_SECRET", "test-session-secret-0123456789")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sitelease.core.config import Settings
from sitelease.db.session import init_db

# Mid-month, mid-day: keeps rolling windows away from calendar edges.
NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def settings():
    return Settings(
        database_url="sqlite://",
        bmac_webhook_secret="test-webhook-secret",
        session_secret="test-session-secret-0123456789",
        admin_fingerprints="ops-fp-1, ops-fp-2",
    )


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def make_account(db):
    from sitelease.models.account import Account

    def _make(fingerprint="abc", expiry=None, is_admin=False, donation_status=None):
        account = Account(
            fingerprint=fingerprint,
            expiry=expiry or NOW,
            is_admin=is_admin,
            donation_status=donation_status or {"amount": 0, "extendedDays": 0},
            created_at=NOW,
        )
        db.add(account)
        db.commit()
        return account

    return _make


@pytest.fixture()
def make_deployment(db):
    from sitelease.models.deployment import Deployment

    def _make(fingerprint="abc", created_at=None, expires_at=None, live=True, state="created", repo=None):
        created_at = created_at or NOW
        deployment = Deployment(
            fingerprint=fingerprint,
            repo=repo or f"owner/{fingerprint}-{int(created_at.timestamp())}",
            homepage=f"https://owner.github.io/{fingerprint}/",
            created_at=created_at,
            expires_at=expires_at,
            live=live,
            state=state,
        )
        db.add(deployment)
        db.commit()
        return deployment

    return _make
