from typing import Any

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

from sitelease.core.config import Settings


def engine_options(cfg: Settings) -> dict[str, Any]:
    """Pool and timeout options per dialect; every store call is time-bounded."""
    url = make_url(cfg.database_url)
    if url.get_backend_name() == "sqlite":
        return {"connect_args": {"timeout": cfg.db_connect_timeout, "check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": cfg.db_pool_size,
        "max_overflow": cfg.db_max_overflow,
        "pool_recycle": 1800,  # recycle connections every 30 min (avoid stale)
        "connect_args": {
            "connect_timeout": cfg.db_connect_timeout,
            "options": f"-c statement_timeout={cfg.db_statement_timeout_ms}",
        },
    }


def build_engine(cfg: Settings) -> Engine:
    return create_engine(cfg.database_url, **engine_options(cfg))


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine) -> None:
    """Create tables that do not exist yet (local runs and tests)."""
    from sitelease.db.base import Base
    import sitelease.models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=engine)
