from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from proposal_builder.config import settings
from proposal_builder.models import Base


class StoreConfigurationError(RuntimeError):
    pass


def _engine_connect_args(db_url: str) -> dict:
    if db_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    db_url = (settings.PROPOSALS_DB_URL or "").strip()
    if not db_url:
        raise StoreConfigurationError("PROPOSALS_DB_URL is not configured")
    return create_engine(db_url, future=True, connect_args=_engine_connect_args(db_url))


@lru_cache(maxsize=1)
def get_sessionmaker() -> sessionmaker[Session]:
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, future=True)


def SessionLocal() -> Session:
    return get_sessionmaker()()


def init_db() -> None:
    Base.metadata.create_all(bind=get_engine())


def get_session():
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
