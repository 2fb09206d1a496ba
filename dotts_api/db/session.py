from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from dotts_api.core.config import get_settings


def build_engine(database_url: str, timeout_seconds: float = 5.0) -> Engine:
    """Create an engine whose queries and pool checkouts are bounded by timeout_seconds."""
    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }
        return create_engine(
            database_url,
            pool_pre_ping=True,
            pool_timeout=timeout_seconds,
            connect_args=connect_args,
        )
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout_seconds}
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


@lru_cache
def get_engine() -> Engine:
    settings = get_settings()
    return build_engine(settings.database_url, settings.db_timeout_seconds)


@lru_cache
def get_session_factory() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
