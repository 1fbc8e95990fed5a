"""Database engine, sessions and declarative base."""
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from apps.backend.config import get_settings


def get_database_url() -> str:
    """DATABASE_URL wins; otherwise built from the POSTGRES_* settings."""
    s = get_settings()
    if s.database_url:
        return s.database_url
    return (
        f"postgresql://{s.postgres_user}:{s.postgres_password}@"
        f"{s.postgres_host}:{s.postgres_port}/{s.postgres_db}"
    )


@lru_cache
def get_engine() -> Engine:
    s = get_settings()
    return create_engine(
        get_database_url(),
        pool_pre_ping=True,
        pool_size=s.db_pool_size,
        max_overflow=s.db_max_overflow,
    )


def get_test_engine() -> Engine:
    return create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


class Base(DeclarativeBase):
    pass


# models declare JSONB; sqlite test engines store it as JSON
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(_element, _compiler, **_kw):
    return "JSON"


def get_session_factory(engine=None):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine or get_engine())
