from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.schema import MetaData

from loopcast.infra.settings import settings

# Deterministic constraint/index names
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def get_engine(db_url: str | None = None) -> Engine:
    """Create an engine for ``db_url`` (defaults to ``settings.database_url``).

    SQLite connections are shared across threads: the orchestrator's watcher
    threads and the evaluator both write back through the store. An in-memory
    SQLite URL is pinned to a single connection so every session sees the same
    database.
    """
    chosen_url = db_url or settings.database_url

    kwargs: dict[str, object] = {"echo": settings.echo_sql, "future": True}
    if chosen_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in chosen_url or chosen_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    return create_engine(chosen_url, **kwargs)


def get_sessionmaker(engine: Engine) -> sessionmaker:
    """Get a session factory bound to ``engine``."""
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


def create_schema(engine: Engine) -> None:
    """Create all Loopcast tables that do not exist yet."""
    # Import for side effect: registers the mapped tables on Base.metadata
    from loopcast.domain import entities  # noqa: F401

    Base.metadata.create_all(engine)
