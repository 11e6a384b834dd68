from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session as SessionBase, declarative_base, sessionmaker

from .config import settings

DATABASE_URL = settings.database_url


def _normalize_engine_url(url: str) -> tuple[str, dict[str, object]]:
    connect_args: dict[str, object] = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        db_path = url.replace("sqlite:///", "")
        if db_path and db_path != ":memory:":
            # Ensure directory exists for SQLite db
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url, connect_args


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _):  # type: ignore[unused-variable]
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()


engine_url, connect_args = _normalize_engine_url(DATABASE_URL)
engine = create_engine(engine_url, connect_args=connect_args, future=True)
enable_sqlite_foreign_keys(engine)


class ProjectSession(SessionBase):
    """Session that hides soft-deleted rows once the events are installed."""


SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
    class_=ProjectSession,
)

Base = declarative_base()


@contextmanager
def session_scope() -> Generator[ProjectSession, None, None]:
    session: ProjectSession = SessionLocal()  # type: ignore[assignment]
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[ProjectSession, None, None]:
    with session_scope() as session:
        yield session


def init_db() -> None:
    from . import orm_models  # noqa: F401
    from .soft_delete import setup_soft_delete_events

    setup_soft_delete_events(ProjectSession)

    Base.metadata.create_all(bind=engine)
