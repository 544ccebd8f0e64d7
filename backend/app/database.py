"""Engine, session factory and declarative base for the salon cycles backend."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

DEFAULT_SQLITE_PATH = Path(__file__).resolve().parent.parent / "salon.db"

REQUIRE_POSTGRES_ENV = "REQUIRE_POSTGRES"

# env var -> default, applied to non-SQLite engines only
POOL_SETTINGS = {
    "pool_size": ("DATABASE_POOL_SIZE", 5),
    "max_overflow": ("DATABASE_MAX_OVERFLOW", 10),
    "pool_timeout": ("DATABASE_POOL_TIMEOUT", 30),
    "pool_recycle": ("DATABASE_POOL_RECYCLE", 1800),
}
CONNECT_TIMEOUT_ENV = "DATABASE_CONNECT_TIMEOUT"
DEFAULT_CONNECT_TIMEOUT = 10


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return value


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _resolve_database_url(raw_url: str | None) -> str:
    postgres_only = _env_flag(REQUIRE_POSTGRES_ENV)
    if not raw_url:
        if postgres_only:
            raise RuntimeError(
                "DATABASE_URL must point at PostgreSQL when REQUIRE_POSTGRES=1"
            )
        DEFAULT_SQLITE_PATH.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{DEFAULT_SQLITE_PATH.as_posix()}"

    url = make_url(raw_url)
    if url.drivername.startswith("sqlite"):
        if postgres_only:
            raise RuntimeError("SQLite is not permitted when REQUIRE_POSTGRES=1")
        if url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return url.render_as_string(hide_password=False)


def build_engine_kwargs(database_url: str) -> Dict[str, Any]:
    """Return the ``create_engine`` options used for ``database_url``."""

    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    options: Dict[str, Any] = {"pool_pre_ping": True}
    for option, (env_name, default) in POOL_SETTINGS.items():
        options[option] = _env_int(env_name, default)
    options["connect_args"] = {
        "connect_timeout": _env_int(CONNECT_TIMEOUT_ENV, DEFAULT_CONNECT_TIMEOUT)
    }
    return options


def enable_sqlite_foreign_keys(target_engine: Engine) -> None:
    """Turn on ``PRAGMA foreign_keys`` for every new SQLite connection."""

    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record):  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SQLALCHEMY_DATABASE_URL = _resolve_database_url(os.getenv("DATABASE_URL"))

engine = create_engine(SQLALCHEMY_DATABASE_URL, **build_engine_kwargs(SQLALCHEMY_DATABASE_URL))
enable_sqlite_foreign_keys(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a session that is closed after the request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Commit on success and roll back on error, for scripts outside FastAPI."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
