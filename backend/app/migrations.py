"""Bring the database schema to the latest Alembic revision."""

from __future__ import annotations

import errno
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine.reflection import Inspector

from .database import SQLALCHEMY_DATABASE_URL, build_engine_kwargs

LOGGER = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent
LOCK_PATH = BACKEND_DIR / ".alembic-migration.lock"
LOCK_TIMEOUT_ENV = "ALEMBIC_MIGRATION_LOCK_TIMEOUT"
DEFAULT_LOCK_TIMEOUT = 30.0
LOCK_POLL_INTERVAL = 0.25

if os.name == "posix":
    import fcntl

    def _try_lock(handle) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock(handle) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

else:  # pragma: no cover - windows
    import msvcrt

    def _try_lock(handle) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)

    def _unlock(handle) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)


# Tables created by each revision; a schema built without Alembic is stamped
# with the newest revision whose tables are all present.
SCHEMA_FINGERPRINTS: Sequence[tuple[str, Callable[[Inspector], bool]]] = (
    (
        "20251018_0001",
        lambda inspector: all(
            inspector.has_table(name) for name in ("users", "cycles", "records", "record_payments")
        ),
    ),
)


def _lock_timeout() -> float:
    raw = os.getenv(LOCK_TIMEOUT_ENV)
    if not raw:
        return DEFAULT_LOCK_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-numeric %s=%s", LOCK_TIMEOUT_ENV, raw)
        return DEFAULT_LOCK_TIMEOUT
    if value <= 0:
        LOGGER.warning("Ignoring non-positive %s=%s", LOCK_TIMEOUT_ENV, raw)
        return DEFAULT_LOCK_TIMEOUT
    return value


def _lock_is_held_elsewhere(error: OSError) -> bool:
    if isinstance(error, BlockingIOError):
        return True
    return error.errno in {errno.EACCES, errno.EAGAIN, errno.EBUSY} or getattr(
        error, "winerror", None
    ) in {32, 33}


@contextmanager
def migration_lock(path: Path = LOCK_PATH, *, timeout: Optional[float] = None) -> Iterator[None]:
    """Hold an exclusive file lock so only one process upgrades the schema."""

    deadline = time.monotonic() + (timeout if timeout is not None else _lock_timeout())
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a+") as handle:
        while True:
            try:
                _try_lock(handle)
                break
            except OSError as error:
                if not _lock_is_held_elsewhere(error):
                    raise
                if time.monotonic() >= deadline:
                    raise TimeoutError(f"Timed out waiting for the schema lock at {path}") from error
                time.sleep(LOCK_POLL_INTERVAL)
        LOGGER.debug("Holding schema migration lock at %s", path)
        try:
            yield
        finally:
            try:
                _unlock(handle)
            except OSError:
                LOGGER.debug("Schema migration lock at %s was already released", path)


def determine_existing_revision(inspector: Inspector) -> Optional[str]:
    detected = None
    for revision, matches in SCHEMA_FINGERPRINTS:
        if matches(inspector):
            detected = revision
    return detected


def build_alembic_config(database_url: Optional[str] = None) -> Config:
    config = Config(str(BACKEND_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    config.set_main_option(
        "sqlalchemy.url", (database_url or SQLALCHEMY_DATABASE_URL).replace("%", "%%")
    )
    config.attributes["configure_logger"] = False
    return config


def run_database_migrations(database_url: Optional[str] = None) -> None:
    """Upgrade the schema to the latest Alembic revision.

    A database whose tables were created without Alembic (for example by
    ``Base.metadata.create_all``) is stamped with the matching revision first,
    so existing rows are kept.
    """

    url = database_url or os.getenv("DATABASE_URL") or SQLALCHEMY_DATABASE_URL
    config = build_alembic_config(url)

    with migration_lock():
        engine = create_engine(url, connect_args=build_engine_kwargs(url).get("connect_args", {}))
        try:
            inspector = inspect(engine)
            tracked = inspector.has_table("alembic_version")
            detected = None if tracked else determine_existing_revision(inspector)
        finally:
            engine.dispose()

        if detected is not None:
            LOGGER.info("Schema matches revision %s without Alembic metadata; stamping it", detected)
            command.stamp(config, detected)
            if detected == ScriptDirectory.from_config(config).get_current_head():
                return

        LOGGER.info("Upgrading database schema to head")
        command.upgrade(config, "head")
