"""On-demand database backups taken before batch repairs."""

from __future__ import annotations

import logging
import os
import shutil
import sqlite3
import subprocess
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import make_url

from ..database import SQLALCHEMY_DATABASE_URL

LOGGER = logging.getLogger(__name__)

BACKUP_DIR_ENV = "DATABASE_BACKUP_DIR"
PG_DUMP_BIN_ENV = "DATABASE_PG_DUMP_BIN"

DEFAULT_PG_DUMP_BIN = "pg_dump"


class BackupError(RuntimeError):
    """Raised when a backup was requested but could not be written."""


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


def _resolve_backup_directory(fallback: Optional[Path] = None) -> Optional[Path]:
    raw = os.getenv(BACKUP_DIR_ENV)
    if raw:
        path = Path(raw)
    elif fallback is not None:
        path = fallback
    else:
        return None
    path.mkdir(parents=True, exist_ok=True)
    return path


def _sqlite_backup(source: Path, reason: str) -> Path:
    if not source.exists():
        source.parent.mkdir(parents=True, exist_ok=True)
        sqlite3.connect(source).close()

    destination = _resolve_backup_directory(source.parent)
    backup_path = destination / f"{source.name}.{reason}.backup.{_timestamp()}"
    with closing(sqlite3.connect(source)) as src, closing(sqlite3.connect(backup_path)) as dst:
        src.backup(dst)
    LOGGER.info("Database backup created at %s", backup_path)
    return backup_path


def _postgres_backup(database_url: str, reason: str) -> Path:
    destination = _resolve_backup_directory()
    if destination is None:
        raise BackupError("DATABASE_BACKUP_DIR must be configured for PostgreSQL backups")
    backup_path = destination / f"{reason}_backup_{_timestamp()}.dump"
    pg_dump_bin = os.getenv(PG_DUMP_BIN_ENV, DEFAULT_PG_DUMP_BIN)
    if shutil.which(pg_dump_bin) is None:
        raise BackupError(f"{pg_dump_bin} is not available on PATH")
    command = [
        pg_dump_bin,
        "--format=custom",
        "--no-owner",
        "--no-privileges",
        "--file",
        str(backup_path),
        database_url,
    ]
    LOGGER.info("Running PostgreSQL backup using %s", pg_dump_bin)
    try:
        subprocess.run(command, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise BackupError(f"pg_dump failed: {exc}") from exc
    LOGGER.info("Database backup created at %s", backup_path)
    return backup_path


def create_backup(reason: str = "manual", database_url: Optional[str] = None) -> Optional[Path]:
    """Back up the database and return the backup path.

    Returns ``None`` when the database cannot be copied (in-memory SQLite or
    an unsupported backend). Raises ``BackupError`` when a supported backup
    was attempted and failed.
    """

    url = make_url(database_url or SQLALCHEMY_DATABASE_URL)
    if url.drivername.startswith("sqlite"):
        if url.database in (None, "", ":memory:"):
            LOGGER.warning("Skipping backup of an in-memory SQLite database")
            return None
        try:
            return _sqlite_backup(Path(url.database), reason)
        except (OSError, sqlite3.Error) as exc:
            raise BackupError(f"SQLite backup failed: {exc}") from exc
    if url.drivername.startswith("postgresql"):
        libpq_url = url.set(drivername="postgresql")
        return _postgres_backup(libpq_url.render_as_string(hide_password=False), reason)

    LOGGER.warning("Backups are only implemented for SQLite or PostgreSQL databases")
    return None
