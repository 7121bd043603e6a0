from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from . import config
from .errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = config.DEFAULT_DB_PATH
DB_PATH: Path = config.DB_PATH
BUSY_TIMEOUT_SECONDS = 10.0


@contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    """Yield a connection, committing on success and surfacing failures as StorageError."""

    connection = _open_connection()
    try:
        yield connection
        connection.commit()
    except sqlite3.Error as exc:
        connection.rollback()
        logger.exception("sqlite operation failed on %s", DB_PATH)
        raise StorageError(f"storage unavailable: {exc}") from exc
    except BaseException:
        connection.rollback()
        raise
    finally:
        connection.close()


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Like connect(), but takes the write lock up front with BEGIN IMMEDIATE.

    Everything executed inside the block commits together or not at all.
    """

    with connect() as connection:
        connection.execute("BEGIN IMMEDIATE")
        yield connection


def _open_connection() -> sqlite3.Connection:
    try:
        _ensure_data_dir()
        connection = sqlite3.connect(DB_PATH, timeout=BUSY_TIMEOUT_SECONDS)
    except (OSError, sqlite3.Error) as exc:
        logger.exception("cannot open database at %s", DB_PATH)
        raise StorageError(f"cannot open database: {exc}") from exc
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection


def _ensure_data_dir() -> None:
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def now_iso(value: datetime | None = None) -> str:
    """Return the timestamp (current time by default) as ISO 8601, seconds precision.

    Naive values are taken as UTC; aware values keep their offset so the
    calendar day they fall on survives a round trip.
    """

    moment = value or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat(timespec="seconds")


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    moment = datetime.fromisoformat(str(value))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def utc_iso(value: datetime) -> str:
    """UTC-normalized form, used for columns compared lexically in SQL."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def init_db() -> None:
    """Initialise the database schema if tables are missing."""

    with connect() as connection:
        _create_tables(connection)


def _create_tables(connection: sqlite3.Connection) -> None:
    _drop_if_schema_mismatch(
        connection,
        "progress",
        required={"user_id", "topic_id", "mastery", "attempts", "corrects", "ema_alpha", "version"},
    )

    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            session_token_hash TEXT UNIQUE,
            total_attempts INTEGER NOT NULL DEFAULT 0,
            total_correct INTEGER NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_study_date TEXT,
            created_at TEXT NOT NULL,
            last_login_at TEXT,
            CHECK(role IN ('user','admin')),
            CHECK(total_correct <= total_attempts)
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS progress (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            topic_id TEXT NOT NULL,
            subject_name TEXT NOT NULL DEFAULT '',
            topic_title TEXT NOT NULL DEFAULT '',
            mastery REAL NOT NULL DEFAULT 0.2,
            attempts INTEGER NOT NULL DEFAULT 0,
            corrects INTEGER NOT NULL DEFAULT 0,
            last_review TEXT,
            ema_alpha REAL NOT NULL DEFAULT 0.3,
            version INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL,
            UNIQUE(user_id, topic_id),
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
            CHECK(mastery >= 0.0 AND mastery <= 1.0),
            CHECK(corrects <= attempts)
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS attempts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            topic_id TEXT NOT NULL,
            question_id TEXT NOT NULL,
            user_answer TEXT NOT NULL,
            correct_answer TEXT NOT NULL,
            is_correct INTEGER NOT NULL,
            time_taken REAL,
            timestamp TEXT NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_attempts_user_time ON attempts(user_id, timestamp)"
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_attempts_topic_correct ON attempts(topic_id, is_correct)"
    )


def _drop_if_schema_mismatch(connection: sqlite3.Connection, table: str, *, required: set[str]) -> None:
    if table not in _existing_tables(connection):
        return
    columns = _get_columns(connection, table)
    if not required.issubset(columns):
        logger.warning("dropping table %s with outdated schema", table)
        connection.execute(f"DROP TABLE {table}")


def _existing_tables(connection: sqlite3.Connection) -> set[str]:
    rows = connection.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {str(row["name"]) for row in rows}


def _get_columns(connection: sqlite3.Connection, table: str) -> set[str]:
    rows = connection.execute(f"PRAGMA table_info({table})").fetchall()
    return {str(row["name"]) for row in rows}


__all__ = [
    "connect",
    "DB_PATH",
    "DEFAULT_DB_PATH",
    "init_db",
    "now_iso",
    "parse_iso",
    "transaction",
    "utc_iso",
]
