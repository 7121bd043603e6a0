"""Persistence for attempts, progress records and user stats."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Iterator

from .db import connect, now_iso, parse_iso, utc_iso
from .errors import ConflictError, UserNotFound
from .models import Attempt, DailyPerformance, Progress, UserStats


@contextmanager
def _using(conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
    """Reuse the caller's connection (and transaction) or open a fresh one."""
    if conn is not None:
        yield conn
        return
    with connect() as fresh:
        yield fresh


# ── Attempts ─────────────────────────────────────────────────────────────────


def append_attempt(
    *,
    user_id: int,
    topic_id: str,
    question_id: str,
    user_answer: str,
    correct_answer: str,
    is_correct: bool,
    time_taken: float | None,
    timestamp: datetime,
    conn: sqlite3.Connection | None = None,
) -> Attempt:
    with _using(conn) as connection:
        cursor = connection.execute(
            """
            INSERT INTO attempts (
                user_id, topic_id, question_id, user_answer, correct_answer,
                is_correct, time_taken, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id, topic_id, question_id, user_answer, correct_answer,
                int(is_correct), time_taken, utc_iso(timestamp),
            ),
        )
        attempt_id = int(cursor.lastrowid)
    return Attempt(
        id=attempt_id,
        user_id=user_id,
        topic_id=topic_id,
        question_id=question_id,
        user_answer=user_answer,
        correct_answer=correct_answer,
        is_correct=is_correct,
        time_taken=time_taken,
        timestamp=timestamp,
    )


def recent_attempts(user_id: int, limit: int = 100) -> list[Attempt]:
    """Newest first."""
    with connect() as conn:
        rows = conn.execute(
            "SELECT * FROM attempts WHERE user_id = ? ORDER BY timestamp DESC, id DESC LIMIT ?",
            (user_id, limit),
        ).fetchall()
    return [_row_to_attempt(row) for row in rows]


def topic_attempts(user_id: int, topic_id: str) -> list[Attempt]:
    with connect() as conn:
        rows = conn.execute(
            """
            SELECT * FROM attempts
            WHERE user_id = ? AND topic_id = ?
            ORDER BY timestamp DESC, id DESC
            """,
            (user_id, topic_id),
        ).fetchall()
    return [_row_to_attempt(row) for row in rows]


def count_attempts(user_id: int, *, correct_only: bool = False, since: datetime | None = None) -> int:
    clauses = ["user_id = ?"]
    params: list[Any] = [user_id]
    if correct_only:
        clauses.append("is_correct = 1")
    if since is not None:
        clauses.append("timestamp >= ?")
        params.append(utc_iso(since))
    with connect() as conn:
        row = conn.execute(
            f"SELECT COUNT(*) FROM attempts WHERE {' AND '.join(clauses)}",
            params,
        ).fetchone()
    return int(row[0])


def daily_performance(user_id: int, since: datetime) -> list[DailyPerformance]:
    """Per-day totals (UTC calendar days) since ``since``, oldest day first."""
    with connect() as conn:
        rows = conn.execute(
            """
            SELECT substr(timestamp, 1, 10) AS day,
                   COUNT(*) AS total,
                   COALESCE(SUM(is_correct), 0) AS correct
            FROM attempts
            WHERE user_id = ? AND timestamp >= ?
            GROUP BY day
            ORDER BY day ASC
            """,
            (user_id, utc_iso(since)),
        ).fetchall()
    return [
        DailyPerformance(day=date.fromisoformat(str(row["day"])), total=int(row["total"]), correct=int(row["correct"]))
        for row in rows
    ]


def leaderboard_rows(since: datetime, *, min_attempts: int, limit: int) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute(
            """
            SELECT a.user_id AS user_id,
                   COALESCE(u.name, 'Unknown') AS name,
                   COUNT(*) AS total_attempts,
                   COALESCE(SUM(a.is_correct), 0) AS correct_answers,
                   CAST(COALESCE(SUM(a.is_correct), 0) AS REAL) * 100.0 / COUNT(*) AS accuracy
            FROM attempts a
            LEFT JOIN users u ON u.id = a.user_id
            WHERE a.timestamp >= ?
            GROUP BY a.user_id
            HAVING COUNT(*) >= ?
            ORDER BY accuracy DESC, total_attempts DESC
            LIMIT ?
            """,
            (utc_iso(since), min_attempts, limit),
        ).fetchall()
    return [dict(row) for row in rows]


def _row_to_attempt(row: Any) -> Attempt:
    return Attempt(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        topic_id=str(row["topic_id"]),
        question_id=str(row["question_id"]),
        user_answer=str(row["user_answer"]),
        correct_answer=str(row["correct_answer"]),
        is_correct=bool(row["is_correct"]),
        time_taken=float(row["time_taken"]) if row["time_taken"] is not None else None,
        timestamp=parse_iso(row["timestamp"]),  # type: ignore[arg-type]
    )


# ── Progress ─────────────────────────────────────────────────────────────────


def get_progress(user_id: int, topic_id: str, *, conn: sqlite3.Connection | None = None) -> Progress | None:
    with _using(conn) as connection:
        row = connection.execute(
            "SELECT * FROM progress WHERE user_id = ? AND topic_id = ?",
            (user_id, topic_id),
        ).fetchone()
    if row is None:
        return None
    return _row_to_progress(row)


def list_progress(user_id: int) -> list[Progress]:
    """All of a user's progress records, highest mastery first."""
    with connect() as conn:
        rows = conn.execute(
            "SELECT * FROM progress WHERE user_id = ? ORDER BY mastery DESC, id ASC",
            (user_id,),
        ).fetchall()
    return [_row_to_progress(row) for row in rows]


def count_topics_studied(user_id: int) -> int:
    with connect() as conn:
        row = conn.execute(
            "SELECT COUNT(*) FROM progress WHERE user_id = ? AND attempts >= 1",
            (user_id,),
        ).fetchone()
    return int(row[0])


def upsert_progress(progress: Progress, *, conn: sqlite3.Connection | None = None) -> Progress:
    """Write ``progress`` if nobody else has since the caller read it.

    ``version`` is the value the caller read (0 for a record that did not
    exist). Raises ConflictError when another writer got there first.
    """
    timestamp = now_iso()
    last_review = utc_iso(progress.last_review) if progress.last_review is not None else None
    with _using(conn) as connection:
        if progress.version == 0:
            cursor = connection.execute(
                """
                INSERT INTO progress (
                    user_id, topic_id, subject_name, topic_title, mastery, attempts,
                    corrects, last_review, ema_alpha, version, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                ON CONFLICT(user_id, topic_id) DO NOTHING
                """,
                (
                    progress.user_id, progress.topic_id, progress.subject_name,
                    progress.topic_title, progress.mastery, progress.attempts,
                    progress.corrects, last_review, progress.ema_alpha, timestamp,
                ),
            )
            if cursor.rowcount == 0:
                raise ConflictError(
                    f"progress for user {progress.user_id} topic '{progress.topic_id}' was created concurrently"
                )
        else:
            cursor = connection.execute(
                """
                UPDATE progress
                SET mastery = ?, attempts = ?, corrects = ?, last_review = ?,
                    ema_alpha = ?, version = version + 1, updated_at = ?
                WHERE user_id = ? AND topic_id = ? AND version = ?
                """,
                (
                    progress.mastery, progress.attempts, progress.corrects, last_review,
                    progress.ema_alpha, timestamp,
                    progress.user_id, progress.topic_id, progress.version,
                ),
            )
            if cursor.rowcount == 0:
                raise ConflictError(
                    f"progress for user {progress.user_id} topic '{progress.topic_id}' changed since version {progress.version}"
                )
    return replace(progress, version=progress.version + 1)


def delete_progress(user_id: int, topic_id: str) -> bool:
    with connect() as conn:
        cursor = conn.execute(
            "DELETE FROM progress WHERE user_id = ? AND topic_id = ?",
            (user_id, topic_id),
        )
        return cursor.rowcount > 0


def _row_to_progress(row: Any) -> Progress:
    return Progress(
        user_id=int(row["user_id"]),
        topic_id=str(row["topic_id"]),
        subject_name=str(row["subject_name"]),
        topic_title=str(row["topic_title"]),
        mastery=float(row["mastery"]),
        attempts=int(row["attempts"]),
        corrects=int(row["corrects"]),
        last_review=parse_iso(row["last_review"]),
        ema_alpha=float(row["ema_alpha"]),
        version=int(row["version"]),
    )


# ── User stats ───────────────────────────────────────────────────────────────


def get_stats(user_id: int, *, conn: sqlite3.Connection | None = None) -> UserStats:
    with _using(conn) as connection:
        row = connection.execute(
            """
            SELECT total_attempts, total_correct, current_streak, longest_streak, last_study_date
            FROM users WHERE id = ?
            """,
            (user_id,),
        ).fetchone()
    if row is None:
        raise UserNotFound(f"User {user_id} not found")
    return row_to_stats(row)


def update_stats(user_id: int, stats: UserStats, *, conn: sqlite3.Connection | None = None) -> None:
    last_study = now_iso(stats.last_study_date) if stats.last_study_date is not None else None
    with _using(conn) as connection:
        cursor = connection.execute(
            """
            UPDATE users
            SET total_attempts = ?, total_correct = ?, current_streak = ?,
                longest_streak = ?, last_study_date = ?
            WHERE id = ?
            """,
            (
                stats.total_attempts, stats.total_correct, stats.current_streak,
                stats.longest_streak, last_study, user_id,
            ),
        )
        if cursor.rowcount == 0:
            raise UserNotFound(f"User {user_id} not found")


def row_to_stats(row: Any) -> UserStats:
    return UserStats(
        total_attempts=int(row["total_attempts"]),
        total_correct=int(row["total_correct"]),
        current_streak=int(row["current_streak"]),
        longest_streak=int(row["longest_streak"]),
        last_study_date=parse_iso(row["last_study_date"]),
    )


__all__ = [
    "append_attempt",
    "count_attempts",
    "count_topics_studied",
    "daily_performance",
    "delete_progress",
    "get_progress",
    "get_stats",
    "leaderboard_rows",
    "list_progress",
    "recent_attempts",
    "row_to_stats",
    "topic_attempts",
    "update_stats",
    "upsert_progress",
]
