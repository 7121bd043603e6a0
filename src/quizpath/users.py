from __future__ import annotations

import hashlib
import secrets
from typing import Any

from .db import connect, now_iso, parse_iso
from .errors import AuthError, UserNotFound, ValidationError
from .models import Role, User, ensure_role
from .store import row_to_stats

MAX_NAME_LENGTH = 100


def _hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _normalize_name(name: str) -> str:
    return " ".join(name.split())


def create_user(name: str, role: Role | str = "user") -> tuple[User, str]:
    """Insert a user and return it with a fresh bearer token (only the hash is stored)."""
    normalized_name = _normalize_name(name or "")
    if not normalized_name:
        raise ValidationError("name must not be empty")
    if len(normalized_name) > MAX_NAME_LENGTH:
        raise ValidationError(f"name must be at most {MAX_NAME_LENGTH} characters")
    try:
        checked_role = ensure_role(str(role))
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    token = secrets.token_urlsafe(32)
    timestamp = now_iso()
    with connect() as conn:
        cursor = conn.execute(
            """
            INSERT INTO users (name, role, session_token_hash, created_at, last_login_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (normalized_name, checked_role, _hash_session_token(token), timestamp, timestamp),
        )
        user_id = int(cursor.lastrowid)
    return get_user(user_id), token


def get_user(user_id: int) -> User:
    with connect() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    if row is None:
        raise UserNotFound(f"User {user_id} not found")
    return _row_to_user(row)


def get_user_by_token(token: str | None) -> User:
    if not token:
        raise AuthError("Missing session token")
    with connect() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE session_token_hash = ?",
            (_hash_session_token(token),),
        ).fetchone()
        if row is None:
            raise AuthError("Invalid session token")
        conn.execute(
            "UPDATE users SET last_login_at = ? WHERE id = ?",
            (now_iso(), int(row["id"])),
        )
    return _row_to_user(row)


def delete_user(user_id: int) -> None:
    """Remove a user; progress and attempts go with it (ON DELETE CASCADE)."""
    with connect() as conn:
        cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        if cursor.rowcount == 0:
            raise UserNotFound(f"User {user_id} not found")


def _row_to_user(row: Any) -> User:
    return User(
        id=int(row["id"]),
        name=str(row["name"]),
        role=ensure_role(str(row["role"])),
        created_at=parse_iso(row["created_at"]),  # type: ignore[arg-type]
        stats=row_to_stats(row),
    )


__all__ = [
    "create_user",
    "delete_user",
    "get_user",
    "get_user_by_token",
]
