from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal

Role = Literal["user", "admin"]

ROLES: tuple[Role, ...] = ("user", "admin")

DEFAULT_MASTERY = 0.2
DEFAULT_EMA_ALPHA = 0.3


def _iso(value: datetime | None) -> str | None:
    return value.isoformat(timespec="seconds") if value is not None else None


@dataclass(slots=True)
class Progress:
    """Per-user, per-topic mastery state."""

    user_id: int
    topic_id: str
    subject_name: str = ""
    topic_title: str = ""
    mastery: float = DEFAULT_MASTERY
    attempts: int = 0
    corrects: int = 0
    last_review: datetime | None = None
    ema_alpha: float = DEFAULT_EMA_ALPHA
    version: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "topic_id": self.topic_id,
            "subject_name": self.subject_name,
            "topic_title": self.topic_title,
            "mastery": self.mastery,
            "attempts": self.attempts,
            "corrects": self.corrects,
            "last_review": _iso(self.last_review),
            "ema_alpha": self.ema_alpha,
        }


@dataclass(frozen=True, slots=True)
class Attempt:
    """One answer submission. Never updated once stored."""

    id: int
    user_id: int
    topic_id: str
    question_id: str
    user_answer: str
    correct_answer: str
    is_correct: bool
    time_taken: float | None
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "topic_id": self.topic_id,
            "question_id": self.question_id,
            "user_answer": self.user_answer,
            "correct_answer": self.correct_answer,
            "is_correct": self.is_correct,
            "time_taken": self.time_taken,
            "timestamp": _iso(self.timestamp),
        }


@dataclass(slots=True)
class UserStats:
    total_attempts: int = 0
    total_correct: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_study_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_attempts": self.total_attempts,
            "total_correct": self.total_correct,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_study_date": _iso(self.last_study_date),
        }


@dataclass(slots=True)
class User:
    id: int
    name: str
    role: Role
    created_at: datetime
    stats: UserStats = field(default_factory=UserStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "created_at": _iso(self.created_at),
            "stats": self.stats.to_dict(),
        }


@dataclass(slots=True)
class AnswerResult:
    is_correct: bool
    correct_answer: str
    progress: Progress
    user_stats: UserStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_correct": self.is_correct,
            "correct_answer": self.correct_answer,
            "progress": {
                "mastery": self.progress.mastery,
                "attempts": self.progress.attempts,
                "corrects": self.progress.corrects,
            },
            "user_stats": self.user_stats.to_dict(),
        }


@dataclass(slots=True)
class DailyPerformance:
    day: date
    total: int
    correct: int

    @property
    def accuracy(self) -> float:
        return self.correct / self.total * 100 if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "total": self.total,
            "correct": self.correct,
            "accuracy": self.accuracy,
        }


@dataclass(slots=True)
class LeaderboardEntry:
    rank: int
    user_id: int
    name: str
    total_attempts: int
    correct_answers: int
    accuracy: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "user_id": self.user_id,
            "name": self.name,
            "total_attempts": self.total_attempts,
            "correct_answers": self.correct_answers,
            "accuracy": self.accuracy,
        }


def ensure_role(value: str) -> Role:
    normalized = value.strip().lower()
    if normalized not in ROLES:
        raise ValueError(f"Unsupported role: {value}")
    return normalized  # type: ignore[return-value]


__all__ = [
    "AnswerResult",
    "Attempt",
    "DailyPerformance",
    "DEFAULT_EMA_ALPHA",
    "DEFAULT_MASTERY",
    "ensure_role",
    "LeaderboardEntry",
    "Progress",
    "Role",
    "ROLES",
    "User",
    "UserStats",
]
