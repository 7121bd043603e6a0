"""Review-priority ranking over a user's topics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Sequence

from .models import DEFAULT_MASTERY, Attempt, Progress
from .question_bank import TopicInfo

NEVER_REVIEWED_DAYS = 999.0
RECENCY_WINDOW_DAYS = 30.0
RECENCY_WEIGHT = 0.5
RECENCY_CAP = 2.0

RECENT_SAMPLE = 5
STRUGGLING_ACCURACY = 0.4
STRUGGLING_BONUS = 0.3

WEAK_MASTERY = 0.5
WEAK_MIN_ATTEMPTS = 3
REVIEW_MASTERY = 0.5
REVIEW_AFTER = timedelta(days=7)
SIBLING_LIMIT = 5

_SECONDS_PER_DAY = 86_400


@dataclass(frozen=True, slots=True)
class Recommendation:
    topic_id: str
    title: str
    subject_name: str
    mastery: float
    score: float
    days_since_last_review: int
    recent_performance: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "title": self.title,
            "subject_name": self.subject_name,
            "mastery": self.mastery,
            "score": self.score,
            "days_since_last_review": self.days_since_last_review,
            "recent_performance": self.recent_performance,
        }


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_since(last_review: datetime | None, now: datetime) -> float:
    if last_review is None:
        return NEVER_REVIEWED_DAYS
    return (_utc(now) - _utc(last_review)).total_seconds() / _SECONDS_PER_DAY


def recency_factor(days: float) -> float:
    """1 for a topic reviewed just now, rising linearly to 2 at 60+ days."""
    return 1 + RECENCY_WEIGHT * min(days / RECENCY_WINDOW_DAYS, RECENCY_CAP)


def recent_record(topic_id: str, recent_attempts: Iterable[Attempt]) -> tuple[int, int]:
    """(correct, total) over the newest attempts on ``topic_id``, at most five."""
    correct = 0
    total = 0
    for attempt in recent_attempts:
        if attempt.topic_id != topic_id:
            continue
        total += 1
        correct += 1 if attempt.is_correct else 0
        if total == RECENT_SAMPLE:
            break
    return correct, total


def struggling_bonus(correct: int, total: int) -> float:
    if total > 0 and correct / total < STRUGGLING_ACCURACY:
        return STRUGGLING_BONUS
    return 0.0


def score_topic(
    topic: TopicInfo,
    progress: Progress | None,
    recent_attempts: Sequence[Attempt],
    now: datetime,
) -> Recommendation:
    mastery = progress.mastery if progress is not None else DEFAULT_MASTERY
    last_review = progress.last_review if progress is not None else None

    days = days_since(last_review, now)
    base_score = (1 - mastery) * recency_factor(days)
    correct, total = recent_record(topic.topic_id, recent_attempts)

    return Recommendation(
        topic_id=topic.topic_id,
        title=topic.title,
        subject_name=topic.subject_name,
        mastery=mastery,
        score=base_score + struggling_bonus(correct, total),
        days_since_last_review=round(days),
        recent_performance=(correct / total) * 100 if total > 0 else None,
    )


def recommend(
    all_topics: Sequence[TopicInfo],
    progress_by_topic: Mapping[str, Progress],
    recent_attempts: Sequence[Attempt],
    n: int = 3,
    *,
    now: datetime | None = None,
) -> list[Recommendation]:
    """Top ``n`` topics by review priority.

    ``recent_attempts`` must be newest first. Ties keep the order of
    ``all_topics`` (``sorted`` is stable).
    """
    if n <= 0:
        return []
    moment = now or datetime.now(timezone.utc)
    scored = [
        score_topic(topic, progress_by_topic.get(topic.topic_id), recent_attempts, moment)
        for topic in all_topics
    ]
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[:n]


def weak_areas(progress: Iterable[Progress]) -> list[Progress]:
    candidates = [
        item for item in progress
        if item.mastery < WEAK_MASTERY and item.attempts >= WEAK_MIN_ATTEMPTS
    ]
    candidates.sort(key=lambda item: item.mastery)
    return candidates[:SIBLING_LIMIT]


def ready_for_review(progress: Iterable[Progress], *, now: datetime | None = None) -> list[Progress]:
    cutoff = _utc(now or datetime.now(timezone.utc)) - REVIEW_AFTER
    candidates = [
        item for item in progress
        if item.mastery >= REVIEW_MASTERY
        and item.last_review is not None
        and _utc(item.last_review) < cutoff
    ]
    candidates.sort(key=lambda item: _utc(item.last_review))  # type: ignore[arg-type]
    return candidates[:SIBLING_LIMIT]


__all__ = [
    "days_since",
    "NEVER_REVIEWED_DAYS",
    "ready_for_review",
    "recency_factor",
    "recent_record",
    "recommend",
    "Recommendation",
    "score_topic",
    "struggling_bonus",
    "weak_areas",
]
