"""Answer submission, progress queries and recommendations for one user at a time."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from . import config
from .db import transaction
from .errors import ConflictError, QuestionNotFound, TopicNotFound, ValidationError
from .mastery import apply_attempt, new_progress
from .models import AnswerResult, LeaderboardEntry, Progress, UserStats
from .notifications import PROGRESS_UPDATED, LoggingNotificationSink, NotificationSink, publish_safely
from .question_bank import QuestionBank, answers_match
from .locks import KeyedLock
from .recommendations import Recommendation, ready_for_review, recommend, weak_areas
from .store import (
    append_attempt,
    count_attempts,
    count_topics_studied,
    daily_performance,
    delete_progress,
    get_progress,
    get_stats,
    leaderboard_rows,
    list_progress,
    recent_attempts,
    topic_attempts,
    update_stats,
    upsert_progress,
)
from .streak import update_streak

logger = logging.getLogger(__name__)

MY_PROGRESS_RECENT = 10
STATS_WINDOW = timedelta(days=7)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class QuizService:
    def __init__(
        self,
        bank: QuestionBank,
        *,
        sink: NotificationSink | None = None,
        clock: Callable[[], datetime] = _local_now,
        recent_window: int = config.RECENT_ATTEMPT_WINDOW,
    ) -> None:
        self.bank = bank
        self.sink: NotificationSink = sink or LoggingNotificationSink()
        self._clock = clock
        self._recent_window = recent_window
        self._locks = KeyedLock()

    # ── Submission ───────────────────────────────────────────────────────────

    def submit_answer(
        self,
        user_id: int,
        topic_id: str,
        question_id: str,
        user_answer: str,
        time_taken: float | None = None,
    ) -> AnswerResult:
        """Grade an answer and fold it into the user's progress and stats.

        The attempt, the progress record and the user's stats are written in
        one transaction. Submissions for the same user are applied one at a
        time, in arrival order, so the EMA sees them in sequence.
        """
        if user_answer is None or not str(user_answer).strip():
            raise ValidationError("user_answer must not be empty")
        if time_taken is not None and time_taken < 0:
            raise ValidationError("time_taken must be >= 0")

        try:
            topic = self.bank.lookup_topic(topic_id)
        except TopicNotFound as exc:
            raise QuestionNotFound(str(exc)) from exc
        question = self.bank.lookup_question(topic_id, question_id)
        is_correct = answers_match(user_answer, question.answer)

        with self._locks.hold_all(("user", user_id), ("progress", user_id, topic_id)):
            try:
                result = self._record_answer(
                    user_id, topic.topic_id, topic.subject_name, topic.title,
                    question.id, user_answer, question.answer, is_correct, time_taken,
                )
            except ConflictError:
                logger.warning("progress conflict for user %s topic %s, retrying", user_id, topic_id)
                result = self._record_answer(
                    user_id, topic.topic_id, topic.subject_name, topic.title,
                    question.id, user_answer, question.answer, is_correct, time_taken,
                )

        logger.info(
            "user %s answered %s correct=%s mastery=%.3f",
            user_id, question.id, is_correct, result.progress.mastery,
        )
        publish_safely(
            self.sink,
            user_id,
            PROGRESS_UPDATED,
            {
                "topic_id": topic_id,
                "mastery": result.progress.mastery,
                "attempts": result.progress.attempts,
                "corrects": result.progress.corrects,
            },
        )
        return result

    def _record_answer(
        self,
        user_id: int,
        topic_id: str,
        subject_name: str,
        topic_title: str,
        question_id: str,
        user_answer: str,
        correct_answer: str,
        is_correct: bool,
        time_taken: float | None,
    ) -> AnswerResult:
        now = self._clock()
        with transaction() as conn:
            stats = get_stats(user_id, conn=conn)
            append_attempt(
                user_id=user_id,
                topic_id=topic_id,
                question_id=question_id,
                user_answer=user_answer,
                correct_answer=correct_answer,
                is_correct=is_correct,
                time_taken=time_taken,
                timestamp=now,
                conn=conn,
            )

            progress = get_progress(user_id, topic_id, conn=conn) or new_progress(
                user_id, topic_id, subject_name=subject_name, topic_title=topic_title
            )
            saved = upsert_progress(apply_attempt(progress, is_correct, now), conn=conn)

            streak = update_streak(stats.last_study_date, now, stats.current_streak, stats.longest_streak)
            new_stats = UserStats(
                total_attempts=stats.total_attempts + 1,
                total_correct=stats.total_correct + (1 if is_correct else 0),
                current_streak=streak.current_streak,
                longest_streak=streak.longest_streak,
                last_study_date=streak.last_study_date,
            )
            update_stats(user_id, new_stats, conn=conn)

        return AnswerResult(
            is_correct=is_correct,
            correct_answer=correct_answer,
            progress=saved,
            user_stats=new_stats,
        )

    # ── Recommendations ──────────────────────────────────────────────────────

    def get_recommendations(self, user_id: int, n: int = config.DEFAULT_RECOMMENDATIONS) -> list[Recommendation]:
        if n < 1:
            raise ValidationError("n must be >= 1")
        get_stats(user_id)
        progress_by_topic = {item.topic_id: item for item in list_progress(user_id)}
        return recommend(
            self.bank.all_topics(),
            progress_by_topic,
            recent_attempts(user_id, self._recent_window),
            n,
            now=self._clock(),
        )

    def get_weak_areas(self, user_id: int) -> list[Progress]:
        return weak_areas(list_progress(user_id))

    def get_ready_for_review(self, user_id: int) -> list[Progress]:
        return ready_for_review(list_progress(user_id), now=self._clock())

    # ── Progress views ───────────────────────────────────────────────────────

    def get_my_progress(self, user_id: int) -> dict[str, Any]:
        progress = list_progress(user_id)
        average = sum(item.mastery for item in progress) / len(progress) if progress else 0.0
        return {
            "progress": progress,
            "recent_attempts": recent_attempts(user_id, MY_PROGRESS_RECENT),
            "total_topics": len(progress),
            "average_mastery": average,
        }

    def get_topic_progress(self, user_id: int, topic_id: str) -> dict[str, Any]:
        topic = self.bank.lookup_topic(topic_id)
        progress = get_progress(user_id, topic_id) or new_progress(
            user_id, topic_id, subject_name=topic.subject_name, topic_title=topic.title
        )
        return {"progress": progress, "attempts": topic_attempts(user_id, topic_id)}

    def reset_topic(self, user_id: int, topic_id: str) -> bool:
        with self._locks.hold(("progress", user_id, topic_id)):
            removed = delete_progress(user_id, topic_id)
        if removed:
            logger.info("user %s reset progress on %s", user_id, topic_id)
        return removed

    # ── Stats ────────────────────────────────────────────────────────────────

    def get_user_stats(self, user_id: int) -> dict[str, Any]:
        stats = get_stats(user_id)
        week_ago = self._clock() - STATS_WINDOW
        total = count_attempts(user_id)
        correct = count_attempts(user_id, correct_only=True)
        accuracy = correct / total * 100 if total > 0 else 0.0
        return {
            "overall_accuracy": round(accuracy),
            "total_attempts": total,
            "correct_attempts": correct,
            "topics_studied": count_topics_studied(user_id),
            "week_activity": count_attempts(user_id, since=week_ago),
            "current_streak": stats.current_streak,
            "longest_streak": stats.longest_streak,
            "daily_performance": daily_performance(user_id, week_ago),
        }

    def get_leaderboard(self, period_days: int = 30) -> list[LeaderboardEntry]:
        if period_days < 1:
            raise ValidationError("period must be >= 1 day")
        since = self._clock().astimezone(timezone.utc) - timedelta(days=period_days)
        rows = leaderboard_rows(
            since,
            min_attempts=config.LEADERBOARD_MIN_ATTEMPTS,
            limit=config.LEADERBOARD_LIMIT,
        )
        return [
            LeaderboardEntry(
                rank=index + 1,
                user_id=int(row["user_id"]),
                name=str(row["name"]),
                total_attempts=int(row["total_attempts"]),
                correct_answers=int(row["correct_answers"]),
                accuracy=round(float(row["accuracy"])),
            )
            for index, row in enumerate(rows)
        ]


__all__ = ["QuizService"]
