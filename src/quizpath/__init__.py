"""quizpath: quiz progress tracking with EMA mastery and review recommendations."""

from .mastery import apply_attempt, new_progress, update_mastery
from .models import Attempt, Progress, UserStats
from .question_bank import QuestionBank, QuestionRef
from .recommendations import Recommendation, recommend
from .streak import StreakUpdate, update_streak

__all__ = [
    "apply_attempt",
    "Attempt",
    "new_progress",
    "Progress",
    "QuestionBank",
    "QuestionRef",
    "recommend",
    "Recommendation",
    "StreakUpdate",
    "update_mastery",
    "update_streak",
    "UserStats",
]
