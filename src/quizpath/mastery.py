"""Exponential moving average (EMA) mastery engine."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone

from .models import DEFAULT_EMA_ALPHA, DEFAULT_MASTERY, Progress

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def update_mastery(prior: float, alpha: float, is_correct: bool) -> float:
    """EMA step: new = alpha * outcome + (1 - alpha) * prior.

    A correct answer pulls mastery toward 1, a wrong one toward 0. Inputs
    outside their ranges are clamped and logged rather than rejected.
    """
    if not 0.0 <= prior <= 1.0:
        logger.warning("mastery %r outside [0, 1], clamping", prior)
        prior = _clamp(prior, 0.0, 1.0)
    if not 0.0 < alpha <= 1.0:
        logger.warning("ema alpha %r outside (0, 1], falling back", alpha)
        alpha = DEFAULT_EMA_ALPHA if alpha <= 0.0 else 1.0

    outcome = 1.0 if is_correct else 0.0
    new_mastery = alpha * outcome + (1 - alpha) * prior
    return _clamp(new_mastery, 0.0, 1.0)


def new_progress(user_id: int, topic_id: str, *, subject_name: str = "", topic_title: str = "") -> Progress:
    """Fresh record for a topic the user has never attempted."""
    return Progress(
        user_id=user_id,
        topic_id=topic_id,
        subject_name=subject_name,
        topic_title=topic_title,
        mastery=DEFAULT_MASTERY,
        attempts=0,
        corrects=0,
        last_review=None,
        ema_alpha=DEFAULT_EMA_ALPHA,
    )


def apply_attempt(progress: Progress, is_correct: bool, now: datetime | None = None) -> Progress:
    """Return a copy of ``progress`` with one attempt folded in."""
    moment = now or datetime.now(timezone.utc)
    return replace(
        progress,
        mastery=update_mastery(progress.mastery, progress.ema_alpha, is_correct),
        attempts=progress.attempts + 1,
        corrects=progress.corrects + (1 if is_correct else 0),
        last_review=moment,
    )


__all__ = [
    "apply_attempt",
    "new_progress",
    "update_mastery",
]
