"""JSON routes under /api."""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel, Field

from . import config
from .errors import AuthError
from .models import User
from .service import QuizService
from .users import create_user, get_user_by_token

router = APIRouter(prefix="/api")


class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class SubmitAnswerRequest(BaseModel):
    topic_id: str = Field(..., min_length=1)
    question_id: str = Field(..., min_length=1)
    user_answer: str = Field(..., min_length=1)
    time_taken: float | None = Field(default=None, ge=0)


def get_service(request: Request) -> QuizService:
    return request.app.state.service


def current_user(authorization: str | None = Header(default=None)) -> User:
    if not authorization:
        raise AuthError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Authorization must be a bearer token")
    return get_user_by_token(token.strip())


@router.get("/health")
def health() -> dict[str, Any]:
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds")}


@router.post("/users", status_code=201)
def register(body: CreateUserRequest) -> dict[str, Any]:
    user, token = create_user(body.name)
    return {"success": True, "user": user.to_dict(), "token": token}


# ── Question bank ────────────────────────────────────────────────────────────


@router.get("/quiz/subjects")
def subjects(service: QuizService = Depends(get_service), _: User = Depends(current_user)) -> dict[str, Any]:
    return {
        "success": True,
        "subjects": [
            {"subject_name": subject.subject_name, "slug": subject.slug, "topic_count": len(subject.topics)}
            for subject in service.bank.subjects()
        ],
    }


@router.get("/quiz/subjects/{slug}")
def subject_detail(
    slug: str,
    service: QuizService = Depends(get_service),
    _: User = Depends(current_user),
) -> dict[str, Any]:
    subject = service.bank.get_subject(slug)
    return {
        "success": True,
        "subject": {
            "subject_name": subject.subject_name,
            "slug": subject.slug,
            "topics": [
                {"topic_id": topic.topic_id, "title": topic.title, "question_count": len(topic.questions)}
                for topic in subject.topics
            ],
        },
    }


@router.get("/quiz/topics/{topic_id}")
def topic_detail(
    topic_id: str,
    service: QuizService = Depends(get_service),
    _: User = Depends(current_user),
) -> dict[str, Any]:
    topic = service.bank.lookup_topic(topic_id)
    return {
        "success": True,
        "topic": {
            "topic_id": topic.topic_id,
            "title": topic.title,
            "subject_name": topic.subject_name,
            "questions": [question.to_dict(include_answer=True) for question in topic.questions],
        },
    }


@router.get("/quiz/topics/{topic_id}/question")
def next_question(
    topic_id: str,
    answered: str = Query(default=""),
    service: QuizService = Depends(get_service),
    _: User = Depends(current_user),
) -> dict[str, Any]:
    topic = service.bank.lookup_topic(topic_id)
    answered_ids = [item.strip() for item in answered.split(",") if item.strip()]
    question = service.bank.next_question(topic_id, answered_ids, rng=random.Random())
    if question is None:
        return {
            "success": True,
            "completed": True,
            "message": "You have completed all questions in this topic!",
            "total_questions": len(topic.questions),
        }
    return {
        "success": True,
        "question": {
            **question.to_dict(),
            "topic_id": topic.topic_id,
            "topic_title": topic.title,
            "subject_name": topic.subject_name,
            "question_index": question.ref.index,
        },
    }


# ── Progress ─────────────────────────────────────────────────────────────────


@router.post("/progress/submit-answer")
def submit_answer(
    body: SubmitAnswerRequest,
    service: QuizService = Depends(get_service),
    user: User = Depends(current_user),
) -> dict[str, Any]:
    result = service.submit_answer(user.id, body.topic_id, body.question_id, body.user_answer, body.time_taken)
    return {"success": True, "data": result.to_dict()}


@router.get("/progress/my-progress")
def my_progress(service: QuizService = Depends(get_service), user: User = Depends(current_user)) -> dict[str, Any]:
    overview = service.get_my_progress(user.id)
    return {
        "success": True,
        "data": {
            "progress": [item.to_dict() for item in overview["progress"]],
            "recent_attempts": [item.to_dict() for item in overview["recent_attempts"]],
            "total_topics": overview["total_topics"],
            "average_mastery": overview["average_mastery"],
        },
    }


@router.get("/progress/topic/{topic_id}")
def topic_progress(
    topic_id: str,
    service: QuizService = Depends(get_service),
    user: User = Depends(current_user),
) -> dict[str, Any]:
    view = service.get_topic_progress(user.id, topic_id)
    return {
        "success": True,
        "data": {
            "progress": view["progress"].to_dict(),
            "attempts": [item.to_dict() for item in view["attempts"]],
        },
    }


@router.delete("/progress/topic/{topic_id}/reset")
def reset_topic(
    topic_id: str,
    service: QuizService = Depends(get_service),
    user: User = Depends(current_user),
) -> dict[str, Any]:
    service.reset_topic(user.id, topic_id)
    return {"success": True, "message": "Topic progress reset successfully"}


# ── Recommendations ──────────────────────────────────────────────────────────


@router.get("/recommendations")
def recommendations(
    n: int = Query(default=config.DEFAULT_RECOMMENDATIONS, ge=1, le=100),
    service: QuizService = Depends(get_service),
    user: User = Depends(current_user),
) -> dict[str, Any]:
    ranked = service.get_recommendations(user.id, n)
    return {"success": True, "recommendations": [item.to_dict() for item in ranked]}


@router.get("/recommendations/weak-areas")
def weak_areas(service: QuizService = Depends(get_service), user: User = Depends(current_user)) -> dict[str, Any]:
    return {"success": True, "weak_topics": [item.to_dict() for item in service.get_weak_areas(user.id)]}


@router.get("/recommendations/ready-for-review")
def ready_for_review(
    service: QuizService = Depends(get_service),
    user: User = Depends(current_user),
) -> dict[str, Any]:
    return {"success": True, "review_topics": [item.to_dict() for item in service.get_ready_for_review(user.id)]}


# ── Users ────────────────────────────────────────────────────────────────────


@router.get("/users/stats")
def user_stats(service: QuizService = Depends(get_service), user: User = Depends(current_user)) -> dict[str, Any]:
    stats = service.get_user_stats(user.id)
    stats["daily_performance"] = [item.to_dict() for item in stats["daily_performance"]]
    return {"success": True, "stats": stats}


@router.get("/users/leaderboard")
def leaderboard(
    period: int = Query(default=30, ge=1, le=3650),
    service: QuizService = Depends(get_service),
    _: User = Depends(current_user),
) -> dict[str, Any]:
    return {"success": True, "leaderboard": [entry.to_dict() for entry in service.get_leaderboard(period)]}


__all__ = ["router"]
