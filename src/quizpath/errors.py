"""Exception hierarchy shared by the service layer and the HTTP routes."""

from __future__ import annotations


class QuizError(Exception):
    """Base class for errors surfaced to callers as structured responses."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFoundError(QuizError):
    status_code = 404
    code = "NOT_FOUND"


class TopicNotFound(NotFoundError):
    code = "TOPIC_NOT_FOUND"


class QuestionNotFound(NotFoundError):
    code = "QUESTION_NOT_FOUND"


class SubjectNotFound(NotFoundError):
    code = "SUBJECT_NOT_FOUND"


class UserNotFound(NotFoundError):
    code = "USER_NOT_FOUND"


class ValidationError(QuizError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthError(QuizError):
    status_code = 401
    code = "AUTH_REQUIRED"


class ConflictError(QuizError):
    """A compare-and-swap write lost a race with a concurrent writer."""

    status_code = 409
    code = "CONFLICT"


class StorageError(QuizError):
    status_code = 503
    code = "STORAGE_UNAVAILABLE"


__all__ = [
    "AuthError",
    "ConflictError",
    "NotFoundError",
    "QuestionNotFound",
    "QuizError",
    "StorageError",
    "SubjectNotFound",
    "TopicNotFound",
    "UserNotFound",
    "ValidationError",
]
