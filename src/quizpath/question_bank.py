"""Static question bank: YAML/JSON loader, composite question ids, lookups."""

from __future__ import annotations

import json
import random
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import QuestionNotFound, SubjectNotFound, TopicNotFound, ValidationError

_QUESTION_ID_RE = re.compile(r"^(?P<topic>.+)_Q(?P<number>[1-9]\d*)$")


@dataclass(frozen=True, slots=True)
class QuestionRef:
    """Composite question identifier: a topic id plus a zero-based index.

    The string form is ``"{topic_id}_Q{index + 1}"``.
    """

    topic_id: str
    index: int

    def __post_init__(self) -> None:
        if not self.topic_id:
            raise ValidationError("topic id must not be empty")
        if self.index < 0:
            raise ValidationError(f"question index must be >= 0, got {self.index}")

    def encode(self) -> str:
        return f"{self.topic_id}_Q{self.index + 1}"

    @classmethod
    def parse(cls, value: str) -> QuestionRef:
        match = _QUESTION_ID_RE.match(value.strip()) if value else None
        if match is None:
            raise ValidationError(f"Malformed question id: {value!r}")
        return cls(topic_id=match.group("topic"), index=int(match.group("number")) - 1)

    def __str__(self) -> str:
        return self.encode()


@dataclass(slots=True)
class Question:
    ref: QuestionRef
    text: str
    options: list[str]
    answer: str

    @property
    def id(self) -> str:
        return self.ref.encode()

    def to_dict(self, *, include_answer: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "question": self.text, "options": list(self.options)}
        if include_answer:
            data["answer"] = self.answer
        return data


@dataclass(slots=True)
class Topic:
    topic_id: str
    title: str
    subject_name: str
    questions: list[Question] = field(default_factory=list)


@dataclass(slots=True)
class Subject:
    subject_name: str
    slug: str
    topics: list[Topic] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class TopicInfo:
    """Lightweight topic descriptor used for ranking."""

    topic_id: str
    title: str
    subject_name: str


def answers_match(user_answer: str, correct_answer: str) -> bool:
    """Case-insensitive comparison of trimmed answers."""
    return user_answer.strip().upper() == correct_answer.strip().upper()


def _read_raw(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        if path.suffix.lower() == ".json":
            raw = json.load(handle)
        else:
            raw = yaml.safe_load(handle)
    if not isinstance(raw, dict) or not isinstance(raw.get("subjects"), list):
        raise ValueError(f"{path} must contain a top-level 'subjects' list")
    return raw


def _parse_subjects(raw: dict[str, Any]) -> list[Subject]:
    subjects: list[Subject] = []
    seen_topics: set[str] = set()
    for entry in raw["subjects"]:
        subject_name = str(entry["subject_name"])
        subject = Subject(subject_name=subject_name, slug=str(entry["slug"]))
        for topic_entry in entry.get("topics", []):
            topic_id = str(topic_entry["topic_id"])
            if topic_id in seen_topics:
                raise ValueError(f"Duplicate topic id '{topic_id}'")
            seen_topics.add(topic_id)
            topic = Topic(topic_id=topic_id, title=str(topic_entry["title"]), subject_name=subject_name)
            for index, question_entry in enumerate(topic_entry.get("questions", [])):
                topic.questions.append(
                    Question(
                        ref=QuestionRef(topic_id, index),
                        text=str(question_entry["q"]),
                        options=[str(option) for option in question_entry.get("options", [])],
                        answer=str(question_entry["answer"]),
                    )
                )
            subject.topics.append(topic)
        subjects.append(subject)
    return subjects


class QuestionBank:
    """Read-only catalog of subjects, topics and questions.

    The file is parsed on first use and cached for the lifetime of the
    instance. Construct one per process and hand it to whatever needs it.
    """

    def __init__(self, path: Path | str | None = None, *, subjects: list[Subject] | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._subjects = subjects
        self._topics: dict[str, Topic] | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> QuestionBank:
        return cls(subjects=_parse_subjects(raw))

    @property
    def path(self) -> Path | None:
        return self._path

    def _load(self) -> dict[str, Topic]:
        if self._topics is not None:
            return self._topics
        with self._lock:
            if self._topics is None:
                if self._subjects is None:
                    if self._path is None:
                        raise ValueError("QuestionBank needs a path or preloaded subjects")
                    self._subjects = _parse_subjects(_read_raw(self._path))
                self._topics = {
                    topic.topic_id: topic for subject in self._subjects for topic in subject.topics
                }
        return self._topics

    def reload(self) -> None:
        with self._lock:
            if self._path is not None:
                self._subjects = None
            self._topics = None

    def subjects(self) -> list[Subject]:
        self._load()
        return list(self._subjects or [])

    def get_subject(self, slug: str) -> Subject:
        for subject in self.subjects():
            if subject.slug == slug:
                return subject
        raise SubjectNotFound(f"Subject '{slug}' not found")

    def all_topics(self) -> list[TopicInfo]:
        """Every topic in catalog order."""
        return [
            TopicInfo(topic_id=topic.topic_id, title=topic.title, subject_name=topic.subject_name)
            for topic in self._load().values()
        ]

    def lookup_topic(self, topic_id: str) -> Topic:
        topic = self._load().get(topic_id)
        if topic is None:
            raise TopicNotFound(f"Topic '{topic_id}' not found")
        return topic

    def lookup_question(self, topic_id: str, question_id: str) -> Question:
        topic = self.lookup_topic(topic_id)
        try:
            ref = QuestionRef.parse(question_id)
        except ValidationError as exc:
            raise QuestionNotFound(str(exc)) from exc
        if ref.topic_id != topic_id or ref.index >= len(topic.questions):
            raise QuestionNotFound(f"Question '{question_id}' not found in topic '{topic_id}'")
        return topic.questions[ref.index]

    def next_question(
        self,
        topic_id: str,
        answered_ids: list[str] | None = None,
        *,
        rng: random.Random | None = None,
    ) -> Question | None:
        """Pick a random question the user has not answered yet, or None when all are done."""
        topic = self.lookup_topic(topic_id)
        answered = set(answered_ids or [])
        available = [question for question in topic.questions if question.id not in answered]
        if not available:
            return None
        chooser = rng or random
        return chooser.choice(available)


__all__ = [
    "answers_match",
    "Question",
    "QuestionBank",
    "QuestionRef",
    "Subject",
    "Topic",
    "TopicInfo",
]
