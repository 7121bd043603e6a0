"""Tests for question_bank.py: loading, composite ids, lookups."""

from __future__ import annotations

import json
import random
from pathlib import Path

import pytest
import yaml

from quizpath.errors import QuestionNotFound, SubjectNotFound, TopicNotFound, ValidationError
from quizpath.question_bank import QuestionBank, QuestionRef, answers_match

RAW_BANK = {
    "subjects": [
        {
            "subject_name": "Math",
            "slug": "math",
            "topics": [
                {
                    "topic_id": "math_add",
                    "title": "Addition",
                    "questions": [
                        {"q": "1+1?", "options": ["A. 2", "B. 3"], "answer": "a "},
                        {"q": "2+2?", "options": ["A. 3", "B. 4"], "answer": "B"},
                    ],
                },
                {"topic_id": "math_sub", "title": "Subtraction", "questions": []},
            ],
        },
        {
            "subject_name": "Physics",
            "slug": "physics",
            "topics": [
                {
                    "topic_id": "phys_units",
                    "title": "Units",
                    "questions": [{"q": "SI unit of force?", "options": ["A. N", "B. J"], "answer": "A"}],
                }
            ],
        },
    ]
}


@pytest.fixture
def yaml_bank(tmp_path: Path) -> QuestionBank:
    path = tmp_path / "subjects.yaml"
    path.write_text(yaml.safe_dump(RAW_BANK), encoding="utf-8")
    return QuestionBank(path)


class TestQuestionRef:
    def test_encode(self):
        assert QuestionRef("math_add", 0).encode() == "math_add_Q1"
        assert str(QuestionRef("math_add", 9)) == "math_add_Q10"

    def test_parse(self):
        ref = QuestionRef.parse("math_add_Q2")
        assert ref.topic_id == "math_add"
        assert ref.index == 1

    def test_parse_topic_containing_marker(self):
        ref = QuestionRef.parse("weird_Q_topic_Q3")
        assert ref.topic_id == "weird_Q_topic"
        assert ref.index == 2

    @pytest.mark.parametrize("value", ["", "math_add", "math_add_Q0", "math_add_Qx", "_Q1", "math_add_Q-1"])
    def test_parse_rejects_malformed(self, value):
        with pytest.raises(ValidationError):
            QuestionRef.parse(value)

    def test_negative_index_rejected(self):
        with pytest.raises(ValidationError):
            QuestionRef("math_add", -1)


class TestLoading:
    def test_yaml_lazy_load(self, yaml_bank):
        assert [subject.slug for subject in yaml_bank.subjects()] == ["math", "physics"]

    def test_json_load(self, tmp_path):
        path = tmp_path / "subjects.json"
        path.write_text(json.dumps(RAW_BANK), encoding="utf-8")
        bank = QuestionBank(path)
        assert bank.lookup_topic("phys_units").subject_name == "Physics"

    def test_missing_file_is_not_touched_until_used(self, tmp_path):
        bank = QuestionBank(tmp_path / "nope.yaml")
        with pytest.raises(FileNotFoundError):
            bank.subjects()

    def test_rejects_bad_shape(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError):
            QuestionBank(path).subjects()

    def test_rejects_duplicate_topics(self):
        raw = {"subjects": [RAW_BANK["subjects"][0], RAW_BANK["subjects"][0]]}
        with pytest.raises(ValueError):
            QuestionBank.from_dict(raw)

    def test_cached_after_first_load(self, tmp_path):
        path = tmp_path / "subjects.yaml"
        path.write_text(yaml.safe_dump(RAW_BANK), encoding="utf-8")
        bank = QuestionBank(path)
        bank.subjects()
        path.unlink()
        assert bank.lookup_topic("math_add").title == "Addition"

    def test_reload_rereads_file(self, tmp_path):
        path = tmp_path / "subjects.yaml"
        path.write_text(yaml.safe_dump(RAW_BANK), encoding="utf-8")
        bank = QuestionBank(path)
        bank.subjects()
        changed = {"subjects": [RAW_BANK["subjects"][1]]}
        path.write_text(yaml.safe_dump(changed), encoding="utf-8")
        bank.reload()
        assert [subject.slug for subject in bank.subjects()] == ["physics"]


class TestLookups:
    def test_all_topics_in_catalog_order(self, yaml_bank):
        assert [topic.topic_id for topic in yaml_bank.all_topics()] == ["math_add", "math_sub", "phys_units"]

    def test_get_subject(self, yaml_bank):
        assert yaml_bank.get_subject("physics").subject_name == "Physics"
        with pytest.raises(SubjectNotFound):
            yaml_bank.get_subject("chemistry")

    def test_lookup_topic_missing(self, yaml_bank):
        with pytest.raises(TopicNotFound):
            yaml_bank.lookup_topic("nope")

    def test_lookup_question(self, yaml_bank):
        question = yaml_bank.lookup_question("math_add", "math_add_Q2")
        assert question.answer == "B"
        assert question.id == "math_add_Q2"

    @pytest.mark.parametrize("question_id", ["math_add_Q3", "phys_units_Q1", "garbage"])
    def test_lookup_question_missing(self, yaml_bank, question_id):
        with pytest.raises(QuestionNotFound):
            yaml_bank.lookup_question("math_add", question_id)

    def test_question_dict_hides_answer_by_default(self, yaml_bank):
        question = yaml_bank.lookup_question("math_add", "math_add_Q1")
        assert "answer" not in question.to_dict()
        assert question.to_dict(include_answer=True)["answer"] == "a "


class TestNextQuestion:
    def test_skips_answered(self, yaml_bank):
        question = yaml_bank.next_question("math_add", ["math_add_Q1"], rng=random.Random(0))
        assert question is not None
        assert question.id == "math_add_Q2"

    def test_none_when_all_answered(self, yaml_bank):
        assert yaml_bank.next_question("math_add", ["math_add_Q1", "math_add_Q2"]) is None

    def test_empty_topic(self, yaml_bank):
        assert yaml_bank.next_question("math_sub") is None


class TestAnswersMatch:
    def test_case_and_whitespace_insensitive(self):
        assert answers_match("A", "a ") is True
        assert answers_match(" b", "B") is True

    def test_mismatch(self):
        assert answers_match("A", "B") is False
