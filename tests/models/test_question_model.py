"""
Tests for exam_cbt.models.question_model

Test Coverage:
- Question: camelCase 입력, 정답 유도, 보기 검증, 불변성
- Exam: 제한 시간/합격 기준 범위
"""

import pytest
from pydantic import ValidationError

from exam_cbt.models.question_model import Exam, Question, QuestionType


def test_correct_answers_derived_from_options():
    q = Question.model_validate({
        "id": 1,
        "text": "Q",
        "options": [
            {"id": "a", "text": "A", "isCorrect": False},
            {"id": "b", "text": "B", "isCorrect": True},
        ],
    })

    assert q.type == QuestionType.SINGLE_CHOICE
    assert q.correct_answers == {"b"}
    assert q.point_value == 1
    assert q.option_ids == ["a", "b"]


def test_explicit_correct_answers_take_precedence():
    q = Question.model_validate({
        "id": 1,
        "text": "Q",
        "type": "matching",
        "correctAnswers": ["x", "y"],
        "options": [{"id": "x", "text": "X", "isCorrect": False}, {"id": "y", "text": "Y"}],
    })

    assert q.correct_answers == {"x", "y"}


def test_short_answer_has_no_correct_set():
    q = Question.model_validate({
        "id": 2, "text": "수도는?", "type": "shortAnswer", "acceptedAnswers": ["서울"],
    })

    assert q.correct_answers is None
    assert q.accepted_answers == ["서울"]


def test_populate_by_field_name():
    q = Question(id=3, text="Q", options=[{"id": "a", "text": "A", "is_correct": True}], point_value=2)

    assert q.correct_answers == {"a"}
    assert q.point_value == 2


@pytest.mark.parametrize("data", [
    {"id": 1, "text": "Q", "type": "singleChoice", "options": []},
    {"id": 1, "text": "Q", "options": [{"id": "a", "text": "A"}, {"id": "a", "text": "B"}]},
    {"id": 1, "text": "Q", "correctAnswers": ["z"], "options": [{"id": "a", "text": "A"}]},
    {"id": 1, "text": "Q", "pointValue": 0, "options": [{"id": "a", "text": "A"}]},
    {"id": 1, "text": "", "options": [{"id": "a", "text": "A"}]},
    {"id": 1, "text": "Q", "type": "essay", "options": [{"id": "a", "text": "A"}]},
])
def test_invalid_questions_are_rejected(data):
    with pytest.raises(ValidationError):
        Question.model_validate(data)


def test_question_is_frozen(three_questions):
    with pytest.raises(ValidationError):
        three_questions[0].text = "변경"


def test_exam_from_camel_case():
    exam = Exam.model_validate({"id": 4, "title": "기말", "durationMinutes": 45, "passingScore": 65})

    assert exam.duration_minutes == 45
    assert exam.passing_score == 65


@pytest.mark.parametrize("data", [
    {"id": 4, "durationMinutes": 0},
    {"id": 4, "durationMinutes": 30, "passingScore": 120},
])
def test_invalid_exam_is_rejected(data):
    with pytest.raises(ValidationError):
        Exam.model_validate(data)


@pytest.mark.parametrize("options", [
    [{"text": "A", "isCorrect": True}],
    ["A", "B"],
    42,
])
def test_malformed_options_raise_validation_error(options):
    with pytest.raises(ValidationError):
        Question.model_validate({"id": 1, "text": "Q", "options": options})
