"""
Tests for exam_cbt.services.answer_tracker

Test Coverage:
- normalize_selection(): 단일 값/시퀀스, 중복 제거, 공백 제거
- build_answer(): 유형별 Answer 생성, 없는 보기 거부
- is_answer_complete(): 유형별 완성 판정
- record_answer(), completion_percentage(), get_default_answer()
"""

import pytest

from exam_cbt.errors import ExamValidationError
from exam_cbt.models.session_state import Answer
from exam_cbt.services.answer_tracker import (
    build_answer,
    completion_percentage,
    count_complete,
    get_default_answer,
    is_answer_complete,
    normalize_selection,
    record_answer,
)


@pytest.mark.parametrize("selection, expected", [
    ("a", ["a"]),
    (["a", "b"], ["a", "b"]),
    (["b", "a", "b", "a"], ["b", "a"]),
    ([" a ", "", "  "], ["a"]),
    ([], []),
    (None, []),
    (3, ["3"]),
])
def test_normalize_selection(selection, expected):
    assert normalize_selection(selection) == expected


def test_build_answer_rejects_unknown_option(three_questions):
    with pytest.raises(ExamValidationError):
        build_answer(three_questions[0], ["a", "z"])


def test_build_answer_for_short_answer(mixed_questions):
    answer = build_answer(mixed_questions[4], "Seoul")

    assert answer.question_id == 5
    assert answer.text_answer == "Seoul"
    assert answer.selected_options == []


def test_record_answer_returns_new_mapping():
    original = {1: Answer(question_id=1, selected_options=["a"])}

    updated = record_answer(original, Answer(question_id=1, selected_options=["b"]))

    assert original[1].selected_options == ["a"]
    assert updated[1].selected_options == ["b"]


@pytest.mark.parametrize("index, selection, complete", [
    (0, ["a"], True),            # 복수 선택: 1개 이상
    (0, ["a", "b", "c"], True),
    (1, ["b"], True),            # 단일 선택: 정확히 1개
    (1, ["a", "b"], False),
    (2, ["true"], True),         # 참/거짓
    (3, ["m1"], False),          # 연결하기: 보기 수만큼
    (3, ["m1", "m2"], True),
])
def test_is_answer_complete_by_type(mixed_questions, index, selection, complete):
    question = mixed_questions[index]
    answer = Answer(question_id=question.id, selected_options=selection)

    assert is_answer_complete(question, answer) is complete


def test_short_answer_completeness(mixed_questions):
    question = mixed_questions[4]

    assert is_answer_complete(question, Answer(question_id=5, text_answer=" x "))
    assert not is_answer_complete(question, Answer(question_id=5, text_answer="   "))
    assert not is_answer_complete(question, None)


def test_count_complete(mixed_questions):
    answers = {
        1: Answer(question_id=1, selected_options=["a"]),
        4: Answer(question_id=4, selected_options=["m2"]),
    }

    assert count_complete(mixed_questions, answers) == 1


def test_completion_percentage():
    assert completion_percentage(0, 0) == 0
    assert completion_percentage(1, 4) == 25
    assert completion_percentage(3, 3) == 100


def test_default_answer_shape(mixed_questions):
    assert get_default_answer(mixed_questions[0]).selected_options == []
    assert get_default_answer(mixed_questions[4]).text_answer == ""
