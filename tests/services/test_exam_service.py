"""
Tests for exam_cbt.services.exam_service

Test Coverage:
- calculate_exam_score(): 기본 채점, 순서 무관, 결정성, 채점 보류, 감점
- is_answer_correct(): 집합 비교, 단답형 정규화
- get_incorrect_questions(): 미응답 포함, 채점 불가 제외
- calculate_exam_statistics(), format_exam_result(), calculate_attempt_statistics()
"""

from datetime import datetime, timedelta, timezone

import pytest

from exam_cbt.models.question_model import Question
from exam_cbt.models.result_model import ExamAttempt
from exam_cbt.models.session_state import Answer, QuestionStatus
from exam_cbt.services.exam_service import (
    calculate_attempt_statistics,
    calculate_exam_score,
    calculate_exam_statistics,
    format_exam_result,
    get_incorrect_questions,
    is_answer_correct,
    is_passed,
)

T0 = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def _sel(qid, *options):
    return Answer(question_id=qid, selected_options=list(options))


def _text(qid, text):
    return Answer(question_id=qid, text_answer=text)


# ── calculate_exam_score ────────────────────────────────────────────────────

def test_score_one_of_three(three_questions):
    """정답 1, 오답 1, 미응답 1 → 1/3."""
    answers = {101: _sel(101, "a"), 102: _sel(102, "b")}

    result = calculate_exam_score(three_questions, answers, passing_score=70)

    assert result.score == 1
    assert result.total_points == 3
    assert result.correct_count == 1
    assert result.incorrect_count == 1
    assert result.unanswered_count == 1
    assert result.percentage == pytest.approx(33.33, abs=0.01)
    assert result.passed is False


def test_score_uses_default_passing_score(three_questions):
    answers = {qid: _sel(qid, "a") for qid in (101, 102, 103)}

    result = calculate_exam_score(three_questions, answers)

    assert result.passing_score == 70
    assert result.percentage == 100
    assert result.passed is True


def test_score_is_order_independent(mixed_questions):
    answers = {1: _sel(1, "c", "a"), 2: _sel(2, "b"), 3: _sel(3, "false")}
    reordered = {3: answers[3], 1: _sel(1, "a", "c"), 2: answers[2]}

    first = calculate_exam_score(mixed_questions, answers)
    second = calculate_exam_score(list(reversed(mixed_questions)), reordered)

    assert first.score == second.score
    assert first.correct_count == second.correct_count
    assert first.percentage == second.percentage


def test_score_is_deterministic(mixed_questions):
    answers = {1: _sel(1, "a"), 5: _text(5, "seoul")}

    assert calculate_exam_score(mixed_questions, answers) == calculate_exam_score(mixed_questions, answers)


def test_multiple_choice_has_no_partial_credit(mixed_questions):
    result = calculate_exam_score(mixed_questions, {1: _sel(1, "a")})

    assert result.correct_count == 0
    assert result.incorrect_count == 1
    assert result.score == 0


def test_point_values_are_weighted(mixed_questions):
    answers = {
        1: _sel(1, "a", "c"),
        2: _sel(2, "b"),
        3: _sel(3, "true"),
        4: _sel(4, "m1", "m2"),
        5: _text(5, "  SEOUL "),
    }

    result = calculate_exam_score(mixed_questions, answers)

    assert result.total_points == 6
    assert result.score == 6
    assert result.correct_count == 5


def test_empty_selection_counts_as_unanswered(three_questions):
    result = calculate_exam_score(three_questions, {101: _sel(101)})

    assert result.unanswered_count == 3
    assert result.incorrect_count == 0


def test_short_answer_without_accepted_answers_is_pending():
    question = Question.model_validate({"id": 9, "text": "서술", "type": "shortAnswer"})

    result = calculate_exam_score([question], {9: _text(9, "무언가")})

    assert result.pending_count == 1
    assert result.correct_count == 0
    assert result.incorrect_count == 0
    assert result.score == 0


def test_no_questions_scores_zero():
    result = calculate_exam_score([], {})

    assert result.percentage == 0
    assert result.passed is False


def test_penalty_is_floored_at_zero(three_questions):
    answers = {101: _sel(101, "b"), 102: _sel(102, "b")}

    result = calculate_exam_score(three_questions, answers, penalty_per_incorrect=1)

    assert result.penalty == 2
    assert result.score == 0


def test_is_passed_boundary():
    assert is_passed(70.0)
    assert not is_passed(69.99)
    assert is_passed(50, passing_score=50)


# ── is_answer_correct ───────────────────────────────────────────────────────

def test_is_answer_correct_ignores_order_and_duplicates(mixed_questions):
    question = mixed_questions[0]

    assert is_answer_correct(question, _sel(1, "c", "a", "a")) is True
    assert is_answer_correct(question, _sel(1, "a", "b", "c")) is False


def test_short_answer_normalizes_whitespace_and_case(mixed_questions):
    question = mixed_questions[4]

    assert is_answer_correct(question, _text(5, " seoul ")) is True
    assert is_answer_correct(question, _text(5, "Busan")) is False
    assert is_answer_correct(question, None) is False


# ── get_incorrect_questions ─────────────────────────────────────────────────

def test_incorrect_questions_include_unanswered(three_questions):
    answers = {101: _sel(101, "a"), 102: _sel(102, "d")}

    incorrect = get_incorrect_questions(three_questions, answers)

    assert [q.id for q in incorrect] == [102, 103]


def test_incorrect_questions_skip_ungradable():
    question = Question.model_validate({"id": 9, "text": "서술", "type": "shortAnswer"})

    assert get_incorrect_questions([question], {}) == []
    assert get_incorrect_questions([question], {9: _text(9, "답")}) == []


# ── calculate_exam_statistics ───────────────────────────────────────────────

def test_statistics_hide_score_outside_review_mode(three_questions):
    answers = {101: _sel(101, "a"), 102: _sel(102, "b")}

    stats = calculate_exam_statistics(
        three_questions, answers, review_mode=False,
        start_time=T0, end_time=None, now=T0 + timedelta(seconds=90),
    )

    assert stats.total == 3
    assert stats.answered == 2
    assert stats.score == 0
    assert stats.time_spent == 90
    assert stats.status_counts[QuestionStatus.ANSWERED_PENDING] == 2
    assert stats.status_counts[QuestionStatus.UNANSWERED] == 1


def test_statistics_in_review_mode_use_end_time(three_questions):
    answers = {101: _sel(101, "a"), 102: _sel(102, "b")}

    stats = calculate_exam_statistics(
        three_questions, answers, review_mode=True,
        start_time=T0, end_time=T0 + timedelta(seconds=40),
        now=T0 + timedelta(hours=1),
    )

    assert stats.correct == 1
    assert stats.incorrect == 1
    assert stats.percentage == pytest.approx(100 / 3)
    assert stats.time_spent == 40


# ── 응시 기록 ────────────────────────────────────────────────────────────────

def test_format_exam_result(three_questions):
    attempt = ExamAttempt(
        id="att-1",
        exam_id=7,
        user_id="user-1",
        answers={101: _sel(101, "a"), 102: _sel(102, "a"), 103: _sel(103, "c")},
        started_at=T0,
        completed_at=T0 + timedelta(minutes=5),
    )

    result = format_exam_result(attempt, three_questions, passing_score=60)

    assert result.attempt_id == "att-1"
    assert result.total_questions == 3
    assert result.answered_questions == 3
    assert result.correct_answers == 2
    assert result.passed is True
    assert result.time_spent == 300
    assert result.completed_at == attempt.completed_at


def test_format_exam_result_without_completion_uses_now(three_questions):
    attempt = ExamAttempt(id="att-2", exam_id=7, started_at=T0)
    now = T0 + timedelta(seconds=15)

    result = format_exam_result(attempt, three_questions, now=now)

    assert result.completed_at == now
    assert result.time_spent == 15
    assert result.answered_questions == 0


def test_attempt_statistics():
    attempts = [
        ExamAttempt(id="1", exam_id=7, started_at=T0, completed_at=T0 + timedelta(seconds=100),
                    percentage=80.0),
        ExamAttempt(id="2", exam_id=7, started_at=T0, completed_at=T0 + timedelta(seconds=300),
                    percentage=40.0, time_spent=200),
        ExamAttempt(id="3", exam_id=7, started_at=T0),
    ]

    stats = calculate_attempt_statistics(attempts)

    assert stats.total_attempts == 3
    assert stats.completed_attempts == 2
    assert stats.passed_attempts == 1
    assert stats.average_score == 60.0
    assert stats.average_time_spent == 150.0
    assert stats.best_score == 80.0


def test_attempt_statistics_empty():
    stats = calculate_attempt_statistics([])

    assert stats.total_attempts == 0
    assert stats.best_score == 0
