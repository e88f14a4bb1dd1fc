"""
services/exam_service.py

시험 채점 및 결과 분석 비즈니스 로직.
순수 Python 함수로 구성 — UI 코드, 전역 상태 변경 없음.
같은 (questions, answers) 입력이면 항상 같은 결과를 돌려준다.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from config import DEFAULT_PASSING_SCORE
from exam_cbt.models.question_model import Question, QuestionType
from exam_cbt.models.result_model import (
    AttemptStatistics,
    ExamAttempt,
    ExamResult,
    ExamStatistics,
    ScoreResult,
)
from exam_cbt.models.session_state import Answer, QuestionStatus


def _normalize_text(text: str) -> str:
    return " ".join(text.split()).casefold()


def is_unanswered(answer: Optional[Answer]) -> bool:
    """답안이 없거나 선택/텍스트가 비어 있으면 미응답."""
    if answer is None:
        return True
    if answer.selected_options:
        return False
    return not (answer.text_answer or "").strip()


def is_gradable(question: Question) -> bool:
    """자동 채점 가능 여부. 허용 답안 없는 단답형은 채점 보류."""
    if question.type == QuestionType.SHORT_ANSWER:
        return bool(question.accepted_answers)
    return question.correct_answers is not None


def is_answer_correct(question: Question, answer: Optional[Answer]) -> Optional[bool]:
    """
    정답 여부를 판정한다.

    선택형: 선택한 보기 집합 == 정답 집합 (부분 점수 없음, 순서 무관).
    단답형: 허용 답안 중 하나와 일치 (대소문자/공백 무시).

    Returns:
        True/False, 자동 채점이 불가능하면 None (허용 답안 없는 단답형).
    """
    if is_unanswered(answer):
        return False

    if not is_gradable(question):
        return None

    if question.type == QuestionType.SHORT_ANSWER:
        given = _normalize_text(answer.text_answer or "")
        return any(given == _normalize_text(a) for a in question.accepted_answers)

    return set(answer.selected_options) == set(question.correct_answers)


def is_passed(percentage: float, passing_score: Optional[float] = None) -> bool:
    """
    합격 여부를 반환한다.

    Args:
        percentage:    0.0 ~ 100.0 백분율 점수.
        passing_score: 시험에 설정된 합격 기준. None이면 DEFAULT_PASSING_SCORE.
    """
    threshold = DEFAULT_PASSING_SCORE if passing_score is None else passing_score
    return percentage >= threshold


def calculate_exam_score(
    questions: List[Question],
    answers: Dict[int, Answer],
    passing_score: Optional[float] = None,
    penalty_per_incorrect: float = 0.0,
) -> ScoreResult:
    """
    사용자 답안을 채점한다.

    1. totalPoints = Σ pointValue
    2. 미응답(답안 없음/빈 선택) → unanswered, 0점
       정답 → score += pointValue, 오답 → incorrect
       자동 채점 불가(단답형) → pending, 0점
    3. percentage = score / totalPoints * 100 (totalPoints가 0이면 0)
    4. passed = percentage >= passing_score

    Args:
        questions:             채점 대상 Question 리스트.
        answers:               답안지. {question.id: Answer}
        passing_score:         시험에 설정된 합격 기준. None이면 기본값.
        penalty_per_incorrect: 오답 1개당 감점 (기본 0, 설정 시에만 적용).
    """
    threshold = DEFAULT_PASSING_SCORE if passing_score is None else passing_score

    score = 0.0
    total_points = 0.0
    correct = incorrect = unanswered = pending = 0

    for q in questions:
        total_points += q.point_value
        answer = answers.get(q.id)

        if is_unanswered(answer):
            unanswered += 1
            continue

        verdict = is_answer_correct(q, answer)
        if verdict is None:
            pending += 1
        elif verdict:
            score += q.point_value
            correct += 1
        else:
            incorrect += 1

    penalty = incorrect * penalty_per_incorrect
    score = max(0.0, score - penalty)
    percentage = score / total_points * 100 if total_points > 0 else 0.0

    return ScoreResult(
        score=score,
        total_points=total_points,
        correct_count=correct,
        incorrect_count=incorrect,
        unanswered_count=unanswered,
        pending_count=pending,
        percentage=percentage,
        penalty=penalty,
        passing_score=threshold,
        passed=is_passed(percentage, threshold),
    )


def get_question_status(
    question: Question,
    answer: Optional[Answer],
    review_mode: bool,
) -> QuestionStatus:
    """
    문제 상태. 검토 모드가 아니면 정오를 공개하지 않는다 (PENDING).
    """
    if answer is None:
        return QuestionStatus.UNANSWERED
    if not review_mode:
        return QuestionStatus.ANSWERED_PENDING

    verdict = is_answer_correct(question, answer)
    if verdict is None:
        return QuestionStatus.ANSWERED_PENDING
    return QuestionStatus.ANSWERED_CORRECT if verdict else QuestionStatus.ANSWERED_INCORRECT


def get_incorrect_questions(
    questions: List[Question],
    answers: Dict[int, Answer],
) -> List[Question]:
    """
    오답 문제 리스트를 반환한다 (오답 노트용).

    오답 판정 기준:
    - 사용자가 선택한 답이 정답과 다른 경우
    - 사용자가 아예 응답하지 않은 경우 (미응답 포함)
    - 자동 채점이 불가능한 문제는 제외

    Returns:
        오답 Question 리스트. 원본 순서 유지.
    """
    incorrect: List[Question] = []

    for q in questions:
        answer = answers.get(q.id)
        if is_unanswered(answer):
            if not is_gradable(q):
                # 정답 정보 자체가 없는 문제는 채점 불가 → 제외
                continue
            incorrect.append(q)
            continue
        if is_answer_correct(q, answer) is False:
            incorrect.append(q)

    return incorrect


def _elapsed_seconds(start: Optional[datetime], end: Optional[datetime]) -> int:
    if start is None or end is None:
        return 0
    return max(0, int((end - start).total_seconds()))


def calculate_exam_statistics(
    questions: List[Question],
    answers: Dict[int, Answer],
    review_mode: bool,
    start_time: Optional[datetime],
    end_time: Optional[datetime],
    now: datetime,
    passing_score: Optional[float] = None,
    penalty_per_incorrect: float = 0.0,
) -> ExamStatistics:
    """
    세션 상세 통계. 점수/백분율은 검토 모드에서만 계산한다.
    종료 시각이 없으면 now까지의 경과 시간을 쓴다.
    """
    status_counts = {status: 0 for status in QuestionStatus}
    for q in questions:
        status_counts[get_question_status(q, answers.get(q.id), review_mode)] += 1

    score = percentage = penalty = 0.0
    if review_mode:
        result = calculate_exam_score(
            questions, answers, passing_score, penalty_per_incorrect
        )
        score, percentage, penalty = result.score, result.percentage, result.penalty

    return ExamStatistics(
        total=len(questions),
        answered=len(answers),
        correct=status_counts[QuestionStatus.ANSWERED_CORRECT],
        incorrect=status_counts[QuestionStatus.ANSWERED_INCORRECT],
        unanswered=status_counts[QuestionStatus.UNANSWERED],
        score=score,
        percentage=percentage,
        penalty=penalty,
        time_spent=_elapsed_seconds(start_time, end_time or now),
        status_counts=status_counts,
    )


def format_exam_result(
    attempt: ExamAttempt,
    questions: List[Question],
    passing_score: Optional[float] = None,
    now: Optional[datetime] = None,
) -> ExamResult:
    """응시 기록 + 문제로 결과 화면용 ExamResult를 만든다."""
    result = calculate_exam_score(questions, attempt.answers, passing_score)
    completed_at = attempt.completed_at or now or datetime.now(timezone.utc)

    return ExamResult(
        attempt_id=attempt.id,
        exam_id=attempt.exam_id,
        user_id=attempt.user_id,
        total_questions=len(questions),
        answered_questions=result.correct_count + result.incorrect_count,
        correct_answers=result.correct_count,
        score=result.score,
        percentage=result.percentage,
        passed=result.passed,
        time_spent=_elapsed_seconds(attempt.started_at, completed_at),
        completed_at=completed_at,
    )


def calculate_attempt_statistics(
    attempts: List[ExamAttempt],
    passing_score: Optional[float] = None,
) -> AttemptStatistics:
    """
    여러 응시 기록 집계. 평균/최고 점수는 완료된 응시만 대상으로 한다.
    """
    if not attempts:
        return AttemptStatistics()

    completed = [a for a in attempts if a.completed_at is not None]
    passed = [
        a for a in completed
        if a.percentage is not None and is_passed(a.percentage, passing_score)
    ]

    percentages = [a.percentage or 0.0 for a in completed]
    times = [
        a.time_spent if a.time_spent is not None
        else _elapsed_seconds(a.started_at, a.completed_at)
        for a in completed
    ]

    return AttemptStatistics(
        total_attempts=len(attempts),
        completed_attempts=len(completed),
        passed_attempts=len(passed),
        average_score=sum(percentages) / len(completed) if completed else 0.0,
        average_time_spent=sum(times) / len(completed) if completed else 0.0,
        best_score=max(percentages) if completed else 0.0,
    )
