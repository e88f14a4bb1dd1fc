"""
services/answer_tracker.py

답안 기록/검증 로직.
순수 Python 함수로 구성. 답안지(dict)를 받아 새 답안지를 돌려주며 원본은 건드리지 않는다.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Union

from exam_cbt.errors import ExamValidationError
from exam_cbt.models.question_model import Question, QuestionType
from exam_cbt.models.session_state import Answer

Selection = Union[str, Sequence[str]]


def normalize_selection(selection: Selection) -> List[str]:
    """
    단일 값 또는 시퀀스를 보기 ID 리스트로 정규화한다.

    중복은 첫 등장 순서를 유지하며 제거하고, 빈 문자열은 버린다.
    """
    if selection is None:
        return []
    if isinstance(selection, (str, int)):
        items: Iterable = [selection]
    else:
        items = selection

    normalized: List[str] = []
    for item in items:
        value = str(item).strip()
        if value and value not in normalized:
            normalized.append(value)
    return normalized


def build_answer(question: Question, selection: Selection) -> Answer:
    """
    문제 유형에 맞는 Answer를 만든다.

    단답형은 selection을 텍스트 답안으로 취급하고,
    그 외 유형은 selection의 보기 ID가 모두 문제의 보기에 있어야 한다.

    Raises:
        ExamValidationError: 존재하지 않는 보기 ID가 포함된 경우.
    """
    if question.type == QuestionType.SHORT_ANSWER:
        if isinstance(selection, str):
            text = selection
        else:
            text = " ".join(str(s) for s in (selection or []))
        return Answer(question_id=question.id, text_answer=text)

    selected = normalize_selection(selection)
    unknown = [opt for opt in selected if opt not in question.option_ids]
    if unknown:
        raise ExamValidationError(
            f"문제 {question.id}에 없는 보기입니다: {unknown}"
        )
    return Answer(question_id=question.id, selected_options=selected)


def record_answer(answers: Dict[int, Answer], answer: Answer) -> Dict[int, Answer]:
    """답안을 교체(replace-not-merge)한 새 답안지를 반환한다."""
    updated = dict(answers)
    updated[answer.question_id] = answer
    return updated


def has_answer(answers: Dict[int, Answer], question_id: int) -> bool:
    """답안 항목이 존재하는지 여부 (완성도와 무관)."""
    return question_id in answers


def is_answer_complete(question: Question, answer: Optional[Answer]) -> bool:
    """
    문제 유형별로 답안이 '완성'되었는지 판정한다.

    - multipleChoice:        1개 이상 선택
    - singleChoice/trueFalse: 정확히 1개 선택
    - matching:              선택 수 == 보기 수
    - shortAnswer:           공백 제거 후 비어 있지 않은 텍스트
    """
    if answer is None:
        return False

    selected = answer.selected_options
    if question.type == QuestionType.MULTIPLE_CHOICE:
        return len(selected) >= 1
    if question.type in (QuestionType.SINGLE_CHOICE, QuestionType.TRUE_FALSE):
        return len(selected) == 1
    if question.type == QuestionType.MATCHING:
        return len(selected) == len(question.options)
    if question.type == QuestionType.SHORT_ANSWER:
        return bool((answer.text_answer or "").strip())
    return False


def get_default_answer(question: Question) -> Answer:
    """아직 답하지 않은 문제에 대한 빈 답안 (UI 초기값용, 답안지에는 넣지 않는다)."""
    if question.type == QuestionType.SHORT_ANSWER:
        return Answer(question_id=question.id, text_answer="")
    return Answer(question_id=question.id, selected_options=[])


def count_answered(answers: Dict[int, Answer]) -> int:
    return len(answers)


def count_complete(questions: List[Question], answers: Dict[int, Answer]) -> int:
    """완성 판정을 통과한 답안 수."""
    return sum(1 for q in questions if is_answer_complete(q, answers.get(q.id)))


def completion_percentage(answered_count: int, total_questions: int) -> float:
    """answered / total * 100. 문제가 없으면 0."""
    if total_questions <= 0:
        return 0.0
    return answered_count / total_questions * 100
