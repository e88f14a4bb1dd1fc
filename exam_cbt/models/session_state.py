"""
models/session_state.py

시험 응시 세션 상태를 담는 OMR 카드 모델.
Pydantic BaseModel 기반 — 직렬화/역직렬화 및 타입 안전성 확보.
UI 코드 없음.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from exam_cbt.models.question_model import Question


class SessionStatus(str, Enum):
    """세션 상태 머신의 상태."""

    IDLE = "idle"
    IN_PROGRESS = "inProgress"
    PAUSED = "paused"
    COMPLETED = "completed"


class QuestionStatus(str, Enum):
    UNANSWERED = "UNANSWERED"
    ANSWERED_PENDING = "PENDING"      # 답은 했지만 정오 미공개 (시험 중)
    ANSWERED_CORRECT = "CORRECT"
    ANSWERED_INCORRECT = "INCORRECT"


class Answer(BaseModel):
    """
    문제 하나에 대한 답안.

    Attributes:
        question_id:      답한 문제 ID.
        selected_options: 선택한 보기 ID 리스트. 집합처럼 다룬다 (순서 무관, 중복 불가).
        text_answer:      단답형 답안 텍스트.
    """

    model_config = ConfigDict(populate_by_name=True)

    question_id: int = Field(..., alias="questionId")
    selected_options: List[str] = Field(default_factory=list, alias="selectedOptions")
    text_answer: Optional[str] = Field(None, alias="textAnswer")


class ExamSession(BaseModel):
    """
    사용자의 시험 응시 세션 전체 상태를 표현하는 모델.

    Attributes:
        exam_id:                시험 ID. None이면 Idle(시작 전) 상태.
        attempt_id:             백엔드가 발급한 응시 ID. 발급 전에는 None.
        questions:              문제 리스트 (세션 동안 고정).
        current_question_index: 현재 풀고 있는 문제의 인덱스 (0-based).
        time_remaining:         남은 시간 (초).
        start_time / end_time:  시작/종료 시각. end_time은 완료 시에만 설정.
        answers:                답안지. {question.id: Answer}
        flagged_questions:      검토 표시한 문제 ID 집합.
        visited_questions:      화면에 표시된 적 있는 문제 인덱스 집합.
        passing_score:          이 시험의 합격 기준. None이면 기본값 사용.
    """

    exam_id: Optional[int] = None
    attempt_id: Optional[str] = None
    questions: List[Question] = Field(default_factory=list)
    current_question_index: int = Field(default=0, ge=0)
    time_remaining: int = Field(default=0, ge=0)
    duration_minutes: int = Field(default=0, ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    answers: Dict[int, Answer] = Field(default_factory=dict)
    flagged_questions: Set[int] = Field(default_factory=set)
    visited_questions: Set[int] = Field(default_factory=set)
    passing_score: Optional[float] = None

    # UI 상태
    is_paused: bool = False
    is_completed: bool = False
    review_mode: bool = False
    show_summary: bool = False

    @property
    def question_ids(self) -> List[int]:
        return [q.id for q in self.questions]

    @property
    def status(self) -> SessionStatus:
        if self.exam_id is None:
            return SessionStatus.IDLE
        if self.is_completed:
            return SessionStatus.COMPLETED
        if self.is_paused:
            return SessionStatus.PAUSED
        return SessionStatus.IN_PROGRESS

    def find_question(self, question_id: int) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)


class SubmissionPayload(BaseModel):
    """완료 시 제출 백엔드로 넘길 묶음. 네트워크 전송은 엔진 밖에서 한다."""

    model_config = ConfigDict(populate_by_name=True)

    exam_id: Optional[int] = Field(None, alias="examId")
    attempt_id: Optional[str] = Field(None, alias="attemptId")
    answers: Dict[int, Answer] = Field(default_factory=dict)
    time_spent: int = Field(0, ge=0, alias="timeSpent")
