"""
models/result_model.py

채점/통계 결과 모델. 파생 값이며 장기 저장하지 않는다.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from exam_cbt.models.session_state import Answer, QuestionStatus


class ScoreResult(BaseModel):
    """calculate_exam_score() 결과."""

    score: float = 0.0
    total_points: float = 0.0
    correct_count: int = 0
    incorrect_count: int = 0
    unanswered_count: int = 0
    pending_count: int = Field(0, description="자동 채점 불가(단답형) 문제 수")
    percentage: float = 0.0
    penalty: float = 0.0
    passing_score: float
    passed: bool = False


class ExamStatistics(BaseModel):
    """진행 중/완료된 세션의 상세 통계."""

    total: int = 0
    answered: int = 0
    correct: int = 0
    incorrect: int = 0
    unanswered: int = 0
    score: float = 0.0
    percentage: float = 0.0
    penalty: float = 0.0
    time_spent: int = 0
    status_counts: Dict[QuestionStatus, int] = Field(default_factory=dict)


class ExamAttempt(BaseModel):
    """제출 백엔드가 보관하는 응시 기록."""

    id: str
    exam_id: int
    user_id: Optional[str] = None
    answers: Dict[int, Answer] = Field(default_factory=dict)
    started_at: datetime
    completed_at: Optional[datetime] = None
    percentage: Optional[float] = None
    time_spent: Optional[int] = None


class ExamResult(BaseModel):
    """결과 화면용으로 정리한 응시 결과."""

    attempt_id: str
    exam_id: int
    user_id: Optional[str] = None
    total_questions: int
    answered_questions: int
    correct_answers: int
    score: float
    percentage: float
    passed: bool
    time_spent: int
    completed_at: datetime


class AttemptStatistics(BaseModel):
    """여러 응시 기록에 대한 집계."""

    total_attempts: int = 0
    completed_attempts: int = 0
    passed_attempts: int = 0
    average_score: float = 0.0
    average_time_spent: float = 0.0
    best_score: float = 0.0
