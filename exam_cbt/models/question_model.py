from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class QuestionType(str, Enum):
    """문제 유형. 값은 콘텐츠 제공자의 JSON 표기를 그대로 따른다."""

    MULTIPLE_CHOICE = "multipleChoice"
    SINGLE_CHOICE = "singleChoice"
    TRUE_FALSE = "trueFalse"
    MATCHING = "matching"
    SHORT_ANSWER = "shortAnswer"


CHOICE_TYPES = frozenset({
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.SINGLE_CHOICE,
    QuestionType.TRUE_FALSE,
    QuestionType.MATCHING,
})


class QuestionOption(BaseModel):
    """보기 하나. id는 문제 안에서만 고유하다."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="보기 ID")
    text: str = Field(..., description="보기 내용")
    is_correct: bool = Field(False, alias="isCorrect", description="정답 보기 여부")


class Question(BaseModel):
    """
    시험 문제 모델
    Pydantic v2 적용, 세션 동안 변경되지 않는다 (frozen).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(
        ...,
        description="문제 ID (고유 식별자)"
    )
    text: str = Field(
        ...,
        min_length=1,
        description="발문/문제 내용"
    )
    type: QuestionType = Field(
        QuestionType.SINGLE_CHOICE,
        description="문제 유형"
    )
    options: List[QuestionOption] = Field(
        default_factory=list,
        description="보기 리스트 (선택형/연결형 문제)"
    )
    correct_answers: Optional[Set[str]] = Field(
        None,
        alias="correctAnswers",
        description="정답 보기 ID 집합 (단답형은 None)"
    )
    point_value: float = Field(
        1,
        gt=0,
        alias="pointValue",
        description="배점"
    )
    explanation: str = Field(
        "",
        description="해설"
    )
    accepted_answers: List[str] = Field(
        default_factory=list,
        alias="acceptedAnswers",
        description="단답형 자동 채점용 허용 답안 (없으면 채점 보류)"
    )

    @field_validator('options')
    @classmethod
    def validate_unique_option_ids(cls, v: List[QuestionOption]) -> List[QuestionOption]:
        """
        검증 로직 1: 보기 ID는 중복될 수 없다.
        """
        ids = [opt.id for opt in v]
        if len(ids) != len(set(ids)):
            raise ValueError(f"보기 ID가 중복되었습니다: {ids}")
        return v

    @model_validator(mode='before')
    @classmethod
    def derive_correct_answers(cls, data):
        """
        검증 로직 2: correctAnswers가 없으면 보기의 isCorrect 표시에서 유도한다.
        단답형은 정답 집합을 갖지 않는다.
        """
        if not isinstance(data, dict):
            return data
        if data.get("correct_answers") is not None or data.get("correctAnswers") is not None:
            return data
        if data.get("type") in (QuestionType.SHORT_ANSWER, QuestionType.SHORT_ANSWER.value):
            return data

        options = data.get("options")
        if not isinstance(options, list):
            return data

        derived = set()
        for opt in options:
            if isinstance(opt, QuestionOption):
                if opt.is_correct:
                    derived.add(opt.id)
            elif not isinstance(opt, dict) or "id" not in opt:
                # 형식이 틀린 보기는 options 필드 검증에서 거부된다
                continue
            elif opt.get("isCorrect", opt.get("is_correct", False)):
                derived.add(str(opt["id"]))
        return {**data, "correct_answers": derived}

    @model_validator(mode='after')
    def validate_options_for_type(self) -> 'Question':
        """
        검증 로직 3: 선택형 문제는 보기가 필요하고, 정답은 보기 안에 있어야 한다.
        """
        if self.type in CHOICE_TYPES:
            if not self.options:
                raise ValueError(f"{self.type.value} 문제에는 보기(options)가 필요합니다.")
            option_ids = {opt.id for opt in self.options}
            unknown = (self.correct_answers or set()) - option_ids
            if unknown:
                raise ValueError(f"정답({sorted(unknown)})이 보기 리스트에 존재하지 않습니다.")
        return self

    @property
    def option_ids(self) -> List[str]:
        return [opt.id for opt in self.options]


class Exam(BaseModel):
    """콘텐츠 제공자가 내려주는 시험 메타데이터."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str = ""
    duration_minutes: int = Field(..., gt=0, alias="durationMinutes")
    passing_score: Optional[float] = Field(
        None,
        ge=0,
        le=100,
        alias="passingScore",
        description="합격 기준 (백분율). None이면 기본값 사용"
    )
