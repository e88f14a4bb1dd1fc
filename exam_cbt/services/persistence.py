"""
services/persistence.py

세션 상태를 로컬 저장소에 저장/복원하는 어댑터.

설계 원칙:
- 허용 목록(allow-list)에 있는 필드만 저장 (partialize)
- 집합(set)은 저장 경계에서 항상 정렬된 리스트로 변환하고, 복원 시 다시 집합으로
- 손상되었거나 스키마가 맞지 않는 레코드는 PersistenceError 로 통일해서 올린다
  (호출자인 세션 저장소가 로그를 남기고 Idle 로 되돌린다)
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Set

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from config import STORAGE_DIR, STORAGE_KEY
from exam_cbt.errors import PersistenceError
from exam_cbt.models.question_model import Question
from exam_cbt.models.session_state import Answer, ExamSession

# ── 로거 설정 ────────────────────────────────────────────────────────────────
logger = logging.getLogger(__name__)


class ExamStorageKeys:
    """저장소 키. 강제 초기화 시 예전 키들도 함께 지운다."""

    MAIN = STORAGE_KEY
    LEGACY = "exam-store"
    DEPRECATED_1 = "exams-prep-exam"
    DEPRECATED_2 = "zustand-exam"

    @classmethod
    def all(cls) -> List[str]:
        return [cls.MAIN, cls.LEGACY, cls.DEPRECATED_1, cls.DEPRECATED_2]


# ══════════════════════════════════════════════════════════════════════════════
# 저장소 백엔드
# ══════════════════════════════════════════════════════════════════════════════

class StorageBackend(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """프로세스 메모리 저장소 (테스트, 단발성 실행용)."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class FileStorage:
    """
    키 하나당 JSON 파일 하나. 쓰기는 임시 파일 → os.replace 로 원자적으로 처리.
    """

    def __init__(self, directory: str = STORAGE_DIR) -> None:
        self.directory = directory

    def _path(self, key: str) -> str:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return os.path.join(self.directory, f"{safe}.json")

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def set_item(self, key: str, value: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, self._path(key))
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)


# ══════════════════════════════════════════════════════════════════════════════
# 저장 레코드 스키마
# ══════════════════════════════════════════════════════════════════════════════

def set_to_list(values: Iterable[int]) -> List[int]:
    """집합 → 정렬된 리스트 (저장 형식은 집합 의미를 보장하지 않는다)."""
    return sorted(set(values))


def list_to_set(values: Optional[Iterable[int]]) -> Set[int]:
    """리스트 → 집합. None 은 빈 집합."""
    return set(values or [])


class PersistedSession(BaseModel):
    """
    저장 레코드 (camelCase 키).

    { examId, attemptId, questions, currentQuestionIndex, timeRemaining,
      durationMinutes, startTime, endTime, answers, flaggedQuestions,
      visitedQuestions, isPaused, isCompleted, passingScore }

    endTime 은 완료된 세션에만 있다 (복원 후에도 소요 시간이 고정되도록).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    exam_id: int
    attempt_id: Optional[str] = None
    questions: List[Question]
    current_question_index: int = Field(ge=0)
    time_remaining: int = Field(ge=0)
    duration_minutes: int = Field(0, ge=0)
    start_time: datetime
    end_time: Optional[datetime] = None
    answers: Dict[int, Answer] = Field(default_factory=dict)
    flagged_questions: List[int] = Field(default_factory=list)
    visited_questions: List[int] = Field(default_factory=list)
    is_paused: bool = False
    is_completed: bool = False
    passing_score: Optional[float] = None


def partialize(session: ExamSession) -> PersistedSession:
    """세션에서 저장 대상 필드만 골라낸다."""
    return PersistedSession(
        exam_id=session.exam_id,
        attempt_id=session.attempt_id,
        questions=session.questions,
        current_question_index=session.current_question_index,
        time_remaining=session.time_remaining,
        duration_minutes=session.duration_minutes,
        start_time=session.start_time,
        end_time=session.end_time,
        answers=session.answers,
        flagged_questions=set_to_list(session.flagged_questions),
        visited_questions=set_to_list(session.visited_questions),
        is_paused=session.is_paused,
        is_completed=session.is_completed,
        passing_score=session.passing_score,
    )


def _check_consistency(record: PersistedSession) -> None:
    """복원된 레코드가 세션 불변식을 만족하는지 검사한다."""
    total = len(record.questions)
    question_ids = {q.id for q in record.questions}

    if total > 0 and record.current_question_index >= total:
        raise PersistenceError(
            f"currentQuestionIndex={record.current_question_index} 가 문제 수({total})를 벗어납니다."
        )
    if record.time_remaining == 0 and not record.is_completed:
        raise PersistenceError("남은 시간이 0인데 완료되지 않은 세션입니다.")
    if record.end_time is not None and not record.is_completed:
        raise PersistenceError("종료 시각이 있는데 완료되지 않은 세션입니다.")

    unknown_answers = set(record.answers) - question_ids
    if unknown_answers:
        raise PersistenceError(f"세션에 없는 문제의 답안: {sorted(unknown_answers)}")
    for qid, answer in record.answers.items():
        if answer.question_id != qid:
            raise PersistenceError(f"답안 키({qid})와 questionId({answer.question_id})가 다릅니다.")

    unknown_flags = set(record.flagged_questions) - question_ids
    if unknown_flags:
        raise PersistenceError(f"세션에 없는 문제의 플래그: {sorted(unknown_flags)}")
    bad_visited = [i for i in record.visited_questions if not 0 <= i < total]
    if bad_visited:
        raise PersistenceError(f"범위를 벗어난 방문 인덱스: {bad_visited}")


def hydrate(record: PersistedSession) -> ExamSession:
    """레코드 → ExamSession. 리스트는 집합으로 복원한다."""
    return ExamSession(
        exam_id=record.exam_id,
        attempt_id=record.attempt_id,
        questions=record.questions,
        current_question_index=record.current_question_index,
        time_remaining=record.time_remaining,
        duration_minutes=record.duration_minutes,
        start_time=record.start_time,
        end_time=record.end_time,
        answers=record.answers,
        flagged_questions=list_to_set(record.flagged_questions),
        visited_questions=list_to_set(record.visited_questions),
        is_paused=record.is_paused,
        is_completed=record.is_completed,
        passing_score=record.passing_score,
    )


def serialize_session(session: ExamSession) -> str:
    return partialize(session).model_dump_json(by_alias=True)


def deserialize_session(raw: str) -> ExamSession:
    """
    JSON 문자열 → ExamSession.

    Raises:
        PersistenceError: JSON 파싱 실패, 스키마 불일치, 불변식 위반.
    """
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise PersistenceError(f"저장된 세션 JSON 파싱 실패: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceError(f"저장된 세션 형식이 올바르지 않습니다: {type(data).__name__}")

    try:
        record = PersistedSession.model_validate(data)
    except ValidationError as e:
        raise PersistenceError(f"저장된 세션 스키마 불일치: {e.error_count()}개 오류") from e
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        raise PersistenceError(f"저장된 세션 레코드 해석 실패: {e!r}") from e

    _check_consistency(record)
    return hydrate(record)


# ══════════════════════════════════════════════════════════════════════════════
# Public API
# ══════════════════════════════════════════════════════════════════════════════

class PersistenceAdapter:
    """
    세션 저장소와 로컬 저장소 사이의 어댑터.

    save() 실패는 로그만 남긴다. 엔진은 저장을 기다리거나 실패로 멈추지 않는다.
    load() 는 레코드가 없으면 None, 손상되었으면 PersistenceError.
    """

    def __init__(self, storage: Optional[StorageBackend] = None, key: str = ExamStorageKeys.MAIN) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.key = key

    def save(self, session: ExamSession) -> bool:
        if session.exam_id is None:
            # Idle 상태는 저장할 내용이 없다
            self.clear()
            return True
        try:
            self.storage.set_item(self.key, serialize_session(session))
            return True
        except (OSError, ValueError) as e:
            logger.error(f"세션 저장 실패 (key={self.key}): {e}")
            return False

    def load(self) -> Optional[ExamSession]:
        try:
            raw = self.storage.get_item(self.key)
        except OSError as e:
            raise PersistenceError(f"저장소 읽기 실패 (key={self.key}): {e}") from e
        if raw is None:
            logger.debug(f"복원할 세션 없음 (key={self.key})")
            return None
        return deserialize_session(raw)

    def clear(self) -> None:
        try:
            self.storage.remove_item(self.key)
        except OSError as e:
            logger.warning(f"세션 레코드 삭제 실패 (key={self.key}): {e}")

    def purge_all(self) -> None:
        """현재 키와 예전 키를 모두 지운다. 키 하나의 실패가 나머지를 막지 않는다."""
        keys = [self.key] + [k for k in ExamStorageKeys.all() if k != self.key]
        for key in keys:
            try:
                self.storage.remove_item(key)
                logger.debug(f"저장된 세션 삭제: {key}")
            except OSError as e:
                logger.warning(f"저장된 세션 삭제 실패 (key={key}): {e}")
