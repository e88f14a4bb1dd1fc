"""
services/session_store.py

시험 응시 세션 저장소 (aggregate root).

응시 하나당 인스턴스 하나를 만들어 참조로 넘긴다 (전역 싱글톤 없음).
모든 변경은 새 ExamSession 을 만들어 한 번에 교체하므로, 외부에서는
부분적으로 바뀐 상태를 관찰할 수 없다. 변경이 받아들여지면
저장(write-through) 후 구독자에게 알린다.

상태 머신:
  Idle ──start_exam──▶ InProgress ◀──resume/pause──▶ Paused
  InProgress ──complete_exam / 타이머 0──▶ Completed
  Completed ──reset_exam / force_reset_exam_state──▶ Idle
"""

import functools
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from exam_cbt.errors import ExamValidationError, PersistenceError, StateConflictError
from exam_cbt.models.question_model import Exam, Question
from exam_cbt.models.result_model import ExamStatistics, ScoreResult
from exam_cbt.models.session_state import (
    Answer,
    ExamSession,
    QuestionStatus,
    SessionStatus,
    SubmissionPayload,
)
from exam_cbt.services import answer_tracker, flag_tracker, navigation
from exam_cbt.services import exam_service
from exam_cbt.services.persistence import PersistenceAdapter
from exam_cbt.services.timer import format_clock, format_time_verbose, is_time_warning, tick

logger = logging.getLogger(__name__)

Listener = Callable[[str, "ExamSessionStore"], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _absorb_errors(method):
    """
    ExamValidationError → 경고 로그 후 무시, StateConflictError → 조용히 무시.
    두 경우 모두 None 을 반환한다. 시험은 중단 없이 계속된다.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except ExamValidationError as e:
            logger.warning(f"{method.__name__} 무시됨: {e}")
        except StateConflictError as e:
            logger.debug(f"{method.__name__} 무시됨: {e}")
        return None

    return wrapper


class ExamSessionStore:
    """
    시험 응시 세션 하나의 생명주기를 관리한다.

    Args:
        persistence:           로컬 저장 어댑터. None 이면 메모리에만 유지.
        clock:                 현재 시각 공급자 (테스트에서 고정 시각 주입).
        penalty_per_incorrect: 오답 감점 (기본 0).
        rehydrate:             생성 시 저장된 세션을 복원할지 여부.
    """

    def __init__(
        self,
        persistence: Optional[PersistenceAdapter] = None,
        clock: Callable[[], datetime] = _utcnow,
        penalty_per_incorrect: float = 0.0,
        rehydrate: bool = True,
    ) -> None:
        self._persistence = persistence
        self._clock = clock
        self._penalty = penalty_per_incorrect
        self._session = ExamSession()
        self._listeners: List[Listener] = []

        # 복원은 소비자에게 넘기기 전에 한 번, 동기적으로
        if rehydrate:
            self.rehydrate()

    # ── 내부 헬퍼 ───────────────────────────────────────────────────────────

    @property
    def session(self) -> ExamSession:
        """현재 세션 (읽기 전용으로 다룰 것)."""
        return self._session

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    def _require_started(self, action: str) -> ExamSession:
        if self._session.exam_id is None:
            raise StateConflictError(f"{action}: 진행 중인 시험이 없습니다.")
        return self._session

    def _require_mutable(self, action: str) -> ExamSession:
        session = self._require_started(action)
        if session.is_completed:
            raise StateConflictError(f"{action}: 이미 완료된 시험입니다.")
        return session

    def _require_question(self, session: ExamSession, question_id: int) -> Question:
        question = session.find_question(question_id)
        if question is None:
            raise ExamValidationError(f"세션에 없는 문제 ID입니다: {question_id}")
        return question

    def _commit(self, event: str, session: ExamSession) -> None:
        """새 세션으로 교체 → 저장 → 구독자 알림."""
        self._session = session
        if self._persistence is not None:
            self._persistence.save(session)
        self._notify(event)

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception:
                logger.exception(f"구독자 처리 중 오류 (event={event})")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        변경 알림 구독. listener(event, store) 형태로 호출된다.

        Returns:
            구독 해제 함수.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── 복원 ────────────────────────────────────────────────────────────────

    def rehydrate(self) -> bool:
        """
        저장된 세션을 복원한다.

        Returns:
            복원에 성공하면 True. 레코드가 없거나 손상되었으면 False (Idle 유지).
        """
        if self._persistence is None:
            return False
        try:
            restored = self._persistence.load()
        except PersistenceError as e:
            logger.error(f"저장된 세션 복원 실패, 새로 시작해야 합니다: {e}")
            self._session = ExamSession()
            self._persistence.clear()
            return False

        if restored is None:
            return False

        self._session = restored
        logger.info(
            f"세션 복원 완료 - exam_id={restored.exam_id}, "
            f"문제 {len(restored.questions)}개, 답안 {len(restored.answers)}개, "
            f"남은 시간 {restored.time_remaining}초"
        )
        return True

    # ── 시작 / 종료 ─────────────────────────────────────────────────────────

    @_absorb_errors
    def start_exam(
        self,
        exam_id: int,
        questions: Sequence[Any],
        duration_minutes: int,
        passing_score: Optional[float] = None,
    ) -> None:
        """
        새 시험을 시작한다.

        이전 세션은 저장소까지 완전히 지운 뒤 시작한다 (이전 답안/플래그 유입 방지).
        questions 는 Question 또는 같은 형태의 dict.
        """
        if duration_minutes is None or duration_minutes <= 0:
            raise ExamValidationError(f"시험 시간은 1분 이상이어야 합니다: {duration_minutes}")
        if passing_score is not None and not 0 <= passing_score <= 100:
            raise ExamValidationError(f"합격 기준은 0~100 사이여야 합니다: {passing_score}")

        try:
            parsed = [q if isinstance(q, Question) else Question.model_validate(q) for q in questions]
        except ValidationError as e:
            raise ExamValidationError(f"문제 데이터 형식 오류: {e.error_count()}개") from e
        ids = [q.id for q in parsed]
        if len(ids) != len(set(ids)):
            raise ExamValidationError(f"문제 ID가 중복되었습니다: {ids}")

        self.force_reset_exam_state()

        session = ExamSession(
            exam_id=exam_id,
            questions=parsed,
            current_question_index=0,
            time_remaining=int(duration_minutes) * 60,
            duration_minutes=int(duration_minutes),
            start_time=self._clock(),
            visited_questions={0} if parsed else set(),
            passing_score=passing_score,
        )
        self._commit("started", session)
        logger.info(
            f"시험 시작 - exam_id={exam_id}, 문제 {len(parsed)}개, 제한 시간 {duration_minutes}분"
        )

    def start_exam_from(self, exam: Exam, questions: Sequence[Any]) -> None:
        """시험 메타데이터의 제한 시간/합격 기준으로 시작한다."""
        self.start_exam(exam.id, questions, exam.duration_minutes, exam.passing_score)

    @_absorb_errors
    def set_attempt_id(self, attempt_id: str) -> None:
        """제출 백엔드가 응시 생성을 확인하면 발급한 ID를 붙인다."""
        session = self._require_mutable("set_attempt_id")
        self._commit("attempt_id", session.model_copy(update={"attempt_id": str(attempt_id)}))
        logger.debug(f"응시 ID 설정: {attempt_id}")

    @_absorb_errors
    def complete_exam(self) -> Optional[SubmissionPayload]:
        """
        시험을 완료한다 (되돌릴 수 없음).

        Returns:
            제출 백엔드로 넘길 SubmissionPayload. 이미 완료되었거나 Idle 이면 None.
        """
        session = self._require_mutable("complete_exam")
        self._commit("completed", self._completed(session, session.time_remaining))

        payload = self.build_submission()
        logger.info(
            f"시험 완료 - exam_id={session.exam_id}, attempt_id={session.attempt_id}, "
            f"답안 {len(session.answers)}/{len(session.questions)}, 소요 {payload.time_spent}초"
        )
        return payload

    def _completed(self, session: ExamSession, time_remaining: int) -> ExamSession:
        return session.model_copy(update={
            "time_remaining": time_remaining,
            "is_completed": True,
            "is_paused": False,
            "end_time": self._clock(),
        })

    def reset_exam(self) -> None:
        """Idle 상태로 되돌린다. 어떤 상태에서도 호출 가능."""
        self._commit("reset", ExamSession())
        logger.info("시험 세션 초기화")

    def force_reset_exam_state(self) -> None:
        """Idle 로 되돌리고 저장소의 현재/예전 키까지 모두 지운다."""
        logger.info("시험 세션 강제 초기화 (저장소 포함)")
        if self._persistence is not None:
            self._persistence.purge_all()
        self._session = ExamSession()
        self._notify("reset")

    # ── 답안 / 플래그 ───────────────────────────────────────────────────────

    @_absorb_errors
    def answer_question(self, question_id: int, selection: answer_tracker.Selection) -> None:
        """
        답안을 기록한다. 이전 답안은 통째로 교체된다.
        빈 선택(빈 리스트/공백 텍스트)은 답안을 지워 미응답으로 되돌린다.
        """
        session = self._require_mutable("answer_question")
        question = self._require_question(session, question_id)
        answer = answer_tracker.build_answer(question, selection)

        if exam_service.is_unanswered(answer):
            answers = {k: v for k, v in session.answers.items() if k != question_id}
            logger.debug(f"답안 삭제: 문제 {question_id}")
        else:
            answers = answer_tracker.record_answer(session.answers, answer)
            logger.debug(f"답안 기록: 문제 {question_id} → {answer.selected_options or answer.text_answer!r}")

        self._commit("answered", session.model_copy(update={"answers": answers}))

    @_absorb_errors
    def toggle_flag_question(self, question_id: int) -> None:
        session = self._require_mutable("toggle_flag_question")
        self._require_question(session, question_id)
        flagged = flag_tracker.toggle_flag(session.flagged_questions, question_id)
        self._commit("flagged", session.model_copy(update={"flagged_questions": flagged}))
        logger.debug(f"플래그 {'설정' if question_id in flagged else '해제'}: 문제 {question_id}")

    # ── 이동 ────────────────────────────────────────────────────────────────

    def _move_to(self, session: ExamSession, index: int) -> None:
        visited = navigation.mark_visited(session.visited_questions, index)
        self._commit("navigated", session.model_copy(update={
            "current_question_index": index,
            "visited_questions": visited,
        }))
        logger.debug(f"문제 이동: {session.current_question_index} → {index}")

    @_absorb_errors
    def navigate_to_question(self, index: int) -> None:
        session = self._require_mutable("navigate_to_question")
        target = navigation.resolve_target(index, len(session.questions))
        self._move_to(session, target)

    @_absorb_errors
    def next_question(self) -> None:
        session = self._require_mutable("next_question")
        target = navigation.next_index(session.current_question_index, len(session.questions))
        if target is None:
            raise ExamValidationError(
                f"이미 마지막 문제입니다 (index={session.current_question_index})"
            )
        self._move_to(session, target)

    @_absorb_errors
    def previous_question(self) -> None:
        session = self._require_mutable("previous_question")
        target = navigation.previous_index(session.current_question_index)
        if target is None:
            raise ExamValidationError("이미 첫 번째 문제입니다 (index=0)")
        self._move_to(session, target)

    # ── 타이머 ──────────────────────────────────────────────────────────────

    @_absorb_errors
    def pause_exam(self) -> None:
        session = self._require_mutable("pause_exam")
        if session.is_paused:
            return
        self._commit("paused", session.model_copy(update={"is_paused": True}))
        logger.debug("시험 일시정지")

    @_absorb_errors
    def resume_exam(self) -> None:
        session = self._require_mutable("resume_exam")
        if not session.is_paused:
            return
        self._commit("resumed", session.model_copy(update={"is_paused": False}))
        logger.debug("시험 재개")

    @_absorb_errors
    def decrement_timer(self) -> None:
        """
        1초 감소. 외부 스케줄러가 경과 1초마다 한 번 호출한다.
        0에 도달하는 틱에서 즉시 완료 처리한다.
        """
        session = self._require_mutable("decrement_timer")
        result = tick(session.time_remaining, session.is_paused)
        if result.time_remaining == session.time_remaining:
            return

        if result.expired:
            self._commit("expired", self._completed(session, 0))
            logger.info(f"시험 시간 종료 - exam_id={session.exam_id}, 자동 제출 처리")
            self._notify("completed")
            return

        if result.time_remaining % 60 == 0:
            logger.debug(f"남은 시간 {result.time_remaining // 60}분")
        self._commit("tick", session.model_copy(update={"time_remaining": result.time_remaining}))

    # ── 화면 토글 (완료 후에도 허용) ────────────────────────────────────────

    @_absorb_errors
    def set_review_mode(self, enabled: bool) -> None:
        """검토 모드. 켜져 있으면 문제 상태에 정오가 드러난다. 답안은 바꾸지 않는다."""
        session = self._require_started("set_review_mode")
        self._commit("review_mode", session.model_copy(update={"review_mode": bool(enabled)}))
        logger.debug(f"검토 모드: {bool(enabled)}")

    @_absorb_errors
    def toggle_summary(self) -> None:
        session = self._require_started("toggle_summary")
        self._commit("summary", session.model_copy(update={"show_summary": not session.show_summary}))

    # ══════════════════════════════════════════════════════════════════════
    # 읽기 전용 조회
    # ══════════════════════════════════════════════════════════════════════

    @property
    def current_question(self) -> Optional[Question]:
        session = self._session
        if not session.questions:
            return None
        return session.questions[session.current_question_index]

    def has_answer(self, question_id: int) -> bool:
        return answer_tracker.has_answer(self._session.answers, question_id)

    def get_answer(self, question_id: int) -> Optional[Answer]:
        return self._session.answers.get(question_id)

    def is_answer_complete(self, question_id: int) -> bool:
        question = self._session.find_question(question_id)
        if question is None:
            return False
        return answer_tracker.is_answer_complete(question, self.get_answer(question_id))

    def is_flagged(self, question_id: int) -> bool:
        return flag_tracker.is_flagged(self._session.flagged_questions, question_id)

    def is_visited(self, index: int) -> bool:
        return index in self._session.visited_questions

    def get_answered_questions_count(self) -> int:
        return answer_tracker.count_answered(self._session.answers)

    def get_complete_answers_count(self) -> int:
        return answer_tracker.count_complete(self._session.questions, self._session.answers)

    def get_flagged_questions_count(self) -> int:
        return len(self._session.flagged_questions)

    def get_completion_percentage(self) -> float:
        return answer_tracker.completion_percentage(
            self.get_answered_questions_count(), len(self._session.questions)
        )

    def get_progress(self) -> Dict[str, Any]:
        return {
            "current": self._session.current_question_index + 1 if self._session.questions else 0,
            "total": len(self._session.questions),
            "percentage": self.get_completion_percentage(),
            "answered": self.get_answered_questions_count(),
            "flagged": self.get_flagged_questions_count(),
        }

    def get_navigation(self) -> Dict[str, Any]:
        session = self._session
        total = len(session.questions)
        idx = session.current_question_index
        return {
            "current_index": idx,
            "total": total,
            "has_previous": total > 0 and idx > 0,
            "has_next": idx < total - 1,
            "visited": sorted(session.visited_questions),
        }

    def get_question_status(self, question_id: int) -> QuestionStatus:
        question = self._session.find_question(question_id)
        if question is None:
            return QuestionStatus.UNANSWERED
        return exam_service.get_question_status(
            question, self.get_answer(question_id), self._session.review_mode
        )

    def get_questions_with_status(self) -> List[Dict[str, Any]]:
        """문제 번호 그리드용: 문제별 상태/플래그/방문 여부."""
        rows = []
        for idx, q in enumerate(self._session.questions):
            rows.append({
                "index": idx,
                "question_id": q.id,
                "status": self.get_question_status(q.id),
                "flagged": self.is_flagged(q.id),
                "visited": self.is_visited(idx),
                "current": idx == self._session.current_question_index,
            })
        return rows

    def get_remaining_time_formatted(self) -> str:
        return format_time_verbose(self._session.time_remaining)

    def get_timer(self) -> Dict[str, Any]:
        session = self._session
        return {
            "time_remaining": session.time_remaining,
            "formatted": format_time_verbose(session.time_remaining),
            "clock": format_clock(session.time_remaining),
            "is_warning": session.exam_id is not None and is_time_warning(session.time_remaining),
            "is_paused": session.is_paused,
            "start_time": session.start_time,
            "end_time": session.end_time,
        }

    def get_time_spent(self) -> int:
        session = self._session
        if session.start_time is None:
            return 0
        if session.is_completed and session.end_time is None:
            # 종료 시각 없이 저장된 완료 세션: 타이머 기준으로 고정
            return max(0, session.duration_minutes * 60 - session.time_remaining)
        end = session.end_time or self._clock()
        return max(0, int((end - session.start_time).total_seconds()))

    def calculate_score(self) -> ScoreResult:
        """현재 답안지 채점 (순수 함수 위임)."""
        return exam_service.calculate_exam_score(
            self._session.questions,
            self._session.answers,
            self._session.passing_score,
            self._penalty,
        )

    def get_exam_statistics(self) -> ExamStatistics:
        session = self._session
        return exam_service.calculate_exam_statistics(
            session.questions,
            session.answers,
            session.review_mode,
            session.start_time,
            session.end_time,
            self._clock(),
            session.passing_score,
            self._penalty,
        )

    def build_submission(self) -> SubmissionPayload:
        session = self._session
        return SubmissionPayload(
            exam_id=session.exam_id,
            attempt_id=session.attempt_id,
            answers=dict(session.answers),
            time_spent=self.get_time_spent(),
        )

    def snapshot(self) -> Dict[str, Any]:
        """UI/API 응답용 상태 요약 (JSON 직렬화 가능)."""
        session = self._session
        return {
            "status": session.status.value,
            "exam_id": session.exam_id,
            "attempt_id": session.attempt_id,
            "current_question_index": session.current_question_index,
            "total": len(session.questions),
            "question_ids": session.question_ids,
            "answers": {
                str(qid): a.model_dump(by_alias=True) for qid, a in session.answers.items()
            },
            "flagged_questions": sorted(session.flagged_questions),
            "visited_questions": sorted(session.visited_questions),
            "is_paused": session.is_paused,
            "is_completed": session.is_completed,
            "review_mode": session.review_mode,
            "show_summary": session.show_summary,
            "progress": self.get_progress(),
            "timer": {
                **self.get_timer(),
                "start_time": session.start_time.isoformat() if session.start_time else None,
                "end_time": session.end_time.isoformat() if session.end_time else None,
            },
        }
