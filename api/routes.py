"""
api/routes.py — FastAPI 엔드포인트

엔진의 동작(답안/이동/플래그 등)은 규칙에 어긋나도 예외 없이 무시되므로,
각 엔드포인트는 처리 후의 세션 상태를 그대로 돌려준다.
HTTP 오류는 세션 자체가 없거나 결과를 볼 수 없는 경우에만 낸다.
"""

from typing import Optional, Union

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from config import DEFAULT_DURATION_MINUTES
import api.session as session
from api.sample_questions import SAMPLE_EXAM, SAMPLE_QUESTIONS
from exam_cbt.models.question_model import Question
from exam_cbt.models.session_state import SessionStatus
from exam_cbt.services.answer_tracker import get_default_answer
from exam_cbt.services.exam_service import get_incorrect_questions
from exam_cbt.services.session_store import ExamSessionStore

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class StartExamBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exam_id: int = Field(..., alias="examId")
    questions: list[Question]
    duration_minutes: int = Field(DEFAULT_DURATION_MINUTES, alias="durationMinutes")
    passing_score: Optional[float] = Field(None, alias="passingScore")

class AttemptIdBody(BaseModel):
    attempt_id: str

class AnswerBody(BaseModel):
    question_id: int
    selection: Union[str, list[str]] = ""

class FlagBody(BaseModel):
    question_id: int

class NavigateBody(BaseModel):
    index: int = 0

class ReviewModeBody(BaseModel):
    enabled: bool = True


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _sid(request: Request) -> str:
    return request.state.session_id


def _store(request: Request) -> ExamSessionStore:
    store: ExamSessionStore | None = session.get(_sid(request), "store")
    if store is None:
        raise HTTPException(status_code=404, detail="시험 세션이 없습니다.")
    return store


def _active_store(request: Request) -> ExamSessionStore:
    store = _store(request)
    if store.status == SessionStatus.IDLE:
        raise HTTPException(status_code=404, detail="진행 중인 시험이 없습니다.")
    return store


def _question_to_dict(q: Question, reveal: bool) -> dict:
    """문제 → 응답 dict. reveal 이 False 면 정답/해설을 숨긴다."""
    d = {
        "id": q.id,
        "text": q.text,
        "type": q.type.value,
        "point_value": q.point_value,
        "options": [{"id": o.id, "text": o.text} for o in q.options],
    }
    if reveal:
        d["correct_answers"] = sorted(q.correct_answers or [])
        d["accepted_answers"] = q.accepted_answers
        d["explanation"] = q.explanation
    return d


def _start_timer(request: Request, store: ExamSessionStore, before) -> None:
    # 시작이 거부되면 세션 객체가 바뀌지 않는다
    if store.session is before or store.status == SessionStatus.IDLE:
        raise HTTPException(status_code=400, detail="시험을 시작하지 못했습니다. 문제/시간 설정을 확인해 주세요.")
    session.start_timer(_sid(request))


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.post("/api/start-exam")
async def start_exam(body: StartExamBody, request: Request):
    if not body.questions:
        raise HTTPException(status_code=400, detail="문제가 없습니다.")
    store = _store(request)
    before = store.session
    store.start_exam(body.exam_id, body.questions, body.duration_minutes, body.passing_score)
    _start_timer(request, store, before)
    return {"total": len(store.session.questions), "ok": True}


@router.post("/api/start-sample-exam")
async def start_sample_exam(request: Request):
    store = _store(request)
    before = store.session
    store.start_exam_from(SAMPLE_EXAM, SAMPLE_QUESTIONS)
    _start_timer(request, store, before)
    return {"total": len(SAMPLE_QUESTIONS), "ok": True}


@router.post("/api/attempt-id")
async def set_attempt_id(body: AttemptIdBody, request: Request):
    store = _active_store(request)
    store.set_attempt_id(body.attempt_id)
    return store.snapshot()


@router.post("/api/answer")
async def save_answer(body: AnswerBody, request: Request):
    store = _active_store(request)
    store.answer_question(body.question_id, body.selection)
    return {"ok": store.has_answer(body.question_id), "answered_count": store.get_answered_questions_count()}


@router.post("/api/flag")
async def toggle_flag(body: FlagBody, request: Request):
    store = _active_store(request)
    store.toggle_flag_question(body.question_id)
    return {"flagged": store.is_flagged(body.question_id), "flagged_count": store.get_flagged_questions_count()}


@router.post("/api/navigate")
async def navigate(body: NavigateBody, request: Request):
    store = _active_store(request)
    store.navigate_to_question(body.index)
    return {"index": store.session.current_question_index, "ok": True}


@router.post("/api/next")
async def next_question(request: Request):
    store = _active_store(request)
    store.next_question()
    return {"index": store.session.current_question_index, "ok": True}


@router.post("/api/previous")
async def previous_question(request: Request):
    store = _active_store(request)
    store.previous_question()
    return {"index": store.session.current_question_index, "ok": True}


@router.post("/api/pause")
async def pause_exam(request: Request):
    store = _active_store(request)
    store.pause_exam()
    return store.get_timer()


@router.post("/api/resume")
async def resume_exam(request: Request):
    store = _active_store(request)
    store.resume_exam()
    return store.get_timer()


@router.post("/api/review-mode")
async def set_review_mode(body: ReviewModeBody, request: Request):
    store = _active_store(request)
    store.set_review_mode(body.enabled)
    return {"review_mode": store.session.review_mode}


@router.post("/api/toggle-summary")
async def toggle_summary(request: Request):
    store = _active_store(request)
    store.toggle_summary()
    return {"show_summary": store.session.show_summary}


@router.get("/api/exam-state")
async def get_exam_state(request: Request):
    return _store(request).snapshot()


@router.get("/api/question/{index}")
async def get_question(index: int, request: Request):
    store = _active_store(request)
    questions = store.session.questions
    if not (0 <= index < len(questions)):
        raise HTTPException(status_code=404, detail="문제를 찾을 수 없습니다.")

    q = questions[index]
    answer = store.get_answer(q.id) or get_default_answer(q)
    d = _question_to_dict(q, reveal=store.session.review_mode)
    d.update({
        "index": index,
        "total": len(questions),
        "saved_answer": answer.model_dump(by_alias=True),
        "answer_complete": store.is_answer_complete(q.id),
        "status": store.get_question_status(q.id).value,
        "flagged": store.is_flagged(q.id),
    })
    return d


@router.get("/api/questions/status")
async def get_questions_status(request: Request):
    store = _active_store(request)
    return {"questions": store.get_questions_with_status(), "progress": store.get_progress()}


@router.post("/api/submit-exam")
async def submit_exam(request: Request):
    store = _active_store(request)
    payload = store.complete_exam() or store.build_submission()
    session.put(_sid(request), "submission", payload)
    session.get(_sid(request), "timer").stop()
    return {
        "submission": payload.model_dump(mode="json", by_alias=True),
        "score": store.calculate_score().percentage,
        "ok": True,
    }


@router.get("/api/results")
async def get_results(request: Request):
    store = _store(request)
    exam = store.session
    if exam.status == SessionStatus.IDLE:
        raise HTTPException(status_code=404, detail="결과 정보가 없습니다.")
    if not exam.is_completed:
        raise HTTPException(status_code=400, detail="시험이 아직 제출되지 않았습니다.")

    result = store.calculate_score()
    incorrect_data = []
    for q in get_incorrect_questions(exam.questions, exam.answers):
        d = _question_to_dict(q, reveal=True)
        answer = exam.answers.get(q.id)
        d["user_answer"] = answer.model_dump(by_alias=True) if answer else None
        incorrect_data.append(d)

    submission = session.get(_sid(request), "submission") or store.build_submission()
    return {
        **result.model_dump(),
        "statistics": store.get_exam_statistics().model_dump(mode="json"),
        "time_spent": submission.time_spent,
        "incorrect_questions": incorrect_data,
    }


@router.post("/api/reset")
async def reset_session(request: Request):
    session.reset(_sid(request))
    return {"ok": True}
