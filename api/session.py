"""
api/session.py — 멀티유저 인메모리 세션 (쿠키 기반)

각 사용자에게 UUID 세션 ID를 발급하고, 세션마다 독립된 ExamSessionStore 를 둔다.
스토어는 세션 ID로 네임스페이스된 키로 로컬 저장소에 기록되므로,
서버를 재시작해도 같은 쿠키로 돌아오면 응시 상태가 복원된다.
TTL(기본 1시간) 경과 시 자동 만료.
"""

import threading
import time
import uuid
from typing import Any, Optional

from config import SESSION_TTL, STORAGE_KEY
from exam_cbt.models.session_state import SessionStatus
from exam_cbt.services.persistence import FileStorage, PersistenceAdapter, StorageBackend
from exam_cbt.services.session_store import ExamSessionStore
from exam_cbt.services.timer_driver import TimerDriver

_lock = threading.Lock()
_sessions: dict[str, dict[str, Any]] = {}
_timestamps: dict[str, float] = {}
_storage: StorageBackend = FileStorage()


def configure_storage(storage: StorageBackend) -> None:
    """세션 레코드를 기록할 저장소 교체 (테스트에서 MemoryStorage 주입)."""
    global _storage
    _storage = storage


def _new_state(sid: str) -> dict[str, Any]:
    adapter = PersistenceAdapter(_storage, key=f"{STORAGE_KEY}-{sid}")
    store = ExamSessionStore(persistence=adapter)
    return {
        "store": store,
        "timer": TimerDriver(store),
        "submission": None,
    }


def create_session(sid: Optional[str] = None) -> str:
    """새 세션을 생성하고 세션 ID를 반환. sid 를 주면 그 ID의 저장 레코드를 복원."""
    sid = sid or uuid.uuid4().hex
    state = _new_state(sid)
    with _lock:
        _sessions[sid] = state
        _timestamps[sid] = time.time()
    if state["store"].status in (SessionStatus.IN_PROGRESS, SessionStatus.PAUSED):
        # 복원된 응시는 남은 시간부터 다시 카운트다운
        start_timer(sid)
    return sid


def get_session(sid: str) -> dict[str, Any] | None:
    """세션 ID로 세션 데이터를 가져옴. 만료되었거나 없으면 None."""
    with _lock:
        if sid not in _sessions:
            return None
        if time.time() - _timestamps[sid] > SESSION_TTL:
            expired = _sessions.pop(sid)
            del _timestamps[sid]
            expired["timer"].stop()
            return None
        _timestamps[sid] = time.time()  # 접근 시 갱신
        return _sessions[sid]


def get(sid: str, key: str, default=None):
    """세션에서 값 읽기."""
    session = get_session(sid)
    if session is None:
        return default
    return session.get(key, default)


def put(sid: str, key: str, value) -> None:
    """세션에 값 쓰기."""
    with _lock:
        if sid in _sessions:
            _sessions[sid][key] = value
            _timestamps[sid] = time.time()


def _submission_listener(sid: str):
    """시험이 끝나면(제출/시간 만료) 제출 묶음을 세션에 보관한다."""

    def listener(event: str, store: ExamSessionStore) -> None:
        if event == "completed":
            put(sid, "submission", store.build_submission())

    return listener


def start_timer(sid: str) -> None:
    """
    세션의 타이머 드라이버를 (다시) 시작하고 완료 알림을 구독한다.
    실행 중인 이벤트 루프 안에서 호출해야 한다.
    """
    state = get_session(sid)
    if state is None:
        return
    unsubscribe = state.get("unsubscribe")
    if unsubscribe:
        unsubscribe()
    state["unsubscribe"] = state["store"].subscribe(_submission_listener(sid))
    put(sid, "submission", None)
    state["timer"].start()


def reset(sid: str) -> None:
    """응시 상태 초기화 (저장 레코드 포함). 쿠키 세션 자체는 유지."""
    session = get_session(sid)
    if session is None:
        return
    session["timer"].stop()
    session["store"].force_reset_exam_state()
    put(sid, "submission", None)


def cleanup_expired() -> int:
    """만료된 세션을 정리. 제거된 수 반환. 저장 레코드는 남겨 둔다."""
    now = time.time()
    removed = 0
    with _lock:
        expired = [sid for sid, ts in _timestamps.items() if now - ts > SESSION_TTL]
        for sid in expired:
            _sessions.pop(sid)["timer"].stop()
            del _timestamps[sid]
            removed += 1
    return removed
