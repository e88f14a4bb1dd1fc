"""
services/timer.py

카운트다운 계산과 남은 시간 표시 형식.
실제 시계와 분리되어 있다. 외부 스케줄러가 1초마다 decrement_timer()를 호출한다.
"""

from typing import NamedTuple

from config import TIMER_WARNING_SECONDS


class TickResult(NamedTuple):
    time_remaining: int
    expired: bool      # 이번 틱에서 정확히 0에 도달했는지


def tick(time_remaining: int, is_paused: bool) -> TickResult:
    """
    1초 감소. 일시정지 중이거나 이미 0이면 변화 없음.

    Returns:
        TickResult. expired는 양수에서 0으로 내려간 그 틱에서만 True.
    """
    if is_paused or time_remaining <= 0:
        return TickResult(max(0, time_remaining), False)
    remaining = max(0, time_remaining - 1)
    return TickResult(remaining, remaining == 0)


def format_time_verbose(seconds: int) -> str:
    """
    남은 시간을 읽기 쉬운 형태로.

    >>> format_time_verbose(5400)
    '1h 30m'
    >>> format_time_verbose(303)
    '5m 3s'
    >>> format_time_verbose(42)
    '42s'
    """
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_clock(seconds: int) -> str:
    """'MM:SS' 또는 1시간 이상이면 'HH:MM:SS'."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def is_time_warning(seconds: int) -> bool:
    """10분 미만이면 경고 표시 대상 (0초 포함)."""
    return seconds < TIMER_WARNING_SECONDS


def advance_timer(store, seconds: int) -> int:
    """
    틱을 seconds번 재생한다. 브라우저 없이 만료된 응시를 정산할 때 사용.

    세션이 완료되었거나 일시정지 중이면 남은 틱은 건너뛴다.

    Returns:
        실제로 적용된 틱 수.
    """
    applied = 0
    for _ in range(max(0, int(seconds))):
        session = store.session
        if session.is_completed or session.is_paused or session.exam_id is None:
            break
        store.decrement_timer()
        applied += 1
    return applied
