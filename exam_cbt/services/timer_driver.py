"""
services/timer_driver.py

세션 저장소에 1초마다 decrement_timer() 를 공급하는 asyncio 스케줄러.

세션 하나에 드라이버는 하나만 돌아야 한다 (둘이면 두 배로 감소).
start() 를 다시 부르면 이전 태스크를 취소하고 새로 시작한다.
세션이 완료되거나 초기화되면 스스로 멈춘다.
"""

import asyncio
import logging
from typing import Optional

from config import TICK_INTERVAL_SECONDS
from exam_cbt.services.session_store import ExamSessionStore

logger = logging.getLogger(__name__)


class TimerDriver:
    def __init__(self, store: ExamSessionStore, interval: float = TICK_INTERVAL_SECONDS) -> None:
        self.store = store
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """실행 중인 이벤트 루프에 틱 태스크를 건다."""
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"타이머 드라이버 시작 (exam_id={self.store.session.exam_id})")

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                session = self.store.session
                if session.exam_id is None or session.is_completed:
                    break
                self.store.decrement_timer()
        except asyncio.CancelledError:
            logger.debug("타이머 드라이버 취소됨")
            raise
        logger.debug(f"타이머 드라이버 종료 (status={self.store.status.value})")
