"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + static 파일 서빙
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from config import SESSION_TTL, STATIC_DIR
from api.routes import router
import api.session as session

SESSION_COOKIE = "cbt_session"
CLEANUP_INTERVAL_SECONDS = 300  # 5분

logger = logging.getLogger(__name__)


async def _cleanup_loop() -> None:
    """만료 세션 주기적 정리. 타이머 태스크와 같은 이벤트 루프에서 돈다."""
    while True:
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
        removed = session.cleanup_expired()
        if removed:
            logger.info(f"만료 세션 {removed}개 정리")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    task = asyncio.create_task(_cleanup_loop())
    try:
        yield
    finally:
        task.cancel()


def create_app() -> FastAPI:
    app = FastAPI(title="CBT Exam Session", docs_url=None, redoc_url=None, lifespan=_lifespan)

    # CORS (모바일 브라우저 등 다양한 출처 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    # 서버 재시작 후 돌아온 쿠키는 같은 ID로 저장 레코드를 복원한다
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if sid and not (sid.isalnum() and len(sid) <= 64):
            sid = None  # 저장소 키로 쓰이므로 형식이 맞지 않는 쿠키는 버린다
        if not sid or session.get_session(sid) is None:
            sid = session.create_session(sid)

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=SESSION_TTL,
        )
        return response

    app.include_router(router)

    # static 파일 마운트
    if os.path.isdir(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    # 루트 → index.html
    @app.get("/")
    async def serve_index():
        index_path = os.path.join(STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    return app
