"""
main.py — CBT 시험 세션 서버 진입점
"""

import os
import sys
import logging
import traceback

# ── 패키지 경로 설정 (반드시 최상단) ──────────────────────────────────────────
# 실행 경로를 BASE_DIR로 설정하고 exam_cbt를 모듈 경로에 추가합니다.
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import BASE_DIR, LOG_FILE, DEFAULT_HOST, DEFAULT_PORT


# ── 로깅 설정 ────────────────────────────────────────────────────────────────

def configure_logging(level: int = logging.INFO) -> None:
    try:
        logging.basicConfig(
            level=level,
            format='%(asctime)s [%(levelname)s] %(message)s',
            handlers=[
                logging.FileHandler(LOG_FILE, encoding='utf-8'),
                logging.StreamHandler(sys.stdout)
            ]
        )
    except PermissionError:
        # 로그 파일 점유 시 콘솔 출력만 사용
        logging.basicConfig(level=level)


logger = logging.getLogger(__name__)


def run_server(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    try:
        import uvicorn
        from api.app import create_app
        logger.info(f"Uvicorn 서버 시작 - {host}:{port}")
        app = create_app()
        uvicorn.run(app, host=host, port=port, log_level="warning")
    except Exception:
        logger.error(f"서버 오류 발생:\n{traceback.format_exc()}")
        raise


# ── 메인 실행 ────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    configure_logging(logging.DEBUG if os.getenv("CBT_DEBUG") else logging.INFO)
    logger.info("=== CBT Exam Session Server Started ===")
    os.chdir(BASE_DIR)
    try:
        run_server()
    except KeyboardInterrupt:
        logger.info("사용자에 의해 종료되었습니다.")
