import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
STATIC_DIR = os.path.join(BASE_DIR, "static")
LOG_FILE = os.path.join(BASE_DIR, "launch.log")
STORAGE_DIR = os.getenv("CBT_STORAGE_DIR", os.path.join(BASE_DIR, ".exam_storage"))

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))
SESSION_TTL = int(os.getenv("CBT_SESSION_TTL", "3600"))  # 1시간

# 저장소 네임스페이스 (세션 레코드 키)
STORAGE_KEY = os.getenv("CBT_STORAGE_KEY", "exams-preparation-exam")

# 시험 설정
DEFAULT_PASSING_SCORE = float(os.getenv("CBT_PASSING_SCORE", "70"))  # 시험별 설정이 없을 때만 사용
DEFAULT_DURATION_MINUTES = 90
TIMER_WARNING_SECONDS = 600   # 10분 미만이면 경고 표시
TICK_INTERVAL_SECONDS = 1.0   # 타이머 틱 간격 (초)
