import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
LOG_FILE = os.path.join(BASE_DIR, "launch.log")
HISTORY_FILE = os.getenv("HISTORY_FILE", os.path.join(BASE_DIR, "quiz_attempts.json"))

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "0.0.0.0")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))

# 외부 퀴즈 서비스 (base URL이 비어 있으면 내장 오프라인 카탈로그 사용)
QUIZ_API_BASE_URL = os.getenv("QUIZ_API_BASE_URL", "").rstrip("/")
QUIZ_API_TOKEN = os.getenv("QUIZ_API_TOKEN", "")
REMOTE_SESSIONS_ENABLED = os.getenv("REMOTE_SESSIONS_ENABLED", "1") not in ("0", "false", "False", "")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))
HTTP_MAX_RETRIES = int(os.getenv("HTTP_MAX_RETRIES", "3"))

# 시험 기본값
DEFAULT_QUESTION_COUNT = 10
DEFAULT_TIME_LIMIT_SECONDS = 1800   # 30분
LOCAL_SESSION_PREFIX = "local_"

# 언어별로 문제가 나뉘는 카테고리 (언어 선택 단계 필요)
LANGUAGE_PARTITIONED_CATEGORIES = frozenset({"Program-Based Questions"})
SUPPORTED_LANGUAGES = (
    "javascript", "python", "java", "cpp", "c", "csharp",
    "php", "ruby", "go", "rust", "pseudocode",
)
