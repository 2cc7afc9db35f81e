import os

# 세션 쿠키 / 레지스트리 설정
SESSION_COOKIE = "quiz_session"
SESSION_TTL = int(os.getenv("SESSION_TTL", "3600"))        # 1시간
CLEANUP_INTERVAL = int(os.getenv("SESSION_CLEANUP_INTERVAL", "300"))  # 5분
