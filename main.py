"""
main.py

퀴즈 세션 엔진 HTTP 서버 진입점.
"""

import logging
import sys
import traceback

from config import DEFAULT_HOST, DEFAULT_PORT, LOG_FILE

# ── 로깅 설정 ────────────────────────────────────────────────────────────────

def _configure_logging() -> None:
    try:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            handlers=[
                logging.FileHandler(LOG_FILE, encoding='utf-8'),
                logging.StreamHandler(sys.stdout)
            ]
        )
    except PermissionError:
        # 로그 파일 점유 시 콘솔 출력만 사용
        logging.basicConfig(level=logging.INFO)


logger = logging.getLogger(__name__)


def main() -> int:
    _configure_logging()
    logger.info("=== Quiz Session Engine Started ===")
    try:
        import uvicorn
        from api.app import create_app

        app = create_app()
        logger.info(f"Uvicorn 서버 시작 - {DEFAULT_HOST}:{DEFAULT_PORT}")
        uvicorn.run(app, host=DEFAULT_HOST, port=DEFAULT_PORT, log_level="warning")
    except KeyboardInterrupt:
        logger.info("사용자에 의해 종료되었습니다.")
    except Exception:
        logger.error(f"서버 오류 발생:\n{traceback.format_exc()}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
