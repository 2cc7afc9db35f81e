"""
api/app.py

FastAPI 앱 인스턴스 + 세션 미들웨어 + 협력 서비스 조립.
"""

import logging
import threading
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

import config
from api.config import CLEANUP_INTERVAL, SESSION_COOKIE, SESSION_TTL
from api.routes import router
from api.sample_questions import build_sample_catalog
from api.session import SessionRegistry
from quiz_engine.services.collaborators import (
    CategoryService, HistoryStore, QuestionService, RemoteSessionService,
)
from quiz_engine.services.countdown_timer import Scheduler
from quiz_engine.services.history_store import HttpHistoryStore, JsonFileHistoryStore
from quiz_engine.services.remote_clients import (
    CategoryServiceClient, QuestionServiceClient, RemoteSessionClient,
)
from quiz_engine.services.session_controller import SessionController, run_in_background

logger = logging.getLogger(__name__)


def _default_services():
    """config 에 따라 (category, question, remote, history) 서비스를 만든다."""
    if not config.QUIZ_API_BASE_URL:
        logger.info("QUIZ_API_BASE_URL 미설정: 내장 샘플 카탈로그로 실행")
        catalog = build_sample_catalog()
        return catalog, catalog, None, JsonFileHistoryStore(config.HISTORY_FILE)

    logger.info(f"외부 퀴즈 서비스 사용: {config.QUIZ_API_BASE_URL}")
    remote = RemoteSessionClient() if config.REMOTE_SESSIONS_ENABLED else None
    return CategoryServiceClient(), QuestionServiceClient(), remote, HttpHistoryStore()


def create_app(
    category_service: Optional[CategoryService] = None,
    question_service: Optional[QuestionService] = None,
    remote_sessions: Optional[RemoteSessionService] = None,
    history_store: Optional[HistoryStore] = None,
    scheduler: Optional[Scheduler] = None,
    session_ttl: int = SESSION_TTL,
    start_cleanup: bool = True,
    history_dispatch: Callable[[Callable[[], None]], None] = run_in_background,
) -> FastAPI:
    """
    앱 생성. 서비스 인자를 생략하면 config 기준 기본 구성을 쓴다 (테스트는 직접 주입).
    """
    if category_service is None or question_service is None:
        category_service, question_service, remote_sessions, history_store = _default_services()

    app = FastAPI(title="Quiz Session Engine", docs_url=None, redoc_url=None)

    def _new_controller() -> SessionController:
        return SessionController(
            category_service,
            question_service,
            remote_sessions=remote_sessions,
            history_store=history_store,
            scheduler=scheduler,
            history_dispatch=history_dispatch,
        )

    registry = SessionRegistry(_new_controller, ttl=session_ttl)
    app.state.registry = registry
    app.state.category_service = category_service

    # CORS (모바일 브라우저 등 다양한 출처 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or not registry.has_session(sid):
            sid = registry.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=session_ttl,
        )
        return response

    app.include_router(router)

    # 만료 세션 주기적 정리
    def _cleanup_loop():
        while True:
            time.sleep(CLEANUP_INTERVAL)
            removed = registry.cleanup_expired()
            if removed:
                logger.info(f"만료 세션 {removed}개 정리")

    if start_cleanup:
        t = threading.Thread(target=_cleanup_loop, daemon=True)
        t.start()

    return app
