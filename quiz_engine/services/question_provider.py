"""
services/question_provider.py

카테고리에 대한 Session 을 만들어 준다.

순서:
  1. 진행 중인 원격 세션이 있으면 그대로 반환 (재개 경로, 새 할당 없음)
  2. 없으면 원격 세션 생성 시도
  3. 원격 서비스가 없거나 거절하면 문제 목록을 직접 받아 로컬 세션 합성
     - 언어 필터 결과가 0개면 필터 없이 다시 받고 language_fallback_used = True
  4. 모두 비어 있으면 NoQuestionsAvailable
어느 경로든 반환된 세션의 문제 목록은 세션 수명 동안 고정이다.
"""

import logging
from typing import List, Optional

from quiz_engine.errors import NoQuestionsAvailable, RemoteSessionUnavailable, ServiceRequestError
from quiz_engine.models.question_model import Category, QuestionSpec
from quiz_engine.models.session_state import LocalSession, QuizOptions, RemoteSession, Session
from quiz_engine.services.collaborators import QuestionService, RemoteSessionService

logger = logging.getLogger(__name__)


class QuestionProvider:

    def __init__(
        self,
        question_service: QuestionService,
        remote_sessions: Optional[RemoteSessionService] = None,
    ) -> None:
        self.question_service = question_service
        self.remote_sessions = remote_sessions

    def provide(self, category: Category, options: QuizOptions) -> Session:
        """
        category 에 대한 세션을 반환한다.

        Raises:
            NoQuestionsAvailable: 원격 경로 실패 + 필터 없는 로컬 조회도 비었을 때.
        """
        if self.remote_sessions is not None:
            session = self._resolve_remote(category, options)
            if session is not None:
                return session
        return self._build_local(category, options)

    # ── 원격 경로 ────────────────────────────────────────────────────────────

    def _resolve_remote(self, category: Category, options: QuizOptions) -> Optional[RemoteSession]:
        try:
            active = self.remote_sessions.get_active_session(category.id)
            if active is not None and active.questions:
                logger.info(f"진행 중인 원격 세션 재개: {active.session_id} (남은 시간 {active.time_remaining_seconds}초)")
                return active

            created = self.remote_sessions.start_session(
                category_id=category.id,
                difficulty=options.difficulty,
                time_limit=options.time_limit_seconds,
                question_count=options.question_count,
            )
        except RemoteSessionUnavailable as e:
            logger.warning(f"원격 세션 사용 불가, 로컬 세션으로 폴백: {e}")
            return None

        if not created.questions:
            logger.warning(f"원격 세션 {created.session_id}에 문제가 없음, 로컬 세션으로 폴백")
            return None
        logger.info(f"원격 세션 생성: {created.session_id} ({len(created.questions)}문제)")
        return created

    # ── 로컬 폴백 ────────────────────────────────────────────────────────────

    def _build_local(self, category: Category, options: QuizOptions) -> LocalSession:
        question_type = "program" if category.is_language_partitioned else "mcq"
        language_fallback_used = False

        questions = self._fetch(category.id, options, question_type, options.language)
        if not questions and options.language:
            logger.info(f"'{options.language}' 문제 없음, 언어 필터 없이 재조회")
            questions = self._fetch(category.id, options, question_type, None)
            language_fallback_used = bool(questions)

        if not questions:
            raise NoQuestionsAvailable(category.id)

        session = LocalSession(
            category_id=category.id,
            questions=tuple(questions[: options.question_count]),
            time_limit_seconds=options.time_limit_seconds,
            time_remaining_seconds=options.time_limit_seconds,
            language=options.language,
            language_fallback_used=language_fallback_used,
        )
        logger.info(
            f"로컬 세션 생성: {session.session_id} ({len(session.questions)}문제, "
            f"language_fallback_used={language_fallback_used})"
        )
        return session

    def _fetch(
        self,
        category_id: str,
        options: QuizOptions,
        question_type: str,
        language: Optional[str],
    ) -> List[QuestionSpec]:
        try:
            return self.question_service.list_questions_by_category(
                category_id,
                limit=options.question_count,
                type=question_type,
                language=language,
            )
        except ServiceRequestError as e:
            raise NoQuestionsAvailable(category_id, f"Failed to fetch questions: {e}") from e
