"""
services/session_controller.py

퀴즈 세션 상태 머신. "지금 활성 세션이 무엇인가"의 유일한 출처.

  IDLE ─start─▶ (AWAITING_LANGUAGE_SELECTION ─confirm─▶) STARTING ─▶ ACTIVE
  ACTIVE ─submit / 마지막 답안 자동 제출 / 타이머 만료 / 포기─▶ FINALIZING ─▶ COMPLETED

규칙:
  - 모든 조작은 하나의 RLock 으로 직렬화된다 (타이머 스레드 콜백 포함).
  - ACTIVE 를 떠나는 모든 경로에서 타이머를 취소한다.
  - 종료(FINALIZING → COMPLETED)는 정확히 한 번. 두 번째 트리거는 no-op.
  - 답안은 로컬 원장에 먼저 쓰고, 원격 세션이면 그다음 동기화한다. 동기화 실패는 로컬을 되돌리지 않는다.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from quiz_engine.errors import (
    AnswerSyncFailed, InvalidTransition, NoQuestionsAvailable,
    RemoteSessionUnavailable, UnknownQuestion,
)
from quiz_engine.models.answer_model import AnswerEntry, AttemptRecord, ScoreSummary
from quiz_engine.models.question_model import Category, QuestionSpec
from quiz_engine.models.session_state import (
    QuizOptions, RemoteSession, Session, SessionState, SessionStatus,
)
from quiz_engine.services.collaborators import (
    CategoryService, HistoryStore, QuestionService, RemoteSessionService,
)
from quiz_engine.services.countdown_timer import CountdownTimer, Scheduler
from quiz_engine.services.question_provider import QuestionProvider
from quiz_engine.services.scoring_service import score_session

logger = logging.getLogger(__name__)


def run_in_background(job: Callable[[], None]) -> None:
    """응시 기록 저장을 데몬 스레드로 넘긴다 (fire-and-forget)."""
    t = threading.Thread(target=job, name="quiz-history", daemon=True)
    t.start()


class SessionController:
    """
    한 사용자·한 카테고리 슬롯의 퀴즈 진행을 관리한다.

    Args:
        category_service: 카테고리 조회 (언어 분할 여부 판단).
        question_service: 로컬 폴백용 문제 조회.
        remote_sessions:  원격 세션 서비스. None 이면 항상 로컬 세션.
        history_store:    종료 시 응시 기록 저장소. None 이면 기록 생략.
        scheduler:        타이머 스케줄러. None 이면 ThreadingScheduler.
        clock:            문제별 소요 시간 측정용 시계 (초).
        history_dispatch: 응시 기록 저장 작업 실행기. 기본은 데몬 스레드.
    """

    def __init__(
        self,
        category_service: CategoryService,
        question_service: QuestionService,
        remote_sessions: Optional[RemoteSessionService] = None,
        history_store: Optional[HistoryStore] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.monotonic,
        history_dispatch: Callable[[Callable[[], None]], None] = run_in_background,
    ) -> None:
        self._categories = category_service
        self._remote = remote_sessions
        self._history = history_store
        self._dispatch_history = history_dispatch
        self._provider = QuestionProvider(question_service, remote_sessions)
        self._timer = CountdownTimer(scheduler)
        self._clock = clock
        self._lock = threading.RLock()

        self._state = SessionState.IDLE
        self._category: Optional[Category] = None
        self._session: Optional[Session] = None
        self._options = QuizOptions()
        self._language: Optional[str] = None
        self._pending_start: Optional[tuple[str, QuizOptions]] = None
        self._current_index = 0
        self._presented_at = 0.0
        self._summary: Optional[ScoreSummary] = None
        self._pending_sync: Dict[str, AnswerEntry] = {}
        self._last_error: Optional[str] = None

    # ── 관찰자 (읽기 전용) ─────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def category(self) -> Optional[Category]:
        return self._category

    @property
    def language(self) -> Optional[str]:
        return self._language

    @property
    def pending_category_id(self) -> Optional[str]:
        """언어 선택을 기다리며 보류된 시작 요청의 카테고리."""
        return self._pending_start[0] if self._pending_start else None

    @property
    def time_remaining(self) -> int:
        return self._session.time_remaining_seconds if self._session else 0

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Optional[QuestionSpec]:
        if self._session is None:
            return None
        return self._session.questions[self._current_index]

    @property
    def score_summary(self) -> Optional[ScoreSummary]:
        return self._summary

    @property
    def pending_sync(self) -> List[str]:
        return list(self._pending_sync)

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def timer_running(self) -> bool:
        return self._timer.running

    # ── 시작 ────────────────────────────────────────────────────────────────

    def start_quiz(
        self,
        category_id: str,
        options: Optional[QuizOptions] = None,
    ) -> Optional[Session]:
        """
        퀴즈를 시작한다.

        언어 분할 카테고리인데 언어가 정해지지 않았으면 AWAITING_LANGUAGE_SELECTION 으로 가고 None 을 반환.

        Raises:
            InvalidTransition:    ACTIVE/STARTING/FINALIZING 중 호출.
            KeyError:             없는 카테고리.
            NoQuestionsAvailable: 출제할 문제가 없음 (상태는 IDLE 로 복귀).
        """
        with self._lock:
            if self._state == SessionState.COMPLETED:
                self._reset()
            if self._state not in (SessionState.IDLE, SessionState.AWAITING_LANGUAGE_SELECTION):
                raise InvalidTransition(self._state, "start a quiz")

            options = options or QuizOptions()
            category = self._categories.get_category(category_id)

            if not category.is_language_partitioned:
                options = options.model_copy(update={"language": None})
            else:
                language = options.language or self._language
                if language is None:
                    self._pending_start = (category_id, options)
                    self._category = category
                    self._state = SessionState.AWAITING_LANGUAGE_SELECTION
                    logger.info(f"카테고리 '{category.name}': 언어 선택 대기")
                    return None
                self._language = language
                options = options.model_copy(update={"language": language})

            return self._start(category, options)

    def select_language(self, language: str) -> str:
        """언어를 고른다 (IDLE/AWAITING 에서만). 지원하지 않는 언어는 ValueError."""
        with self._lock:
            if self._state not in (SessionState.IDLE, SessionState.AWAITING_LANGUAGE_SELECTION):
                raise InvalidTransition(self._state, "select a language")
            self._language = QuizOptions(language=language).language
            self._state = SessionState.AWAITING_LANGUAGE_SELECTION
            return self._language

    def confirm_language(self) -> Optional[Session]:
        """AWAITING_LANGUAGE_SELECTION → STARTING. 대기 중이던 카테고리/옵션으로 시작한다."""
        with self._lock:
            if (
                self._state != SessionState.AWAITING_LANGUAGE_SELECTION
                or self._language is None
                or self._pending_start is None
            ):
                raise InvalidTransition(self._state, "confirm a language")
            category_id, options = self._pending_start
            return self.start_quiz(category_id, options.model_copy(update={"language": self._language}))

    def _start(self, category: Category, options: QuizOptions) -> Session:
        self._state = SessionState.STARTING
        self._category = category
        self._pending_start = None
        try:
            session = self._provider.provide(category, options)
        except NoQuestionsAvailable as e:
            self._state = SessionState.IDLE
            self._last_error = str(e)
            logger.warning(f"퀴즈 시작 실패: {e}")
            raise
        except Exception:
            self._state = SessionState.IDLE
            raise

        self._session = session
        self._options = options
        self._summary = None
        self._pending_sync = {}
        self._last_error = None
        self._current_index = self._first_unanswered_index(session)
        self._presented_at = self._clock()
        self._state = SessionState.ACTIVE
        logger.info(
            f"퀴즈 시작: {session.session_id} [{session.mode}] "
            f"{len(session.questions)}문제, {session.time_remaining_seconds}초"
        )

        if session.time_remaining_seconds <= 0:
            self._finalize(SessionStatus.EXPIRED)
        else:
            self._timer.start(session.time_remaining_seconds, self._on_tick, self._on_expire)
        return session

    @staticmethod
    def _first_unanswered_index(session: Session) -> int:
        for idx, q in enumerate(session.questions):
            if q.id not in session.ledger:
                return idx
        return len(session.questions) - 1

    # ── 진행 ────────────────────────────────────────────────────────────────

    def submit_answer(self, value: str, question_id: Optional[str] = None) -> AnswerEntry:
        """
        답안을 기록한다 (기본: 현재 문제).

        로컬 원장에 먼저 쓰고, 원격 세션이면 동기화를 시도한다.
        모든 문제에 답했고 커서가 마지막 문제면 자동 제출, 아니면 커서를 다음 문제로 옮긴다.
        """
        with self._lock:
            self._require_active("submit an answer")
            session = self._session

            if question_id is None:
                index = self._current_index
            else:
                index = session.question_index(question_id)
                if index < 0:
                    raise UnknownQuestion(question_id)
            question = session.questions[index]

            time_spent = int(max(0.0, self._clock() - self._presented_at))
            entry = session.ledger.record(question.id, value, time_spent)

            if session.mode == "remote":
                entry = self._sync_answer(session, entry)

            last_index = len(session.questions) - 1
            if index != self._current_index:
                return entry
            if index < last_index:
                self._move_cursor(index + 1)
            elif self._options.auto_submit_on_last_answer and len(session.ledger) == len(session.questions):
                logger.info(f"마지막 문제 응답, 자동 제출: {session.session_id}")
                self._finalize(SessionStatus.COMPLETED)
            return entry

    def go_to_question(self, index: int) -> int:
        """커서 이동 (0..N-1 범위로 보정)."""
        with self._lock:
            self._require_active("navigate")
            idx = max(0, min(index, len(self._session.questions) - 1))
            self._move_cursor(idx)
            return idx

    def _move_cursor(self, index: int) -> None:
        self._current_index = index
        self._presented_at = self._clock()

    def retry_pending_sync(self) -> int:
        """동기화 실패한 답안을 다시 보낸다. 남은 미동기화 개수를 반환."""
        with self._lock:
            self._require_active("retry answer sync")
            self._flush_pending_sync(self._session)
            return len(self._pending_sync)

    def _sync_answer(self, session: RemoteSession, entry: AnswerEntry) -> AnswerEntry:
        if self._remote is None:
            return entry
        try:
            remote_entry = self._remote.submit_answer(
                session.session_id, entry.question_id, entry.selected_value, entry.time_spent_seconds,
            )
        except RemoteSessionUnavailable as e:
            error = AnswerSyncFailed(session.session_id, entry.question_id, e)
            logger.warning(str(error))
            self._pending_sync[entry.question_id] = entry
            self._last_error = str(error)
            return entry

        self._pending_sync.pop(entry.question_id, None)
        return session.ledger.reconcile(remote_entry) or entry

    def _flush_pending_sync(self, session: Session) -> None:
        for question_id in list(self._pending_sync):
            current = session.ledger.get(question_id)
            if current is None:
                self._pending_sync.pop(question_id, None)
                continue
            self._sync_answer(session, current)
        if not self._pending_sync:
            self._last_error = None

    # ── 종료 ────────────────────────────────────────────────────────────────

    def submit_quiz(self) -> Optional[ScoreSummary]:
        """사용자 제출. 이미 종료 중/완료면 기존 결과를 돌려주는 no-op."""
        return self._request_finalize(SessionStatus.COMPLETED, "submit the quiz")

    def abandon_quiz(self) -> Optional[ScoreSummary]:
        """퀴즈 포기. 제출과 같은 종료 절차를 status=abandoned 로 밟는다."""
        return self._request_finalize(SessionStatus.ABANDONED, "abandon the quiz")

    def _request_finalize(self, status: SessionStatus, operation: str) -> Optional[ScoreSummary]:
        with self._lock:
            if self._state in (SessionState.FINALIZING, SessionState.COMPLETED):
                return self._summary
            self._require_active(operation)
            return self._finalize(status)

    def _on_tick(self, remaining: int) -> None:
        with self._lock:
            if self._state == SessionState.ACTIVE and self._session is not None:
                self._session.time_remaining_seconds = remaining

    def _on_expire(self) -> None:
        with self._lock:
            if self._state != SessionState.ACTIVE:
                return
            logger.info(f"제한 시간 종료, 자동 제출: {self._session.session_id}")
            self._finalize(SessionStatus.EXPIRED)

    def _finalize(self, status: SessionStatus) -> ScoreSummary:
        """FINALIZING → COMPLETED. 실패하지 않는다 (원격 단계의 어떤 실패든 로컬 결과로 대체)."""
        session = self._session
        summary = score_session(session)
        self._state = SessionState.FINALIZING
        try:
            self._timer.cancel()
            if session.mode == "remote" and self._remote is not None:
                summary = self._finalize_remote_safely(session, status, summary)
        finally:
            session.status = status
            session.completed_at = datetime.now(timezone.utc)
            self._summary = summary
            self._state = SessionState.COMPLETED

        self._record_history(session, summary)
        logger.info(
            f"퀴즈 종료: {session.session_id} [{status.value}] "
            f"{summary.correct_answers}/{summary.total_questions} ({summary.percentage}%)"
        )
        return summary

    def _finalize_remote_safely(
        self,
        session: RemoteSession,
        status: SessionStatus,
        local_summary: ScoreSummary,
    ) -> ScoreSummary:
        try:
            return self._finalize_remote(session, status, local_summary)
        except Exception as e:
            logger.error(
                f"원격 종료 중 예기치 않은 오류, 로컬 결과 사용 ({session.session_id}): {type(e).__name__}: {e}"
            )
            return local_summary

    def _finalize_remote(
        self,
        session: RemoteSession,
        status: SessionStatus,
        local_summary: ScoreSummary,
    ) -> ScoreSummary:
        self._flush_pending_sync(session)
        try:
            if status == SessionStatus.ABANDONED:
                remote_summary = self._remote.abandon_session(session.session_id)
            else:
                remote_summary = self._remote.finalize_session(session.session_id)
        except RemoteSessionUnavailable as e:
            logger.warning(f"원격 종료 실패, 로컬 결과 사용: {e}")
            return local_summary

        if self._pending_sync:
            logger.warning(
                f"미동기화 답안 {len(self._pending_sync)}개: 서버 결과 대신 로컬 결과 사용 ({session.session_id})"
            )
            return local_summary
        return remote_summary.model_copy(update={"time_spent_seconds": local_summary.time_spent_seconds})

    def _record_history(self, session: Session, summary: ScoreSummary) -> None:
        if self._history is None:
            return
        attempt = AttemptRecord(
            session_id=session.session_id,
            mode=session.mode,
            category_id=session.category_id,
            category_name=self._category.name if self._category else None,
            status=session.status.value,
            percentage=summary.percentage,
            earned_points=summary.earned_points,
            total_points=summary.total_points,
            correct_answers=summary.correct_answers,
            total_questions=summary.total_questions,
            time_spent_seconds=summary.time_spent_seconds,
            completed_at=session.completed_at,
        )
        # 저장소 호출(재시도·타임아웃 포함)은 컨트롤러 락 밖에서 돈다
        self._dispatch_history(lambda: self._store_attempt(attempt))

    def _store_attempt(self, attempt: AttemptRecord) -> None:
        try:
            self._history.record_attempt(attempt)
        except Exception as e:
            logger.error(f"응시 기록 저장 실패 ({attempt.session_id}): {type(e).__name__}: {e}")

    # ── 정리 ────────────────────────────────────────────────────────────────

    def close(self) -> None:
        """컨트롤러 폐기 전 호출. 돌고 있는 타이머를 멈춘다."""
        with self._lock:
            self._timer.cancel()

    def _reset(self) -> None:
        self._timer.cancel()
        self._state = SessionState.IDLE
        self._session = None
        self._summary = None
        self._pending_start = None
        self._pending_sync = {}
        self._current_index = 0
        self._last_error = None

    def _require_active(self, operation: str) -> None:
        if self._state != SessionState.ACTIVE or self._session is None:
            raise InvalidTransition(self._state, operation)

    def snapshot(self) -> Dict[str, Any]:
        """HTTP 응답용 상태 요약."""
        with self._lock:
            session = self._session
            return {
                "state": self._state.value,
                "category_id": self._category.id if self._category else None,
                "category_name": self._category.name if self._category else None,
                "language": self._language,
                "session_id": session.session_id if session else None,
                "mode": session.mode if session else None,
                "language_fallback_used": session.language_fallback_used if session else False,
                "time_limit": session.time_limit_seconds if session else 0,
                "time_remaining": self.time_remaining,
                "current_index": self._current_index,
                "total": len(session.questions) if session else 0,
                "answered_count": len(session.ledger) if session else 0,
                "answered_question_ids": [q.id for q in session.questions if q.id in session.ledger] if session else [],
                "pending_sync": self.pending_sync,
                "last_error": self._last_error,
                "score": self._summary.model_dump() if self._summary else None,
            }
