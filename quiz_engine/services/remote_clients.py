"""
services/remote_clients.py

외부 퀴즈 백엔드 HTTP 클라이언트 (requests).
Public API:
  - CategoryServiceClient  : getCategory / listCategories
  - QuestionServiceClient  : listQuestionsByCategory
  - RemoteSessionClient    : start / getActive / submitAnswer / finalize / abandon
  - parse_question(raw), parse_remote_session(raw, category_id) : payload → 모델

응답 envelope: {"success": bool, "data": {...}, "message": str}
연결 오류·5xx 는 지수 백오프로 재시도, 그 외 실패는 ServiceRequestError.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

import config
from quiz_engine.errors import RemoteSessionUnavailable, ServiceRequestError
from quiz_engine.models.answer_model import AnswerEntry, ScoreSummary
from quiz_engine.models.question_model import Category, QuestionSpec
from quiz_engine.models.session_state import RemoteSession
from quiz_engine.services.scoring_service import calculate_percentage

logger = logging.getLogger(__name__)

# ── 상수 ─────────────────────────────────────────────────────────────────────
_BACKOFF_BASE = 0.5
_TRANSIENT_STATUS = (500, 502, 503, 504)
_TRANSIENT_ERRORS = (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError)
_DIFFICULTIES = ("easy", "medium", "hard")


# ══════════════════════════════════════════════════════════════════════════════
# 공통 HTTP 호출
# ══════════════════════════════════════════════════════════════════════════════

class _ApiClient:
    """base URL + bearer 토큰 + 재시도를 가진 얇은 requests 래퍼."""

    def __init__(
        self,
        base_url: str = config.QUIZ_API_BASE_URL,
        token: str = config.QUIZ_API_TOKEN,
        timeout: float = config.HTTP_TIMEOUT,
        max_retries: int = config.HTTP_MAX_RETRIES,
        http: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required for the quiz API client.")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.http = http or requests.Session()
        self.http.headers.setdefault("Content-Type", "application/json")
        if token:
            self.http.headers["Authorization"] = f"Bearer {token}"

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """HTTP 호출 + 지수 백오프 재시도. 성공 시 envelope 의 data 를 반환."""
        url = f"{self.base_url}{path}"
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.http.request(method, url, timeout=self.timeout, **kwargs)
            except _TRANSIENT_ERRORS as e:
                last_exception = e
                if attempt < self.max_retries:
                    wait = _BACKOFF_BASE * (2 ** (attempt - 1))
                    logger.warning(f"{method} {path} 연결 오류, {wait:.1f}초 후 재시도 ({attempt}/{self.max_retries})")
                    time.sleep(wait)
                    continue
                break
            except requests.RequestException as e:
                logger.error(f"{method} {path} 요청 실패: {type(e).__name__}: {e}")
                raise ServiceRequestError(f"{method} {path} failed: {e}") from e

            if response.status_code in _TRANSIENT_STATUS and attempt < self.max_retries:
                wait = _BACKOFF_BASE * (2 ** (attempt - 1))
                logger.warning(
                    f"{method} {path} -> {response.status_code}, {wait:.1f}초 후 재시도 ({attempt}/{self.max_retries})"
                )
                time.sleep(wait)
                continue

            return self._unwrap(method, path, response)

        logger.error(f"{method} {path} 최종 실패: {last_exception}")
        raise ServiceRequestError(f"{method} {path} failed: {last_exception}")

    @staticmethod
    def _unwrap(method: str, path: str, response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            message = body.get("message") if isinstance(body, dict) else response.text[:200]
            raise ServiceRequestError(
                f"{method} {path} -> {response.status_code}: {message}",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            raise ServiceRequestError(f"{method} {path}: response is not a JSON object",
                                      status_code=response.status_code)
        if body.get("success") is False:
            raise ServiceRequestError(f"{method} {path}: {body.get('message', 'request declined')}",
                                      status_code=response.status_code)
        data = body.get("data", {})
        return data if isinstance(data, dict) else {"items": data}


# ══════════════════════════════════════════════════════════════════════════════
# payload → 모델 변환
# ══════════════════════════════════════════════════════════════════════════════

def parse_category(raw: Dict[str, Any]) -> Category:
    return Category(
        id=str(raw.get("_id") or raw.get("id")),
        name=raw.get("name", ""),
        description=raw.get("description", ""),
        difficulty=raw.get("difficulty") or "beginner",
        is_active=raw.get("isActive", True),
    )


def parse_question(raw: Dict[str, Any]) -> QuestionSpec:
    """
    질문 payload → QuestionSpec.
    질문 서비스 형식({_id, question, ...})과 세션 형식({questionId, questionText, ...}) 모두 지원.
    """
    options = []
    for opt in raw.get("options") or []:
        if isinstance(opt, dict):
            options.append({"text": opt.get("text", ""), "is_correct": bool(opt.get("isCorrect", False))})
        else:
            options.append({"text": str(opt), "is_correct": False})

    program = raw.get("programQuestion")
    program_question = None
    if isinstance(program, dict) and (program.get("codeSnippet") or program.get("language")):
        program_question = {
            "code_snippet": program.get("codeSnippet", ""),
            "language": program.get("language") or "javascript",
            "expected_output": program.get("expectedOutput"),
        }

    difficulty = raw.get("difficulty")
    question_type = raw.get("type")
    return QuestionSpec(
        id=str(raw.get("questionId") or raw.get("_id") or raw.get("id")),
        question_text=raw.get("questionText") or raw.get("question") or "",
        question_type=question_type if question_type in ("mcq", "program") else "mcq",
        options=options,
        correct_answer=raw.get("correctAnswer"),
        points=raw.get("points") or 1,
        difficulty=difficulty if difficulty in _DIFFICULTIES else "easy",
        explanation=raw.get("explanation") or "",
        program_question=program_question,
    )


def parse_questions(raw_list: List[Dict[str, Any]]) -> List[QuestionSpec]:
    """파싱 실패 항목은 건너뛴다 (전체 중단 없음)."""
    questions: List[QuestionSpec] = []
    for idx, raw in enumerate(raw_list):
        try:
            questions.append(parse_question(raw))
        except (ValidationError, TypeError) as e:
            logger.warning(f"item[{idx}]: QuestionSpec 생성 실패 - {e}")
    return questions


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_remote_session(raw: Dict[str, Any], category_id: str) -> RemoteSession:
    """세션 payload → RemoteSession. 서버가 이미 보유한 답안은 원장에 복원한다."""
    questions = tuple(parse_questions(raw.get("questions") or []))
    time_limit = int(raw.get("timeLimit", config.DEFAULT_TIME_LIMIT_SECONDS))
    kwargs = {}
    started_at = _parse_datetime(raw.get("startedAt"))
    if started_at is not None:
        kwargs["started_at"] = started_at

    session = RemoteSession(
        session_id=str(raw["sessionId"]),
        category_id=category_id,
        questions=questions,
        time_limit_seconds=time_limit,
        time_remaining_seconds=max(0, int(raw.get("timeRemaining", time_limit))),
        **kwargs,
    )

    points = {q.id: q.points for q in questions}
    for answer in raw.get("answers") or []:
        qid = str(answer.get("questionId"))
        if qid not in points:
            logger.warning(f"세션 {session.session_id}: 알 수 없는 문제 {qid}의 답안 무시")
            continue
        is_correct = bool(answer.get("isCorrect", False))
        answered_at = _parse_datetime(answer.get("answeredAt"))
        session.ledger.restore(AnswerEntry(
            question_id=qid,
            selected_value=str(answer.get("selectedAnswer", "")),
            is_correct=is_correct,
            points_awarded=points[qid] if is_correct else 0,
            time_spent_seconds=int(answer.get("timeSpent") or 0),
            **({"answered_at": answered_at} if answered_at else {}),
        ))
    return session


def parse_score(raw: Dict[str, Any], time_spent_seconds: int = 0) -> ScoreSummary:
    """서버 score 객체 → ScoreSummary. 소요 시간은 서버가 주지 않으므로 호출자가 채운다."""
    total = int(raw.get("totalQuestions", 0))
    correct = int(raw.get("correctAnswers", 0))
    unanswered = int(raw.get("unansweredQuestions", 0))
    incorrect = int(raw.get("incorrectAnswers", max(0, total - unanswered - correct)))
    return ScoreSummary(
        total_questions=total,
        answered_questions=max(0, total - unanswered),
        correct_answers=correct,
        incorrect_answers=incorrect,
        unanswered_questions=unanswered,
        total_points=int(raw.get("totalPoints", 0)),
        earned_points=int(raw.get("earnedPoints", 0)),
        percentage=int(raw.get("percentage", calculate_percentage(correct, total))),
        time_spent_seconds=time_spent_seconds,
    )


# ══════════════════════════════════════════════════════════════════════════════
# 서비스 클라이언트
# ══════════════════════════════════════════════════════════════════════════════

class CategoryServiceClient(_ApiClient):

    def get_category(self, category_id: str) -> Category:
        try:
            data = self._request("GET", f"/categories/{category_id}")
        except ServiceRequestError as e:
            if e.status_code == 404:
                raise KeyError(category_id) from e
            raise
        return parse_category(data.get("category", data))

    def list_categories(self, **filters) -> List[Category]:
        data = self._request("GET", "/categories", params=filters or None)
        return [parse_category(c) for c in data.get("categories") or data.get("items") or []]


class QuestionServiceClient(_ApiClient):

    def list_questions_by_category(
        self,
        category_id: str,
        limit: int = config.DEFAULT_QUESTION_COUNT,
        type: Optional[str] = None,
        language: Optional[str] = None,
    ) -> List[QuestionSpec]:
        params: Dict[str, Any] = {"limit": limit}
        if type:
            params["type"] = type
        if language:
            params["language"] = language
        data = self._request("GET", f"/questions/category/{category_id}", params=params)
        return parse_questions(data.get("questions") or data.get("items") or [])


class RemoteSessionClient(_ApiClient):
    """원격 세션 서비스. 모든 실패는 RemoteSessionUnavailable 로 감싼다."""

    def start_session(
        self,
        category_id: str,
        difficulty: str = "mixed",
        time_limit: int = config.DEFAULT_TIME_LIMIT_SECONDS,
        question_count: int = config.DEFAULT_QUESTION_COUNT,
    ) -> RemoteSession:
        body = {
            "categoryId": category_id,
            "difficulty": difficulty,
            "timeLimit": time_limit,
            "questionCount": question_count,
        }
        try:
            data = self._request("POST", "/quiz-sessions/start", json=body)
            return parse_remote_session(data, category_id)
        except (ServiceRequestError, ValidationError, KeyError, ValueError, TypeError) as e:
            raise RemoteSessionUnavailable(f"start_session failed: {e}") from e

    def get_active_session(self, category_id: str) -> Optional[RemoteSession]:
        try:
            data = self._request("GET", f"/quiz-sessions/active/{category_id}")
        except ServiceRequestError as e:
            # 404: 진행 중 세션 없음, 410: 만료됨
            if e.status_code in (404, 410):
                return None
            raise RemoteSessionUnavailable(f"get_active_session failed: {e}") from e
        try:
            return parse_remote_session(data, category_id)
        except (ValidationError, KeyError, ValueError, TypeError) as e:
            raise RemoteSessionUnavailable(f"malformed active session payload: {e}") from e

    def submit_answer(
        self,
        session_id: str,
        question_id: str,
        selected_answer: str,
        time_spent: int = 0,
    ) -> AnswerEntry:
        body = {"questionId": question_id, "selectedAnswer": selected_answer, "timeSpent": time_spent}
        try:
            data = self._request("POST", f"/quiz-sessions/{session_id}/answer", json=body)
            return AnswerEntry(
                question_id=str(data.get("questionId", question_id)),
                selected_value=str(data.get("selectedAnswer", selected_answer)),
                is_correct=bool(data.get("isCorrect", False)),
                time_spent_seconds=int(data.get("timeSpent") or time_spent),
            )
        except (ServiceRequestError, ValidationError, ValueError, TypeError) as e:
            raise RemoteSessionUnavailable(f"submit_answer failed: {e}") from e

    def finalize_session(self, session_id: str) -> ScoreSummary:
        return self._close(session_id, "submit")

    def abandon_session(self, session_id: str) -> ScoreSummary:
        return self._close(session_id, "abandon")

    def _close(self, session_id: str, action: str) -> ScoreSummary:
        try:
            data = self._request("POST", f"/quiz-sessions/{session_id}/{action}")
            return parse_score(data.get("score") or {})
        except (ServiceRequestError, ValidationError, ValueError, TypeError) as e:
            raise RemoteSessionUnavailable(f"{action} failed: {e}") from e
