"""
errors.py

퀴즈 세션 엔진의 예외 계층.
서비스 계층은 아래 예외를 raise 하고, api/routes.py 에서 HTTPException 으로 변환한다.
"""


class QuizEngineError(Exception):
    """엔진 예외의 공통 부모."""


class NoQuestionsAvailable(QuizEngineError):
    """원격/로컬 경로 모두 문제를 얻지 못함. 세션 시작 실패 (재시도 = start 재호출)."""

    def __init__(self, category_id: str, message: str = ""):
        self.category_id = category_id
        super().__init__(message or f"No questions available for category {category_id}")


class RemoteSessionUnavailable(QuizEngineError):
    """원격 세션 서비스 불가/거절. 로컬 폴백으로 조용히 복구된다."""


class AnswerSyncFailed(QuizEngineError):
    """원격 세션에 답안 동기화 실패. 로컬 원장은 그대로 유지된다."""

    def __init__(self, session_id: str, question_id: str, cause: Exception | None = None):
        self.session_id = session_id
        self.question_id = question_id
        self.cause = cause
        super().__init__(f"Answer sync failed for {session_id}/{question_id}: {cause}")


class InvalidTransition(QuizEngineError):
    """현재 상태에서 허용되지 않는 조작 (프로그래밍 오류)."""

    def __init__(self, state, operation: str):
        self.state = state
        self.operation = operation
        super().__init__(f"Cannot {operation} while {getattr(state, 'value', state)}")


class UnknownQuestion(QuizEngineError, KeyError):
    """세션 문제 목록에 없는 question_id."""

    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(question_id)

    def __str__(self) -> str:
        return f"Question {self.question_id} not found in this quiz session"


class ServiceRequestError(QuizEngineError):
    """외부 서비스 HTTP 호출 실패 (재시도 소진, 비정상 응답, 잘못된 payload)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
