"""
models/session_state.py

퀴즈 세션 상태 모델.
Session = RemoteSession | LocalSession (mode 로 구분되는 tagged union).
채점/원장 로직은 mode 와 무관하며, mode 분기는 SessionController 의 동기화·종료 지점에서만 일어난다.
UI 코드 없음.
"""

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, PrivateAttr, field_validator

import config
from quiz_engine.models.question_model import QuestionSpec
from quiz_engine.services.answer_ledger import AnswerLedger


class SessionState(str, Enum):
    """SessionController 상태 머신."""

    IDLE = "idle"
    AWAITING_LANGUAGE_SELECTION = "awaiting_language_selection"
    STARTING = "starting"
    ACTIVE = "active"
    FINALIZING = "finalizing"
    COMPLETED = "completed"


class SessionStatus(str, Enum):
    """세션 자체의 수명 상태 (원격 서비스와 동일한 값)."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"
    ABANDONED = "abandoned"


class QuizOptions(BaseModel):
    """
    퀴즈 시작 옵션.

    Attributes:
        language:                   코드 분석형 카테고리의 언어 필터.
        question_count:             출제 문제 수.
        time_limit_seconds:         제한 시간 (초).
        difficulty:                 원격 세션 생성 시 난이도.
        auto_submit_on_last_answer: 모든 문제에 답하고 마지막 문제에서 답하면 자동 제출.
    """

    language: Optional[str] = None
    question_count: int = Field(config.DEFAULT_QUESTION_COUNT, ge=1, le=100)
    time_limit_seconds: int = Field(config.DEFAULT_TIME_LIMIT_SECONDS, ge=1)
    difficulty: Literal["easy", "medium", "hard", "mixed"] = "mixed"
    auto_submit_on_last_answer: bool = True

    @field_validator('language')
    @classmethod
    def validate_language(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        v = v.strip().lower()
        if v not in config.SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {v}")
        return v


def new_local_session_id() -> str:
    """로컬 세션 ID 생성 (예약 접두사 + epoch millis + 난수 8자리). 같은 밀리초에 시작해도 겹치지 않는다."""
    return f"{config.LOCAL_SESSION_PREFIX}{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def is_local_session_id(session_id: str) -> bool:
    return session_id.startswith(config.LOCAL_SESSION_PREFIX)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _SessionBase(BaseModel):
    """
    한 번의 제한시간 응시.

    questions 는 tuple 이라 생성 후 길이와 순서가 바뀌지 않는다.
    ledger 는 questions 로부터 생성되는 답안 원장 (직렬화 제외).
    """

    session_id: str = Field(..., min_length=1)
    category_id: str
    questions: Tuple[QuestionSpec, ...]
    time_limit_seconds: int = Field(config.DEFAULT_TIME_LIMIT_SECONDS, ge=0)
    time_remaining_seconds: int = Field(config.DEFAULT_TIME_LIMIT_SECONDS, ge=0)
    language: Optional[str] = None
    language_fallback_used: bool = False
    status: SessionStatus = SessionStatus.IN_PROGRESS
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    _ledger: AnswerLedger = PrivateAttr()

    def model_post_init(self, __context) -> None:
        self._ledger = AnswerLedger(self.questions)

    @property
    def ledger(self) -> AnswerLedger:
        return self._ledger

    @property
    def time_spent_seconds(self) -> int:
        return max(0, self.time_limit_seconds - self.time_remaining_seconds)

    def question_index(self, question_id: str) -> int:
        for idx, q in enumerate(self.questions):
            if q.id == question_id:
                return idx
        return -1


class RemoteSession(_SessionBase):
    """원격 세션 서비스가 권한을 가진 세션 (서버 발급 ID)."""

    mode: Literal["remote"] = "remote"

    @field_validator('session_id')
    @classmethod
    def validate_remote_id(cls, v: str) -> str:
        if is_local_session_id(v):
            raise ValueError(f"Remote session id may not use the reserved prefix: {v}")
        return v


class LocalSession(_SessionBase):
    """원격 서비스 불가 시 클라이언트에서 합성한 세션."""

    mode: Literal["local"] = "local"
    session_id: str = Field(default_factory=new_local_session_id)

    @field_validator('session_id')
    @classmethod
    def validate_local_id(cls, v: str) -> str:
        if not is_local_session_id(v):
            raise ValueError(f"Local session id must start with {config.LOCAL_SESSION_PREFIX!r}: {v}")
        return v


Session = Annotated[Union[RemoteSession, LocalSession], Field(discriminator="mode")]
