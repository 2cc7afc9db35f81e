"""
models/answer_model.py

답안 원장 항목, 채점 결과, 응시 기록 모델.
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnswerEntry(BaseModel):
    """
    문제 1개에 대한 답안 (원장 항목).

    Attributes:
        question_id:        대상 문제 식별자.
        selected_value:     사용자가 선택/입력한 값 (정규화 없음).
        is_correct:         정답 여부 (파생값).
        points_awarded:     획득 점수 (파생값, 오답이면 0).
        time_spent_seconds: 해당 문제에 쓴 시간 (초).
    """
    model_config = ConfigDict(frozen=True)

    question_id: str
    selected_value: str
    is_correct: bool
    points_awarded: int = Field(0, ge=0)
    time_spent_seconds: int = Field(0, ge=0)
    answered_at: datetime = Field(default_factory=_utcnow)


class ScoreSummary(BaseModel):
    """
    세션 최종 채점 결과. 종료 시점에 한 번 생성되고 이후 변경되지 않는다.
    """
    model_config = ConfigDict(frozen=True)

    total_questions: int = Field(0, ge=0)
    answered_questions: int = Field(0, ge=0)
    correct_answers: int = Field(0, ge=0)
    incorrect_answers: int = Field(0, ge=0)
    unanswered_questions: int = Field(0, ge=0)
    total_points: int = Field(0, ge=0)
    earned_points: int = Field(0, ge=0)
    percentage: int = Field(0, ge=0, le=100)
    time_spent_seconds: int = Field(0, ge=0)


class AttemptRecord(BaseModel):
    """
    히스토리 저장소에 남기는 가벼운 응시 기록.
    """
    session_id: str
    mode: Literal["remote", "local"]
    category_id: str
    category_name: Optional[str] = None
    status: str
    percentage: int
    earned_points: int
    total_points: int
    correct_answers: int
    total_questions: int
    time_spent_seconds: int
    completed_at: datetime = Field(default_factory=_utcnow)
