"""
services/collaborators.py

엔진이 소비하는 외부 협력자 계약.
구현: remote_clients.py (HTTP), history_store.py (파일/HTTP), catalog.py (인메모리).
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from quiz_engine.models.answer_model import AnswerEntry, AttemptRecord, ScoreSummary
from quiz_engine.models.question_model import Category, QuestionSpec
from quiz_engine.models.session_state import RemoteSession


class CategoryService(Protocol):
    def get_category(self, category_id: str) -> Category:
        """없으면 KeyError."""
        ...

    def list_categories(self, **filters) -> List[Category]: ...


class QuestionService(Protocol):
    def list_questions_by_category(
        self,
        category_id: str,
        limit: int = 10,
        type: Optional[str] = None,
        language: Optional[str] = None,
    ) -> List[QuestionSpec]: ...


class RemoteSessionService(Protocol):
    """모든 메서드는 실패 시 RemoteSessionUnavailable 를 raise 한다."""

    def start_session(
        self,
        category_id: str,
        difficulty: str,
        time_limit: int,
        question_count: int,
    ) -> RemoteSession: ...

    def get_active_session(self, category_id: str) -> Optional[RemoteSession]:
        """진행 중 세션이 없으면 None."""
        ...

    def submit_answer(
        self,
        session_id: str,
        question_id: str,
        selected_answer: str,
        time_spent: int,
    ) -> AnswerEntry: ...

    def finalize_session(self, session_id: str) -> ScoreSummary: ...

    def abandon_session(self, session_id: str) -> ScoreSummary: ...


class HistoryStore(Protocol):
    def record_attempt(self, attempt: AttemptRecord) -> None: ...
