"""
services/catalog.py

인메모리 카테고리 + 문제 서비스.
외부 백엔드 없이 실행할 때(오프라인/데모)와 테스트에서 CategoryService, QuestionService 로 쓰인다.
"""

from typing import Dict, Iterable, List, Optional

from quiz_engine.models.question_model import Category, QuestionSpec


class InMemoryCatalog:

    def __init__(
        self,
        categories: Iterable[Category],
        questions: Dict[str, List[QuestionSpec]],
    ) -> None:
        self._categories: Dict[str, Category] = {c.id: c for c in categories}
        self._questions = {cid: list(qs) for cid, qs in questions.items()}

    # ── CategoryService ─────────────────────────────────────────────────────

    def get_category(self, category_id: str) -> Category:
        return self._categories[category_id]

    def list_categories(self, **filters) -> List[Category]:
        result = list(self._categories.values())
        if "is_active" in filters:
            result = [c for c in result if c.is_active == filters["is_active"]]
        if filters.get("difficulty"):
            result = [c for c in result if c.difficulty == filters["difficulty"]]
        return result

    # ── QuestionService ─────────────────────────────────────────────────────

    def list_questions_by_category(
        self,
        category_id: str,
        limit: int = 10,
        type: Optional[str] = None,
        language: Optional[str] = None,
    ) -> List[QuestionSpec]:
        questions = self._questions.get(category_id, [])
        if type:
            questions = [q for q in questions if q.question_type == type]
        if language:
            questions = [q for q in questions if q.language == language]
        return questions[:limit]
