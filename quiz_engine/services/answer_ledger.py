"""
services/answer_ledger.py

세션별 답안 원장 (OMR 답안지).
문제당 최대 1개의 AnswerEntry 만 유지하고, 같은 문제에 다시 답하면 덮어쓴다.
쓰기는 record() 호출 순서대로 적용되며, 호출 직렬화는 SessionController 의 몫이다.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from quiz_engine.errors import UnknownQuestion
from quiz_engine.models.answer_model import AnswerEntry
from quiz_engine.models.question_model import QuestionSpec


class AnswerLedger:
    """question_id 기준으로 조회되는 답안 원장."""

    def __init__(self, questions: Iterable[QuestionSpec]) -> None:
        self._questions: Dict[str, QuestionSpec] = {q.id: q for q in questions}
        self._entries: Dict[str, AnswerEntry] = {}

    def record(
        self,
        question_id: str,
        selected_value: str,
        time_spent_seconds: int = 0,
    ) -> AnswerEntry:
        """
        답안을 기록하고 생성된 AnswerEntry 를 반환한다.

        정답 판정: selected_value == question.correct_value (정규화/부분점수 없음).
        정답 값을 모르는 문제는 오답으로 기록되며, 원격 판정이 오면 reconcile() 로 갱신된다.

        Args:
            question_id:        세션 문제 목록에 있는 식별자.
            selected_value:     선택한 값.
            time_spent_seconds: 해당 문제 풀이 시간 (초).

        Raises:
            UnknownQuestion: question_id 가 세션 문제에 없을 때.
        """
        question = self._questions.get(question_id)
        if question is None:
            raise UnknownQuestion(question_id)

        correct_value = question.correct_value
        is_correct = correct_value is not None and selected_value == correct_value
        entry = AnswerEntry(
            question_id=question_id,
            selected_value=selected_value,
            is_correct=is_correct,
            points_awarded=question.points if is_correct else 0,
            time_spent_seconds=max(0, int(time_spent_seconds)),
        )
        self._entries[question_id] = entry
        return entry

    def restore(self, entry: AnswerEntry) -> None:
        """서버가 이미 보유한 답안을 그대로 복원 (재개 경로)."""
        if entry.question_id not in self._questions:
            raise UnknownQuestion(entry.question_id)
        self._entries[entry.question_id] = entry

    def reconcile(self, remote_entry: AnswerEntry) -> Optional[AnswerEntry]:
        """
        원격 판정 결과를 반영한다.

        로컬에서 정답 값을 아는 문제는 로컬 판정을 유지하고,
        정답이 숨겨진 문제만 원격의 is_correct 를 채택한다. 선택 값은 로컬 것이 기준.
        """
        local = self._entries.get(remote_entry.question_id)
        question = self._questions.get(remote_entry.question_id)
        if local is None or question is None or question.correct_value is not None:
            return local
        if local.selected_value != remote_entry.selected_value:
            # 원격 응답이 오기 전에 답이 바뀜
            return local
        reconciled = local.model_copy(update={
            "is_correct": remote_entry.is_correct,
            "points_awarded": question.points if remote_entry.is_correct else 0,
        })
        self._entries[local.question_id] = reconciled
        return reconciled

    def get(self, question_id: str) -> Optional[AnswerEntry]:
        return self._entries.get(question_id)

    def entries(self) -> List[AnswerEntry]:
        return list(self._entries.values())

    def answered_ids(self) -> set[str]:
        return set(self._entries)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
