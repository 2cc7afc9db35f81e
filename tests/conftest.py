from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

import pytest

from quiz_engine.errors import RemoteSessionUnavailable
from quiz_engine.models.answer_model import AnswerEntry, AttemptRecord, ScoreSummary
from quiz_engine.models.question_model import Category, ProgramQuestion, QuestionOption, QuestionSpec
from quiz_engine.models.session_state import RemoteSession
from quiz_engine.services.catalog import InMemoryCatalog
from quiz_engine.services.scoring_service import calculate_percentage


def make_mcq(
    qid: str,
    answer: str,
    options: Tuple[str, ...] = ("A", "B", "C", "D"),
    points: int = 1,
    difficulty: str = "easy",
    hide_answer: bool = False,
) -> QuestionSpec:
    """hide_answer=True 는 정답이 빠진 원격 payload 를 흉내낸다."""
    return QuestionSpec(
        id=qid,
        question_text=f"Question {qid}",
        options=[QuestionOption(text=o, is_correct=(o == answer and not hide_answer)) for o in options],
        correct_answer=None if hide_answer else answer,
        points=points,
        difficulty=difficulty,
    )


def make_program(qid: str, language: str, answer: str = "1") -> QuestionSpec:
    return QuestionSpec(
        id=qid,
        question_text="What is printed?",
        question_type="program",
        options=[QuestionOption(text=o, is_correct=(o == answer)) for o in ("1", "2", "3")],
        correct_answer=answer,
        program_question=ProgramQuestion(code_snippet="print(1)", language=language, expected_output=answer),
    )


class ManualHandle:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """가상 시계 위에서 call_later 를 흉내내는 결정적 스케줄러."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: List[ManualHandle] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    @property
    def cancelled_count(self) -> int:
        return sum(1 for h in self.handles if h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.now = handle.due
            handle.fired = True
            handle.callback()
        self.now = target

    def fire_late(self, handle: ManualHandle) -> None:
        """취소된 뒤 늦게 도착한 콜백 (경쟁 상황) 재현."""
        handle.callback()


class FakeRemoteSessions:
    """메모리 안의 원격 세션 서비스. 서버 측 채점도 흉내낸다."""

    def __init__(self, questions: Optional[List[QuestionSpec]] = None, server_key: Optional[Dict[str, str]] = None) -> None:
        self.questions = list(questions or [])
        self.server_key = server_key or {q.id: q.correct_value for q in self.questions}
        self.active: Optional[RemoteSession] = None
        self.fail_start = False
        self.fail_answers = False
        self.fail_finalize = False
        self.started: List[dict] = []
        self.server_answers: Dict[str, Tuple[str, bool]] = {}
        self.finalized: List[str] = []
        self.abandoned: List[str] = []

    def get_active_session(self, category_id: str) -> Optional[RemoteSession]:
        if self.fail_start:
            raise RemoteSessionUnavailable("service down")
        return self.active

    def start_session(self, category_id: str, difficulty: str, time_limit: int, question_count: int) -> RemoteSession:
        if self.fail_start:
            raise RemoteSessionUnavailable("service down")
        self.started.append({"category_id": category_id, "time_limit": time_limit, "question_count": question_count})
        return RemoteSession(
            session_id=f"srv-{len(self.started)}",
            category_id=category_id,
            questions=tuple(self.questions[:question_count]),
            time_limit_seconds=time_limit,
            time_remaining_seconds=time_limit,
        )

    def submit_answer(self, session_id: str, question_id: str, selected_answer: str, time_spent: int = 0) -> AnswerEntry:
        if self.fail_answers:
            raise RemoteSessionUnavailable("answer endpoint down")
        is_correct = self.server_key.get(question_id) == selected_answer
        self.server_answers[question_id] = (selected_answer, is_correct)
        return AnswerEntry(
            question_id=question_id,
            selected_value=selected_answer,
            is_correct=is_correct,
            time_spent_seconds=time_spent,
        )

    def finalize_session(self, session_id: str) -> ScoreSummary:
        if self.fail_finalize:
            raise RemoteSessionUnavailable("submit endpoint down")
        self.finalized.append(session_id)
        return self._summary()

    def abandon_session(self, session_id: str) -> ScoreSummary:
        if self.fail_finalize:
            raise RemoteSessionUnavailable("abandon endpoint down")
        self.abandoned.append(session_id)
        return self._summary()

    def _summary(self) -> ScoreSummary:
        points = {q.id: q.points for q in self.questions}
        correct = [qid for qid, (_, ok) in self.server_answers.items() if ok]
        total = len(self.questions)
        answered = len(self.server_answers)
        return ScoreSummary(
            total_questions=total,
            answered_questions=answered,
            correct_answers=len(correct),
            incorrect_answers=answered - len(correct),
            unanswered_questions=total - answered,
            total_points=sum(points.values()),
            earned_points=sum(points[qid] for qid in correct),
            percentage=calculate_percentage(len(correct), total),
        )


def run_inline(job: Callable[[], None]) -> None:
    job()


class RecordingHistory:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.attempts: List[AttemptRecord] = []

    def record_attempt(self, attempt: AttemptRecord) -> None:
        if self.fail:
            raise OSError("history disk full")
        self.attempts.append(attempt)


ARRAYS = Category(id="arrays", name="Arrays")
PROGRAMS = Category(id="programs", name="Program-Based Questions", difficulty="intermediate")
EMPTY = Category(id="empty", name="Empty")


@pytest.fixture
def arrays_questions() -> List[QuestionSpec]:
    return [
        make_mcq("q1", "4", options=("3", "4", "5", "6"), points=5),
        make_mcq("q2", "B", points=5),
    ]


@pytest.fixture
def program_questions() -> List[QuestionSpec]:
    questions = []
    for language in ("python", "java", "javascript", "cpp"):
        for n in range(3):
            questions.append(make_program(f"{language}-{n}", language))
    return questions


@pytest.fixture
def catalog(arrays_questions, program_questions) -> InMemoryCatalog:
    return InMemoryCatalog(
        [ARRAYS, PROGRAMS, EMPTY],
        {"arrays": arrays_questions, "programs": program_questions, "empty": []},
    )


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def history() -> RecordingHistory:
    return RecordingHistory()
