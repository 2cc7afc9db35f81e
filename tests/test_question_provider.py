import pytest

from conftest import ARRAYS, EMPTY, PROGRAMS, FakeRemoteSessions, make_mcq
from quiz_engine.errors import NoQuestionsAvailable, ServiceRequestError
from quiz_engine.models.answer_model import AnswerEntry
from quiz_engine.models.session_state import LocalSession, QuizOptions, RemoteSession, new_local_session_id
from quiz_engine.services.question_provider import QuestionProvider


def test_local_session_from_catalog(catalog) -> None:
    session = QuestionProvider(catalog).provide(ARRAYS, QuizOptions())

    assert isinstance(session, LocalSession)
    assert session.session_id.startswith("local_")
    assert [q.id for q in session.questions] == ["q1", "q2"]
    assert session.time_remaining_seconds == session.time_limit_seconds == 1800
    assert session.language_fallback_used is False


def test_language_filter_selects_matching_questions(catalog) -> None:
    session = QuestionProvider(catalog).provide(PROGRAMS, QuizOptions(language="python"))

    assert len(session.questions) == 3
    assert {q.language for q in session.questions} == {"python"}
    assert session.language_fallback_used is False


def test_missing_language_falls_back_to_mixed_questions(catalog) -> None:
    session = QuestionProvider(catalog).provide(PROGRAMS, QuizOptions(language="rust"))

    assert len(session.questions) == 10
    assert len({q.language for q in session.questions}) > 1
    assert session.language_fallback_used is True
    assert session.language == "rust"


def test_questions_truncated_to_requested_count(catalog) -> None:
    session = QuestionProvider(catalog).provide(PROGRAMS, QuizOptions(question_count=4))

    assert len(session.questions) == 4


def test_empty_category_raises(catalog) -> None:
    with pytest.raises(NoQuestionsAvailable) as excinfo:
        QuestionProvider(catalog).provide(EMPTY, QuizOptions())
    assert excinfo.value.category_id == "empty"


def test_question_service_failure_becomes_no_questions(catalog) -> None:
    class Broken:
        def list_questions_by_category(self, category_id, limit=10, type=None, language=None):
            raise ServiceRequestError("GET /questions -> 500", status_code=500)

    with pytest.raises(NoQuestionsAvailable) as excinfo:
        QuestionProvider(Broken()).provide(ARRAYS, QuizOptions())
    assert isinstance(excinfo.value.__cause__, ServiceRequestError)


def test_remote_session_preferred(catalog) -> None:
    remote = FakeRemoteSessions([make_mcq("r1", "A"), make_mcq("r2", "B")])

    session = QuestionProvider(catalog, remote).provide(ARRAYS, QuizOptions(time_limit_seconds=90))

    assert isinstance(session, RemoteSession)
    assert session.session_id == "srv-1"
    assert remote.started == [{"category_id": "arrays", "time_limit": 90, "question_count": 10}]


def test_remote_failure_falls_back_to_local(catalog) -> None:
    remote = FakeRemoteSessions([make_mcq("r1", "A")])
    remote.fail_start = True

    session = QuestionProvider(catalog, remote).provide(ARRAYS, QuizOptions())

    assert isinstance(session, LocalSession)
    assert [q.id for q in session.questions] == ["q1", "q2"]


def test_remote_session_without_questions_falls_back(catalog) -> None:
    remote = FakeRemoteSessions([])

    session = QuestionProvider(catalog, remote).provide(ARRAYS, QuizOptions())

    assert isinstance(session, LocalSession)


def test_active_remote_session_is_resumed(catalog) -> None:
    q1, q2 = make_mcq("r1", "A"), make_mcq("r2", "B")
    active = RemoteSession(
        session_id="srv-active",
        category_id="arrays",
        questions=(q1, q2),
        time_limit_seconds=600,
        time_remaining_seconds=420,
    )
    active.ledger.restore(AnswerEntry(question_id="r1", selected_value="A", is_correct=True, points_awarded=1))
    remote = FakeRemoteSessions([q1, q2])
    remote.active = active

    session = QuestionProvider(catalog, remote).provide(ARRAYS, QuizOptions())

    assert session is active
    assert session.time_remaining_seconds == 420
    assert "r1" in session.ledger
    assert remote.started == []


def test_local_session_ids_are_unique() -> None:
    ids = {new_local_session_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(sid.startswith("local_") for sid in ids)
