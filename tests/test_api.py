import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from conftest import run_inline
from api.session import SessionRegistry
from quiz_engine.models.session_state import SessionState
from quiz_engine.services.session_controller import SessionController


@pytest.fixture
def app(catalog, scheduler, history):
    return create_app(
        category_service=catalog,
        question_service=catalog,
        history_store=history,
        scheduler=scheduler,
        start_cleanup=False,
        history_dispatch=run_inline,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def test_list_categories(client) -> None:
    res = client.get("/api/categories")

    assert res.status_code == 200
    by_id = {c["id"]: c for c in res.json()["categories"]}
    assert by_id["programs"]["language_partitioned"] is True
    assert by_id["arrays"]["language_partitioned"] is False


def test_full_quiz_flow(client, history) -> None:
    res = client.post("/api/quiz/start", json={"category_id": "arrays"})
    assert res.status_code == 200
    body = res.json()
    assert body["state"] == "active"
    assert body["mode"] == "local"
    assert body["question"]["id"] == "q1"
    assert "correct_answer" not in body["question"]

    res = client.post("/api/quiz/arrays/answer", json={"answer": "4"})
    assert res.json()["current_index"] == 1
    res = client.post("/api/quiz/arrays/answer", json={"answer": "B"})
    assert res.json()["state"] == "completed"

    results = client.get("/api/quiz/arrays/results").json()
    assert results["status"] == "completed"
    assert results["score"]["percentage"] == 100
    assert results["score"]["earned_points"] == 10
    assert results["incorrect_questions"] == []
    assert len(history.attempts) == 1


def test_question_view_reveals_answer_only_after_completion(client) -> None:
    client.post("/api/quiz/start", json={"category_id": "arrays"})

    active_view = client.get("/api/quiz/arrays/question/0").json()
    assert "correct_answer" not in active_view
    assert active_view["options"] == ["3", "4", "5", "6"]

    client.post("/api/quiz/arrays/submit")
    done_view = client.get("/api/quiz/arrays/question/0").json()
    assert done_view["correct_answer"] == "4"
    assert done_view["is_correct"] is False

    assert client.get("/api/quiz/arrays/question/9").status_code == 404


def test_language_selection_flow(client) -> None:
    res = client.post("/api/quiz/start", json={"category_id": "programs"})
    body = res.json()
    assert body["state"] == "awaiting_language_selection"
    assert "python" in body["languages"]

    res = client.post("/api/quiz/programs/language", json={"language": "java"})
    assert res.status_code == 200
    body = res.json()
    assert body["state"] == "active"
    assert body["total"] == 3
    assert body["question"]["program_question"]["language"] == "java"


def test_unsupported_language_is_422(client) -> None:
    res = client.post("/api/quiz/programs/language", json={"language": "cobol"})
    assert res.status_code == 422


def test_unknown_category_is_404(client) -> None:
    assert client.post("/api/quiz/start", json={"category_id": "missing"}).status_code == 404


def test_empty_category_is_404(client) -> None:
    res = client.post("/api/quiz/start", json={"category_id": "empty"})
    assert res.status_code == 404
    assert "No questions available" in res.json()["detail"]


def test_invalid_transitions_are_409(client) -> None:
    client.post("/api/quiz/start", json={"category_id": "arrays"})
    assert client.post("/api/quiz/start", json={"category_id": "arrays"}).status_code == 409
    assert client.get("/api/quiz/arrays/results").status_code == 409

    client.post("/api/quiz/arrays/abandon")
    assert client.post("/api/quiz/arrays/answer", json={"answer": "4"}).status_code == 409
    assert client.get("/api/quiz/arrays/results").json()["status"] == "abandoned"


def test_operations_without_session_are_404(client) -> None:
    assert client.post("/api/quiz/arrays/answer", json={"answer": "4"}).status_code == 404
    assert client.get("/api/quiz/arrays/state").status_code == 404


def test_navigate_clamps(client) -> None:
    client.post("/api/quiz/start", json={"category_id": "arrays"})

    res = client.post("/api/quiz/arrays/navigate", json={"index": 42})

    assert res.json() == {"index": 1, "ok": True}
    assert client.get("/api/quiz/arrays/state").json()["current_index"] == 1


def test_users_are_isolated_by_cookie(app) -> None:
    alice, bob = TestClient(app), TestClient(app)

    alice.post("/api/quiz/start", json={"category_id": "arrays"})

    assert alice.get("/api/quiz/arrays/state").status_code == 200
    assert bob.get("/api/quiz/arrays/state").status_code == 404
    assert bob.post("/api/quiz/start", json={"category_id": "arrays"}).status_code == 200


def test_registry_cleanup_cancels_timers(catalog, scheduler) -> None:
    now = [0.0]
    registry = SessionRegistry(
        lambda: SessionController(catalog, catalog, scheduler=scheduler, clock=scheduler.time),
        ttl=60,
        clock=lambda: now[0],
    )
    sid = registry.create_session()
    controller = registry.controller_for(sid, "arrays")
    controller.start_quiz("arrays")
    assert controller.timer_running

    now[0] = 61
    assert registry.cleanup_expired() == 1

    assert not controller.timer_running
    assert controller.state == SessionState.ACTIVE
    assert registry.find_controller(sid, "arrays") is None
    assert not registry.has_session(sid)


def test_sample_catalog_is_usable(scheduler) -> None:
    from api.sample_questions import build_sample_catalog

    catalog = build_sample_catalog()
    controller = SessionController(catalog, catalog, scheduler=scheduler, clock=scheduler.time)

    assert controller.start_quiz("program-based") is None
    controller.select_language("rust")
    session = controller.confirm_language()

    assert session.language_fallback_used is True
    assert len(session.questions) == 10
    assert [c.id for c in catalog.list_categories(difficulty="beginner")] == ["arrays", "fundamentals"]
