"""
api/routes.py

FastAPI 엔드포인트. 모든 퀴즈 조작은 (쿠키 세션, 카테고리) 슬롯의 SessionController 로 위임한다.
라우트는 동기 def 이므로 원격 서비스 호출은 FastAPI 스레드풀에서 돈다.
"""

from contextlib import contextmanager
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

import config
from quiz_engine.errors import (
    InvalidTransition, NoQuestionsAvailable, QuizEngineError, ServiceRequestError,
)
from quiz_engine.models.question_model import QuestionSpec
from quiz_engine.models.session_state import QuizOptions, SessionState
from quiz_engine.services.scoring_service import (
    calculate_difficulty_breakdown, get_incorrect_questions,
)
from quiz_engine.services.session_controller import SessionController

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class StartQuizBody(QuizOptions):
    category_id: str

class LanguageBody(BaseModel):
    language: str
    confirm: bool = True

class AnswerBody(BaseModel):
    answer: str
    question_id: Optional[str] = None

class NavigateBody(BaseModel):
    index: int = 0


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

@contextmanager
def _engine_errors():
    """엔진 예외 → HTTPException."""
    try:
        yield
    except NoQuestionsAvailable as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Not found: {e.args[0] if e.args else e}")
    except ServiceRequestError as e:
        raise HTTPException(status_code=503, detail=f"Quiz service unavailable: {e}")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except QuizEngineError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _controller(request: Request, category_id: str) -> SessionController:
    controller = request.app.state.registry.find_controller(request.state.session_id, category_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="No quiz session for this category.")
    return controller


def _state_response(controller: SessionController) -> dict:
    data = controller.snapshot()
    if controller.state == SessionState.AWAITING_LANGUAGE_SELECTION:
        data["languages"] = list(config.SUPPORTED_LANGUAGES)
    question = controller.current_question
    if controller.state == SessionState.ACTIVE and question is not None:
        data["question"] = _question_view(controller, question, reveal=False)
    return data


def _question_view(controller: SessionController, question: QuestionSpec, reveal: bool) -> dict:
    d = question.public_view()
    entry = controller.session.ledger.get(question.id)
    d["saved_answer"] = entry.selected_value if entry else ""
    if reveal:
        d["correct_answer"] = question.correct_value
        d["explanation"] = question.explanation
        d["is_correct"] = entry.is_correct if entry else False
    return d


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.get("/api/categories")
def list_categories(request: Request, difficulty: Optional[str] = None):
    filters = {"difficulty": difficulty} if difficulty else {}
    with _engine_errors():
        categories = request.app.state.category_service.list_categories(**filters)
    return {
        "categories": [
            {**c.model_dump(), "language_partitioned": c.is_language_partitioned}
            for c in categories
        ]
    }


@router.post("/api/quiz/start")
def start_quiz(body: StartQuizBody, request: Request):
    controller = request.app.state.registry.controller_for(request.state.session_id, body.category_id)
    options = QuizOptions.model_validate(body.model_dump(exclude={"category_id"}))
    with _engine_errors():
        controller.start_quiz(body.category_id, options)
    return _state_response(controller)


@router.post("/api/quiz/{category_id}/language")
def select_language(category_id: str, body: LanguageBody, request: Request):
    controller = request.app.state.registry.controller_for(request.state.session_id, category_id)
    with _engine_errors():
        controller.select_language(body.language)
        if body.confirm:
            if controller.pending_category_id == category_id:
                controller.confirm_language()
            else:
                controller.start_quiz(category_id)
    return _state_response(controller)


@router.post("/api/quiz/{category_id}/answer")
def submit_answer(category_id: str, body: AnswerBody, request: Request):
    controller = _controller(request, category_id)
    with _engine_errors():
        entry = controller.submit_answer(body.answer, question_id=body.question_id)
    data = _state_response(controller)
    data["recorded"] = {"question_id": entry.question_id, "selected_value": entry.selected_value}
    return data


@router.post("/api/quiz/{category_id}/navigate")
def navigate(category_id: str, body: NavigateBody, request: Request):
    controller = _controller(request, category_id)
    with _engine_errors():
        idx = controller.go_to_question(body.index)
    return {"index": idx, "ok": True}


@router.post("/api/quiz/{category_id}/submit")
def submit_quiz(category_id: str, request: Request):
    controller = _controller(request, category_id)
    with _engine_errors():
        controller.submit_quiz()
    return _state_response(controller)


@router.post("/api/quiz/{category_id}/abandon")
def abandon_quiz(category_id: str, request: Request):
    controller = _controller(request, category_id)
    with _engine_errors():
        controller.abandon_quiz()
    return _state_response(controller)


@router.post("/api/quiz/{category_id}/sync")
def retry_sync(category_id: str, request: Request):
    controller = _controller(request, category_id)
    with _engine_errors():
        remaining = controller.retry_pending_sync()
    return {"pending": remaining, "ok": remaining == 0}


@router.get("/api/quiz/{category_id}/state")
def get_state(category_id: str, request: Request):
    return _state_response(_controller(request, category_id))


@router.get("/api/quiz/{category_id}/question/{index}")
def get_question(category_id: str, index: int, request: Request):
    controller = _controller(request, category_id)
    session = controller.session
    if session is None or not (0 <= index < len(session.questions)):
        raise HTTPException(status_code=404, detail="Question not found.")

    reveal = controller.state == SessionState.COMPLETED
    d = _question_view(controller, session.questions[index], reveal=reveal)
    d.update({"index": index, "total": len(session.questions)})
    return d


@router.get("/api/quiz/{category_id}/results")
def get_results(category_id: str, request: Request):
    controller = _controller(request, category_id)
    summary = controller.score_summary
    if controller.state != SessionState.COMPLETED or summary is None:
        raise HTTPException(status_code=409, detail="The quiz has not been finalized yet.")

    session = controller.session
    return {
        "session_id": session.session_id,
        "mode": session.mode,
        "status": session.status.value,
        "score": summary.model_dump(),
        "incorrect_questions": [
            _question_view(controller, q, reveal=True) for q in get_incorrect_questions(session)
        ],
        "difficulty_breakdown": calculate_difficulty_breakdown(session),
    }
