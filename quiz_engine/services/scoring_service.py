"""
services/scoring_service.py

세션 채점 및 결과 분석 비즈니스 로직.
순수 Python 함수로 구성: UI 코드, 전역 상태 변경 없음. 여러 번 호출해도 안전하다.
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List

from quiz_engine.models.answer_model import ScoreSummary
from quiz_engine.models.question_model import QuestionSpec
from quiz_engine.models.session_state import Session

_DIFFICULTIES = ("easy", "medium", "hard")


def calculate_percentage(correct_answers: int, total_questions: int) -> int:
    """
    정답률(%)을 정수로 반환한다. 0.5 는 올림 (round half up).
    total_questions 가 0 이면 0.
    """
    if total_questions <= 0:
        return 0
    ratio = Decimal(correct_answers) * 100 / Decimal(total_questions)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def score_session(
    session: Session,
    time_spent_seconds: int | None = None,
) -> ScoreSummary:
    """
    세션 원장을 채점하여 ScoreSummary 를 반환한다.

    응답하지 않은 문제는 오답/0점으로 처리하며 에러가 아니다.
    원격/로컬 세션 모두 같은 규칙으로 채점한다.

    Args:
        session:            채점 대상 세션.
        time_spent_seconds: 소요 시간. None 이면 time_limit - time_remaining.

    Returns:
        ScoreSummary (correct <= total, earned <= total_points 보장).
    """
    questions = session.questions
    entries = session.ledger.entries()

    total_questions = len(questions)
    answered = len(entries)
    correct = sum(1 for e in entries if e.is_correct)
    total_points = sum(q.points for q in questions)
    earned_points = sum(e.points_awarded for e in entries)

    if time_spent_seconds is None:
        time_spent_seconds = session.time_spent_seconds

    return ScoreSummary(
        total_questions=total_questions,
        answered_questions=answered,
        correct_answers=correct,
        incorrect_answers=answered - correct,
        unanswered_questions=total_questions - answered,
        total_points=total_points,
        earned_points=earned_points,
        percentage=calculate_percentage(correct, total_questions),
        time_spent_seconds=max(0, int(time_spent_seconds)),
    )


def get_incorrect_questions(session: Session) -> List[QuestionSpec]:
    """
    오답 문제 리스트를 반환한다 (오답 노트용).

    오답 판정 기준:
    - 원장의 is_correct 가 False 인 경우
    - 사용자가 아예 응답하지 않은 경우 (미응답 포함)

    Returns:
        오답 QuestionSpec 리스트. 원본 순서 유지.
    """
    incorrect: List[QuestionSpec] = []
    for q in session.questions:
        entry = session.ledger.get(q.id)
        if entry is None or not entry.is_correct:
            incorrect.append(q)
    return incorrect


def calculate_difficulty_breakdown(
    session: Session,
) -> List[Dict[str, object]]:
    """
    난이도별 점수를 계산하여 반환한다.

    Returns:
        [{"difficulty": str, "total": int, "correct": int,
          "incorrect": int, "unanswered": int, "score": float}, ...]
        easy, medium, hard 순서. 해당 난이도 문제가 없으면 생략.
    """
    buckets: Dict[str, Dict[str, int]] = defaultdict(
        lambda: {"total": 0, "correct": 0, "incorrect": 0, "unanswered": 0}
    )

    for q in session.questions:
        bucket = buckets[q.difficulty]
        bucket["total"] += 1
        entry = session.ledger.get(q.id)
        if entry is None:
            bucket["unanswered"] += 1
        elif entry.is_correct:
            bucket["correct"] += 1
        else:
            bucket["incorrect"] += 1

    result = []
    for difficulty in _DIFFICULTIES:
        if difficulty not in buckets:
            continue
        b = buckets[difficulty]
        score = round(b["correct"] / b["total"] * 100, 1) if b["total"] else 0.0
        result.append({"difficulty": difficulty, **b, "score": score})
    return result
