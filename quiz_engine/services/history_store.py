"""
services/history_store.py

완료된 세션의 가벼운 응시 기록 저장소 (fire-and-forget).
  - JsonFileHistoryStore : 로컬 JSON 파일에 누적 (대시보드용 응시 로그)
  - HttpHistoryStore     : 외부 히스토리 서비스로 POST
저장 실패는 호출자(SessionController)가 로그만 남기고 종료를 막지 않는다.
"""

import json
import logging
import os
import threading
from typing import List

from quiz_engine.models.answer_model import AttemptRecord
from quiz_engine.services.remote_clients import _ApiClient

logger = logging.getLogger(__name__)


class JsonFileHistoryStore:
    """JSON 리스트 파일에 응시 기록을 append 한다."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()

    def record_attempt(self, attempt: AttemptRecord) -> None:
        with self._lock:
            attempts = self._read()
            attempts.append(attempt.model_dump(mode="json"))
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            tmp_path = f"{self.path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(attempts, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        logger.info(f"응시 기록 저장: {attempt.session_id} ({attempt.percentage}%)")

    def list_attempts(self) -> List[AttemptRecord]:
        with self._lock:
            return [AttemptRecord.model_validate(item) for item in self._read()]

    def _read(self) -> list:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError:
                logger.warning(f"히스토리 파일 손상, 새로 시작: {self.path}")
                return []
        return data if isinstance(data, list) else []


class HttpHistoryStore(_ApiClient):
    """외부 히스토리 서비스 (POST /attempt-history)."""

    def record_attempt(self, attempt: AttemptRecord) -> None:
        body = {
            "id": attempt.session_id,
            "mode": attempt.mode,
            "categoryId": attempt.category_id,
            "category": attempt.category_name,
            "status": attempt.status,
            "score": attempt.percentage,
            "points": attempt.earned_points,
            "totalPoints": attempt.total_points,
            "correctAnswers": attempt.correct_answers,
            "totalQuestions": attempt.total_questions,
            "timeSpent": attempt.time_spent_seconds,
            "completedAt": attempt.completed_at.isoformat(),
        }
        self._request("POST", "/attempt-history", json=body)
