"""
api/session.py

멀티유저 인메모리 세션 (쿠키 기반).

각 사용자에게 UUID 세션 ID를 발급하고, (세션 ID, 카테고리) 마다 SessionController 를 하나씩 둔다.
TTL(기본 1시간) 경과 시 자동 만료되며, 만료된 컨트롤러의 타이머는 정리 시 함께 멈춘다.
"""

import logging
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional

from api.config import SESSION_TTL
from quiz_engine.services.session_controller import SessionController

logger = logging.getLogger(__name__)


class SessionRegistry:

    def __init__(
        self,
        controller_factory: Callable[[], SessionController],
        ttl: int = SESSION_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._factory = controller_factory
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._controllers: Dict[str, Dict[str, SessionController]] = {}
        self._timestamps: Dict[str, float] = {}

    def create_session(self) -> str:
        """새 세션을 생성하고 세션 ID를 반환."""
        sid = uuid.uuid4().hex
        with self._lock:
            self._controllers[sid] = {}
            self._timestamps[sid] = self._clock()
        return sid

    def has_session(self, sid: str) -> bool:
        """세션이 살아 있으면 True (접근 시각 갱신). 만료되었으면 정리 후 False."""
        with self._lock:
            if sid not in self._controllers:
                return False
            if self._clock() - self._timestamps[sid] > self.ttl:
                evicted = self._evict(sid)
            else:
                self._timestamps[sid] = self._clock()
                return True
        self._close_all(evicted)
        return False

    def controller_for(self, sid: str, category_id: str) -> SessionController:
        """카테고리 슬롯의 컨트롤러 (없으면 생성)."""
        with self._lock:
            slots = self._controllers.setdefault(sid, {})
            self._timestamps[sid] = self._clock()
            controller = slots.get(category_id)
            if controller is None:
                controller = self._factory()
                slots[category_id] = controller
            return controller

    def find_controller(self, sid: str, category_id: str) -> Optional[SessionController]:
        with self._lock:
            return self._controllers.get(sid, {}).get(category_id)

    def cleanup_expired(self) -> int:
        """만료된 세션을 정리. 제거된 수 반환."""
        now = self._clock()
        evicted: List[SessionController] = []
        with self._lock:
            expired = [sid for sid, ts in self._timestamps.items() if now - ts > self.ttl]
            for sid in expired:
                evicted.extend(self._evict(sid))
        self._close_all(evicted)
        return len(expired)

    def _evict(self, sid: str) -> List[SessionController]:
        slots = self._controllers.pop(sid, {})
        self._timestamps.pop(sid, None)
        return list(slots.values())

    @staticmethod
    def _close_all(controllers: List[SessionController]) -> None:
        # 컨트롤러 락은 레지스트리 락 밖에서 잡는다
        for controller in controllers:
            controller.close()
