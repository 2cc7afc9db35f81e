"""
services/countdown_timer.py

1초 해상도의 카운트다운 타이머.
퀴즈 의미론은 없고, 전달받은 콜백(on_tick, on_expire)만 호출한다.

스케줄러는 call_later(delay, callback) -> handle(.cancel()) 하나만 요구한다.
기본값은 데몬 threading.Timer 기반 ThreadingScheduler, 테스트는 수동 스케줄러를 주입한다.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0


class CancelHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> CancelHandle: ...


class ThreadingScheduler:
    """threading.Timer 로 콜백을 한 번 예약한다. Timer 자체가 cancel 핸들이다."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class CountdownTimer:
    """
    start(duration, on_tick, on_expire) 로 시작, cancel() 로 정지.

    - on_tick(remaining): 1초마다 새 남은 시간으로 호출.
    - remaining 이 0 이 되면 on_tick(0) 다음 on_expire() 가 정확히 한 번 호출되고 타이머는 스스로 멈춘다.
    - 실행 중 start() 재호출은 프로그래밍 오류 (먼저 cancel 해야 함).
    - cancel() 이후 늦게 도착한 tick 은 세대(generation) 번호로 걸러져 무시된다.
    """

    def __init__(self, scheduler: Optional[Scheduler] = None, tick_seconds: float = TICK_SECONDS) -> None:
        self._scheduler: Scheduler = scheduler or ThreadingScheduler()
        self._tick_seconds = tick_seconds
        self._lock = threading.Lock()
        self._generation = 0
        self._running = False
        self._remaining = 0
        self._handle: Optional[CancelHandle] = None
        self._on_tick: Optional[Callable[[int], None]] = None
        self._on_expire: Optional[Callable[[], None]] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def remaining(self) -> int:
        return self._remaining

    def start(
        self,
        duration_seconds: int,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None],
    ) -> None:
        if duration_seconds <= 0:
            raise ValueError(f"duration_seconds must be positive, got {duration_seconds}")
        with self._lock:
            if self._running:
                raise RuntimeError("CountdownTimer is already running; cancel() it first.")
            self._generation += 1
            self._running = True
            self._remaining = int(duration_seconds)
            self._on_tick = on_tick
            self._on_expire = on_expire
            self._schedule(self._generation)
        logger.debug(f"타이머 시작: {duration_seconds}초")

    def cancel(self) -> bool:
        """타이머 정지. 실제로 돌던 타이머를 멈췄으면 True, 이미 멈춰 있었으면 False (no-op)."""
        with self._lock:
            if not self._running:
                return False
            self._running = False
            self._generation += 1
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
        logger.debug(f"타이머 취소: 남은 시간 {self._remaining}초")
        return True

    # ── 내부 ─────────────────────────────────────────────────────────────────

    def _schedule(self, generation: int) -> None:
        self._handle = self._scheduler.call_later(
            self._tick_seconds, lambda: self._tick(generation)
        )

    def _tick(self, generation: int) -> None:
        with self._lock:
            if not self._running or generation != self._generation:
                return
            self._remaining = max(0, self._remaining - 1)
            remaining = self._remaining
            expired = remaining == 0
            if expired:
                self._running = False
                self._handle = None
            else:
                self._schedule(generation)
            on_tick, on_expire = self._on_tick, self._on_expire

        # 콜백은 락 밖에서 호출 (콜백 안에서 cancel() 재진입 가능)
        if on_tick is not None:
            on_tick(remaining)
        if expired and on_expire is not None:
            on_expire()
