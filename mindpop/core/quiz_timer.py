"""Countdown clock that triggers automatic submission when the time limit runs out."""

from __future__ import annotations

import logging
from threading import Event, Lock, Thread
from typing import Callable

from mindpop.constants.quiz_constants import TIMER_TICK_SECONDS

logger = logging.getLogger(__name__)


class QuizTimer:
    """Whole-second countdown that invokes ``on_time_up`` exactly once at zero.

    ``tick()`` advances the clock by one second and is what the background
    thread calls; tests drive it directly. Remaining time is never persisted.
    """

    def __init__(
        self,
        initial_seconds: int | None,
        on_time_up: Callable[[], None],
        tick_interval: float = TIMER_TICK_SECONDS,
    ) -> None:
        self._initial_seconds = initial_seconds
        self._time_left: int | None = initial_seconds
        self._on_time_up = on_time_up
        self._tick_interval = tick_interval
        self._running = False
        self._lock = Lock()
        self._stop_event = Event()
        self._thread: Thread | None = None

    @property
    def time_left(self) -> int | None:
        with self._lock:
            return self._time_left

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def start(self) -> bool:
        """Start counting down. Returns False when there is no time left to count."""
        with self._lock:
            if self._time_left is None or self._time_left <= 0:
                return False
            self._running = True
            return True

    def pause(self) -> None:
        with self._lock:
            self._running = False

    def reset(self, new_time: int | None = None) -> None:
        with self._lock:
            self._time_left = self._initial_seconds if new_time is None else new_time
            self._running = False

    def tick(self) -> None:
        fire = False
        with self._lock:
            if not self._running or self._time_left is None:
                return
            self._time_left -= 1
            if self._time_left <= 0:
                self._time_left = 0
                self._running = False
                fire = True
        if fire:
            logger.info("Quiz time limit reached")
            self._on_time_up()

    def format_time(self) -> str:
        time_left = self.time_left
        if time_left is None:
            return "--:--"
        minutes, seconds = divmod(time_left, 60)
        return f"{minutes:02d}:{seconds:02d}"

    # --- Background driver ---

    def run_in_background(self) -> Thread:
        """Start the timer and tick it from a daemon thread once per interval."""
        self.start()
        if self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set():
            return self._thread
        # A stopped driver may still be draining; it keeps its own event.
        stop_event = self._stop_event = Event()

        def run() -> None:
            while not stop_event.wait(self._tick_interval):
                if not self.is_running:
                    break
                self.tick()

        self._thread = Thread(target=run, name="QuizTimer", daemon=True)
        self._thread.start()
        return self._thread

    def stop_background(self) -> None:
        self.pause()
        self._stop_event.set()
