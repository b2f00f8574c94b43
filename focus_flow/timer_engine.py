"""Countdown engine for a single focus run.

Ticks are driven from outside (the host loop calls ``tick`` once per second),
so the engine holds no threads or timers of its own.
"""

from __future__ import annotations

from typing import Callable

from .models import TimerState, validate_duration


class TimerEngine:
    def __init__(self, duration_seconds: int, on_complete: Callable[[], None] | None = None):
        self._duration = validate_duration(duration_seconds)
        self._remaining = self._duration
        self._elapsed = 0
        self._running = False
        self._on_complete = on_complete

        # Bumped by start/reset; a tick carrying an older token is ignored.
        self._run_token = 0
        self._fired_token: int | None = None

    # ---- Read-only properties ----

    @property
    def duration_seconds(self) -> int:
        return self._duration

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def running(self) -> bool:
        return self._running

    @property
    def run_token(self) -> int:
        return self._run_token

    def state(self) -> TimerState:
        return TimerState(remaining_seconds=self._remaining, elapsed_seconds=self._elapsed)

    def set_on_complete(self, callback: Callable[[], None] | None) -> None:
        self._on_complete = callback

    # ---- Controls ----

    def start(self) -> None:
        if self._remaining <= 0:
            self._remaining = self._duration
            self._elapsed = 0
        self._run_token += 1
        self._running = True

    def pause(self) -> None:
        self._running = False

    def reset(self, new_duration: int | None = None) -> None:
        self._running = False
        if new_duration is not None:
            self._duration = validate_duration(new_duration)
        self._remaining = self._duration
        self._elapsed = 0
        self._run_token += 1

    def set_duration(self, seconds: int) -> None:
        self._duration = validate_duration(seconds)
        if not self._running:
            self._remaining = self._duration
            self._elapsed = 0
            self._run_token += 1

    def tick(self, token: int | None = None) -> bool:
        """Advance one second. Returns False when the tick was ignored."""
        if token is not None and token != self._run_token:
            return False
        if not self._running:
            return False
        if self._remaining <= 0:
            self._remaining = 0
            self._running = False
            return False

        self._remaining -= 1
        self._elapsed += 1

        if self._remaining <= 0:
            self._remaining = 0
            self._running = False
            if self._fired_token != self._run_token:
                self._fired_token = self._run_token
                if self._on_complete is not None:
                    self._on_complete()
        return True
