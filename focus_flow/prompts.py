from __future__ import annotations

from dataclasses import dataclass

from .config import PROMPT_FETCH_INTERVAL_MINUTES


@dataclass(frozen=True)
class PromptRequest:
    duration_minutes: int
    elapsed_minutes: int


class PromptScheduler:
    """Decides when to ask for a new motivational message.

    A fetch is due when the countdown has just started running at elapsed=0
    with nothing (or only an error) to show, or when the elapsed whole
    minutes land on a positive multiple of the interval past the mark of the
    last successful fetch. Only one request is outstanding at a time, and a
    mark that already failed is not retried until the next one.
    """

    def __init__(self, interval_minutes: int = PROMPT_FETCH_INTERVAL_MINUTES):
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self._interval = interval_minutes
        self.clear()

    @property
    def message(self) -> str | None:
        return self._message

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def last_fetch_minutes(self) -> int:
        return self._last_fetch_minutes

    def clear(self) -> None:
        self._message: str | None = None
        self._error: str | None = None
        self._in_flight = False
        self._last_fetch_minutes = 0
        self._last_attempt_minutes: int | None = None

    def should_fetch(self, elapsed_seconds: int, entering_running: bool = False) -> bool:
        if self._in_flight:
            return False
        if elapsed_seconds <= 0:
            return entering_running and (self._message is None or self._error is not None)

        minutes = elapsed_seconds // 60
        if minutes <= 0 or minutes % self._interval != 0:
            return False
        if minutes <= self._last_fetch_minutes:
            return False
        return minutes != self._last_attempt_minutes

    def begin(self, duration_minutes: int, elapsed_seconds: int) -> PromptRequest:
        minutes = max(0, elapsed_seconds) // 60
        self._in_flight = True
        self._last_attempt_minutes = minutes
        return PromptRequest(duration_minutes=duration_minutes, elapsed_minutes=minutes)

    def succeed(self, request: PromptRequest, text: str) -> None:
        self._in_flight = False
        self._message = text
        self._error = None
        self._last_fetch_minutes = request.elapsed_minutes

    def fail(self, error: str) -> None:
        # Keep the previous message on screen.
        self._in_flight = False
        self._error = error
