from __future__ import annotations

import logging
from typing import Callable

from .logging_setup import get_logger

Probe = Callable[[], "bool | None"]
Handler = Callable[[bool], None]


class _EdgeSignal:
    """Boolean signal that notifies subscribers only when the value changes.

    The probe is sampled once at construction. A probe returning None means
    the platform could not tell, and the last known value is kept.
    """

    def __init__(self, probe: Probe | None, initial: bool, logger: logging.Logger | None = None):
        self._probe = probe
        self._handlers: list[Handler] = []
        self._logger = logger or get_logger()
        self._value = initial
        sampled = self._sample()
        if sampled is not None:
            self._value = sampled

    @property
    def value(self) -> bool:
        return self._value

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        self._handlers.append(handler)
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: Handler) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    def poll(self) -> bool:
        """Sample the probe and emit if the value changed. Returns True on an edge."""
        sampled = self._sample()
        if sampled is None:
            return False
        return self.push(sampled)

    def push(self, value: bool) -> bool:
        value = bool(value)
        if value == self._value:
            return False
        self._value = value
        for handler in list(self._handlers):
            handler(value)
        return True

    def _sample(self) -> bool | None:
        if self._probe is None:
            return None
        try:
            result = self._probe()
        except Exception:
            self._logger.exception(f"{type(self).__name__} probe failed")
            return None
        return None if result is None else bool(result)


class VisibilityMonitor(_EdgeSignal):
    def __init__(self, probe: Probe | None = None, logger: logging.Logger | None = None):
        super().__init__(probe, initial=True, logger=logger)

    @property
    def active(self) -> bool:
        return self.value


class FullscreenMonitor(_EdgeSignal):
    def __init__(self, region: str, probe: Probe | None = None, logger: logging.Logger | None = None):
        self.region = region
        super().__init__(probe, initial=False, logger=logger)

    @property
    def in_fullscreen(self) -> bool:
        return self.value
