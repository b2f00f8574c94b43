from __future__ import annotations

import logging
from typing import Protocol

from .logging_setup import get_logger


class ResettableWidget(Protocol):
    def init(self, generation: int) -> None: ...

    def dispose(self) -> None: ...


class WidgetRegistry:
    """Re-initialises dependent widgets whenever the session generation moves."""

    def __init__(self, generation: int = 0, logger: logging.Logger | None = None):
        self._generation = generation
        self._widgets: list[ResettableWidget] = []
        self._logger = logger or get_logger()

    @property
    def generation(self) -> int:
        return self._generation

    def register(self, widget: ResettableWidget) -> None:
        self._widgets.append(widget)
        self._init(widget)

    def unregister(self, widget: ResettableWidget) -> None:
        if widget in self._widgets:
            self._widgets.remove(widget)
            self._dispose(widget)

    def advance(self, generation: int) -> None:
        if generation == self._generation:
            return
        self._generation = generation
        for widget in list(self._widgets):
            self._dispose(widget)
            self._init(widget)

    def dispose_all(self) -> None:
        for widget in list(self._widgets):
            self._dispose(widget)
        self._widgets.clear()

    def _init(self, widget: ResettableWidget) -> None:
        try:
            widget.init(self._generation)
        except Exception:
            self._logger.exception(f"Widget init failed widget={type(widget).__name__}")

    def _dispose(self, widget: ResettableWidget) -> None:
        try:
            widget.dispose()
        except Exception:
            self._logger.exception(f"Widget dispose failed widget={type(widget).__name__}")
