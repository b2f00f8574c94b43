from dataclasses import dataclass, field

import pytest

from focus_flow.coordinator import SessionCoordinator, run_inline
from focus_flow.errors import FetchError
from focus_flow.models import GatingPolicy, Notification, SessionConfig
from focus_flow.signals import FullscreenMonitor, VisibilityMonitor
from focus_flow.widgets import WidgetRegistry


class FakeClock:
    def __init__(self, start_ms: int = 0):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class DeferredRunner:
    """Holds async jobs until the test decides to finish them."""

    def __init__(self):
        self.pending = []

    def __call__(self, job, on_done):
        self.pending.append((job, on_done))

    def complete(self, index: int = 0) -> None:
        job, on_done = self.pending.pop(index)
        run_inline(job, on_done)

    def fail(self, error: Exception, index: int = 0) -> None:
        _, on_done = self.pending.pop(index)
        on_done(None, error)


class FakePromptSource:
    def __init__(self, text: str = "Keep going!", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls: list[tuple[int, int]] = []

    def generate_prompt(self, duration_minutes: int, elapsed_minutes: int) -> str:
        self.calls.append((duration_minutes, elapsed_minutes))
        if self.error is not None:
            raise self.error
        return f"{self.text} ({elapsed_minutes}/{duration_minutes})"


class FakeChatSource:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = []

    def reply(self, message, history):
        self.calls.append((message, tuple(history)))
        if self.error is not None:
            raise self.error
        return f"reply to {message}"


class FakeWidget:
    def __init__(self):
        self.events: list[tuple[str, int | None]] = []

    def init(self, generation: int) -> None:
        self.events.append(("init", generation))

    def dispose(self) -> None:
        self.events.append(("dispose", None))


@dataclass
class Harness:
    coordinator: SessionCoordinator
    visibility: VisibilityMonitor
    fullscreen: FullscreenMonitor
    clock: FakeClock
    notifications: list[Notification] = field(default_factory=list)
    fullscreen_requests: list[bool] = field(default_factory=list)

    def events(self) -> list[str]:
        return [n.event for n in self.notifications]

    def ticks(self, n: int) -> None:
        for _ in range(n):
            self.clock.advance(1000)
            self.coordinator.tick()

    def lose_focus(self) -> None:
        self.visibility.push(False)

    def regain_focus(self) -> None:
        self.visibility.push(True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_harness(clock):
    def _make(
        duration: int = 1500,
        pledge: int = 0,
        policy: GatingPolicy = GatingPolicy.TAB_FOCUS,
        tab_active: bool = True,
        in_fullscreen: bool = False,
        **kwargs,
    ) -> Harness:
        visibility = VisibilityMonitor(probe=lambda: tab_active)
        fullscreen = FullscreenMonitor("focus-view", probe=lambda: in_fullscreen)
        harness = Harness(coordinator=None, visibility=visibility, fullscreen=fullscreen, clock=clock)

        def request_fullscreen(enabled: bool) -> None:
            harness.fullscreen_requests.append(enabled)
            fullscreen.push(enabled)

        harness.coordinator = SessionCoordinator(
            SessionConfig(duration, pledge),
            visibility,
            fullscreen,
            policy,
            notifier=harness.notifications.append,
            request_fullscreen=request_fullscreen,
            clock=clock,
            **kwargs,
        )
        return harness

    return _make


@pytest.fixture
def fetch_error():
    return FetchError("network down")


@pytest.fixture
def registry():
    return WidgetRegistry()
