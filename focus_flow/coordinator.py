"""Session coordination state machine.

Every input (countdown tick, visibility or fullscreen edge, away watchdog,
async completion) goes through a handler here. Handlers recompute the gating
predicate themselves instead of trusting the order in which sources fire.
Async results carry the generation they were issued under and are dropped if
it has moved on.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol, Sequence

from .config import (
    MAX_AWAY_MS,
    MAX_SWITCHES,
    PROMPT_FETCH_INTERVAL_MINUTES,
    TOAST_ADVISORY_MS,
    TOAST_DEFAULT_MS,
    TOAST_FORFEIT_MS,
)
from .errors import ChatUnavailableError, InvalidConfigError, SessionLockedError
from .logging_setup import get_logger
from .models import (
    ChatMessage,
    GatingPolicy,
    GatingSignal,
    Notification,
    ResetRecord,
    SessionConfig,
    SessionPhase,
    SessionSnapshot,
    Severity,
    Speaker,
    ViolationState,
    validate_duration,
    validate_pledge,
)
from .prompts import PromptRequest, PromptScheduler
from .signals import FullscreenMonitor, VisibilityMonitor
from .timer_engine import TimerEngine
from .utils import now_mono_ms, seconds_to_mmss
from .widgets import WidgetRegistry


class PromptSource(Protocol):
    def generate_prompt(self, duration_minutes: int, elapsed_minutes: int) -> str: ...


class ChatSource(Protocol):
    def reply(self, message: str, history: Sequence[ChatMessage]) -> str: ...


Job = Callable[[], Any]
Done = Callable[[Any, "Exception | None"], None]
Runner = Callable[[Job, Done], None]
Listener = Callable[[SessionSnapshot], None]


def run_inline(job: Job, on_done: Done) -> None:
    try:
        result = job()
    except Exception as exc:
        on_done(None, exc)
        return
    on_done(result, None)


class SessionCoordinator:
    def __init__(
        self,
        config: SessionConfig,
        visibility: VisibilityMonitor,
        fullscreen: FullscreenMonitor | None = None,
        policy: GatingPolicy = GatingPolicy.FULLSCREEN,
        *,
        prompt_source: PromptSource | None = None,
        chat_source: ChatSource | None = None,
        runner: Runner | None = None,
        notifier: Callable[[Notification], None] | None = None,
        request_fullscreen: Callable[[bool], None] | None = None,
        widgets: WidgetRegistry | None = None,
        clock: Callable[[], int] | None = None,
        max_switches: int = MAX_SWITCHES,
        max_away_ms: int = MAX_AWAY_MS,
        prompt_interval_minutes: int = PROMPT_FETCH_INTERVAL_MINUTES,
        logger: logging.Logger | None = None,
    ):
        if policy.fullscreen_required and fullscreen is None:
            raise InvalidConfigError("fullscreen policy needs a fullscreen monitor")

        self._config = config
        self._visibility = visibility
        self._fullscreen = fullscreen
        self._policy = policy

        self._prompt_source = prompt_source
        self._chat_source = chat_source
        self._runner = runner or run_inline
        self._notifier = notifier
        self._request_fullscreen = request_fullscreen
        self._widgets = widgets
        self._clock = clock or now_mono_ms
        self._max_switches = max_switches
        self._max_away_ms = max_away_ms
        self.logger = logger or get_logger()

        self._phase = SessionPhase.IDLE
        self._generation = 0
        self._violations = ViolationState()
        self._timer = TimerEngine(config.duration_seconds, on_complete=self._on_timer_complete)
        self._prompts = PromptScheduler(prompt_interval_minutes)
        self._last_reset: ResetRecord | None = None

        self._chat: list[ChatMessage] = []
        self._chat_in_flight = False
        self._chat_error: str | None = None

        self._listeners: list[Listener] = []
        self._gating = self._compute_gating()

        self._unsubscribers = [visibility.subscribe(self._on_signal)]
        if fullscreen is not None:
            self._unsubscribers.append(fullscreen.subscribe(self._on_signal))

        if widgets is not None:
            widgets.advance(self._generation)

    # ---- Read-only properties ----

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def policy(self) -> GatingPolicy:
        return self._policy

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def timer(self) -> TimerEngine:
        return self._timer

    @property
    def violations(self) -> ViolationState:
        return self._violations

    @property
    def last_reset(self) -> ResetRecord | None:
        return self._last_reset

    @property
    def gating_true(self) -> bool:
        return self._gating

    @property
    def is_idle(self) -> bool:
        return self._phase is SessionPhase.IDLE

    @property
    def is_primed(self) -> bool:
        return self._phase is SessionPhase.PRIMED

    @property
    def is_running(self) -> bool:
        return self.is_primed and self._gating

    @property
    def is_completed(self) -> bool:
        return self._phase is SessionPhase.COMPLETED

    @property
    def chat_available(self) -> bool:
        return self.is_running and self._chat_source is not None and not self._chat_in_flight

    # ---- Subscriptions ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self.snapshot())
        return lambda: self._unsubscribe(listener)

    def _unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def snapshot(self) -> SessionSnapshot:
        away_ms = None
        if self._violations.away_start_ms is not None:
            away_ms = max(0, self._clock() - self._violations.away_start_ms)
        return SessionSnapshot(
            phase=self._phase,
            policy=self._policy,
            generation=self._generation,
            duration_seconds=self._config.duration_seconds,
            pledge_amount=self._config.pledge_amount,
            remaining_seconds=self._timer.remaining_seconds,
            elapsed_seconds=self._timer.elapsed_seconds,
            tab_active=self._visibility.active,
            in_fullscreen=self._in_fullscreen(),
            gating_true=self._gating,
            tab_switch_count=self._violations.tab_switch_count,
            max_switches=self._max_switches,
            away_ms=away_ms,
            motivational_message=self._prompts.message,
            prompt_loading=self._prompts.in_flight,
            prompt_error=self._prompts.error,
            chat_available=self.chat_available,
            chat_responding=self._chat_in_flight,
            chat_error=self._chat_error,
            chat_transcript=tuple(self._chat),
            last_reset=self._last_reset,
        )

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._timer.pause()
        self._listeners.clear()

    # ---- Configuration (Idle only) ----

    def set_duration(self, seconds: int) -> None:
        self._require_idle("duration")
        validate_duration(seconds)
        self._config.duration_seconds = seconds
        self._timer.set_duration(seconds)
        self.logger.info(f"Duration set seconds={seconds}")
        self._publish()

    def set_pledge(self, amount: int) -> None:
        self._require_idle("pledge")
        validate_pledge(amount)
        self._config.pledge_amount = amount
        self.logger.info(f"Pledge set amount={amount}")
        self._publish()

    def set_policy(self, policy: GatingPolicy) -> None:
        self._require_idle("policy")
        if policy.fullscreen_required and self._fullscreen is None:
            raise InvalidConfigError("fullscreen policy needs a fullscreen monitor")
        self._policy = policy
        self._gating = self._compute_gating()
        self.logger.info(f"Policy set policy={policy.value}")
        self._publish()

    def _require_idle(self, what: str) -> None:
        if not self.is_idle:
            raise SessionLockedError(f"cannot change {what} while session is {self._phase.value}")

    # ---- Session lifecycle ----

    def start_session(self) -> None:
        if self.is_primed:
            self.logger.info("Start ignored: session already primed")
            return

        self._violations.clear()
        self._prompts.clear()
        self._chat_in_flight = False
        self._timer.reset(self._config.duration_seconds)
        self._phase = SessionPhase.PRIMED
        self._bump_generation()
        self._gating = self._compute_gating()

        self.logger.info(
            f"Session primed duration={self._config.duration_seconds} pledge={self._config.pledge_amount} "
            f"policy={self._policy.value} generation={self._generation} gating={self._gating}"
        )

        if self._gating:
            self._enter_running()
        else:
            self._notify_gating_advisory()
        self._publish()

    def reset_session(self, reason: str = "Session reset", forfeit: bool = False) -> None:
        self._reset(reason, forfeit)
        self._publish()

    def tick(self) -> None:
        self._sync_gating()
        if self.is_running:
            self._timer.tick()
            if self.is_primed:
                if not self._check_timer_invariant():
                    self._reset("Timer state inconsistent", forfeit=False)
                else:
                    self._maybe_fetch_prompt(entering_running=False)
        self._publish()

    def watchdog_tick(self) -> None:
        self._sync_gating()
        if not self.is_primed or self._gating:
            return

        away_start = self._violations.away_start_ms
        if away_start is None:
            # Not enough information to call it a violation.
            self._publish()
            return

        away_ms = self._clock() - away_start
        if away_ms > self._max_away_ms:
            self.logger.info(f"Away watchdog fired away_ms={away_ms} limit_ms={self._max_away_ms}")
            self._reset(
                f"Away too long ({away_ms // 1000}s away, limit {self._max_away_ms // 1000}s)",
                forfeit=True,
            )
        self._publish()

    # ---- Chat ----

    def send_chat(self, text: str) -> bool:
        text = (text or "").strip()
        if not text:
            return False
        if not self.is_running:
            raise ChatUnavailableError("chat is only available while the session is running")
        if self._chat_source is None:
            raise ChatUnavailableError("no assistant configured")
        if self._chat_in_flight:
            raise ChatUnavailableError("the assistant is still responding")

        history = tuple(self._chat)
        self._chat.append(ChatMessage(Speaker.USER, text))
        self._chat_in_flight = True
        self._chat_error = None
        generation = self._generation
        source = self._chat_source
        self.logger.info(f"Chat request history_len={len(history)} generation={generation}")
        self._publish()

        self._runner(
            lambda: source.reply(text, history),
            lambda result, error: self._on_chat_done(generation, result, error),
        )
        return True

    def clear_chat(self) -> None:
        self._chat.clear()
        self._chat_error = None
        self._publish()

    # ---- Event handlers ----

    def _on_signal(self, _value: bool) -> None:
        self._sync_gating()
        self._publish()

    def _sync_gating(self) -> None:
        gating = self._compute_gating()
        if gating == self._gating:
            return
        self._gating = gating
        if not self.is_primed:
            return
        if gating:
            self._on_gating_restored()
        else:
            self._on_gating_lost()

    def _on_gating_lost(self) -> None:
        self._timer.pause()
        self._violations.tab_switch_count += 1
        self._violations.away_start_ms = self._clock()
        count = self._violations.tab_switch_count
        self.logger.info(f"Gating lost switch_count={count}/{self._max_switches}")

        if count > self._max_switches:
            self._reset(f"Exceeded max switches ({count} switches, limit {self._max_switches})", forfeit=True)
            return

        self._notify(
            "Timer paused",
            f"Focus lost ({count}/{self._max_switches} switches used). "
            f"Come back within {self._max_away_ms // 1000}s to keep your session.",
            Severity.WARNING,
            TOAST_DEFAULT_MS,
            event="paused",
        )

    def _on_gating_restored(self) -> None:
        away_start = self._violations.away_start_ms
        self._violations.away_start_ms = None
        self._enter_running()

        if away_start is None:
            self.logger.info("Gating satisfied, countdown started")
            self._notify("Timer started", "Stay focused, achieve more.", Severity.DEFAULT, TOAST_DEFAULT_MS, event="started")
            return

        away_ms = max(0, self._clock() - away_start)
        self.logger.info(f"Gating restored away_ms={away_ms}")
        self._notify(
            "Welcome back",
            f"Timer resumed after {away_ms // 1000}s away "
            f"({self._violations.tab_switch_count}/{self._max_switches} switches used).",
            Severity.DEFAULT,
            TOAST_DEFAULT_MS,
            event="resumed",
        )

    def _on_timer_complete(self) -> None:
        self._phase = SessionPhase.COMPLETED
        self._violations.clear()
        self._prompts.clear()
        self._chat_in_flight = False
        self._bump_generation()
        self.logger.info(f"Session completed duration={self._config.duration_seconds} generation={self._generation}")

        self._notify(
            "Session Complete!",
            f"You've completed a {self._duration_label()} focus session. Great job!",
            Severity.DEFAULT,
            TOAST_DEFAULT_MS,
            event="completed",
        )
        self._exit_fullscreen_if_engaged()

    def _on_prompt_done(self, generation: int, request: PromptRequest, result: Any, error: Exception | None) -> None:
        if generation != self._generation:
            self.logger.info(f"Discarding stale prompt result generation={generation} live={self._generation}")
            return

        text = result.strip() if isinstance(result, str) else ""
        if error is None and not text:
            error = ValueError("empty prompt")

        if error is not None:
            self._prompts.fail(str(error) or type(error).__name__)
            self.logger.warning(f"Prompt fetch failed elapsed_min={request.elapsed_minutes} error={error!r}")
            self._notify("Error", "Failed to fetch motivational prompt.", Severity.DESTRUCTIVE, TOAST_DEFAULT_MS, event="error")
        else:
            self._prompts.succeed(request, text)
            self.logger.info(f"Prompt fetched elapsed_min={request.elapsed_minutes}")
        self._publish()

    def _on_chat_done(self, generation: int, result: Any, error: Exception | None) -> None:
        if generation != self._generation:
            self.logger.info(f"Discarding stale chat reply generation={generation} live={self._generation}")
            return

        self._chat_in_flight = False
        text = result.strip() if isinstance(result, str) else ""
        if error is None and not text:
            error = ValueError("empty reply")

        if error is not None:
            self._chat_error = str(error) or type(error).__name__
            self.logger.warning(f"Chat request failed error={error!r}")
            self._notify("Error", "The assistant could not answer.", Severity.DESTRUCTIVE, TOAST_DEFAULT_MS, event="error")
        else:
            self._chat.append(ChatMessage(Speaker.ASSISTANT, text))
        self._publish()

    # ---- Internal ----

    def _reset(self, reason: str, forfeit: bool) -> None:
        previous = self._phase
        self._timer.reset(self._config.duration_seconds)
        self._phase = SessionPhase.IDLE
        self._violations.clear()
        self._prompts.clear()
        self._chat_in_flight = False
        self._bump_generation()

        pledge = self._config.pledge_amount
        self._last_reset = ResetRecord(reason=reason, forfeit=forfeit, pledge_amount=pledge, generation=self._generation)
        self.logger.info(
            f"Session reset from={previous.value} forfeit={forfeit} reason={reason!r} generation={self._generation}"
        )

        if forfeit:
            if pledge > 0:
                self._notify(
                    "Pledge forfeited",
                    f"{reason}. Your pledge of {pledge} has been forfeited.",
                    Severity.DESTRUCTIVE,
                    TOAST_FORFEIT_MS,
                    event="forfeit",
                )
            else:
                self._notify("Session forfeited", f"{reason}.", Severity.DESTRUCTIVE, TOAST_FORFEIT_MS, event="forfeit")
        else:
            self._notify("Session reset", f"{reason}.", Severity.DEFAULT, TOAST_DEFAULT_MS, event="reset")
        self._exit_fullscreen_if_engaged()

    def _enter_running(self) -> None:
        self._timer.start()
        self._maybe_fetch_prompt(entering_running=True)

    def _maybe_fetch_prompt(self, entering_running: bool) -> None:
        if self._prompt_source is None:
            return
        elapsed = self._timer.elapsed_seconds
        if not self._prompts.should_fetch(elapsed, entering_running):
            return

        request = self._prompts.begin(self._config.duration_minutes, elapsed)
        generation = self._generation
        source = self._prompt_source
        self.logger.info(f"Prompt fetch elapsed_min={request.elapsed_minutes} generation={generation}")
        self._runner(
            lambda: source.generate_prompt(request.duration_minutes, request.elapsed_minutes),
            lambda result, error: self._on_prompt_done(generation, request, result, error),
        )

    def _check_timer_invariant(self) -> bool:
        total = self._timer.remaining_seconds + self._timer.elapsed_seconds
        if total == self._timer.duration_seconds and self._timer.remaining_seconds >= 0:
            return True
        self.logger.error(
            f"Timer invariant broken remaining={self._timer.remaining_seconds} "
            f"elapsed={self._timer.elapsed_seconds} duration={self._timer.duration_seconds}"
        )
        return False

    def _notify_gating_advisory(self) -> None:
        if not self._visibility.active:
            self._notify(
                "Return to FocusFlow",
                "Your session is ready, but the focus window is in the background. "
                "Switch back to start the countdown.",
                Severity.WARNING,
                TOAST_ADVISORY_MS,
            )
        elif self._policy.fullscreen_required and not self._in_fullscreen():
            self._notify(
                "Enter fullscreen",
                "Your session is ready. Enter fullscreen to start the countdown.",
                Severity.WARNING,
                TOAST_ADVISORY_MS,
            )

    def _compute_gating(self) -> bool:
        signal = GatingSignal(tab_active=self._visibility.active, in_fullscreen=self._in_fullscreen())
        return signal.gating_true(self._policy.fullscreen_required)

    def _in_fullscreen(self) -> bool:
        return self._fullscreen.in_fullscreen if self._fullscreen is not None else False

    def _exit_fullscreen_if_engaged(self) -> None:
        if self._request_fullscreen is None or not self._in_fullscreen():
            return
        try:
            self._request_fullscreen(False)
        except Exception:
            self.logger.exception("Fullscreen exit request failed")

    def _bump_generation(self) -> None:
        self._generation += 1
        if self._widgets is not None:
            self._widgets.advance(self._generation)

    def _duration_label(self) -> str:
        seconds = self._config.duration_seconds
        if seconds % 60 == 0:
            return f"{seconds // 60}-minute"
        return seconds_to_mmss(seconds)

    def _notify(
        self, title: str, description: str, severity: Severity, duration_ms: int, event: str = "advisory"
    ) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier(Notification(title, description, severity, duration_ms, event))
        except Exception:
            self.logger.exception(f"Notification delivery failed title={title!r}")

    def _publish(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                self.logger.exception("Session listener failed")
