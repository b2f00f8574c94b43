from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidConfigError


class SessionPhase(str, Enum):
    IDLE = "idle"
    PRIMED = "primed"
    COMPLETED = "completed"


class GatingPolicy(str, Enum):
    # Countdown advances only while the focus window is in the foreground.
    TAB_FOCUS = "tab_focus"
    # Foreground and the host view in fullscreen.
    FULLSCREEN = "fullscreen"

    @property
    def fullscreen_required(self) -> bool:
        return self is GatingPolicy.FULLSCREEN


class Severity(str, Enum):
    DEFAULT = "default"
    WARNING = "warning"
    DESTRUCTIVE = "destructive"


class Speaker(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def validate_duration(seconds) -> int:
    if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds <= 0:
        raise InvalidConfigError(f"duration must be a positive integer, got {seconds!r}")
    return seconds


def validate_pledge(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidConfigError(f"pledge must be a non-negative integer, got {amount!r}")
    return amount


@dataclass
class SessionConfig:
    duration_seconds: int
    pledge_amount: int = 0

    def __post_init__(self) -> None:
        validate_duration(self.duration_seconds)
        validate_pledge(self.pledge_amount)

    @property
    def duration_minutes(self) -> int:
        return self.duration_seconds // 60


@dataclass(frozen=True)
class TimerState:
    remaining_seconds: int
    elapsed_seconds: int


@dataclass(frozen=True)
class GatingSignal:
    tab_active: bool
    in_fullscreen: bool = False

    def gating_true(self, fullscreen_required: bool) -> bool:
        return self.tab_active and (self.in_fullscreen if fullscreen_required else True)


@dataclass
class ViolationState:
    tab_switch_count: int = 0
    away_start_ms: int | None = None

    def clear(self) -> None:
        self.tab_switch_count = 0
        self.away_start_ms = None


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    severity: Severity = Severity.DEFAULT
    duration_ms: int = 5000
    event: str = "advisory"


@dataclass(frozen=True)
class ResetRecord:
    reason: str
    forfeit: bool
    pledge_amount: int
    generation: int


@dataclass(frozen=True)
class ChatMessage:
    speaker: Speaker
    text: str


@dataclass(frozen=True)
class SessionSnapshot:
    phase: SessionPhase
    policy: GatingPolicy
    generation: int
    duration_seconds: int
    pledge_amount: int
    remaining_seconds: int
    elapsed_seconds: int
    tab_active: bool
    in_fullscreen: bool
    gating_true: bool
    tab_switch_count: int
    max_switches: int
    away_ms: int | None
    motivational_message: str | None = None
    prompt_loading: bool = False
    prompt_error: str | None = None
    chat_available: bool = False
    chat_responding: bool = False
    chat_error: str | None = None
    chat_transcript: tuple[ChatMessage, ...] = field(default_factory=tuple)
    last_reset: ResetRecord | None = None

    @property
    def is_idle(self) -> bool:
        return self.phase is SessionPhase.IDLE

    @property
    def is_primed(self) -> bool:
        return self.phase is SessionPhase.PRIMED

    @property
    def is_running(self) -> bool:
        return self.is_primed and self.gating_true

    @property
    def is_away(self) -> bool:
        return self.is_primed and not self.gating_true

    @property
    def is_completed(self) -> bool:
        return self.phase is SessionPhase.COMPLETED
