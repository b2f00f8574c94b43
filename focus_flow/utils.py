import math
import os
import time


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def seconds_to_mmss(seconds: float) -> str:
    seconds = max(0, int(seconds))
    m, s = divmod(seconds, 60)
    return f"{m:02d}:{s:02d}"


def progress_fraction(remaining_sec: int, duration_sec: int) -> float:
    if duration_sec <= 0:
        return 0.0
    frac = (duration_sec - remaining_sec) / duration_sec
    return max(0.0, min(1.0, frac))


def minutes_remaining(remaining_sec: int) -> int:
    return math.ceil(max(0, remaining_sec) / 60)


def now_mono_ms() -> int:
    return int(time.monotonic() * 1000)
