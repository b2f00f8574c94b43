import ctypes
import os

import psutil


def _user32():
    windll = getattr(ctypes, "windll", None)
    return windll.user32 if windll is not None else None


def get_foreground_pid() -> int | None:
    user32 = _user32()
    if user32 is None:
        return None
    hwnd = user32.GetForegroundWindow()
    if not hwnd:
        return None
    pid = ctypes.c_ulong(0)
    user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
    return pid.value or None


def safe_process_name(pid: int | None) -> str | None:
    if not pid:
        return None
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return None


class AllowedAppMatcher:
    def __init__(self):
        self._patterns: list[str] = []

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def set_from_text(self, text: str) -> None:
        tokens = [t.strip() for t in (text or "").split(",")]
        self._patterns = [t.lower() for t in tokens if t.strip()]

    def matches(self, proc_name: str | None) -> bool:
        if not proc_name:
            return False
        pn = proc_name.lower()
        for pat in self._patterns:
            if "*" in pat:
                parts = [p for p in pat.split("*") if p]
                if not parts:
                    continue
                idx = 0
                ok = True
                for part in parts:
                    found = pn.find(part, idx)
                    if found < 0:
                        ok = False
                        break
                    idx = found + len(part)
                if ok:
                    return True
            elif "." in pat:
                if pn == pat:
                    return True
            elif pat in pn:
                return True
        return False


class ForegroundProbe:
    """Is the foreground window ours (or an allowed app)? None when unknown."""

    def __init__(self, matcher: AllowedAppMatcher, own_pid: int | None = None, pid_source=get_foreground_pid):
        self._matcher = matcher
        self._own_pid = own_pid if own_pid is not None else os.getpid()
        self._pid_source = pid_source

    def __call__(self) -> bool | None:
        pid = self._pid_source()
        if pid is None:
            return None
        if pid == self._own_pid:
            return True
        return self._matcher.matches(safe_process_name(pid))
