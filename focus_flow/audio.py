import math
import struct
import threading

try:
    import winsound
except ImportError:  # winsound only exists on Windows
    winsound = None

from .config import CHIME_NOTES_HZ, FORFEIT_NOTES_HZ, NOTE_DURATION_MS, SAMPLE_RATE
from .models import Notification


def _wrap_wav_header(pcm_data: bytes, sample_rate: int) -> bytes:
    data_size = len(pcm_data)
    riff_size = 36 + data_size
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        riff_size,
        b"WAVE",
        b"fmt ",
        16,
        1,
        1,
        sample_rate,
        sample_rate * 2,
        2,
        16,
        b"data",
        data_size,
    )
    return header + pcm_data


def render_notes(notes, duration_ms: int = NOTE_DURATION_MS, volume: float = 0.5, sample_rate: int = SAMPLE_RATE) -> bytes:
    volume = max(0.0, min(1.0, float(volume)))
    n_samples = max(1, int(sample_rate * duration_ms / 1000.0))
    max_amp = int(32767 * volume)

    frames = bytearray()
    for freq in notes:
        for i in range(n_samples):
            t = i / sample_rate
            envelope = 1.0 - (i / n_samples)
            sample_val = int(max_amp * envelope * math.sin(2.0 * math.pi * freq * t))
            frames += struct.pack("<h", sample_val)

    return _wrap_wav_header(bytes(frames), sample_rate)


def _play_async(notes) -> None:
    if winsound is None:
        return

    def _play():
        winsound.PlaySound(render_notes(notes), winsound.SND_MEMORY)

    threading.Thread(target=_play, daemon=True).start()


def trigger_session_complete_sound() -> None:
    _play_async(CHIME_NOTES_HZ)


def trigger_forfeit_sound() -> None:
    _play_async(FORFEIT_NOTES_HZ)


def sound_for(notification: Notification) -> None:
    if notification.event == "forfeit":
        trigger_forfeit_sound()
    elif notification.event == "completed":
        trigger_session_complete_sound()
