import os

APP_TITLE = "FocusFlow"
DND_TITLE = "DO NOT DISTURB - FocusFlow"
APPDATA_DIR = os.path.join(os.getenv("APPDATA") or os.path.expanduser("~"), "FocusFlow")

LOG_DIR = os.path.join(APPDATA_DIR, "logs")
LOG_FILE = os.path.join(LOG_DIR, "focus_flow.log")

TICK_INTERVAL_SEC = 1.0
WATCHDOG_INTERVAL_SEC = 1.0
POLL_INTERVAL_SEC = 0.20

DEFAULT_SESSION_MINUTES = 25
DEFAULT_PLEDGE_AMOUNT = 0

# Violation policy
MAX_SWITCHES = 3
MAX_AWAY_MS = 120_000
DEFAULT_POLICY = "fullscreen"
FULLSCREEN_REGION = "focus-view"

# Motivational prompts
PROMPT_FETCH_INTERVAL_MINUTES = 5
SESSION_COMPLETE_MESSAGE = "Session Complete! Well done."

# Notification durations (ms)
TOAST_DEFAULT_MS = 5000
TOAST_ADVISORY_MS = 7000
TOAST_FORFEIT_MS = 10000

# Gemini
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("FOCUSFLOW_GEMINI_MODEL", "gemini-2.0-flash")

# Apps (besides FocusFlow itself) whose windows count as the focus surface
DEFAULT_ALLOWED_APPS = ""

# Sounds
SAMPLE_RATE = 44100
CHIME_NOTES_HZ = (523.25, 659.25, 784.00, 1046.50)
FORFEIT_NOTES_HZ = (392.00, 311.13, 246.94)
NOTE_DURATION_MS = 180
