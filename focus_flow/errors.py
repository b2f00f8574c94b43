class FocusFlowError(Exception):
    pass


class InvalidConfigError(FocusFlowError, ValueError):
    pass


class SessionLockedError(FocusFlowError):
    """Raised when session settings are changed while a session is not idle."""


class ChatUnavailableError(FocusFlowError):
    pass


class FetchError(FocusFlowError):
    """A prompt or chat request failed (network, quota, or unusable reply)."""
