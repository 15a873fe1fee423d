"""Error taxonomy for sessions and action chains."""

from typing import Any


class AutomationError(RuntimeError):
    """Base error for everything raised by a session or its chains."""


class ConfigurationError(AutomationError):
    """Session options are invalid or unsupported."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ActionError(AutomationError):
    """An action did not complete successfully."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class ActionTimeoutError(ActionError):
    """An action's outcome was not observed within its timeout budget."""

    def __init__(self, kind: str, timeout_ms: int, elapsed_ms: int) -> None:
        super().__init__(kind, f".{kind}() timed out after {elapsed_ms}ms (timeout: {timeout_ms}ms)")
        self.timeout_ms = timeout_ms
        self.elapsed_ms = elapsed_ms


class ActionRejectedError(ActionError):
    """The browser reported a failure for an action."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(kind, message)
        self.message = message


class SessionEndedError(AutomationError):
    """An action was issued after the session ended."""

    def __init__(self, message: str = "Session has ended") -> None:
        super().__init__(message)


class ActionCancelledError(ActionError):
    """The task awaiting an action's chain was cancelled."""

    def __init__(self, kind: str) -> None:
        super().__init__(kind, f".{kind}() was cancelled")
