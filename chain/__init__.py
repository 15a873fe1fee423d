"""Action chaining and serial queueing against a browser session."""

from .actions import Action, ActionKind, Script
from .builder import Chain
from .errors import (
    ActionCancelledError,
    ActionError,
    ActionRejectedError,
    ActionTimeoutError,
    AutomationError,
    ConfigurationError,
    SessionEndedError,
)
from .queue import ActionOutcome, ActionQueue, OutcomeStatus

__all__ = [
    "Action",
    "ActionCancelledError",
    "ActionError",
    "ActionKind",
    "ActionOutcome",
    "ActionQueue",
    "ActionRejectedError",
    "ActionTimeoutError",
    "AutomationError",
    "Chain",
    "ConfigurationError",
    "OutcomeStatus",
    "Script",
    "SessionEndedError",
]
