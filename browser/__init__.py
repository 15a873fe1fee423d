"""Browser actors that execute queued actions."""

from .base import BrowserActor
from .controller import BrowserController

__all__ = [
    "BrowserActor",
    "BrowserController",
]
