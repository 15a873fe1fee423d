"""Boundary between a session and the browser process it controls."""

from abc import ABC, abstractmethod
from typing import Any

from chain.actions import Action
from config import SessionConfig


class BrowserActor(ABC):
    """A controlled browser that executes actions and reports results.

    A session owns exactly one actor. Actions are sent one at a time;
    the actor never sees two actions concurrently.
    """

    __slots__ = ()

    @abstractmethod
    async def launch(self, config: SessionConfig) -> None:
        """Start the browser process using the session's configuration."""

    @abstractmethod
    async def send(self, action: Action, config: SessionConfig) -> Any:
        """Execute one action and return its serialisable result.

        `config` is the session's current configuration; navigation
        actions apply its headers, user agent and credentials.

        Raises:
            Exception: Any failure; the queue reports it as a rejection.
        """

    @abstractmethod
    async def terminate(self) -> None:
        """Tear the browser down. Must be safe to call more than once."""
