"""Browser session: owns one browser actor, its configuration and action queue."""

import asyncio
import logging
from typing import Any

from browser import BrowserActor, BrowserController
from chain.actions import (
    Action,
    SetAudioMutedAction,
    SetAuthCredentialsAction,
    SetHeaderAction,
    SetUserAgentAction,
)
from chain.builder import ActionBuilder, Chain
from chain.errors import AutomationError, SessionEndedError
from chain.queue import ActionQueue
from config import AuthCredentials, SessionConfig, parse_options

logger = logging.getLogger(__name__)


class Session(ActionBuilder):
    """One controlled browser plus its configuration.

    Fluent methods called on the session return a fresh one-action Chain,
    so `await session.goto(url)` and `await session.goto(url).title()`
    both work. `chain()` starts an empty chain.

    Lifecycle: constructed -> initialized -> any number of chains -> ended.
    Awaiting a chain on an uninitialized session initializes it first.
    """

    __slots__ = ("_actor", "_config", "_ended", "_init_lock", "_initialized", "_lock", "_options", "_queue")

    def __init__(self, actor: BrowserActor | None = None, **options: Any) -> None:
        self._options = parse_options(**options)
        self._config = SessionConfig.from_options(self._options)
        self._actor = actor if actor is not None else BrowserController()
        self._queue = ActionQueue(self._execute, self._config.timeout_for)
        self._lock = asyncio.Lock()
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._ended = False

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def ended(self) -> bool:
        return self._ended

    def chain(self) -> Chain:
        """Start an empty chain bound to this session."""
        return Chain(self)

    def _append(self, action: Action) -> Chain:
        return self.chain()._append(action)

    async def init(self) -> None:
        """Launch the browser. Safe to call more than once."""
        if self._ended:
            raise SessionEndedError()
        async with self._init_lock:
            if self._initialized:
                return
            logger.info("Launching browser")
            try:
                await self._actor.launch(self._config.snapshot())
            except Exception as e:
                raise AutomationError(f"Browser failed to launch: {e}") from e
            if self._ended:
                # end() ran while the browser was starting
                await self._actor.terminate()
                raise SessionEndedError()
            self._initialized = True

    async def end(self) -> None:
        """Tear down the browser. Idempotent and never raises."""
        if self._ended:
            return
        self._ended = True
        error = SessionEndedError()
        self._queue.close(error)
        try:
            await self._actor.terminate()
        except Exception as e:
            logger.warning("Error while terminating browser: %s", e)
        logger.info("Session ended")

    async def __aenter__(self) -> "Session":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.end()

    async def _run_chain(self, actions: list[Action]) -> Any:
        """Enqueue a chain's actions and drain them; one chain at a time per session."""
        async with self._lock:
            if self._ended:
                raise SessionEndedError()
            await self.init()
            for action in actions:
                self._queue.enqueue(action)
            try:
                return await self._queue.drain()
            finally:
                # Nothing from an interrupted chain may run under the next one.
                discarded = self._queue.discard_all(AutomationError("Chain was interrupted"))
                if discarded:
                    logger.info("Discarded %d action(s) left by an interrupted chain", discarded)

    async def _execute(self, action: Action) -> Any:
        """Apply configuration mutations locally; send everything else to the browser."""
        match action:
            case SetHeaderAction():
                self._config.merge_headers(action.headers)
                logger.debug("Headers now: %s", sorted(self._config.headers))
                return None
            case SetUserAgentAction():
                self._config.user_agent = action.user_agent
                return None
            case SetAuthCredentialsAction():
                self._config.auth_credentials = AuthCredentials(action.user, action.password)
                return None
            case SetAudioMutedAction():
                self._config.audio_muted = action.muted
                await self._actor.send(action, self._config)
                return self._config.audio_muted
        return await self._actor.send(action, self._config)
