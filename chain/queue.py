"""Serial action queue with per-action timeouts and fail-fast draining."""

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable

from .actions import Action, ActionKind
from .errors import (
    ActionCancelledError,
    ActionError,
    ActionRejectedError,
    ActionTimeoutError,
    AutomationError,
    SessionEndedError,
)

logger = logging.getLogger(__name__)

Executor = Callable[[Action], Awaitable[Any]]
TimeoutResolver = Callable[[ActionKind], int]


class OutcomeStatus(str, Enum):
    """Lifecycle state of a queued action."""

    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    DISCARDED = "discarded"


class ActionOutcome:
    """Pending-then-terminal result of one queued action.

    Awaiting an outcome returns the action's value or raises its error.
    A discarded outcome raises the failure that stopped the queue.
    """

    __slots__ = ("_done", "action", "error", "status", "value")

    def __init__(self, action: Action) -> None:
        self.action = action
        self.status = OutcomeStatus.PENDING
        self.value: Any = None
        self.error: AutomationError | None = None
        self._done = asyncio.Event()

    @property
    def done(self) -> bool:
        return self.status is not OutcomeStatus.PENDING

    def _settle(self, status: OutcomeStatus, value: Any = None, error: AutomationError | None = None) -> None:
        if self.done:
            raise RuntimeError(f"Outcome of .{self.action.kind.value}() already {self.status.value}")
        self.status = status
        self.value = value
        self.error = error
        self._done.set()

    def fulfill(self, value: Any) -> None:
        self._settle(OutcomeStatus.FULFILLED, value=value)

    def reject(self, error: AutomationError) -> None:
        self._settle(OutcomeStatus.REJECTED, error=error)

    def time_out(self, error: ActionTimeoutError) -> None:
        self._settle(OutcomeStatus.TIMED_OUT, error=error)

    def discard(self, cause: AutomationError) -> None:
        self._settle(OutcomeStatus.DISCARDED, error=cause)

    async def wait(self) -> Any:
        await self._done.wait()
        if self.error is not None:
            raise self.error
        return self.value

    def __await__(self):
        return self.wait().__await__()

    def __repr__(self) -> str:
        return f"<ActionOutcome {self.action.kind.value} {self.status.value}>"


class ActionQueue:
    """FIFO queue drained one action at a time through an executor.

    Each action runs under its own timeout. The first rejection or timeout
    stops the drain: every action still queued is discarded without being
    dispatched, and the failure is raised to the caller.
    """

    def __init__(self, executor: Executor, timeout_for: TimeoutResolver) -> None:
        self._executor = executor
        self._timeout_for = timeout_for
        self._pending: deque[ActionOutcome] = deque()
        self._closed_error: SessionEndedError | None = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed_error is not None

    def enqueue(self, action: Action) -> ActionOutcome:
        """Append an action, filling in its timeout, and return its pending outcome."""
        if self._closed_error is not None:
            raise self._closed_error
        if action.timeout_ms is None:
            action = action.model_copy(update={"timeout_ms": self._timeout_for(action.kind)})
        outcome = ActionOutcome(action)
        self._pending.append(outcome)
        logger.debug("Enqueued .%s() (timeout %dms, %d queued)", action.kind.value, action.timeout_ms, len(self._pending))
        return outcome

    def close(self, error: SessionEndedError | None = None) -> None:
        """Stop dispatching; queued and future actions fail with SessionEndedError."""
        if self._closed_error is None:
            self._closed_error = error or SessionEndedError()

    def discard_all(self, cause: AutomationError) -> int:
        """Discard every queued action without dispatching it."""
        count = 0
        while self._pending:
            self._pending.popleft().discard(cause)
            count += 1
        return count

    async def drain(self) -> Any:
        """Run queued actions in order; return the last value or raise the first failure."""
        result: Any = None
        while self._pending:
            outcome = self._pending.popleft()
            if self._closed_error is not None:
                outcome.reject(self._closed_error)
                self._fail(self._closed_error)
                raise self._closed_error

            try:
                await self._dispatch(outcome)
            except asyncio.CancelledError:
                self._fail(outcome.error)
                raise

            if outcome.error is not None:
                self._fail(outcome.error)
                raise outcome.error
            result = outcome.value
        return result

    def _fail(self, error: AutomationError) -> None:
        discarded = self.discard_all(error)
        if discarded:
            logger.info("Discarded %d queued action(s) after failure: %s", discarded, error)

    async def _dispatch(self, outcome: ActionOutcome) -> None:
        action = outcome.action
        kind = action.kind.value
        timeout_ms = action.timeout_ms
        logger.debug("Dispatching .%s()", kind)
        started = time.monotonic()
        try:
            value = await asyncio.wait_for(self._executor(action), timeout=timeout_ms / 1000.0)
        except asyncio.CancelledError:
            logger.warning(".%s() cancelled", kind)
            outcome.reject(ActionCancelledError(kind))
            raise
        except asyncio.TimeoutError:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.warning(".%s() timed out after %dms (timeout: %dms)", kind, elapsed_ms, timeout_ms)
            outcome.time_out(ActionTimeoutError(kind, timeout_ms, elapsed_ms))
        except (ActionError, SessionEndedError) as e:
            logger.warning(".%s() failed: %s", kind, e)
            outcome.reject(e)
        except Exception as e:
            logger.warning(".%s() failed: %s", kind, e)
            error = ActionRejectedError(kind, str(e) or type(e).__name__)
            error.__cause__ = e
            outcome.reject(error)
        else:
            logger.debug(".%s() done in %dms", kind, int((time.monotonic() - started) * 1000))
            outcome.fulfill(value)
