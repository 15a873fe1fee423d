"""Fluent chain builder: accumulates actions, awaited to run them."""

import logging
from typing import TYPE_CHECKING, Any, Generator, Self

from .actions import (
    Action,
    BackAction,
    CheckAction,
    ClickAction,
    CookiesClearAction,
    CookiesGetAction,
    CookiesSetAction,
    EvaluateAction,
    ExistsAction,
    ForwardAction,
    GotoAction,
    InjectAction,
    InsertAction,
    RefreshAction,
    Script,
    ScreenshotAction,
    ScrollToAction,
    SelectAction,
    SetAudioMutedAction,
    SetAuthCredentialsAction,
    SetHeaderAction,
    SetUserAgentAction,
    TitleAction,
    TypeAction,
    UncheckAction,
    UrlAction,
    ViewportAction,
    VisibleAction,
    WaitAction,
)

if TYPE_CHECKING:
    from session import Session

logger = logging.getLogger(__name__)


class ActionBuilder:
    """Fluent methods shared by Chain and Session.

    Each method builds one action and hands it to `_append`, which decides
    what the call returns.
    """

    __slots__ = ()

    def _append(self, action: Action) -> "Chain":
        raise NotImplementedError

    def goto(self, url: str, headers: dict[str, str] | None = None, *, timeout_ms: int | None = None) -> "Chain":
        """Navigate to `url`; `headers` apply to this request only."""
        return self._append(GotoAction(url=url, headers=headers or {}, timeout_ms=timeout_ms))

    def back(self) -> "Chain":
        return self._append(BackAction())

    def forward(self) -> "Chain":
        return self._append(ForwardAction())

    def refresh(self) -> "Chain":
        return self._append(RefreshAction())

    def evaluate(self, fn: str | Script, *args: Any, timeout_ms: int | None = None) -> "Chain":
        """Run a JavaScript function source in the page; resolves with its return value."""
        source = fn.source if isinstance(fn, Script) else fn
        return self._append(EvaluateAction(script=source, args=args, timeout_ms=timeout_ms))

    def wait(self, condition: float | str | Script, *args: Any, timeout_ms: int | None = None) -> "Chain":
        """Wait for a duration (ms), a selector, or a predicate Script to become truthy."""
        if isinstance(condition, Script):
            action = WaitAction(predicate=condition.source, args=args, timeout_ms=timeout_ms)
        elif isinstance(condition, str):
            action = WaitAction(selector=condition, args=args, timeout_ms=timeout_ms)
        elif isinstance(condition, (int, float)) and not isinstance(condition, bool):
            action = WaitAction(ms=condition, args=args, timeout_ms=timeout_ms)
        else:
            raise TypeError(f"wait() condition must be a number, selector or Script, not {type(condition).__name__}")
        return self._append(action)

    def exists(self, selector: str) -> "Chain":
        return self._append(ExistsAction(selector=selector))

    def visible(self, selector: str) -> "Chain":
        return self._append(VisibleAction(selector=selector))

    def click(self, selector: str) -> "Chain":
        return self._append(ClickAction(selector=selector))

    def type(self, selector: str, text: str = "") -> "Chain":
        return self._append(TypeAction(selector=selector, text=text))

    def insert(self, selector: str, text: str = "") -> "Chain":
        return self._append(InsertAction(selector=selector, text=text))

    def check(self, selector: str) -> "Chain":
        return self._append(CheckAction(selector=selector))

    def uncheck(self, selector: str) -> "Chain":
        return self._append(UncheckAction(selector=selector))

    def select(self, selector: str, option: str) -> "Chain":
        return self._append(SelectAction(selector=selector, option=option))

    def scroll_to(self, top: int, left: int = 0) -> "Chain":
        return self._append(ScrollToAction(top=top, left=left))

    def viewport(self, width: int, height: int) -> "Chain":
        return self._append(ViewportAction(width=width, height=height))

    def inject(self, type: str, path: str) -> "Chain":
        return self._append(InjectAction(type=type, path=path))

    def title(self) -> "Chain":
        return self._append(TitleAction())

    def url(self) -> "Chain":
        return self._append(UrlAction())

    def screenshot(self, path: str | None = None, clip: dict[str, float] | None = None) -> "Chain":
        return self._append(ScreenshotAction(path=path, clip=clip))

    def cookies_get(self, name: str | None = None) -> "Chain":
        return self._append(CookiesGetAction(name=name))

    def cookies_set(self, name_or_cookies: str | dict[str, Any] | list[dict[str, Any]], value: str | None = None) -> "Chain":
        if isinstance(name_or_cookies, str):
            cookies = [{"name": name_or_cookies, "value": value or ""}]
        elif isinstance(name_or_cookies, dict):
            cookies = [name_or_cookies]
        else:
            cookies = list(name_or_cookies)
        return self._append(CookiesSetAction(cookies=tuple(cookies)))

    def cookies_clear(self) -> "Chain":
        return self._append(CookiesClearAction())

    def useragent(self, user_agent: str) -> "Chain":
        """Set the user agent used from the next navigation on."""
        return self._append(SetUserAgentAction(user_agent=user_agent))

    def header(self, name_or_headers: str | dict[str, str], value: str | None = None) -> "Chain":
        """Merge one header, or a mapping of headers, into the session headers."""
        if isinstance(name_or_headers, dict):
            headers = dict(name_or_headers)
        else:
            headers = {name_or_headers: value if value is not None else ""}
        return self._append(SetHeaderAction(headers=headers))

    def set_audio_muted(self, muted: bool) -> "Chain":
        """Mute or unmute page audio; resolves with the new state."""
        return self._append(SetAudioMutedAction(muted=muted))

    def set_authentication_credentials(self, user: str, password: str) -> "Chain":
        return self._append(SetAuthCredentialsAction(user=user, password=password))


class Chain(ActionBuilder):
    """Ordered actions bound to one session, run when awaited.

    Awaiting the chain drains its actions in order and resolves with the
    last action's value, or raises the first failure. A chain runs once.
    """

    __slots__ = ("_actions", "_awaited", "_session")

    def __init__(self, session: "Session") -> None:
        self._session = session
        self._actions: list[Action] = []
        self._awaited = False

    def __len__(self) -> int:
        return len(self._actions)

    @property
    def actions(self) -> tuple[Action, ...]:
        return tuple(self._actions)

    def _append(self, action: Action) -> Self:
        if self._awaited:
            raise RuntimeError("Cannot add actions to a chain that already ran")
        self._actions.append(action)
        return self

    async def run(self) -> Any:
        """Run the chain; same as awaiting it."""
        if self._awaited:
            raise RuntimeError("Chain already ran")
        self._awaited = True
        logger.debug("Running chain of %d action(s): %s", len(self._actions),
                     ", ".join(action.kind.value for action in self._actions))
        return await self._session._run_chain(self._actions)

    def __await__(self) -> Generator[Any, None, Any]:
        return self.run().__await__()

    def __repr__(self) -> str:
        return f"<Chain [{', '.join(action.kind.value for action in self._actions)}]>"
