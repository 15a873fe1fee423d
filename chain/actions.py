"""Pydantic action models queued against a browser session."""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ActionKind(str, Enum):
    """Kind of a queued action."""

    GOTO = "goto"
    BACK = "back"
    FORWARD = "forward"
    REFRESH = "refresh"
    EVALUATE = "evaluate"
    WAIT = "wait"
    EXISTS = "exists"
    VISIBLE = "visible"
    CLICK = "click"
    TYPE = "type"
    INSERT = "insert"
    CHECK = "check"
    UNCHECK = "uncheck"
    SELECT = "select"
    SCROLL_TO = "scroll_to"
    VIEWPORT = "viewport"
    INJECT = "inject"
    TITLE = "title"
    URL = "url"
    SCREENSHOT = "screenshot"
    COOKIES_GET = "cookies_get"
    COOKIES_SET = "cookies_set"
    COOKIES_CLEAR = "cookies_clear"
    SET_HEADER = "set_header"
    SET_USER_AGENT = "set_user_agent"
    SET_AUTH_CREDENTIALS = "set_auth_credentials"
    SET_AUDIO_MUTED = "set_audio_muted"


NAVIGATION_KINDS = frozenset({ActionKind.GOTO, ActionKind.BACK, ActionKind.FORWARD, ActionKind.REFRESH})


@dataclass(frozen=True, slots=True)
class Script:
    """JavaScript function source, shipped to the page as-is."""

    source: str


def normalize_headers(headers: dict[str, str]) -> dict[str, str]:
    """Lower-case header names; later duplicates win."""
    return {str(name).lower(): str(value) for name, value in headers.items()}


class BaseAction(BaseModel):
    """Common fields of every action."""

    model_config = ConfigDict(frozen=True)

    timeout_ms: int | None = Field(default=None, gt=0, description="Per-action timeout override (ms)")


class GotoAction(BaseAction):
    """Navigate to a URL."""

    kind: Literal[ActionKind.GOTO] = ActionKind.GOTO
    url: str
    headers: dict[str, str] = Field(default_factory=dict, description="Headers for this request only")

    @field_validator("headers")
    @classmethod
    def _lower_header_names(cls, value: dict[str, str]) -> dict[str, str]:
        return normalize_headers(value)


class BackAction(BaseAction):
    kind: Literal[ActionKind.BACK] = ActionKind.BACK


class ForwardAction(BaseAction):
    kind: Literal[ActionKind.FORWARD] = ActionKind.FORWARD


class RefreshAction(BaseAction):
    kind: Literal[ActionKind.REFRESH] = ActionKind.REFRESH


class EvaluateAction(BaseAction):
    """Run a function inside the page and return its result."""

    kind: Literal[ActionKind.EVALUATE] = ActionKind.EVALUATE
    script: str = Field(description="JavaScript function source")
    args: tuple[Any, ...] = ()


class WaitAction(BaseAction):
    """Pause, wait for a selector, or poll a predicate until truthy."""

    kind: Literal[ActionKind.WAIT] = ActionKind.WAIT
    ms: float | None = Field(default=None, ge=0)
    selector: str | None = None
    predicate: str | None = None
    args: tuple[Any, ...] = ()

    @model_validator(mode="after")
    def _exactly_one_condition(self) -> "WaitAction":
        given = [name for name in ("ms", "selector", "predicate") if getattr(self, name) is not None]
        if len(given) != 1:
            raise ValueError(f"wait needs exactly one of ms, selector or predicate (got {given or 'none'})")
        if self.args and self.predicate is None:
            raise ValueError("wait arguments are only allowed with a predicate")
        return self


class ExistsAction(BaseAction):
    kind: Literal[ActionKind.EXISTS] = ActionKind.EXISTS
    selector: str


class VisibleAction(BaseAction):
    kind: Literal[ActionKind.VISIBLE] = ActionKind.VISIBLE
    selector: str


class ClickAction(BaseAction):
    kind: Literal[ActionKind.CLICK] = ActionKind.CLICK
    selector: str


class TypeAction(BaseAction):
    """Type keystrokes into an element; empty text clears it."""

    kind: Literal[ActionKind.TYPE] = ActionKind.TYPE
    selector: str
    text: str = ""


class InsertAction(BaseAction):
    """Set an element's value in one step; empty text clears it."""

    kind: Literal[ActionKind.INSERT] = ActionKind.INSERT
    selector: str
    text: str = ""


class CheckAction(BaseAction):
    kind: Literal[ActionKind.CHECK] = ActionKind.CHECK
    selector: str


class UncheckAction(BaseAction):
    kind: Literal[ActionKind.UNCHECK] = ActionKind.UNCHECK
    selector: str


class SelectAction(BaseAction):
    kind: Literal[ActionKind.SELECT] = ActionKind.SELECT
    selector: str
    option: str


class ScrollToAction(BaseAction):
    kind: Literal[ActionKind.SCROLL_TO] = ActionKind.SCROLL_TO
    top: int
    left: int = 0


class ViewportAction(BaseAction):
    kind: Literal[ActionKind.VIEWPORT] = ActionKind.VIEWPORT
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class InjectAction(BaseAction):
    """Inject a local script or stylesheet into the page."""

    kind: Literal[ActionKind.INJECT] = ActionKind.INJECT
    type: Literal["js", "css"]
    path: str


class TitleAction(BaseAction):
    kind: Literal[ActionKind.TITLE] = ActionKind.TITLE


class UrlAction(BaseAction):
    kind: Literal[ActionKind.URL] = ActionKind.URL


class ScreenshotAction(BaseAction):
    """Capture the page as PNG, optionally clipped and written to disk."""

    kind: Literal[ActionKind.SCREENSHOT] = ActionKind.SCREENSHOT
    path: str | None = None
    clip: dict[str, float] | None = Field(default=None, description="x, y, width, height")

    @field_validator("clip")
    @classmethod
    def _complete_clip(cls, value: dict[str, float] | None) -> dict[str, float] | None:
        if value is not None and set(value) != {"x", "y", "width", "height"}:
            raise ValueError("clip needs exactly x, y, width and height")
        return value


class CookiesGetAction(BaseAction):
    kind: Literal[ActionKind.COOKIES_GET] = ActionKind.COOKIES_GET
    name: str | None = None


class CookiesSetAction(BaseAction):
    kind: Literal[ActionKind.COOKIES_SET] = ActionKind.COOKIES_SET
    cookies: tuple[dict[str, Any], ...]


class CookiesClearAction(BaseAction):
    kind: Literal[ActionKind.COOKIES_CLEAR] = ActionKind.COOKIES_CLEAR


class SetHeaderAction(BaseAction):
    """Merge headers into the session; applies from the next navigation."""

    kind: Literal[ActionKind.SET_HEADER] = ActionKind.SET_HEADER
    headers: dict[str, str]

    @field_validator("headers")
    @classmethod
    def _lower_header_names(cls, value: dict[str, str]) -> dict[str, str]:
        return normalize_headers(value)


class SetUserAgentAction(BaseAction):
    kind: Literal[ActionKind.SET_USER_AGENT] = ActionKind.SET_USER_AGENT
    user_agent: str


class SetAuthCredentialsAction(BaseAction):
    kind: Literal[ActionKind.SET_AUTH_CREDENTIALS] = ActionKind.SET_AUTH_CREDENTIALS
    user: str
    password: str


class SetAudioMutedAction(BaseAction):
    kind: Literal[ActionKind.SET_AUDIO_MUTED] = ActionKind.SET_AUDIO_MUTED
    muted: bool


Action = Annotated[
    GotoAction
    | BackAction
    | ForwardAction
    | RefreshAction
    | EvaluateAction
    | WaitAction
    | ExistsAction
    | VisibleAction
    | ClickAction
    | TypeAction
    | InsertAction
    | CheckAction
    | UncheckAction
    | SelectAction
    | ScrollToAction
    | ViewportAction
    | InjectAction
    | TitleAction
    | UrlAction
    | ScreenshotAction
    | CookiesGetAction
    | CookiesSetAction
    | CookiesClearAction
    | SetHeaderAction
    | SetUserAgentAction
    | SetAuthCredentialsAction
    | SetAudioMutedAction,
    Field(discriminator="kind"),
]
