"""Session options, runtime configuration and environment overrides."""

import base64
import logging
import os
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from chain.actions import NAVIGATION_KINDS, ActionKind, normalize_headers
from chain.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_POLL_INTERVAL_MS = 250
DEFAULT_TYPE_INTERVAL_MS = 100

_ENV_PREFIX = "NOCTURNE_"


@dataclass(frozen=True, slots=True)
class ViewportSize:
    """Initial browser viewport dimensions."""

    width: int = 800
    height: int = 600
    use_content_size: bool = False


@dataclass(frozen=True, slots=True)
class AuthCredentials:
    """HTTP basic-auth credentials sent to the origin being navigated to."""

    user: str
    password: str

    def header_value(self) -> str:
        token = base64.b64encode(f"{self.user}:{self.password}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"


class BrowserArgs(BaseModel):
    """Launch-time arguments for the browser process."""

    model_config = ConfigDict(extra="forbid")

    # None or "" means "flag without a value"; see switch_args
    switches: dict[str, Any] = Field(default_factory=dict)


class SessionOptions(BaseModel):
    """Options accepted by Session(...). Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    wait_timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, description="Ceiling for wait-class actions (ms)")
    goto_timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, description="Ceiling for navigations (ms)")
    execution_timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, description="Ceiling for evaluate (ms)")
    poll_interval: int = Field(default=DEFAULT_POLL_INTERVAL_MS, gt=0)
    type_interval: int = Field(default=DEFAULT_TYPE_INTERVAL_MS, ge=0)
    web_preferences: dict[str, Any] = Field(default_factory=dict)
    paths: dict[str, str] = Field(default_factory=dict)
    browser_args: BrowserArgs = Field(default_factory=BrowserArgs)
    browser_path: str | None = None
    show: bool = False
    width: int = Field(default=800, gt=0)
    height: int = Field(default=600, gt=0)
    use_content_size: bool = False
    user_agent: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("headers")
    @classmethod
    def _lower_header_names(cls, value: dict[str, str]) -> dict[str, str]:
        return normalize_headers(value)


def parse_options(**options: Any) -> SessionOptions:
    """Validate raw constructor options, raising ConfigurationError on any problem."""
    try:
        return SessionOptions(**options)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<options>'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid session options: {problems}", details=e.errors()) from e


def switch_args(switches: dict[str, Any]) -> list[str]:
    """Render launch switches as command-line flags.

    None, "" and True render a bare flag, False drops the switch, and any
    other value is stringified after `=`.
    """
    args: list[str] = []
    for name, value in switches.items():
        flag = name if name.startswith("--") else f"--{name}"
        if value is False:
            continue
        if value is None or value is True or value == "":
            args.append(flag)
        else:
            args.append(f"{flag}={value}")
    return args


class SessionConfig(BaseModel):
    """Mutable configuration snapshot of one session.

    Mutations take effect on the next navigation, not on the current page.
    """

    model_config = ConfigDict(validate_assignment=True)

    user_agent: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    viewport: ViewportSize = Field(default_factory=ViewportSize)
    audio_muted: bool = False
    auth_credentials: AuthCredentials | None = None
    launch_switches: dict[str, Any] = Field(default_factory=dict)
    preload_script_path: str | None = None
    web_preferences: dict[str, Any] = Field(default_factory=dict)
    paths: dict[str, str] = Field(default_factory=dict)
    browser_path: str | None = None
    show: bool = False
    wait_timeout_ms: int = DEFAULT_TIMEOUT_MS
    goto_timeout_ms: int = DEFAULT_TIMEOUT_MS
    execution_timeout_ms: int = DEFAULT_TIMEOUT_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    type_interval_ms: int = DEFAULT_TYPE_INTERVAL_MS

    @classmethod
    def from_options(cls, options: SessionOptions) -> "SessionConfig":
        web_preferences = dict(options.web_preferences)
        preload = web_preferences.get("preload")
        return cls(
            user_agent=options.user_agent,
            headers=dict(options.headers),
            viewport=ViewportSize(options.width, options.height, options.use_content_size),
            launch_switches=dict(options.browser_args.switches),
            preload_script_path=str(preload) if preload else None,
            web_preferences=web_preferences,
            paths=dict(options.paths),
            browser_path=options.browser_path,
            show=options.show,
            wait_timeout_ms=options.wait_timeout,
            goto_timeout_ms=options.goto_timeout,
            execution_timeout_ms=options.execution_timeout,
            poll_interval_ms=options.poll_interval,
            type_interval_ms=options.type_interval,
        )

    def timeout_for(self, kind: ActionKind) -> int:
        """Default timeout (ms) for an action kind."""
        if kind in NAVIGATION_KINDS:
            return self.goto_timeout_ms
        if kind is ActionKind.EVALUATE:
            return self.execution_timeout_ms
        return self.wait_timeout_ms

    def merge_headers(self, headers: dict[str, str]) -> None:
        self.headers = {**self.headers, **normalize_headers(headers)}

    def request_headers(self, override: dict[str, str] | None = None) -> dict[str, str]:
        """Headers for every request of one navigation: session headers, then the per-call override.

        Credentials are not included; the browser adds them only for the
        origin being navigated to.
        """
        headers = dict(self.headers)
        if override:
            headers.update(normalize_headers(override))
        return headers

    def snapshot(self) -> "SessionConfig":
        return self.model_copy(deep=True)


def options_from_env(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Collect session options from NOCTURNE_* environment variables."""
    env = os.environ if environ is None else environ
    options: dict[str, Any] = {}

    for name in ("wait_timeout", "goto_timeout", "execution_timeout"):
        raw = env.get(f"{_ENV_PREFIX}{name.upper()}")
        if raw:
            try:
                options[name] = int(raw)
            except ValueError:
                raise ConfigurationError(f"{_ENV_PREFIX}{name.upper()} must be an integer, got '{raw}'") from None

    show = env.get(f"{_ENV_PREFIX}SHOW")
    if show:
        options["show"] = show.strip().lower() in ("1", "true", "yes", "on")

    for name in ("browser_path", "user_agent"):
        raw = env.get(f"{_ENV_PREFIX}{name.upper()}")
        if raw:
            options[name] = raw

    if options:
        logger.debug("Options from environment: %s", sorted(options))
    return options
