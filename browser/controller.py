"""Playwright browser controller executing queued actions."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit

from playwright.async_api import (
    Browser,
    BrowserContext,
    CDPSession,
    ElementHandle,
    Page,
    Playwright,
    Request,
    Route,
    async_playwright,
)

from chain.actions import (
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
    ScreenshotAction,
    ScrollToAction,
    SelectAction,
    SetAudioMutedAction,
    TitleAction,
    TypeAction,
    UncheckAction,
    UrlAction,
    ViewportAction,
    VisibleAction,
    WaitAction,
)
from config import SessionConfig, switch_args

from .base import BrowserActor

logger = logging.getLogger(__name__)

_MUTE_SCRIPT = "(muted) => { document.querySelectorAll('audio, video').forEach((el) => { el.muted = muted; }); return muted; }"


def _call_with_args(script: str) -> str:
    """Wrap a function source so Playwright spreads an argument list into it."""
    return f"(args) => ({script})(...args)"


def _navigation_result(response: Any, url: str) -> dict[str, Any]:
    if response is None:
        return {"url": url, "code": None, "method": None, "referrer": "", "headers": {}}
    request = response.request
    return {
        "url": response.url,
        "code": response.status,
        "method": request.method,
        "referrer": request.headers.get("referer", ""),
        "headers": response.headers,
    }


_DEFAULT_PORTS = {"http": 80, "https": 443}


def _origin(url: str) -> str | None:
    """scheme://host:port of an http(s) URL, None for anything else."""
    parts = urlsplit(url)
    if parts.scheme not in _DEFAULT_PORTS or not parts.hostname:
        return None
    port = parts.port or _DEFAULT_PORTS[parts.scheme]
    return f"{parts.scheme}://{parts.hostname}:{port}"


def _authorization_for(url: str, origin: str | None, authorization: str | None) -> str | None:
    """The authorization header a request should carry, if any.

    Credentials only go to the origin that was navigated to; subresources
    and redirects to other origins get none.
    """
    if authorization is None or origin is None:
        return None
    return authorization if _origin(url) == origin else None


def launch_settings(config: SessionConfig) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a session config into Playwright launch options and context options."""
    args = switch_args(config.launch_switches)
    prefs = config.web_preferences
    bypass_csp = False
    if prefs.get("web_security") is False:
        # Cross-origin frames stay out of process and unreadable unless isolation is off too
        args += ["--disable-web-security", "--disable-site-isolation-trials"]
        bypass_csp = True
    unsupported = sorted(set(prefs) - {"web_security", "preload", "javascript"})
    if unsupported:
        logger.debug("Ignoring unsupported web preferences: %s", ", ".join(unsupported))

    launch_options: dict[str, Any] = {
        "headless": not config.show,
        "args": args,
        "executable_path": config.browser_path,
    }
    context_options: dict[str, Any] = {
        "viewport": {"width": config.viewport.width, "height": config.viewport.height},
        "bypass_csp": bypass_csp,
        "java_script_enabled": prefs.get("javascript", True) is not False,
    }
    if config.user_agent:
        context_options["user_agent"] = config.user_agent
    return launch_options, context_options


async def _close_step(what: str, close: Callable[[], Awaitable[Any]]) -> None:
    try:
        await close()
    except Exception as e:
        logger.warning("Failed to close %s: %s", what, e)


class BrowserController(BrowserActor):
    """Playwright Chromium wrapper implementing the browser actor."""

    __slots__ = (
        "_applied_user_agent",
        "_auth_origin",
        "_auth_routed",
        "_authorization",
        "_browser",
        "_cdp",
        "_context",
        "_page",
        "_playwright",
    )

    def __init__(self) -> None:
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._cdp: CDPSession | None = None
        self._applied_user_agent: str | None = None
        self._authorization: str | None = None
        self._auth_origin: str | None = None
        self._auth_routed = False

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser not started. Call launch() first.")
        return self._page

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise RuntimeError("Browser not started. Call launch() first.")
        return self._context

    async def launch(self, config: SessionConfig) -> None:
        """Launch Chromium and open a page according to the session config."""
        launch_options, context_options = launch_settings(config)
        headless = launch_options["headless"]

        pw = await async_playwright().start()
        self._playwright = pw
        user_data_dir = config.paths.get("user_data")

        if user_data_dir:
            # Persistent context keeps cookies and storage in the profile directory
            logger.info("Using persistent context: %s", user_data_dir)
            self._context = await pw.chromium.launch_persistent_context(
                user_data_dir=user_data_dir,
                **launch_options,
                **context_options,
            )
            self._page = self._context.pages[0] if self._context.pages else await self._context.new_page()
        else:
            self._browser = await pw.chromium.launch(**launch_options)
            self._context = await self._browser.new_context(**context_options)
            self._page = await self._context.new_page()

        if config.preload_script_path:
            await self._context.add_init_script(path=Path(config.preload_script_path))
        self._applied_user_agent = config.user_agent

        logger.info("Browser started (headless=%s, viewport=%dx%d, switches=%s)",
                    headless, config.viewport.width, config.viewport.height, launch_options["args"])

    async def terminate(self) -> None:
        """Close browser and cleanup."""
        context, browser, playwright = self._context, self._browser, self._playwright
        self._page = None
        self._cdp = None
        self._context = None
        self._browser = None
        self._playwright = None
        self._auth_routed = False
        # each step runs even if an earlier one failed
        if context:
            await _close_step("browser context", context.close)
        if browser:
            await _close_step("browser", browser.close)
        if playwright:
            await _close_step("playwright", playwright.stop)
            logger.info("Browser stopped")

    async def send(self, action: Action, config: SessionConfig) -> Any:
        match action:
            case GotoAction():
                return await self._navigate(action, config)
            case BackAction():
                await self._prepare_navigation(config)
                return _navigation_result(await self.page.go_back(timeout=0), self.page.url)
            case ForwardAction():
                await self._prepare_navigation(config)
                return _navigation_result(await self.page.go_forward(timeout=0), self.page.url)
            case RefreshAction():
                await self._prepare_navigation(config)
                return _navigation_result(await self.page.reload(timeout=0), self.page.url)
            case EvaluateAction():
                return await self.page.evaluate(_call_with_args(action.script), list(action.args))
            case WaitAction():
                await self._wait(action, config)
                return None
            case ExistsAction():
                return await self.page.query_selector(action.selector) is not None
            case VisibleAction():
                element = await self.page.query_selector(action.selector)
                return element is not None and await element.is_visible()
            case ClickAction():
                logger.info("Click %s", action.selector)
                await (await self._element(action.selector)).click(timeout=0)
            case TypeAction():
                logger.info("Typing into %s: %s", action.selector, action.text[:50])
                element = await self._element(action.selector)
                if action.text:
                    await element.focus()
                    await self.page.keyboard.type(action.text, delay=config.type_interval_ms)
                else:
                    await element.fill("", timeout=0)
            case InsertAction():
                await (await self._element(action.selector)).fill(action.text, timeout=0)
            case CheckAction():
                await (await self._element(action.selector)).check(timeout=0)
            case UncheckAction():
                await (await self._element(action.selector)).uncheck(timeout=0)
            case SelectAction():
                await (await self._element(action.selector)).select_option(action.option, timeout=0)
            case ScrollToAction():
                await self.page.evaluate("([top, left]) => window.scrollTo(left, top)", [action.top, action.left])
            case ViewportAction():
                await self.page.set_viewport_size({"width": action.width, "height": action.height})
            case InjectAction():
                if action.type == "js":
                    await self.page.add_script_tag(path=Path(action.path))
                else:
                    await self.page.add_style_tag(path=Path(action.path))
            case TitleAction():
                return await self.page.title()
            case UrlAction():
                return self.page.url
            case ScreenshotAction():
                return await self.page.screenshot(path=action.path, clip=action.clip)
            case CookiesGetAction():
                cookies = await self.context.cookies(self.page.url)
                if action.name is None:
                    return cookies
                return next((c for c in cookies if c["name"] == action.name), None)
            case CookiesSetAction():
                await self.context.add_cookies([self._with_cookie_url(c) for c in action.cookies])
            case CookiesClearAction():
                await self.context.clear_cookies()
            case SetAudioMutedAction():
                return await self.page.evaluate(_MUTE_SCRIPT, action.muted)
            case _:
                logger.debug("Nothing to do in the browser for .%s()", action.kind.value)
        return None

    async def _prepare_navigation(
        self, config: SessionConfig, headers: dict[str, str] | None = None, url: str | None = None
    ) -> None:
        """Apply user agent, headers and credentials that changed since the last navigation."""
        if config.user_agent and config.user_agent != self._applied_user_agent:
            if self._cdp is None:
                self._cdp = await self.context.new_cdp_session(self.page)
            await self._cdp.send("Emulation.setUserAgentOverride", {"userAgent": config.user_agent})
            self._applied_user_agent = config.user_agent
            logger.debug("User agent set to %s", config.user_agent)
        await self.page.set_extra_http_headers(config.request_headers(headers))
        await self._apply_credentials(config, url)

    async def _apply_credentials(self, config: SessionConfig, url: str | None) -> None:
        """Scope basic-auth credentials to the origin being navigated to.

        `url` is the navigation target; history navigations pass None and
        keep the origin already in effect, or the current page's.
        """
        if config.auth_credentials is None:
            self._authorization = None
            return
        self._authorization = config.auth_credentials.header_value()
        if url is not None:
            self._auth_origin = _origin(url)
        elif self._auth_origin is None:
            self._auth_origin = _origin(self.page.url)
        if not self._auth_routed:
            await self.context.route("**/*", self._authorize)
            self._auth_routed = True
        logger.debug("Credentials scoped to %s", self._auth_origin)

    async def _authorize(self, route: Route, request: Request) -> None:
        authorization = _authorization_for(request.url, self._auth_origin, self._authorization)
        if authorization is None:
            await route.continue_()
        else:
            await route.continue_(headers={**request.headers, "authorization": authorization})

    async def _navigate(self, action: GotoAction, config: SessionConfig) -> dict[str, Any]:
        """Navigate to URL and wait for load."""
        logger.info("Navigating to %s", action.url)
        await self._prepare_navigation(config, action.headers, action.url)
        try:
            response = await self.page.goto(action.url, wait_until="load", timeout=0)
        finally:
            if action.headers:
                # Per-call headers apply to this navigation only
                await self.page.set_extra_http_headers(config.request_headers())
        if config.audio_muted:
            await self.page.evaluate(_MUTE_SCRIPT, True)
        return _navigation_result(response, self.page.url)

    async def _wait(self, action: WaitAction, config: SessionConfig) -> None:
        if action.ms is not None:
            logger.info("Waiting %d ms", action.ms)
            await asyncio.sleep(action.ms / 1000.0)
        elif action.selector is not None:
            logger.info("Waiting for %s", action.selector)
            await self.page.wait_for_selector(action.selector, state="attached", timeout=0)
        else:
            await self.page.wait_for_function(
                _call_with_args(action.predicate),
                arg=list(action.args),
                polling=config.poll_interval_ms,
                timeout=0,
            )

    async def _element(self, selector: str) -> ElementHandle:
        element = await self.page.query_selector(selector)
        if element is None:
            raise LookupError(f"Unable to find element by selector: {selector}")
        return element

    def _with_cookie_url(self, cookie: dict[str, Any]) -> dict[str, Any]:
        if "url" in cookie or "domain" in cookie:
            return cookie
        return {**cookie, "url": self.page.url}
