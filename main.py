"""CLI entry point: build a chain from arguments and run it against one page."""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

import console as console_output
from chain import AutomationError, Chain, ConfigurationError
from config import options_from_env
from session import Session


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a chain of browser actions against a page")
    parser.add_argument("url", help="URL to navigate to")
    parser.add_argument(
        "--evaluate",
        metavar="JS",
        action="append",
        default=[],
        help="JavaScript function source to evaluate after navigation (repeatable; last result is printed)",
    )
    parser.add_argument(
        "--wait",
        metavar="COND",
        default=None,
        help="Wait after navigation: a number of milliseconds or a CSS selector",
    )
    parser.add_argument(
        "--header",
        metavar="NAME=VALUE",
        action="append",
        default=[],
        help="Extra request header (repeatable)",
    )
    parser.add_argument("--useragent", default=None, help="User agent to navigate with")
    parser.add_argument(
        "--auth",
        metavar="USER:PASS",
        default=None,
        help="HTTP basic-auth credentials",
    )
    parser.add_argument(
        "--switch",
        metavar="NAME[=VALUE]",
        action="append",
        default=[],
        help="Browser launch switch, e.g. ignore-certificate-errors (repeatable)",
    )
    parser.add_argument("--wait-timeout", type=int, default=None, help="Wait timeout in ms (default: 30000)")
    parser.add_argument("--goto-timeout", type=int, default=None, help="Navigation timeout in ms (default: 30000)")
    parser.add_argument("--width", type=int, default=None, help="Viewport width")
    parser.add_argument("--height", type=int, default=None, help="Viewport height")
    parser.add_argument("--screenshot", metavar="PATH", default=None, help="Save a screenshot at the end")
    parser.add_argument("--show", action="store_true", help="Run browser in visible (non-headless) mode")
    parser.add_argument(
        "--log-file",
        metavar="PATH",
        default=None,
        help="Write a debug log to this file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser.parse_args(argv)


def _split_pair(raw: str, sep: str, what: str) -> tuple[str, str]:
    if sep not in raw:
        raise ValueError(f"Invalid {what}: '{raw}'. Expected format: NAME{sep}VALUE")
    name, value = raw.split(sep, 1)
    return name.strip(), value.strip()


def _session_options(args: argparse.Namespace) -> dict[str, Any]:
    """Merge environment options with command-line overrides."""
    options = options_from_env()
    if args.wait_timeout is not None:
        options["wait_timeout"] = args.wait_timeout
    if args.goto_timeout is not None:
        options["goto_timeout"] = args.goto_timeout
    if args.width is not None:
        options["width"] = args.width
    if args.height is not None:
        options["height"] = args.height
    if args.show:
        options["show"] = True
    if args.switch:
        switches: dict[str, str | None] = {}
        for raw in args.switch:
            name, _, value = raw.partition("=")
            switches[name] = value or None
        options["browser_args"] = {"switches": switches}
    return options


def build_chain(session: Session, args: argparse.Namespace) -> Chain:
    """Translate command-line arguments into a chain of actions."""
    chain = session.chain()
    if args.useragent:
        chain.useragent(args.useragent)
    if args.header:
        chain.header(dict(_split_pair(raw, "=", "header") for raw in args.header))
    if args.auth:
        user, password = _split_pair(args.auth, ":", "credentials")
        chain.set_authentication_credentials(user, password)
    chain.goto(args.url)
    if args.wait is not None:
        chain.wait(float(args.wait) if args.wait.replace(".", "", 1).isdigit() else args.wait)
    for script in args.evaluate:
        chain.evaluate(script)
    if args.screenshot:
        chain.screenshot(str(Path(args.screenshot).resolve()))
    return chain


async def _run(session: Session, args: argparse.Namespace) -> Any:
    try:
        chain = build_chain(session, args)
        console_output.run_header(args.url, chain)
        return await chain
    finally:
        await session.end()


def _configure_logging(args: argparse.Namespace) -> None:
    log_format = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"
    log_datefmt = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if args.log_file:
        handler: logging.Handler = logging.FileHandler(args.log_file, mode="w", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG if args.verbose else logging.WARNING)
    handler.setFormatter(logging.Formatter(log_format, datefmt=log_datefmt))
    root_logger.addHandler(handler)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()

    args = _parse_args(argv)
    _configure_logging(args)

    try:
        session = Session(**_session_options(args))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    started = time.monotonic()
    try:
        value = asyncio.run(_run(session, args))
    except KeyboardInterrupt:
        console_output.console.print("\n[yellow]Interrupted by user (Ctrl+C)[/yellow]")
        sys.exit(130)  # Standard exit code for Ctrl+C
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except AutomationError as e:
        console_output.result_fail(e, time.monotonic() - started)
        sys.exit(1)

    console_output.result_success(value, time.monotonic() - started)


if __name__ == "__main__":
    main()
