"""Pytest fixtures: an in-memory browser actor, sessions, and a local HTTP server."""

import asyncio
import base64
import json
import shutil
import ssl
import subprocess
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

import pytest

from browser.base import BrowserActor
from chain.actions import Action, ActionKind
from config import SessionConfig
from session import Session


class FakeActor(BrowserActor):
    """Browser actor that records actions instead of driving a browser.

    `responses` maps an action kind to a value, an exception instance to
    raise, or a callable taking (action, config). `delays` maps a kind to
    seconds to sleep before answering.
    """

    def __init__(self) -> None:
        self.launched_with: SessionConfig | None = None
        self.launch_count = 0
        self.terminate_count = 0
        self.sent: list[Action] = []
        self.navigations: list[dict[str, Any]] = []
        self.responses: dict[ActionKind, Any] = {}
        self.delays: dict[ActionKind, float] = {}
        self.user_agent: str | None = None

    @property
    def sent_kinds(self) -> list[str]:
        return [action.kind.value for action in self.sent]

    async def launch(self, config: SessionConfig) -> None:
        self.launch_count += 1
        self.launched_with = config

    async def send(self, action: Action, config: SessionConfig) -> Any:
        self.sent.append(action)
        delay = self.delays.get(action.kind)
        if delay:
            await asyncio.sleep(delay)
        if action.kind is ActionKind.WAIT and action.ms is not None:
            await asyncio.sleep(action.ms / 1000.0)
        if action.kind is ActionKind.GOTO:
            self.user_agent = config.user_agent
            self.navigations.append({
                "url": action.url,
                "headers": config.request_headers(action.headers),
                "credentials": config.auth_credentials,
            })

        response = self.responses.get(action.kind)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(action, config)
        if response is None and action.kind is ActionKind.SET_AUDIO_MUTED:
            return action.muted
        return response

    async def terminate(self) -> None:
        self.terminate_count += 1


@pytest.fixture
def actor() -> FakeActor:
    return FakeActor()


@pytest.fixture
async def session(actor):
    """Provide a session backed by the in-memory actor."""
    session = Session(actor=actor)
    yield session
    await session.end()


@pytest.fixture
async def make_session(actor):
    """Build sessions with custom options around the shared fake actor."""
    created: list[Session] = []

    def factory(**options: Any) -> Session:
        s = Session(actor=actor, **options)
        created.append(s)
        return s

    yield factory
    for s in created:
        await s.end()


_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


class _FixtureHandler(BaseHTTPRequestHandler):
    """Serves the small pages the integration tests navigate to."""

    def log_message(self, format: str, *args: Any) -> None:
        pass

    def _send(self, body: str, status: int = 200, extra: dict[str, str] | None = None) -> None:
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        for name, value in (extra or {}).items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(payload)

    def do_GET(self) -> None:
        self.server.requests.append({
            "host": self.headers.get("Host", ""),
            "path": self.path,
            "authorization": self.headers.get("Authorization"),
        })
        port = self.server.server_address[1]
        if self.path.startswith("/pixel"):
            self.send_response(200)
            self.send_header("Content-Type", "image/gif")
            self.send_header("Content-Length", str(len(_PIXEL)))
            self.end_headers()
            self.wfile.write(_PIXEL)
        elif self.path.startswith("/gallery"):
            # same page, one image from this origin and one from another host name
            self._send(
                "<html><body>"
                "<img id='same' src='/pixel?same'>"
                f"<img id='other' src='http://localhost:{port}/pixel?other'>"
                "</body></html>"
            )
        elif self.path.startswith("/frame"):
            self._send(
                "<html><body>"
                f"<iframe id='example-iframe' src='http://localhost:{port}/options'></iframe>"
                "</body></html>"
            )
        elif self.path.startswith("/headers"):
            headers = {name.lower(): value for name, value in self.headers.items()}
            self._send(f"<pre>{json.dumps(headers)}</pre>")
        elif self.path.startswith("/auth"):
            raw = self.headers.get("Authorization", "")
            if not raw.startswith("Basic "):
                self._send("unauthorized", status=401, extra={"WWW-Authenticate": 'Basic realm="test"'})
                return
            user, _, password = base64.b64decode(raw[6:]).decode("utf-8").partition(":")
            self._send(f"<pre>{json.dumps({'name': user, 'pass': password})}</pre>")
        elif self.path.startswith("/navigation"):
            self._send("<html><body><a href='/options'>next</a></body></html>")
        else:
            self._send("<html><head><title>Options</title></head><body><h1>options</h1></body></html>")


def _start_server(ssl_context: ssl.SSLContext | None = None) -> ThreadingHTTPServer:
    server = ThreadingHTTPServer(("127.0.0.1", 0), _FixtureHandler)
    server.requests = []
    if ssl_context is not None:
        server.socket = ssl_context.wrap_socket(server.socket, server_side=True)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server


@pytest.fixture(scope="session")
def http_server():
    server = _start_server()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture(scope="session")
def fixture_server(http_server):
    """Local HTTP server; yields a function mapping a fixture name to its URL."""
    host, port = http_server.server_address[:2]

    def fixture(name: str) -> str:
        return f"http://{host}:{port}/{name}"

    return fixture


@pytest.fixture
def request_log(http_server) -> list[dict[str, Any]]:
    """Requests the local server receives during one test."""
    http_server.requests.clear()
    return http_server.requests


@pytest.fixture(scope="session")
def https_fixture_server(tmp_path_factory):
    """Local HTTPS server with a self-signed certificate; yields a name-to-URL function."""
    if shutil.which("openssl") is None:
        pytest.skip("openssl is needed to create a self-signed certificate")
    workdir = tmp_path_factory.mktemp("tls")
    cert, key = workdir / "cert.pem", workdir / "key.pem"
    subprocess.run(
        ["openssl", "req", "-x509", "-newkey", "rsa:2048", "-nodes", "-days", "1",
         "-subj", "/CN=127.0.0.1", "-keyout", str(key), "-out", str(cert)],
        check=True,
        capture_output=True,
    )
    ssl_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ssl_context.load_cert_chain(cert, key)
    server = _start_server(ssl_context)
    host, port = server.server_address[:2]

    def fixture(name: str) -> str:
        return f"https://{host}:{port}/{name}"

    yield fixture
    server.shutdown()
    server.server_close()


@pytest.fixture
async def browser_session():
    """Provide a session driving a real headless Chromium."""
    session = Session()
    yield session
    await session.end()
