"""Unit tests for session options and runtime configuration."""

import pytest

from chain.actions import ActionKind
from chain.errors import ConfigurationError
from config import AuthCredentials, SessionConfig, options_from_env, parse_options, switch_args


@pytest.mark.unit
def test_default_options():
    """Test that defaults match the documented values."""
    options = parse_options()

    assert options.wait_timeout == 30000
    assert options.goto_timeout == 30000
    assert options.execution_timeout == 30000
    assert options.show is False
    assert options.browser_args.switches == {}


@pytest.mark.unit
def test_unknown_nested_option_rejected():
    """Test that browser_args only accepts switches."""
    with pytest.raises(ConfigurationError, match="browser_args.flags") as exc_info:
        parse_options(browser_args={"flags": ["--foo"]})

    assert exc_info.value.details[0]["type"] == "extra_forbidden"


@pytest.mark.unit
def test_wrong_type_rejected():
    """Test that a wrongly typed option fails validation."""
    with pytest.raises(ConfigurationError, match="width"):
        parse_options(width="wide")


@pytest.mark.unit
def test_switch_args_render_flags():
    """Test rendering launch switches with and without values."""
    args = switch_args({
        "ignore-certificate-errors": None,
        "touch-events": "",
        "force-device-scale-factor": "5",
        "--already-prefixed": True,
    })

    assert args == [
        "--ignore-certificate-errors",
        "--touch-events",
        "--force-device-scale-factor=5",
        "--already-prefixed",
    ]


@pytest.mark.unit
def test_switch_args_stringify_non_string_values():
    """Test that numeric values keep their value and False drops the flag."""
    args = switch_args({
        "force-device-scale-factor": 5,
        "remote-debugging-port": 9222,
        "disable-gpu": False,
    })

    assert args == ["--force-device-scale-factor=5", "--remote-debugging-port=9222"]


@pytest.mark.unit
def test_timeout_for_picks_ceiling_by_kind():
    """Test per-kind default timeouts."""
    config = SessionConfig.from_options(parse_options(wait_timeout=254, goto_timeout=1000, execution_timeout=2000))

    assert config.timeout_for(ActionKind.WAIT) == 254
    assert config.timeout_for(ActionKind.EXISTS) == 254
    assert config.timeout_for(ActionKind.GOTO) == 1000
    assert config.timeout_for(ActionKind.REFRESH) == 1000
    assert config.timeout_for(ActionKind.EVALUATE) == 2000


@pytest.mark.unit
def test_initial_headers_are_lowercased():
    """Test that headers given at construction are normalized."""
    config = SessionConfig.from_options(parse_options(headers={"X-Foo": "foo"}))

    assert config.headers == {"x-foo": "foo"}


@pytest.mark.unit
def test_request_headers_layering():
    """Test session headers, then per-call override; credentials stay out."""
    config = SessionConfig(headers={"x-foo": "foo", "x-mode": "session"})
    config.auth_credentials = AuthCredentials("my", "auth")

    headers = config.request_headers({"X-Mode": "request"})

    assert headers == {"x-foo": "foo", "x-mode": "request"}
    assert config.headers == {"x-foo": "foo", "x-mode": "session"}


@pytest.mark.unit
def test_snapshot_is_independent():
    """Test that a snapshot does not follow later mutations."""
    config = SessionConfig()
    snapshot = config.snapshot()

    config.merge_headers({"X-Later": "1"})

    assert snapshot.headers == {}


@pytest.mark.unit
def test_preload_comes_from_web_preferences():
    """Test that the preload script path is lifted out of web preferences."""
    config = SessionConfig.from_options(parse_options(web_preferences={"preload": "/tmp/preload.js"}))

    assert config.preload_script_path == "/tmp/preload.js"


@pytest.mark.unit
def test_options_from_env():
    """Test reading options from NOCTURNE_* variables."""
    options = options_from_env({
        "NOCTURNE_WAIT_TIMEOUT": "254",
        "NOCTURNE_SHOW": "yes",
        "NOCTURNE_USER_AGENT": "firefox",
        "UNRELATED": "x",
    })

    assert options == {"wait_timeout": 254, "show": True, "user_agent": "firefox"}
    assert parse_options(**options).wait_timeout == 254


@pytest.mark.unit
def test_options_from_env_rejects_bad_numbers():
    """Test that a non-numeric timeout in the environment is reported."""
    with pytest.raises(ConfigurationError, match="NOCTURNE_GOTO_TIMEOUT"):
        options_from_env({"NOCTURNE_GOTO_TIMEOUT": "soon"})
