from __future__ import annotations

import json
import os
import sys
import types

from typer.testing import CliRunner

from agent_browser_mcp.cli import app
from agent_browser_mcp.config import ServerConfig
from agent_browser_mcp.server.app import CONFIG_ENV_VAR


def _fake_load_config(calls: dict[str, object], config: object = "config-stub"):
    def _load(path=None, *, env_file=None, **overrides):  # type: ignore[no-untyped-def]
        calls["path"] = path
        calls["env_file"] = env_file
        calls["overrides"] = overrides
        return config

    return _load


def test_serve_command_invokes_uvicorn(monkeypatch, tmp_path):
    runner = CliRunner()
    config_path = tmp_path / "server.yaml"
    config_path.write_text("port: 3000\n")

    class Config:
        host = "127.0.0.1"
        port = 9100

    load_args: dict[str, object] = {}
    monkeypatch.setattr("agent_browser_mcp.cli.load_config", _fake_load_config(load_args, Config()))
    monkeypatch.setattr("agent_browser_mcp.server.app.create_app", lambda config: ("app", config))

    calls: list[dict[str, object]] = []

    def fake_run(app, host, port, reload):  # type: ignore[no-untyped-def]
        calls.append({"app": app, "host": host, "port": port, "reload": reload})

    monkeypatch.setitem(sys.modules, "uvicorn", types.SimpleNamespace(run=fake_run))

    result = runner.invoke(
        app,
        [
            "serve",
            "--config",
            str(config_path),
            "--host",
            "127.0.0.1",
            "--port",
            "9100",
            "--storage",
            "kv",
        ],
    )

    assert result.exit_code == 0, result.output
    assert load_args["path"] == config_path
    assert load_args["overrides"] == {
        "host": "127.0.0.1",
        "port": 9100,
        "storage": {"backend": "kv"},
    }
    assert len(calls) == 1
    call = calls[0]
    assert call["app"][0] == "app"
    assert call["host"] == "127.0.0.1"
    assert call["port"] == 9100
    assert call["reload"] is False


def test_serve_with_reload_hands_uvicorn_an_app_factory(monkeypatch):
    runner = CliRunner()
    config = ServerConfig(host="127.0.0.1", port=9200, auth={"tokens": ["secret"]})
    monkeypatch.setattr("agent_browser_mcp.cli.load_config", _fake_load_config({}, config))
    # Registers the variable so the CLI's write is undone after the test.
    monkeypatch.setenv(CONFIG_ENV_VAR, "")

    calls: list[dict[str, object]] = []

    def fake_run(app, **kwargs):  # type: ignore[no-untyped-def]
        calls.append({"app": app, **kwargs})

    monkeypatch.setitem(sys.modules, "uvicorn", types.SimpleNamespace(run=fake_run))

    result = runner.invoke(app, ["serve", "--reload"])

    assert result.exit_code == 0, result.output
    assert calls == [
        {
            "app": "agent_browser_mcp.server.app:create_app_from_environment",
            "factory": True,
            "host": "127.0.0.1",
            "port": 9200,
            "reload": True,
        }
    ]
    handed_over = ServerConfig.model_validate_json(os.environ[CONFIG_ENV_VAR])
    assert handed_over.port == 9200
    assert handed_over.auth.tokens == ["secret"]


def test_call_command_prints_result(monkeypatch, dispatcher, engine):
    runner = CliRunner()
    load_args: dict[str, object] = {}
    monkeypatch.setattr("agent_browser_mcp.cli.load_config", _fake_load_config(load_args))
    built: list[object] = []

    def fake_build(config):  # type: ignore[no-untyped-def]
        built.append(config)
        return dispatcher

    monkeypatch.setattr("agent_browser_mcp.cli.build_dispatcher", fake_build)

    result = runner.invoke(app, ["call", "browser_open", "--arg", "url=https://example.com/"])

    assert result.exit_code == 0, result.output
    assert built == ["config-stub"]
    envelope = json.loads(result.stdout)
    assert envelope["isError"] is False
    payload = json.loads(envelope["content"][0]["text"])
    assert payload["session_id"] == "session-1"
    assert engine.last_page.closed


def test_call_command_merges_json_and_args(monkeypatch, dispatcher, engine):
    runner = CliRunner()
    monkeypatch.setattr("agent_browser_mcp.cli.load_config", _fake_load_config({}))
    monkeypatch.setattr("agent_browser_mcp.cli.build_dispatcher", lambda config: dispatcher)

    result = runner.invoke(
        app,
        [
            "call",
            "type",
            "--json",
            '{"url": "https://example.com/", "selector": "#q", "submit": true}',
            "-a",
            "text=hello",
        ],
    )

    assert result.exit_code == 0, result.output
    assert ("press", "Enter") in engine.last_page.calls
    assert dict(engine.last_page.calls)["type_text"]["text"] == "hello"


def test_call_command_exits_non_zero_on_tool_error(monkeypatch, dispatcher, engine):
    runner = CliRunner()
    monkeypatch.setattr("agent_browser_mcp.cli.load_config", _fake_load_config({}))
    monkeypatch.setattr("agent_browser_mcp.cli.build_dispatcher", lambda config: dispatcher)

    result = runner.invoke(app, ["call", "browser_snapshot"])

    assert result.exit_code == 1
    assert json.loads(result.stdout)["isError"] is True
    assert engine.pages == []


def test_call_command_rejects_malformed_arguments(monkeypatch, dispatcher):
    runner = CliRunner()
    monkeypatch.setattr("agent_browser_mcp.cli.load_config", _fake_load_config({}))
    monkeypatch.setattr("agent_browser_mcp.cli.build_dispatcher", lambda config: dispatcher)

    bad_pair = runner.invoke(app, ["call", "browser_open", "--arg", "url"])
    bad_json = runner.invoke(app, ["call", "browser_open", "--json", "[1, 2]"])

    assert bad_pair.exit_code == 2
    assert bad_json.exit_code == 2


def test_version_command_prints_a_version():
    result = CliRunner().invoke(app, ["version"])

    assert result.exit_code == 0
    assert result.stdout.strip()
