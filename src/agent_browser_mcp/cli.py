"""Command line interface for agent-browser-mcp."""

from __future__ import annotations

import json
import logging
import os
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console

from .config import load_config
from .factory import build_dispatcher

app = typer.Typer(help="Agent Browser MCP entry point")


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure logging before executing any command."""

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def version() -> None:
    """Print the package version."""

    try:
        typer.echo(get_version("agent-browser-mcp"))
    except PackageNotFoundError:  # pragma: no cover - when running from source tree
        typer.echo("0.0.0")


@app.command()
def serve(
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration."),
    ] = None,
    env_file: Annotated[
        Optional[Path],
        typer.Option("--env-file", help="Path to an .env file with default configuration values."),
    ] = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Binding address.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", help="HTTP port.")] = None,
    storage: Annotated[
        Optional[str],
        typer.Option("--storage", help="Session store backend (memory or kv)."),
    ] = None,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes.")] = False,
) -> None:
    """Serve the browser tools over HTTP."""

    import uvicorn

    from .server.app import CONFIG_ENV_VAR, create_app

    overrides: dict[str, Any] = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if storage is not None:
        overrides["storage"] = {"backend": storage}
    config = load_config(config_path, env_file=env_file, **overrides)
    if reload:
        # Reloading needs an import string; workers rebuild the app from this config.
        os.environ[CONFIG_ENV_VAR] = config.model_dump_json()
        uvicorn.run(
            "agent_browser_mcp.server.app:create_app_from_environment",
            factory=True,
            host=config.host,
            port=config.port,
            reload=True,
        )
        return
    uvicorn.run(create_app(config), host=config.host, port=config.port, reload=False)


@app.command()
def call(
    tool: Annotated[str, typer.Argument(help="Tool name, e.g. browser_open or open.")],
    arg: Annotated[
        Optional[list[str]],
        typer.Option("--arg", "-a", help="Tool argument as key=value (repeatable)."),
    ] = None,
    json_args: Annotated[
        Optional[str],
        typer.Option("--json", help="Tool arguments as a JSON object."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration."),
    ] = None,
    env_file: Annotated[
        Optional[Path],
        typer.Option("--env-file", help="Path to an .env file with default configuration values."),
    ] = None,
) -> None:
    """Run a single tool call locally and print its result envelope."""

    arguments: dict[str, Any] = {}
    if json_args:
        try:
            parsed = json.loads(json_args)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"Invalid JSON: {exc}", param_hint="--json") from exc
        if not isinstance(parsed, dict):
            raise typer.BadParameter("Expected a JSON object", param_hint="--json")
        arguments.update(parsed)
    for item in arg or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {item!r}", param_hint="--arg")
        # Values stay strings; the input models coerce "true" and "2.5".
        arguments[key.strip()] = value

    config = load_config(config_path, env_file=env_file)
    dispatcher = build_dispatcher(config)
    try:
        result = dispatcher.dispatch(tool, arguments)
    finally:
        dispatcher.close()
    Console().print_json(data=result.to_wire())
    if result.is_error:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
