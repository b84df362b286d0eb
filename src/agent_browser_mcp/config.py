"""Configuration models for the agent browser server."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class BrowserConfig(BaseModel):
    """Settings for the per-call browser instance. Durations are in seconds."""

    headless: bool = True
    executable_path: Optional[Path] = None
    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-dev-shm-usage",
            "--disable-gpu",
        ]
    )
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str = DEFAULT_USER_AGENT
    navigation_timeout: float = 30.0
    action_timeout: float = 10.0
    wait_timeout: float = 30.0
    settle_timeout: float = 10.0
    key_settle_timeout: float = 5.0
    type_delay_ms: float = 50.0
    screenshot_quality: int = Field(default=80, ge=0, le=100)


class StorageConfig(BaseModel):
    """Settings for the session store backend."""

    backend: Literal["memory", "kv"] = "memory"
    url: Optional[str] = None
    token: Optional[str] = None
    key_prefix: str = "browser_session:"
    ttl_seconds: int = Field(default=15 * 60, gt=0)
    request_timeout: float = 5.0


class AuthConfig(BaseModel):
    """Bearer-token settings for the HTTP surface."""

    tokens: list[str] = Field(default_factory=list)
    require_auth: bool = False


class ServerConfig(BaseSettings):
    """Top-level configuration for the server and the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="AGENT_BROWSER_MCP_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    # Deployment variables recognised without the prefix.
    kv_rest_api_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("KV_REST_API_URL")
    )
    kv_rest_api_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("KV_REST_API_TOKEN")
    )
    mcp_auth_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MCP_AUTH_TOKEN")
    )
    legacy_auth_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("AUTH_TOKEN")
    )
    require_auth_flag: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("REQUIRE_AUTH")
    )
    deployment_env: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VERCEL_ENV")
    )

    @model_validator(mode="after")
    def _apply_deployment_env(self) -> "ServerConfig":
        if self.kv_rest_api_url and not self.storage.url:
            self.storage.url = self.kv_rest_api_url
        if self.kv_rest_api_token and not self.storage.token:
            self.storage.token = self.kv_rest_api_token
        for token in (self.mcp_auth_token, self.legacy_auth_token):
            if token and token not in self.auth.tokens:
                self.auth.tokens.append(token)
        if self.require_auth_flag == "true":
            self.auth.require_auth = True
        elif self.require_auth_flag != "false" and self.deployment_env == "production":
            self.auth.require_auth = True
        return self


def load_config(
    path: Path | None = None,
    *,
    env_file: Path | None = None,
    **overrides: object,
) -> ServerConfig:
    """Load configuration from an optional file and overrides."""

    data: dict[str, Any] = {}
    if path:
        import yaml

        data = yaml.safe_load(path.read_text()) or {}
    if overrides:
        _deep_update(data, overrides)
    settings_kwargs: dict[str, object] = {}
    if env_file is not None:
        settings_kwargs["_env_file"] = env_file
    config = ServerConfig(**data, **settings_kwargs)
    if not data:
        return config

    merged = config.model_dump(mode="python")
    _deep_update(merged, data)
    return ServerConfig.model_validate(merged)


def _deep_update(target: dict[str, Any], updates: Mapping[str, Any]) -> None:
    """Recursively merge ``updates`` into ``target`` in-place."""

    for key, value in updates.items():
        if (
            isinstance(value, Mapping)
            and isinstance(existing := target.get(key), Mapping)
        ):
            nested: dict[str, Any]
            if isinstance(existing, dict):
                nested = existing
            else:
                nested = dict(existing)
            _deep_update(nested, value)
            target[key] = nested
        else:
            target[key] = value
