"""Bearer-token authentication for the HTTP surface."""

from __future__ import annotations

from typing import Optional

from ..config import AuthConfig
from .errors import TransportError


def extract_token(authorization: Optional[str], x_auth_token: Optional[str]) -> Optional[str]:
    """Return the token from ``Authorization: Bearer`` or ``X-Auth-Token``."""

    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[len("bearer "):].strip()
        if token:
            return token
    return x_auth_token or None


def check_token(config: AuthConfig, authorization: Optional[str], x_auth_token: Optional[str]) -> None:
    """Raise :class:`TransportError` unless the request may proceed."""

    if config.require_auth and not config.tokens:
        raise TransportError(
            500,
            -32002,
            "Server misconfigured: MCP_AUTH_TOKEN or AUTH_TOKEN is required",
        )
    if not config.tokens:
        return
    token = extract_token(authorization, x_auth_token)
    if token is None or token not in config.tokens:
        raise TransportError(401, -32001, "Unauthorized")
