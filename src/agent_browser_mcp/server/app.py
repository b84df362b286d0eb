"""FastAPI application exposing the browser tools over JSON-RPC."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from ..config import ServerConfig
from ..factory import build_dispatcher
from ..tools.definitions import tool_definitions
from ..tools.dispatcher import ToolDispatcher
from .auth import check_token
from .errors import TransportError, rpc_error_body, transport_error_handler
from .registry import ConnectionRegistry

LOGGER = logging.getLogger(__name__)

SERVER_NAME = "agent-browser-mcp"
DEFAULT_PROTOCOL_VERSION = "2025-03-26"
SESSION_HEADER = "Mcp-Session-Id"
# Serialized ServerConfig handed from the CLI to reloading worker processes.
CONFIG_ENV_VAR = "AGENT_BROWSER_MCP_SERVE_CONFIG"


def server_version() -> str:
    try:
        return get_version("agent-browser-mcp")
    except PackageNotFoundError:  # pragma: no cover - when running from source tree
        return "0.0.0"


class McpApplication:
    """Wire the dispatcher, the connection registry and authentication."""

    def __init__(
        self,
        config: ServerConfig,
        dispatcher: ToolDispatcher,
        registry: Optional[ConnectionRegistry] = None,
    ) -> None:
        self._config = config
        self._dispatcher = dispatcher
        self._registry = registry or ConnectionRegistry()

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    def create_app(self) -> FastAPI:
        dispatcher = self._dispatcher

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncIterator[None]:
            yield
            dispatcher.close()

        app = FastAPI(title="Agent Browser MCP Server", lifespan=lifespan)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "mcp-session-id"],
            expose_headers=[SESSION_HEADER],
        )
        app.add_exception_handler(TransportError, transport_error_handler)
        app.add_exception_handler(RequestValidationError, _parse_error_handler)
        router = APIRouter()
        auth_config = self._config.auth

        def authenticate(
            authorization: Optional[str] = Header(default=None),
            x_auth_token: Optional[str] = Header(default=None),
        ) -> None:
            check_token(auth_config, authorization, x_auth_token)

        @router.get("/health")
        def health() -> Dict[str, Any]:
            return self.health()

        @router.post("/mcp", dependencies=[Depends(authenticate)])
        def post_message(
            payload: Any = Body(...),
            mcp_session_id: Optional[str] = Header(default=None),
        ) -> Response:
            return self.handle_message(payload, mcp_session_id)

        @router.get("/mcp", dependencies=[Depends(authenticate)])
        def open_stream(mcp_session_id: Optional[str] = Header(default=None)) -> Response:
            if self._registry.get(mcp_session_id) is None:
                raise TransportError(400, -32000, "Invalid or missing session ID")
            raise TransportError(405, -32601, "Server-sent event streams are not supported")

        @router.delete("/mcp", dependencies=[Depends(authenticate)])
        def end_connection(mcp_session_id: Optional[str] = Header(default=None)) -> Response:
            if not mcp_session_id or not self._registry.close(mcp_session_id):
                raise TransportError(400, -32000, "Invalid or missing session ID")
            LOGGER.info("Connection %s closed", mcp_session_id)
            return Response(status_code=200)

        app.include_router(router)
        return app

    def health(self) -> Dict[str, Any]:
        config = self._config
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": server_version(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "config": {
                "mcp_auth_token_configured": bool(config.mcp_auth_token),
                "auth_token_configured": bool(config.auth.tokens),
                "legacy_auth_token_configured": bool(config.legacy_auth_token),
                "kv_configured": bool(config.storage.url and config.storage.token),
                "storage_backend": config.storage.backend,
                "require_auth": config.auth.require_auth,
                "vercel_env": config.deployment_env,
            },
            "connections": len(self._registry),
        }

    def handle_message(self, payload: Any, connection_id: Optional[str]) -> Response:
        if not isinstance(payload, dict) or not isinstance(payload.get("method"), str):
            raise TransportError(400, -32600, "Invalid Request")
        method: str = payload["method"]
        request_id = payload.get("id")
        params = payload.get("params") or {}

        if method == "initialize":
            if connection_id:
                raise TransportError(
                    400, -32600, "Invalid Request: connection already initialized", request_id
                )
            return self._initialize(params, request_id)

        if self._registry.get(connection_id) is None:
            raise TransportError(
                400, -32000, "Bad Request: No valid session ID provided", request_id
            )
        if "id" not in payload:
            # Notifications carry no id and get no response body.
            return Response(status_code=202)
        if method == "ping":
            return _rpc_result({}, request_id)
        if method == "tools/list":
            return _rpc_result({"tools": tool_definitions()}, request_id)
        if method == "tools/call":
            name = params.get("name") if isinstance(params, dict) else None
            if not isinstance(name, str):
                return JSONResponse(rpc_error_body(-32602, "Invalid params: name is required", request_id))
            result = self._dispatcher.dispatch(name, params.get("arguments"))
            return _rpc_result(result.to_wire(), request_id)
        return JSONResponse(rpc_error_body(-32601, f"Method not found: {method}", request_id))

    def _initialize(self, params: Any, request_id: Any) -> Response:
        params = params if isinstance(params, dict) else {}
        protocol_version = params.get("protocolVersion") or DEFAULT_PROTOCOL_VERSION
        connection = self._registry.open(protocol_version, params.get("clientInfo"))
        LOGGER.info("Connection %s initialized", connection.id)
        response = _rpc_result(
            {
                "protocolVersion": protocol_version,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": SERVER_NAME, "version": server_version()},
            },
            request_id,
        )
        response.headers[SESSION_HEADER] = connection.id
        return response


def _rpc_result(result: Dict[str, Any], request_id: Any) -> JSONResponse:
    return JSONResponse({"jsonrpc": "2.0", "result": result, "id": request_id})


async def _parse_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(rpc_error_body(-32700, "Parse error"), status_code=400)


def create_app(
    config: Optional[ServerConfig] = None,
    *,
    dispatcher: Optional[ToolDispatcher] = None,
    registry: Optional[ConnectionRegistry] = None,
) -> FastAPI:
    config = config or ServerConfig()
    dispatcher = dispatcher or build_dispatcher(config)
    return McpApplication(config, dispatcher, registry).create_app()


def create_app_from_environment() -> FastAPI:
    """App factory used by ``uvicorn --reload``; reads the CLI's serialized config."""

    raw = os.environ.get(CONFIG_ENV_VAR)
    config = ServerConfig.model_validate_json(raw) if raw else ServerConfig()
    return create_app(config)
