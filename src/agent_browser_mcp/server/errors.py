"""Transport-level failures reported as JSON-RPC error responses."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class TransportError(Exception):
    """A request rejected before it reaches a tool."""

    def __init__(
        self,
        status_code: int,
        code: int,
        message: str,
        request_id: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.request_id = request_id


def rpc_error_body(code: int, message: str, request_id: Optional[Any] = None) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": request_id}


async def transport_error_handler(request: Request, exc: TransportError) -> JSONResponse:
    return JSONResponse(
        rpc_error_body(exc.code, exc.message, exc.request_id),
        status_code=exc.status_code,
    )
