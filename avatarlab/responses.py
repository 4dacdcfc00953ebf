"""Uniform JSON envelope and CORS headers for every response."""

from typing import Any, Optional

from fastapi.responses import JSONResponse

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS, PUT, DELETE",
}


def success_response(payload: Optional[dict] = None, status_code: int = 200) -> JSONResponse:
    """Wrap a payload as ``{"success": true, ...payload}``."""
    content = {"success": True}
    if payload:
        content.update(payload)
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


def raw_json_response(content: Any, status_code: int = 200) -> JSONResponse:
    """Return a JSON body untouched (vendor passthrough)."""
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


def error_response(message: str, status_code: int = 500, details: Any = None) -> JSONResponse:
    """Wrap a failure as ``{"success": false, "error": message, ["details"]}``."""
    content: dict[str, Any] = {"success": False, "error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)
