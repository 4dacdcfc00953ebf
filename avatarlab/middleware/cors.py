"""CORS preflight short-circuit and top-level error catch for every route."""

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from avatarlab.config import get_settings
from avatarlab.responses import CORS_HEADERS, error_response

logger = logging.getLogger(__name__)

settings = get_settings()


class EdgeFunctionMiddleware(BaseHTTPMiddleware):
    """
    Answer OPTIONS before auth or body parsing, stamp CORS headers on all
    responses, and guarantee a JSON envelope even for uncaught errors.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
            return error_response(
                "Internal server error",
                status_code=500,
                details=str(exc) if settings.debug else None,
            )

        for header, value in CORS_HEADERS.items():
            response.headers.setdefault(header, value)
        return response
