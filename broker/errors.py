"""
OAuth error responses (RFC 6749 §5.2 body shape) and safe error logging.
"""
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


class OAuthError(Exception):
    """Raised by route code; rendered as {"error", "error_description"} at the top level."""

    def __init__(
        self,
        error: str,
        description: str | None = None,
        status_code: int = 400,
        headers: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ):
        super().__init__(description or error)
        self.error = error
        self.description = description
        self.status_code = status_code
        self.headers = headers
        self.extra = extra or {}

    def body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        body.update(self.extra)
        return body


def safe_log_error(context: str, exc: BaseException) -> None:
    """Log context plus exception type and message only; never tracebacks with locals or secrets."""
    logger.error("%s: %s: %s", context, type(exc).__name__, exc)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(OAuthError)
    async def oauth_error_handler(request: Request, exc: OAuthError):
        headers = dict(NO_STORE_HEADERS)
        if exc.headers:
            headers.update(exc.headers)
        return JSONResponse(exc.body(), status_code=exc.status_code, headers=headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        safe_log_error(f"Unhandled error on {request.method} {request.url.path}", exc)
        return JSONResponse(
            {"error": "server_error", "error_description": "Internal server error"},
            status_code=500,
            headers=NO_STORE_HEADERS,
        )
