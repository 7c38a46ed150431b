"""
Upstream provider errors. Any non-2xx (or error-bearing) upstream response becomes
UpstreamApiError; nothing here retries.
"""
from typing import Any

from upstream.config import MAX_ERROR_TEXT_LENGTH

STATUS_MESSAGES = {
    400: "Invalid request parameters",
    401: "Unauthorized - invalid OAuth credentials",
    403: "Access denied or OAuth signature invalid",
    404: "Resource not found",
    429: "Rate limit exceeded",
    500: "Upstream API error",
    502: "Upstream API is temporarily unavailable",
    503: "Upstream API is temporarily unavailable",
}


def truncate(text: str, limit: int = MAX_ERROR_TEXT_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class UpstreamApiError(Exception):
    """Status-coded failure from the resource provider, with its parsed body."""

    def __init__(self, message: str, status: int, body: dict[str, Any] | None = None):
        super().__init__(truncate(message))
        self.status = status
        self.body = body or {}

    @property
    def user_message(self) -> str:
        return STATUS_MESSAGES.get(self.status, f"Unexpected error (HTTP {self.status})")

    @property
    def error_message(self) -> str:
        """Provider's own error message when the body carries one ({"error": {"message": ...}})."""
        error = self.body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or "")
        if isinstance(error, str):
            return error
        return ""

    def mentions(self, fragment: str) -> bool:
        """True if the message or provider error text contains fragment (case-insensitive)."""
        needle = fragment.lower()
        return needle in str(self).lower() or needle in self.error_message.lower()
