"""
Carried session identity: Bearer header (machine clients) or the session cookie
(browser flows). Both resolve through the same vault lookup.
"""
import logging
from dataclasses import dataclass

from fastapi import Depends, Request

from broker.config import MAX_TOKEN_LENGTH, SESSION_COOKIE
from broker.errors import OAuthError
from broker.models import UpstreamSession
from broker.urls import request_origin
from broker.vault import Vault, get_vault

logger = logging.getLogger(__name__)


@dataclass
class CarriedSession:
    token: str
    session: UpstreamSession


def carried_session_token(request: Request) -> str | None:
    """Bearer token first, then the session cookie."""
    header = request.headers.get("Authorization")
    if header and header.startswith("Bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE) or None


def resolve_session(request: Request, vault: Vault) -> CarriedSession | None:
    token = carried_session_token(request)
    if not token or len(token) > MAX_TOKEN_LENGTH:
        return None
    session = vault.get_session(token)
    if session is None:
        return None
    return CarriedSession(token=token, session=session)


def _challenge(request: Request, invalid_token: bool) -> str:
    origin = request_origin(request)
    value = f'Bearer realm="{origin}/mcp", resource_metadata="{origin}/.well-known/oauth-protected-resource/mcp"'
    if invalid_token:
        value += ', error="invalid_token"'
    return value


def require_session(request: Request, vault: Vault = Depends(get_vault)) -> CarriedSession:
    """Dependency: 401 with a WWW-Authenticate challenge when no live session is carried."""
    if carried_session_token(request) is None:
        raise OAuthError(
            "unauthorized",
            "Authentication required. Provide a valid Bearer token.",
            status_code=401,
            headers={"WWW-Authenticate": _challenge(request, invalid_token=False)},
        )
    carried = resolve_session(request, vault)
    if carried is None:
        raise OAuthError(
            "invalid_token",
            "Invalid or expired token. Please authenticate again.",
            status_code=401,
            headers={"WWW-Authenticate": _challenge(request, invalid_token=True)},
        )
    return carried
