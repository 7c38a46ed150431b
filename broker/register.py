"""
Dynamic Client Registration (RFC 7591). POST /oauth2/register.
All redirect URIs are validated before anything is stored; the plaintext
client_secret appears in this response only.
"""
import logging
import re
from typing import Any
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from broker.config import MAX_CLIENT_NAME_LENGTH, MAX_REDIRECT_URI_LENGTH, MAX_REDIRECT_URIS
from broker.errors import NO_STORE_HEADERS, OAuthError
from broker.vault import Vault, get_vault

logger = logging.getLogger(__name__)
router = APIRouter()

LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}

# DNS name or IPv4 literal, or a bracketed IPv6 literal (urlsplit strips the brackets)
HOSTNAME_RE = re.compile(
    r"[a-z0-9](?:[a-z0-9-]*[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]*[a-z0-9])?)*"
    r"|[0-9a-f:.]*:[0-9a-f:.]*"
)


def _invalid(description: str) -> OAuthError:
    return OAuthError("invalid_client_metadata", description)


def validate_redirect_uri(uri: Any) -> None:
    """HTTPS, or http(s) on a loopback host for development."""
    if not isinstance(uri, str) or not uri or len(uri) > MAX_REDIRECT_URI_LENGTH:
        raise _invalid("Invalid redirect_uri")
    if any(c.isspace() or ord(c) < 0x20 or ord(c) == 0x7F for c in uri):
        raise _invalid("Invalid redirect_uri")
    try:
        parts = urlsplit(uri)
        hostname = parts.hostname
        # Raises on a non-numeric or out-of-range port
        parts.port
    except ValueError:
        raise _invalid("Invalid redirect_uri")
    if parts.scheme not in ("https", "http") or not hostname or not HOSTNAME_RE.fullmatch(hostname):
        raise _invalid("Invalid redirect_uri")
    if parts.scheme != "https" and hostname not in LOOPBACK_HOSTS:
        raise _invalid("redirect_uris must use HTTPS")


def _string_list(value: Any) -> list[str] | None:
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return value
    return None


@router.post("/oauth2/register", status_code=201)
async def register(request: Request, vault: Vault = Depends(get_vault)):
    try:
        body = await request.json()
    except ValueError:
        raise _invalid("Request body must be a JSON object")
    if not isinstance(body, dict):
        raise _invalid("Request body must be a JSON object")

    redirect_uris = body.get("redirect_uris")
    if not isinstance(redirect_uris, list) or not redirect_uris:
        raise _invalid("redirect_uris is required")
    if len(redirect_uris) > MAX_REDIRECT_URIS:
        raise _invalid(f"At most {MAX_REDIRECT_URIS} redirect_uris are allowed")
    for uri in redirect_uris:
        validate_redirect_uri(uri)

    client_name = body.get("client_name")
    client_name = client_name[:MAX_CLIENT_NAME_LENGTH] if isinstance(client_name, str) else None

    client, client_secret = await run_in_threadpool(
        vault.register_client,
        redirect_uris,
        client_name,
        _string_list(body.get("grant_types")),
        _string_list(body.get("response_types")),
    )

    content: dict[str, Any] = {
        "client_id": client.client_id,
        "client_secret": client_secret,
        "redirect_uris": client.redirect_uris,
        "token_endpoint_auth_method": "client_secret_post",
        "grant_types": ["authorization_code"],
        "response_types": ["code"],
    }
    if client_name is not None:
        content["client_name"] = client_name
    return JSONResponse(content, status_code=201, headers=NO_STORE_HEADERS)
