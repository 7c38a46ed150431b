"""
Authorization endpoint. GET /oauth2/authorize validates and renders consent (existing
upstream-authenticated session) or credential collection. POST /oauth2/authorize
re-validates everything and acts on deny / allow / credentials.
"""
import logging
import uuid
from enum import Enum

import httpx
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from broker.auth import resolve_session
from broker.config import COOKIE_SECURE, MAX_CREDENTIAL_LENGTH, SCOPE, SESSION_COOKIE, SESSION_TTL_SECONDS
from broker.errors import OAuthError, safe_log_error
from broker.models import RegisteredClient, UpstreamSession
from broker.urls import add_query_params
from broker.vault import Vault, get_vault, mask_secret, upstream_client_for
from broker.views import AuthorizeParams, render_consent, render_credentials
from upstream.errors import UpstreamApiError

logger = logging.getLogger(__name__)
router = APIRouter()

NO_STORE = {"Cache-Control": "no-store"}


class AuthorizeAction(str, Enum):
    DENY = "deny"
    ALLOW = "allow"
    CREDENTIALS = "credentials"


def _require_pkce_and_state(code_challenge: str | None, code_challenge_method: str | None, state: str | None) -> None:
    if code_challenge_method and code_challenge_method != "S256":
        raise OAuthError("invalid_request", "Only code_challenge_method=S256 is supported")
    if not code_challenge or not state:
        raise OAuthError("invalid_request", "code_challenge and state are required")


def _redirect_with_code(
    vault: Vault, client: RegisteredClient, redirect_uri: str, code_challenge: str, session_token: str, state: str
) -> RedirectResponse:
    code = vault.issue_code(client.client_id, redirect_uri, code_challenge, session_token, SCOPE)
    logger.info("Authorization code issued: client_id=%s", client.client_id)
    return RedirectResponse(url=add_query_params(redirect_uri, {"code": code, "state": state}), status_code=302)


@router.get("/oauth2/authorize", response_class=HTMLResponse)
def authorize_get(
    request: Request,
    response_type: str | None = None,
    client_id: str | None = None,
    redirect_uri: str | None = None,
    state: str | None = None,
    code_challenge: str | None = None,
    code_challenge_method: str | None = None,
    vault: Vault = Depends(get_vault),
):
    """
    Errors here are JSON, never redirects: the redirect_uri is not trusted until it
    matches the registered set.
    """
    if response_type != "code":
        raise OAuthError("unsupported_response_type", "Only response_type=code is supported")

    if not client_id or not redirect_uri or not code_challenge or not state:
        raise OAuthError(
            "invalid_request",
            "Missing required parameters: client_id, redirect_uri, code_challenge, state",
        )

    if code_challenge_method and code_challenge_method != "S256":
        raise OAuthError("invalid_request", "Only code_challenge_method=S256 is supported")

    client = vault.get_client(client_id)
    if client is None:
        raise OAuthError("invalid_client", "Unknown client_id")

    if not client.redirect_uri_allowed(redirect_uri):
        raise OAuthError("invalid_request", "redirect_uri does not match registered URIs")

    params = AuthorizeParams(
        client_id=client_id,
        redirect_uri=redirect_uri,
        state=state,
        code_challenge=code_challenge,
        code_challenge_method=code_challenge_method or "S256",
    )
    carried = resolve_session(request, vault)
    if carried is not None and carried.session.has_upstream_tokens:
        body = render_consent(params, client.client_name, mask_secret(carried.session.client_id))
    else:
        body = render_credentials(params, client.client_name)
    return HTMLResponse(body, headers=NO_STORE)


@router.post("/oauth2/authorize")
def authorize_post(
    request: Request,
    action: str = Form(""),
    client_id: str = Form(""),
    redirect_uri: str = Form(""),
    state: str = Form(""),
    code_challenge: str = Form(""),
    code_challenge_method: str = Form(""),
    upstream_client_id: str | None = Form(None),
    upstream_client_secret: str | None = Form(None),
    upstream_consumer_secret: str | None = Form(None),
    vault: Vault = Depends(get_vault),
):
    client = vault.get_client(client_id)
    if client is None or not client.redirect_uri_allowed(redirect_uri):
        raise OAuthError("invalid_client", "Unknown client or redirect_uri not registered")

    try:
        chosen = AuthorizeAction(action)
    except ValueError:
        raise OAuthError("invalid_request", "action must be one of: deny, allow, credentials")

    if chosen is AuthorizeAction.DENY:
        logger.info("Authorization denied by user: client_id=%s", client_id)
        url = add_query_params(redirect_uri, {"error": "access_denied", "state": state or None})
        return RedirectResponse(url=url, status_code=302)

    _require_pkce_and_state(code_challenge, code_challenge_method, state)
    params = AuthorizeParams(
        client_id=client_id,
        redirect_uri=redirect_uri,
        state=state,
        code_challenge=code_challenge,
        code_challenge_method=code_challenge_method or "S256",
    )

    def credentials_view(error: str, status_code: int) -> HTMLResponse:
        return HTMLResponse(
            render_credentials(params, client.client_name, error), status_code=status_code, headers=NO_STORE
        )

    if chosen is AuthorizeAction.ALLOW:
        carried = resolve_session(request, vault)
        if carried is None or not carried.session.has_upstream_tokens:
            return credentials_view("Session expired. Please enter your credentials.", 401)
        return _redirect_with_code(vault, client, redirect_uri, code_challenge, carried.token, state)

    # credentials: new session from upstream consumer credentials
    fields = (upstream_client_id, upstream_client_secret)
    if not all(fields):
        return credentials_view("Client ID and Client Secret are required.", 400)
    if any(len(f) > MAX_CREDENTIAL_LENGTH for f in (*fields, upstream_consumer_secret or "")):
        return credentials_view("Credentials are too long.", 400)

    session = UpstreamSession(
        client_id=upstream_client_id,
        client_secret=upstream_client_secret,
        consumer_secret=upstream_consumer_secret or None,
        profile_id=f"mcp-{uuid.uuid4()}",
    )
    upstream = upstream_client_for(session)
    try:
        if not upstream.validate_credentials():
            return credentials_view("Invalid upstream credentials. Check your Client ID and Client Secret.", 401)
        tokens = upstream.obtain_profile_tokens(session.profile_id)
    except (UpstreamApiError, httpx.HTTPError) as e:
        safe_log_error("Upstream profile flow failed during authorize", e)
        return credentials_view("Failed to connect. Please check your credentials and try again.", 502)

    session.access_token = tokens.token
    session.access_token_secret = tokens.secret
    session_token = vault.create_session(session)
    logger.info("Upstream session created via authorize: consumer=%s", mask_secret(session.client_id))

    response = _redirect_with_code(vault, client, redirect_uri, code_challenge, session_token, state)
    response.set_cookie(
        SESSION_COOKIE,
        session_token,
        max_age=SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )
    return response
