"""
Upstream connect routes: link a vaulted session to upstream OAuth 1.0a credentials.

POST /oauth/setup            credentials -> request token, new session, single-use state
POST /oauth/profile          two-legged profile flow for the carried session
GET  /oauth/connect-account  three-legged flow for the carried session (browser)
GET  /oauth/callback         provider redirect back; exchanges the verifier
POST /oauth/complete         programmatic completion with state + verifier
"""
import logging
import uuid

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel

from broker.auth import CarriedSession, require_session
from broker.config import (
    COOKIE_SECURE,
    MAX_CALLBACK_URL_LENGTH,
    MAX_CREDENTIAL_LENGTH,
    MAX_TOKEN_LENGTH,
    OAUTH_STATE_COOKIE,
    OAUTH_STATE_TTL_SECONDS,
)
from broker.errors import NO_STORE_HEADERS, OAuthError, safe_log_error
from broker.models import UpstreamSession
from broker.urls import request_origin, same_origin
from broker.vault import Vault, get_vault, mask_secret, upstream_client_for
from broker.views import render_callback_error, render_callback_success, render_verifier_form
from upstream.errors import UpstreamApiError
from upstream.flow import RequestTokenObtained

logger = logging.getLogger(__name__)
router = APIRouter()


class SetupRequest(BaseModel):
    client_id: str | None = None
    client_secret: str | None = None
    consumer_secret: str | None = None
    callback_url: str | None = None


class CompleteRequest(BaseModel):
    state: str | None = None
    verifier: str | None = None


def _upstream_failure(context: str, exc: Exception) -> OAuthError:
    safe_log_error(context, exc)
    if isinstance(exc, UpstreamApiError):
        return OAuthError("server_error", exc.user_message, status_code=502, extra={"upstream_status": exc.status})
    return OAuthError("server_error", "Upstream provider is unreachable", status_code=502)


def _set_state_cookie(response, state: str) -> None:
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )


def _clear_state_cookie(response) -> None:
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/", httponly=True, samesite="lax", secure=COOKIE_SECURE)


def exchange_verifier(vault: Vault, state: str, verifier: str) -> tuple[str, UpstreamSession]:
    """Consume the state, trade the verifier for the access token pair, store it on the session."""
    oauth_state = vault.consume_oauth_state(state)
    if oauth_state is None:
        raise OAuthError("invalid_grant", "Invalid or expired state. Start the connection again.")
    session = vault.get_session(oauth_state.session_token)
    if session is None:
        raise OAuthError("invalid_grant", "Session expired. Start the setup again.")

    request_token = RequestTokenObtained(token=oauth_state.request_token, secret=oauth_state.request_token_secret)
    try:
        access = upstream_client_for(session).get_access_token(request_token.authorize(verifier))
    except (UpstreamApiError, httpx.HTTPError) as e:
        raise _upstream_failure("Upstream access-token exchange failed", e)

    session.access_token = access.token
    session.access_token_secret = access.secret
    session.user_id = access.user_id
    vault.save_session(oauth_state.session_token, session)
    logger.info("Upstream account connected: consumer=%s", mask_secret(session.client_id))
    return oauth_state.session_token, session


@router.post("/oauth/setup")
def setup(body: SetupRequest, request: Request, vault: Vault = Depends(get_vault)):
    if not body.client_id or not body.client_secret:
        raise OAuthError("invalid_request", "client_id and client_secret are required")
    if (
        len(body.client_id) > MAX_CREDENTIAL_LENGTH
        or len(body.client_secret) > MAX_CREDENTIAL_LENGTH
        or len(body.consumer_secret or "") > MAX_CREDENTIAL_LENGTH
        or len(body.callback_url or "") > MAX_CALLBACK_URL_LENGTH
    ):
        raise OAuthError("invalid_request", "Invalid input")

    origin = request_origin(request)
    callback = f"{origin}/oauth/callback"
    # Foreign callback URLs are ignored
    if body.callback_url and same_origin(body.callback_url, origin):
        callback = body.callback_url

    session = UpstreamSession(
        client_id=body.client_id,
        client_secret=body.client_secret,
        consumer_secret=body.consumer_secret or None,
    )
    upstream = upstream_client_for(session)
    try:
        request_token = upstream.get_request_token(callback)
    except (UpstreamApiError, httpx.HTTPError) as e:
        raise _upstream_failure("Upstream request-token failed during setup", e)

    session_token = vault.create_session(session)
    state = vault.store_oauth_state(session_token, request_token)
    return {
        "success": True,
        "state": state,
        "authorization_url": upstream.authorization_url(request_token),
    }


@router.post("/oauth/profile")
def connect_profile(carried: CarriedSession = Depends(require_session), vault: Vault = Depends(get_vault)):
    """Two-legged: create the upstream profile (or fetch it if it exists); no browser step."""
    session = carried.session
    profile_id = session.profile_id or f"mcp-{uuid.uuid4()}"
    try:
        tokens = upstream_client_for(session).obtain_profile_tokens(profile_id)
    except (UpstreamApiError, httpx.HTTPError) as e:
        raise _upstream_failure("Upstream profile flow failed", e)

    session.profile_id = profile_id
    session.access_token = tokens.token
    session.access_token_secret = tokens.secret
    vault.save_session(carried.token, session)
    return {"success": True, "profile_id": profile_id}


@router.get("/oauth/connect-account")
def connect_account(
    request: Request,
    carried: CarriedSession = Depends(require_session),
    vault: Vault = Depends(get_vault),
):
    upstream = upstream_client_for(carried.session)
    try:
        request_token = upstream.get_request_token(f"{request_origin(request)}/oauth/callback")
    except (UpstreamApiError, httpx.HTTPError) as e:
        raise _upstream_failure("Upstream request-token failed during connect", e)

    state = vault.store_oauth_state(carried.token, request_token)
    response = RedirectResponse(url=upstream.authorization_url(request_token), status_code=302)
    _set_state_cookie(response, state)
    return response


@router.get("/oauth/callback", response_class=HTMLResponse)
def callback(
    request: Request,
    oauth_verifier: str | None = None,
    state: str | None = None,
    vault: Vault = Depends(get_vault),
):
    """State comes from the query (setup flow) or the oauth_state cookie (connect-account flow)."""
    if oauth_verifier and len(oauth_verifier) > MAX_TOKEN_LENGTH:
        raise OAuthError("invalid_request", "Invalid input")
    if not oauth_verifier:
        return HTMLResponse(render_verifier_form())

    state = state or request.cookies.get(OAUTH_STATE_COOKIE)
    if not state:
        raise OAuthError("invalid_request", "State is required")
    if len(state) > MAX_TOKEN_LENGTH:
        raise OAuthError("invalid_request", "Invalid input")

    try:
        _, session = exchange_verifier(vault, state, oauth_verifier)
    except OAuthError as e:
        response = HTMLResponse(render_callback_error(e.description or e.error), status_code=e.status_code)
        _clear_state_cookie(response)
        return response

    response = HTMLResponse(render_callback_success(session.user_id), headers=NO_STORE_HEADERS)
    _clear_state_cookie(response)
    return response


@router.post("/oauth/complete")
def complete(body: CompleteRequest, vault: Vault = Depends(get_vault)):
    if not body.state or not body.verifier:
        raise OAuthError("invalid_request", "state and verifier are required")
    if len(body.state) > MAX_TOKEN_LENGTH or len(body.verifier) > MAX_TOKEN_LENGTH:
        raise OAuthError("invalid_request", "Invalid input")

    session_token, session = exchange_verifier(vault, body.state, body.verifier)
    return {"success": True, "session_token": session_token, "user_id": session.user_id}
