"""
Session management for the carried session: inspect (masked) and delete.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from broker.auth import CarriedSession, carried_session_token, require_session
from broker.config import COOKIE_SECURE, MAX_TOKEN_LENGTH, SESSION_COOKIE
from broker.errors import NO_STORE_HEADERS
from broker.vault import Vault, get_vault, mask_secret

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/session")
def session_info(carried: CarriedSession = Depends(require_session)):
    """No secrets: the consumer key is masked, tokens are reported as present or not."""
    session = carried.session
    return JSONResponse(
        {
            "client_id": mask_secret(session.client_id),
            "has_upstream_tokens": session.has_upstream_tokens,
            "upstream_user_id": session.user_id,
            "profile_id": session.profile_id,
            "created_at": session.created_at,
        },
        headers=NO_STORE_HEADERS,
    )


@router.delete("/api/session")
def delete_session(request: Request, vault: Vault = Depends(get_vault)):
    """Idempotent: succeeds whether or not a live session was carried."""
    token = carried_session_token(request)
    if token and len(token) <= MAX_TOKEN_LENGTH:
        vault.delete_session(token)
        logger.info("Session deleted on user request")
    response = JSONResponse({"success": True}, headers=NO_STORE_HEADERS)
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="lax", secure=COOKIE_SECURE)
    return response
