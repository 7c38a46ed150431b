"""
Token endpoint (POST /oauth2/token). authorization_code grant only.
The access_token returned is the vaulted session token the code was bound to.
"""
import logging

from fastapi import APIRouter, Depends, Form
from fastapi.responses import JSONResponse

from broker.client_auth import require_client_auth
from broker.errors import NO_STORE_HEADERS, OAuthError
from broker.pkce import verify_pkce
from broker.vault import Vault, get_vault

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/oauth2/token")
def token(
    grant_type: str = Form(""),
    code: str | None = Form(None),
    redirect_uri: str | None = Form(None),
    client_id: str | None = Form(None),
    client_secret: str | None = Form(None),
    code_verifier: str | None = Form(None),
    vault: Vault = Depends(get_vault),
):
    """
    Order of checks: grant type, required params, client secret, then the code is
    consumed before client/redirect/PKCE are compared, so any failed check burns it.
    Expired, reused and unknown codes are indistinguishable.
    """
    if grant_type != "authorization_code":
        raise OAuthError("unsupported_grant_type", "Only authorization_code is supported")

    if not code or not client_id or not client_secret or not code_verifier:
        raise OAuthError("invalid_request", "code, client_id, client_secret and code_verifier are required")

    require_client_auth(vault, client_id, client_secret)

    grant = vault.consume_code(code)
    if grant is None:
        raise OAuthError("invalid_grant", "Authorization code is invalid or expired")
    if grant.client_id != client_id:
        raise OAuthError("invalid_grant", "Client mismatch")
    if not redirect_uri or grant.redirect_uri != redirect_uri:
        raise OAuthError("invalid_grant", "redirect_uri mismatch")
    if not verify_pkce(code_verifier, grant.code_challenge):
        raise OAuthError("invalid_grant", "PKCE verification failed")

    logger.info("authorization_code grant: token issued for client_id=%s", client_id)
    return JSONResponse(
        {"access_token": grant.session_token, "token_type": "bearer", "scope": grant.scope},
        headers=NO_STORE_HEADERS,
    )
