"""
Well-known endpoints: Authorization Server Metadata (RFC 8414) and
Protected Resource Metadata (RFC 9728). Pure functions of the request origin.
"""
from fastapi import APIRouter, Request

from broker.config import SCOPE
from broker.urls import request_origin

router = APIRouter()


@router.get("/.well-known/oauth-authorization-server")
def authorization_server_metadata(request: Request):
    origin = request_origin(request)
    return {
        "issuer": origin,
        "authorization_endpoint": f"{origin}/oauth2/authorize",
        "token_endpoint": f"{origin}/oauth2/token",
        "registration_endpoint": f"{origin}/oauth2/register",
        "response_types_supported": ["code"],
        "grant_types_supported": ["authorization_code"],
        "token_endpoint_auth_methods_supported": ["client_secret_post"],
        "code_challenge_methods_supported": ["S256"],
        "scopes_supported": [SCOPE],
    }


@router.get("/.well-known/oauth-protected-resource/{resource}")
def protected_resource_metadata(resource: str, request: Request):
    origin = request_origin(request)
    return {
        "resource": f"{origin}/{resource}",
        "authorization_servers": [origin],
        "scopes_supported": [SCOPE],
        "bearer_methods_supported": ["header"],
    }
