"""
Upstream OAuth 1.0a provider endpoints.
Public URLs only; consumer credentials arrive per session, never from env.
"""
import os

# Three-legged endpoints
REQUEST_TOKEN_URL = os.environ.get(
    "UPSTREAM_REQUEST_TOKEN_URL", "https://authentication.fatsecret.com/oauth/request_token"
)
AUTHORIZE_URL = os.environ.get("UPSTREAM_AUTHORIZE_URL", "https://authentication.fatsecret.com/oauth/authorize")
ACCESS_TOKEN_URL = os.environ.get(
    "UPSTREAM_ACCESS_TOKEN_URL", "https://authentication.fatsecret.com/oauth/access_token"
)

# General signed API endpoint (profile.* methods and the proxied API)
API_BASE_URL = os.environ.get("UPSTREAM_API_BASE_URL", "https://platform.fatsecret.com/rest/server.api")

# OAuth 2.0 client-credentials endpoint, used only to validate consumer credentials
OAUTH2_TOKEN_URL = os.environ.get("UPSTREAM_OAUTH2_TOKEN_URL", "https://oauth.fatsecret.com/connect/token")

# Seconds; the broker adds no timeout of its own beyond the HTTP client's
HTTP_TIMEOUT = float(os.environ.get("UPSTREAM_HTTP_TIMEOUT", "10.0"))

# Truncation bounds for error text and unparseable bodies
MAX_ERROR_TEXT_LENGTH = 200
MAX_RAW_RESPONSE_LENGTH = 500
