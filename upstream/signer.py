"""
OAuth 1.0a request signing (RFC 5849, HMAC-SHA1 only).
The provider rejects a bad signature with no diagnostic, so encoding here must match
RFC 3986 exactly: unreserved characters only, everything else %XX uppercase.
"""
import base64
import hashlib
import hmac
import secrets
import time
from urllib.parse import quote

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"


def percent_encode(value: str) -> str:
    """RFC 3986 section 2.1 encoding; only ALPHA / DIGIT / '-' / '.' / '_' / '~' pass through."""
    # safe="~" drops quote()'s default '/' so it is encoded too
    return quote(value, safe="~")


def generate_nonce() -> str:
    """Fresh per request: 24 random bytes as 48 lowercase hex chars."""
    return secrets.token_hex(24)


def generate_timestamp() -> str:
    """Unix seconds at signing time."""
    return str(int(time.time()))


def _parameter_string(oauth_params: dict[str, str], request_params: dict[str, str] | None = None) -> str:
    merged = {**oauth_params, **(request_params or {})}
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in merged.items())
    return "&".join(f"{k}={v}" for k, v in encoded)


def signing_key(consumer_secret: str, token_secret: str | None = None) -> str:
    return f"{percent_encode(consumer_secret)}&{percent_encode(token_secret or '')}"


def signature_base_string(
    method: str,
    url: str,
    oauth_params: dict[str, str],
    request_params: dict[str, str] | None = None,
) -> str:
    """METHOD&encoded(base URL without query)&encoded(sorted parameter string)."""
    base_url = url.split("?", 1)[0]
    params = _parameter_string(oauth_params, request_params)
    return f"{method.upper()}&{percent_encode(base_url)}&{percent_encode(params)}"


def sign(
    method: str,
    url: str,
    oauth_params: dict[str, str],
    request_params: dict[str, str] | None,
    consumer_secret: str,
    token_secret: str | None = None,
) -> str:
    """Base64 HMAC-SHA1 of the signature base string."""
    base_string = signature_base_string(method, url, oauth_params, request_params)
    key = signing_key(consumer_secret, token_secret)
    digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def build_oauth_params(
    consumer_key: str,
    extra: dict[str, str] | None = None,
    token: str | None = None,
) -> dict[str, str]:
    """Standard oauth_* protocol parameters with a new nonce and timestamp."""
    params = {
        "oauth_consumer_key": consumer_key,
        "oauth_nonce": generate_nonce(),
        "oauth_signature_method": SIGNATURE_METHOD,
        "oauth_timestamp": generate_timestamp(),
        "oauth_version": OAUTH_VERSION,
    }
    if extra:
        params.update(extra)
    if token:
        params["oauth_token"] = token
    return params


def sign_request(
    method: str,
    url: str,
    consumer_key: str,
    consumer_secret: str,
    *,
    oauth_extra: dict[str, str] | None = None,
    request_params: dict[str, str] | None = None,
    token: str | None = None,
    token_secret: str | None = None,
) -> dict[str, str]:
    """Return the full ready-to-send parameter set: oauth params, request params, oauth_signature."""
    oauth_params = build_oauth_params(consumer_key, oauth_extra, token)
    signature = sign(method, url, oauth_params, request_params, consumer_secret, token_secret)
    return {**oauth_params, **(request_params or {}), "oauth_signature": signature}


def authorization_header(params: dict[str, str], realm: str | None = None) -> str:
    """'OAuth k="v", ...' from the oauth_* members of params, sorted by key."""
    parts = []
    if realm is not None:
        parts.append(f'realm="{percent_encode(realm)}"')
    for key in sorted(k for k in params if k.startswith("oauth_")):
        parts.append(f'{percent_encode(key)}="{percent_encode(params[key])}"')
    return "OAuth " + ", ".join(parts)
