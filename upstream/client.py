"""
Upstream OAuth 1.0a client: three-legged dance, two-legged profile credentials,
and signed API calls. Every non-2xx response is raised as UpstreamApiError;
none of these calls are retried (token exchanges are not idempotent).
"""
import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from upstream.config import (
    ACCESS_TOKEN_URL,
    API_BASE_URL,
    AUTHORIZE_URL,
    HTTP_TIMEOUT,
    OAUTH2_TOKEN_URL,
    REQUEST_TOKEN_URL,
)
from upstream.errors import UpstreamApiError, truncate
from upstream.flow import AccessTokenObtained, Authorized, RequestTokenObtained
from upstream.responses import parse_response
from upstream.signer import sign_request

logger = logging.getLogger(__name__)

PROFILE_EXISTS_MARKER = "already exists"


class UpstreamClient:
    """
    One consumer's view of the provider. consumer_secret signs OAuth 1.0a requests;
    when absent the client secret is used instead.
    """

    def __init__(
        self,
        consumer_key: str,
        client_secret: str,
        consumer_secret: str | None = None,
        access_token: str | None = None,
        access_token_secret: str | None = None,
        http: httpx.Client | None = None,
    ):
        self.consumer_key = consumer_key
        self.client_secret = client_secret
        self.signing_secret = consumer_secret or client_secret
        self.access_token = access_token
        self.access_token_secret = access_token_secret
        self._http = http

    @property
    def has_user_auth(self) -> bool:
        return bool(self.access_token and self.access_token_secret)

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._http is not None:
            return self._http.request(method, url, **kwargs)
        return httpx.request(method, url, timeout=HTTP_TIMEOUT, **kwargs)

    def signed_request(
        self,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
        oauth_extra: dict[str, str] | None = None,
        token: str | None = None,
        token_secret: str | None = None,
    ) -> dict[str, Any]:
        """Sign and send; GET carries parameters in the query, POST in a form body."""
        method = method.upper()
        signed = sign_request(
            method,
            url,
            self.consumer_key,
            self.signing_secret,
            oauth_extra=oauth_extra,
            request_params=params,
            token=token,
            token_secret=token_secret,
        )
        if method == "GET":
            response = self._send("GET", url, params=signed)
        else:
            response = self._send(method, url, data=signed)

        text = response.text
        body = parse_response(text)
        if not response.is_success:
            raise UpstreamApiError(
                f"Upstream API error: {response.status_code} - {truncate(text)}",
                response.status_code,
                body,
            )
        # The API reports method-level failures inside a 2xx JSON body
        error = body.get("error")
        if isinstance(error, dict):
            raise UpstreamApiError(
                f"Upstream API error: {error.get('code', '?')} - {truncate(str(error.get('message', '')))}",
                400,
                body,
            )
        return body

    # --- three-legged flow ---

    def get_request_token(self, callback_url: str = "oob") -> RequestTokenObtained:
        body = self.signed_request("POST", REQUEST_TOKEN_URL, oauth_extra={"oauth_callback": callback_url})
        token, secret = body.get("oauth_token"), body.get("oauth_token_secret")
        if not token or not secret:
            raise UpstreamApiError("Malformed request-token response", 502, body)
        return RequestTokenObtained(
            token=token,
            secret=secret,
            callback_confirmed=body.get("oauth_callback_confirmed") == "true",
        )

    def authorization_url(self, request_token: RequestTokenObtained) -> str:
        return f"{AUTHORIZE_URL}?{urlencode({'oauth_token': request_token.token})}"

    def get_access_token(self, authorized: Authorized) -> AccessTokenObtained:
        body = self.signed_request(
            "GET",
            ACCESS_TOKEN_URL,
            oauth_extra={"oauth_verifier": authorized.verifier},
            token=authorized.request.token,
            token_secret=authorized.request.secret,
        )
        token, secret = body.get("oauth_token"), body.get("oauth_token_secret")
        if not token or not secret:
            raise UpstreamApiError("Malformed access-token response", 502, body)
        return AccessTokenObtained(token=token, secret=secret, user_id=body.get("user_id"))

    # --- two-legged profile flow (consumer credentials only) ---

    def _profile_tokens(self, body: dict[str, Any]) -> AccessTokenObtained:
        profile = body.get("profile")
        if not isinstance(profile, dict) or not profile.get("auth_token") or not profile.get("auth_secret"):
            raise UpstreamApiError("Malformed profile response", 502, body)
        return AccessTokenObtained(token=profile["auth_token"], secret=profile["auth_secret"])

    def profile_create(self, user_id: str) -> AccessTokenObtained:
        body = self.signed_request(
            "POST", API_BASE_URL, {"method": "profile.create", "user_id": user_id, "format": "json"}
        )
        return self._profile_tokens(body)

    def profile_get_auth(self, user_id: str) -> AccessTokenObtained:
        body = self.signed_request(
            "GET", API_BASE_URL, {"method": "profile.get_auth", "user_id": user_id, "format": "json"}
        )
        return self._profile_tokens(body)

    def obtain_profile_tokens(self, user_id: str) -> AccessTokenObtained:
        """Create the profile; if it already exists, fetch its tokens instead."""
        try:
            return self.profile_create(user_id)
        except UpstreamApiError as e:
            if not e.mentions(PROFILE_EXISTS_MARKER):
                raise
            logger.info("Upstream profile already exists; fetching its auth tokens")
            return self.profile_get_auth(user_id)

    # --- credential check and protected calls ---

    def validate_credentials(self) -> bool:
        """True if the provider grants a client-credentials token for this consumer."""
        response = self._send(
            "POST",
            OAUTH2_TOKEN_URL,
            auth=(self.consumer_key, self.client_secret),
            data={"grant_type": "client_credentials", "scope": "basic"},
        )
        if not response.is_success:
            logger.info("Upstream credential check rejected: status=%s", response.status_code)
            return False
        return True

    def call(self, api_method: str, params: dict[str, str] | None = None, http_method: str = "GET") -> dict[str, Any]:
        """Signed call on behalf of the user; needs the long-lived access token pair."""
        if not self.has_user_auth:
            raise UpstreamApiError("User authentication required. Connect the upstream account first.", 401)
        all_params = {"method": api_method, "format": "json", **(params or {})}
        return self.signed_request(
            http_method,
            API_BASE_URL,
            all_params,
            token=self.access_token,
            token_secret=self.access_token_secret,
        )
