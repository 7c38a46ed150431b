"""Tests for the upstream OAuth 1.0a client against a mocked provider (httpx.MockTransport)."""
import json
from urllib.parse import parse_qsl

import httpx
import pytest

from upstream.client import UpstreamClient
from upstream.config import ACCESS_TOKEN_URL, API_BASE_URL, AUTHORIZE_URL, OAUTH2_TOKEN_URL, REQUEST_TOKEN_URL
from upstream.errors import UpstreamApiError
from upstream.flow import AccessTokenObtained, RequestTokenObtained
from upstream.signer import sign


def _request_params(request: httpx.Request) -> dict[str, str]:
    if request.method == "GET":
        return dict(request.url.params)
    return dict(parse_qsl(request.content.decode("utf-8"), keep_blank_values=True))


def _verify_signature(request: httpx.Request, consumer_secret: str, token_secret: str = "") -> dict[str, str]:
    """Recompute the signature as the provider would; return the received params."""
    params = _request_params(request)
    received = params.pop("oauth_signature")
    oauth = {k: v for k, v in params.items() if k.startswith("oauth_")}
    other = {k: v for k, v in params.items() if not k.startswith("oauth_")}
    base_url = str(request.url.copy_with(query=None))
    assert received == sign(request.method, base_url, oauth, other, consumer_secret, token_secret)
    return params


def _client(handler, **kwargs) -> UpstreamClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return UpstreamClient("consumer-key", "client-secret", http=http, **kwargs)


def test_get_request_token_parses_form_body():
    seen = {}

    def handler(request):
        assert str(request.url) == REQUEST_TOKEN_URL
        seen.update(_verify_signature(request, "consumer-secret"))
        return httpx.Response(200, text="oauth_token=rt&oauth_token_secret=rts&oauth_callback_confirmed=true")

    client = _client(handler, consumer_secret="consumer-secret")
    result = client.get_request_token("https://broker.example/oauth/callback")
    assert result == RequestTokenObtained(token="rt", secret="rts", callback_confirmed=True)
    assert seen["oauth_callback"] == "https://broker.example/oauth/callback"
    assert "oauth_token" not in seen


def test_request_token_missing_fields_is_error():
    client = _client(lambda request: httpx.Response(200, text="oauth_token=rt"))
    with pytest.raises(UpstreamApiError) as exc:
        client.get_request_token()
    assert exc.value.status == 502


def test_authorization_url():
    client = UpstreamClient("ck", "cs")
    url = client.authorization_url(RequestTokenObtained(token="a b", secret="s"))
    assert url == f"{AUTHORIZE_URL}?oauth_token=a+b"


def test_get_access_token_signs_with_request_token_secret():
    seen = {}

    def handler(request):
        assert request.method == "GET"
        assert str(request.url.copy_with(query=None)) == ACCESS_TOKEN_URL
        seen.update(_verify_signature(request, "client-secret", "rts"))
        return httpx.Response(200, text="oauth_token=at&oauth_token_secret=ats&user_id=42")

    client = _client(handler)
    authorized = RequestTokenObtained(token="rt", secret="rts").authorize("verifier-1")
    result = client.get_access_token(authorized)
    assert result == AccessTokenObtained(token="at", secret="ats", user_id="42")
    assert seen["oauth_token"] == "rt"
    assert seen["oauth_verifier"] == "verifier-1"


def test_non_2xx_raises_upstream_error_with_status_and_body():
    client = _client(lambda request: httpx.Response(401, text='{"error": {"code": 5, "message": "Invalid key"}}'))
    with pytest.raises(UpstreamApiError) as exc:
        client.get_request_token()
    assert exc.value.status == 401
    assert exc.value.body["error"]["message"] == "Invalid key"


def test_profile_create_returns_tokens():
    def handler(request):
        params = _verify_signature(request, "client-secret")
        assert request.method == "POST"
        assert params["method"] == "profile.create"
        assert params["user_id"] == "broker-1"
        return httpx.Response(200, json={"profile": {"auth_token": "pt", "auth_secret": "ps"}})

    result = _client(handler).profile_create("broker-1")
    assert result == AccessTokenObtained(token="pt", secret="ps")


def test_obtain_profile_tokens_falls_back_when_profile_exists():
    calls = []

    def handler(request):
        params = _request_params(request)
        calls.append(params["method"])
        if params["method"] == "profile.create":
            return httpx.Response(200, json={"error": {"code": 106, "message": "User profile already exists"}})
        return httpx.Response(200, json={"profile": {"auth_token": "old", "auth_secret": "olds"}})

    result = _client(handler).obtain_profile_tokens("broker-1")
    assert calls == ["profile.create", "profile.get_auth"]
    assert result.token == "old"


def test_obtain_profile_tokens_propagates_other_errors():
    client = _client(lambda request: httpx.Response(500, text="down"))
    with pytest.raises(UpstreamApiError) as exc:
        client.obtain_profile_tokens("broker-1")
    assert exc.value.status == 500


def test_malformed_profile_response():
    client = _client(lambda request: httpx.Response(200, json={"profile": {}}))
    with pytest.raises(UpstreamApiError):
        client.profile_get_auth("broker-1")


def test_validate_credentials_uses_basic_auth():
    def handler(request):
        assert str(request.url) == OAUTH2_TOKEN_URL
        assert request.headers["Authorization"].startswith("Basic ")
        assert dict(parse_qsl(request.content.decode())) == {"grant_type": "client_credentials", "scope": "basic"}
        return httpx.Response(200, json={"access_token": "x", "expires_in": 86400})

    assert _client(handler).validate_credentials() is True


def test_validate_credentials_rejected():
    assert _client(lambda request: httpx.Response(400, json={"error": "invalid_client"})).validate_credentials() is False


def test_call_requires_user_auth():
    client = _client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(UpstreamApiError) as exc:
        client.call("food_entries.get")
    assert exc.value.status == 401


def test_call_signs_with_access_token():
    def handler(request):
        assert str(request.url.copy_with(query=None)) == API_BASE_URL
        params = _verify_signature(request, "consumer-secret", "ats")
        assert params["oauth_token"] == "at"
        assert params["method"] == "weights.get_month"
        assert params["format"] == "json"
        return httpx.Response(200, text=json.dumps({"month": {}}))

    client = _client(handler, consumer_secret="consumer-secret", access_token="at", access_token_secret="ats")
    assert client.has_user_auth
    assert client.call("weights.get_month", {"date": "20000"}) == {"month": {}}


def test_signing_secret_falls_back_to_client_secret():
    assert UpstreamClient("ck", "cs").signing_secret == "cs"
    assert UpstreamClient("ck", "cs", consumer_secret="cons").signing_secret == "cons"
