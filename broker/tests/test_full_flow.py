"""
End-to-end: register -> credentials view -> credentials submit -> consent on return
-> allow -> token exchange -> session API with the issued access token.
"""
from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

from broker.config import SESSION_COOKIE
from broker.pkce import generate_pkce
from upstream.client import UpstreamClient
from upstream.flow import AccessTokenObtained

REDIRECT_URI = "http://localhost:8765/callback"


def _query(location: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(location).query).items()}


def _token_form(registration: dict, code: str, verifier: str) -> dict[str, str]:
    return {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": REDIRECT_URI,
        "client_id": registration["client_id"],
        "client_secret": registration["client_secret"],
        "code_verifier": verifier,
    }


def test_authorization_code_flow(client):
    registration = client.post(
        "/oauth2/register", json={"redirect_uris": [REDIRECT_URI], "client_name": "Desktop Agent"}
    ).json()
    verifier, challenge = generate_pkce()
    params = {
        "response_type": "code",
        "client_id": registration["client_id"],
        "redirect_uri": REDIRECT_URI,
        "code_challenge": challenge,
        "code_challenge_method": "S256",
        "state": "first",
    }

    # First visit: no session, so credentials are collected
    page = client.get("/oauth2/authorize", params=params)
    assert 'value="credentials"' in page.text
    assert "Desktop Agent" in page.text

    form = {k: v for k, v in params.items() if k != "response_type"}
    with patch.object(UpstreamClient, "validate_credentials", return_value=True), patch.object(
        UpstreamClient, "obtain_profile_tokens", return_value=AccessTokenObtained(token="pt", secret="ps")
    ):
        submitted = client.post(
            "/oauth2/authorize",
            data={
                **form,
                "action": "credentials",
                "upstream_client_id": "consumer-key-5678",
                "upstream_client_secret": "client-secret",
                "upstream_consumer_secret": "consumer-secret",
            },
            follow_redirects=False,
        )
    assert submitted.status_code == 302
    first_code = _query(submitted.headers["location"])["code"]
    assert client.cookies.get(SESSION_COOKIE)

    token = client.post("/oauth2/token", data=_token_form(registration, first_code, verifier))
    assert token.status_code == 200
    access_token = token.json()["access_token"]
    assert access_token == client.cookies.get(SESSION_COOKIE)

    # Second visit: the session cookie is carried, so only consent is asked
    verifier2, challenge2 = generate_pkce()
    page = client.get("/oauth2/authorize", params={**params, "code_challenge": challenge2, "state": "second"})
    assert "Authorize Access" in page.text
    assert "*" * 13 + "5678" in page.text

    allowed = client.post(
        "/oauth2/authorize",
        data={**form, "code_challenge": challenge2, "state": "second", "action": "allow"},
        follow_redirects=False,
    )
    assert allowed.status_code == 302
    query = _query(allowed.headers["location"])
    assert query["state"] == "second"

    second = client.post("/oauth2/token", data=_token_form(registration, query["code"], verifier2))
    assert second.json()["access_token"] == access_token

    reused = client.post("/oauth2/token", data=_token_form(registration, query["code"], verifier2))
    assert reused.status_code == 400
    assert reused.json()["error"] == "invalid_grant"

    client.cookies.clear()
    info = client.get("/api/session", headers={"Authorization": f"Bearer {access_token}"})
    assert info.status_code == 200
    assert info.json()["has_upstream_tokens"] is True
    assert info.json()["client_id"].endswith("5678")
