"""Tests for /api/session and the WWW-Authenticate challenge on session-protected routes."""
import pytest

from broker.config import SESSION_COOKIE
from broker.models import UpstreamSession


@pytest.fixture
def session_token(vault):
    return vault.create_session(
        UpstreamSession(
            client_id="consumer-key-1234",
            client_secret="client-secret",
            consumer_secret="consumer-secret",
            profile_id="mcp-abc",
            access_token="at",
            access_token_secret="ats",
            user_id="42",
        )
    )


def test_missing_token_gets_challenge(client):
    response = client.get("/api/session")
    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"
    challenge = response.headers["www-authenticate"]
    assert challenge == (
        'Bearer realm="http://testserver/mcp", '
        'resource_metadata="http://testserver/.well-known/oauth-protected-resource/mcp"'
    )


def test_unknown_token_gets_invalid_token_challenge(client):
    response = client.get("/api/session", headers={"Authorization": "Bearer " + "f" * 64})
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_token"
    assert response.headers["www-authenticate"].endswith(', error="invalid_token"')


def test_oversized_token_is_invalid(client):
    response = client.get("/api/session", headers={"Authorization": "Bearer " + "a" * 201})
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_token"


def test_session_info_is_masked(client, session_token):
    response = client.get("/api/session", headers={"Authorization": f"Bearer {session_token}"})
    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    body = response.json()
    assert body["client_id"] == "*" * 13 + "1234"
    assert body["has_upstream_tokens"] is True
    assert body["upstream_user_id"] == "42"
    assert body["profile_id"] == "mcp-abc"
    assert isinstance(body["created_at"], int)
    for secret in ("client-secret", "consumer-secret", "ats", "consumer-key-1234"):
        assert secret not in response.text


def test_session_info_via_cookie(client, session_token):
    client.cookies.set(SESSION_COOKIE, session_token)
    response = client.get("/api/session")
    assert response.status_code == 200
    assert response.json()["upstream_user_id"] == "42"


def test_bearer_takes_precedence_over_cookie(client, vault, session_token):
    other = vault.create_session(UpstreamSession(client_id="other-key-9999", client_secret="cs"))
    client.cookies.set(SESSION_COOKIE, session_token)
    response = client.get("/api/session", headers={"Authorization": f"Bearer {other}"})
    assert response.json()["client_id"].endswith("9999")
    assert response.json()["has_upstream_tokens"] is False


def test_delete_session(client, vault, session_token):
    response = client.delete("/api/session", headers={"Authorization": f"Bearer {session_token}"})
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert f"{SESSION_COOKIE}=" in response.headers["set-cookie"]
    assert vault.get_session(session_token) is None

    after = client.get("/api/session", headers={"Authorization": f"Bearer {session_token}"})
    assert after.status_code == 401
    assert after.json()["error"] == "invalid_token"


def test_delete_session_is_idempotent(client, session_token):
    headers = {"Authorization": f"Bearer {session_token}"}
    assert client.delete("/api/session", headers=headers).json() == {"success": True}
    assert client.delete("/api/session", headers=headers).json() == {"success": True}
    assert client.delete("/api/session").json() == {"success": True}
