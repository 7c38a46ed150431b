"""
Pytest configuration for broker. In-memory SQLite and a fixed test key, set before
any broker module is imported.
"""
import os

import pytest

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["BROKER_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["BROKER_STORE_BACKEND"] = "sql"
os.environ["BROKER_ENCRYPTION_KEY"] = "0123456789abcdef" * 4
# TestClient talks plain http; Secure cookies would not be sent back
os.environ["BROKER_COOKIE_SECURE"] = "false"

TEST_KEY = "0123456789abcdef" * 4
REDIRECT_URI = "https://app.example/cb"


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from broker.database import init_db
    from broker.main import app

    init_db()
    return TestClient(app)


@pytest.fixture
def vault(client):
    from broker.vault import get_vault

    return get_vault()


@pytest.fixture
def registered(client):
    """A freshly registered client: dict with client_id, client_secret, redirect_uris."""
    response = client.post("/oauth2/register", json={"redirect_uris": [REDIRECT_URI], "client_name": "Test App"})
    assert response.status_code == 201
    return response.json()
