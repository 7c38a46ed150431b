"""
Client authentication for dynamically registered clients (client_secret_post).
Only the SHA-256 hex of the secret is stored; comparison is constant-time.
"""
import hmac
import logging

from broker.crypto import sha256_hex
from broker.errors import OAuthError
from broker.models import RegisteredClient
from broker.vault import Vault

logger = logging.getLogger(__name__)


def verify_client_secret(client: RegisteredClient, client_secret: str) -> bool:
    presented = sha256_hex(client_secret).encode("ascii")
    return hmac.compare_digest(presented, client.client_secret_hash.encode("ascii"))


def require_client_auth(vault: Vault, client_id: str, client_secret: str) -> RegisteredClient:
    """
    Resolve and authenticate the client. Unknown client or wrong secret is
    401 invalid_client. Returns the RegisteredClient.
    """
    client = vault.get_client(client_id)
    if client is None:
        raise OAuthError("invalid_client", "Unknown client", status_code=401)
    if not verify_client_secret(client, client_secret):
        logger.info("Client authentication failed: client_id=%s", client_id)
        raise OAuthError("invalid_client", "Invalid client credentials", status_code=401)
    return client
