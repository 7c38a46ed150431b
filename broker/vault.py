"""
Session/Credential Vault: typed records over four Keyed Store namespaces.
Sessions, upstream OAuth state, registered clients and authorization codes
reference each other only by opaque token.
"""
import logging
import secrets

from broker.config import (
    CLIENT_TTL_SECONDS,
    CODE_TTL_SECONDS,
    ENCRYPTION_KEY,
    OAUTH_STATE_TTL_SECONDS,
    SESSION_TTL_SECONDS,
    STORE_BACKEND,
)
from broker.crypto import sha256_hex
from broker.kv_store import KeyedStore, KeyValueBackend, build_backend
from broker.models import AuthorizationCodeGrant, RegisteredClient, UpstreamOAuthState, UpstreamSession
from upstream.client import UpstreamClient
from upstream.flow import RequestTokenObtained

logger = logging.getLogger(__name__)


def generate_token() -> str:
    """32 random bytes as 64 lowercase hex chars (session tokens, client ids/secrets, codes, state)."""
    return secrets.token_hex(32)


def mask_secret(value: str) -> str:
    """Show only the last 4 characters, at most 20 stars before them."""
    if len(value) <= 4:
        return "****"
    return "*" * min(len(value) - 4, 20) + value[-4:]


def upstream_client_for(session: UpstreamSession) -> UpstreamClient:
    """Client bound to the session's consumer credentials and, when present, its access tokens."""
    if not session.consumer_secret:
        logger.warning(
            "No consumer secret for %s; signing OAuth 1.0a requests with the client secret",
            mask_secret(session.client_id),
        )
    return UpstreamClient(
        session.client_id,
        session.client_secret,
        consumer_secret=session.consumer_secret,
        access_token=session.access_token,
        access_token_secret=session.access_token_secret,
    )


class Vault:
    def __init__(
        self,
        backend: KeyValueBackend,
        key_hex: str,
        *,
        session_ttl: int = SESSION_TTL_SECONDS,
        state_ttl: int = OAUTH_STATE_TTL_SECONDS,
        client_ttl: int = CLIENT_TTL_SECONDS,
        code_ttl: int = CODE_TTL_SECONDS,
    ):
        self.sessions = KeyedStore(backend, key_hex, "session")
        self.states = KeyedStore(backend, key_hex, "oauth_state")
        self.clients = KeyedStore(backend, key_hex, "oauth2_client")
        self.codes = KeyedStore(backend, key_hex, "oauth2_code")
        self.session_ttl = session_ttl
        self.state_ttl = state_ttl
        self.client_ttl = client_ttl
        self.code_ttl = code_ttl

    # --- sessions ---

    def create_session(self, session: UpstreamSession) -> str:
        token = generate_token()
        self.sessions.put(token, session.to_dict(), self.session_ttl)
        return token

    def get_session(self, token: str) -> UpstreamSession | None:
        if not token:
            return None
        data = self.sessions.get(token)
        return UpstreamSession.from_dict(data) if data is not None else None

    def save_session(self, token: str, session: UpstreamSession) -> None:
        """Overwrite in place; the TTL restarts."""
        self.sessions.put(token, session.to_dict(), self.session_ttl)

    def delete_session(self, token: str) -> None:
        self.sessions.delete(token)

    # --- upstream three-legged state ---

    def store_oauth_state(self, session_token: str, request_token: RequestTokenObtained) -> str:
        state = generate_token()
        record = UpstreamOAuthState(
            session_token=session_token,
            request_token=request_token.token,
            request_token_secret=request_token.secret,
        )
        self.states.put(state, record.to_dict(), self.state_ttl)
        return state

    def consume_oauth_state(self, state: str) -> UpstreamOAuthState | None:
        if not state:
            return None
        data = self.states.consume(state)
        return UpstreamOAuthState.from_dict(data) if data is not None else None

    # --- registered clients ---

    def register_client(
        self,
        redirect_uris: list[str],
        client_name: str | None = None,
        grant_types: list[str] | None = None,
        response_types: list[str] | None = None,
    ) -> tuple[RegisteredClient, str]:
        """Returns (client, plaintext secret). The secret is not recoverable afterwards."""
        client_secret = generate_token()
        client = RegisteredClient(
            client_id=generate_token(),
            client_secret_hash=sha256_hex(client_secret),
            redirect_uris=list(redirect_uris),
            client_name=client_name,
            grant_types=grant_types or ["authorization_code"],
            response_types=response_types or ["code"],
        )
        self.clients.put(client.client_id, client.to_dict(), self.client_ttl)
        logger.info("Registered client client_id=%s redirect_uris=%d", client.client_id, len(redirect_uris))
        return client, client_secret

    def get_client(self, client_id: str) -> RegisteredClient | None:
        if not client_id:
            return None
        data = self.clients.get(client_id)
        return RegisteredClient.from_dict(data) if data is not None else None

    # --- authorization codes ---

    def issue_code(
        self,
        client_id: str,
        redirect_uri: str,
        code_challenge: str,
        session_token: str,
        scope: str,
    ) -> str:
        code = generate_token()
        grant = AuthorizationCodeGrant(
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            session_token=session_token,
            scope=scope,
        )
        self.codes.put(code, grant.to_dict(), self.code_ttl)
        return code

    def consume_code(self, code: str) -> AuthorizationCodeGrant | None:
        if not code:
            return None
        data = self.codes.consume(code)
        return AuthorizationCodeGrant.from_dict(data) if data is not None else None


_vault: Vault | None = None


def get_vault() -> Vault:
    """Dependency: process-wide Vault built from configuration on first use."""
    global _vault
    if _vault is None:
        _vault = Vault(build_backend(STORE_BACKEND), ENCRYPTION_KEY)
    return _vault
