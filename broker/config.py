"""
Broker configuration. Read once at import; components take these as arguments.
No secrets in this file; the encryption key comes from env.
"""
import os

# 64 hex chars (256-bit AES key). Validated at startup, not here.
ENCRYPTION_KEY = os.environ.get("BROKER_ENCRYPTION_KEY", "")

# Backing store for the encrypted key-value table
DATABASE_URL = os.environ.get("BROKER_DATABASE_URL", "sqlite:///./broker.db")

# "sql" (default) or "memory" (process-local, development only)
STORE_BACKEND = os.environ.get("BROKER_STORE_BACKEND", "sql").strip().lower()

# Session cookie carries Secure unless explicitly disabled (plain-http local dev)
COOKIE_SECURE = os.environ.get("BROKER_COOKIE_SECURE", "true").strip().lower() not in ("0", "false", "no")

LOG_LEVEL = os.environ.get("BROKER_LOG_LEVEL", "INFO").upper()

# Fixed lifetimes (seconds); not configurable
SESSION_TTL_SECONDS = 30 * 24 * 60 * 60
OAUTH_STATE_TTL_SECONDS = 10 * 60
CLIENT_TTL_SECONDS = 90 * 24 * 60 * 60
CODE_TTL_SECONDS = 10 * 60

# Single fixed scope; no authorization policy
SCOPE = "mcp"

# Input bounds
MAX_CREDENTIAL_LENGTH = 500
MAX_TOKEN_LENGTH = 200
MAX_REDIRECT_URI_LENGTH = 2000
MAX_REDIRECT_URIS = 10
MAX_CALLBACK_URL_LENGTH = 2000
MAX_CLIENT_NAME_LENGTH = 200

SESSION_COOKIE = "broker_session"
OAUTH_STATE_COOKIE = "oauth_state"
