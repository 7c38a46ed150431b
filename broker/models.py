"""
Storage model and vault records.
kv_entries is the only table: hashed key -> encrypted JSON record, with per-row expiry.
The record dataclasses are what the vault encrypts into it; they reference each other
by opaque token only.
"""
import time
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _now_ms() -> int:
    return int(time.time() * 1000)


class Base(DeclarativeBase):
    pass


class StoreEntry(Base):
    __tablename__ = "kv_entries"

    # "<namespace>:<sha256 hex>"; raw tokens never reach the table
    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    # base64 AES-GCM blob
    value: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)


class _Record:
    """JSON round-trip for the vault records; unknown keys are ignored on load."""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class UpstreamSession(_Record):
    """
    One end-user's link to the upstream provider. Without access_token it is
    "unauthenticated upstream": usable to start a dance, not to call the API.
    """

    client_id: str
    client_secret: str
    consumer_secret: str | None = None
    profile_id: str | None = None
    access_token: str | None = None
    access_token_secret: str | None = None
    user_id: str | None = None
    created_at: int = field(default_factory=_now_ms)

    @property
    def has_upstream_tokens(self) -> bool:
        return bool(self.access_token and self.access_token_secret)

    @property
    def signing_secret(self) -> str:
        return self.consumer_secret or self.client_secret


@dataclass
class UpstreamOAuthState(_Record):
    """In-flight three-legged dance, keyed by the broker-chosen state value."""

    session_token: str
    request_token: str
    request_token_secret: str
    created_at: int = field(default_factory=_now_ms)


@dataclass
class RegisteredClient(_Record):
    client_id: str
    client_secret_hash: str  # SHA-256 hex; plaintext is never stored
    redirect_uris: list[str]
    client_name: str | None = None
    grant_types: list[str] = field(default_factory=lambda: ["authorization_code"])
    response_types: list[str] = field(default_factory=lambda: ["code"])
    created_at: int = field(default_factory=_now_ms)

    def redirect_uri_allowed(self, uri: str) -> bool:
        return uri in self.redirect_uris


@dataclass
class AuthorizationCodeGrant(_Record):
    client_id: str
    redirect_uri: str
    code_challenge: str  # base64url SHA-256 (S256)
    session_token: str  # becomes the access_token
    scope: str
    created_at: int = field(default_factory=_now_ms)
