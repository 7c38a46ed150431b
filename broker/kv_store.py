"""
Keyed Store: encrypted, namespaced, TTL-bounded records over a pluggable backend.
Logical keys are SHA-256 hashed before they reach the backend; values are always
Encryption Unit blobs of the JSON record.
"""
import json
import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

from sqlalchemy import delete
from sqlalchemy.orm import Session

from broker.crypto import DecryptionError, decrypt, encrypt, sha256_hex
from broker.database import SessionLocal
from broker.errors import safe_log_error
from broker.models import StoreEntry

logger = logging.getLogger(__name__)


class KeyValueBackend(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> bool:
        """True only when this call removed a live record."""
        ...


def _utc_now() -> datetime:
    # Naive UTC; the DateTime column carries no zone
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlBackend:
    """
    kv_entries table. Expired rows read as absent; they are removed on read and
    swept on every write.
    delete() is a single DELETE ... WHERE key AND not expired, so among concurrent
    consumers only one sees rowcount 1.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        db = self._session_factory()
        try:
            entry = db.get(StoreEntry, key)
            if entry is None:
                return None
            if entry.expires_at <= _utc_now():
                db.delete(entry)
                db.commit()
                return None
            return entry.value
        finally:
            db.close()

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Writes also purge every expired row, so abandoned codes and states do not pile up."""
        db = self._session_factory()
        try:
            now = _utc_now()
            db.execute(delete(StoreEntry).where(StoreEntry.expires_at <= now))
            db.merge(
                StoreEntry(
                    key=key,
                    value=value,
                    expires_at=now + timedelta(seconds=ttl_seconds),
                    created_at=now,
                )
            )
            db.commit()
        finally:
            db.close()

    def delete(self, key: str) -> bool:
        db = self._session_factory()
        try:
            result = db.execute(
                delete(StoreEntry).where(StoreEntry.key == key, StoreEntry.expires_at > _utc_now())
            )
            db.commit()
            return result.rowcount > 0
        finally:
            db.close()


class MemoryBackend:
    """Process-local dict with monotonic expiry. Development and unit tests only."""

    def __init__(self):
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= time.monotonic():
                del self._entries[key]
                return None
            return value

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            now = time.monotonic()
            for stale in [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]:
                del self._entries[stale]
            self._entries[key] = (value, now + ttl_seconds)

    def delete(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.pop(key, None)
            return entry is not None and entry[1] > time.monotonic()


class KeyedStore:
    """One namespace of encrypted records, e.g. KeyedStore(backend, key, "session")."""

    def __init__(self, backend: KeyValueBackend, key_hex: str, namespace: str):
        self._backend = backend
        self._key_hex = key_hex
        self.namespace = namespace

    def _storage_key(self, key: str) -> str:
        return f"{self.namespace}:{sha256_hex(key)}"

    def _open(self, blob: str) -> dict[str, Any] | None:
        try:
            record = json.loads(decrypt(blob, self._key_hex))
        except (DecryptionError, ValueError) as e:
            safe_log_error(f"Failed to decrypt {self.namespace} record", e)
            return None
        if not isinstance(record, dict):
            logger.error("Stored %s record is not an object", self.namespace)
            return None
        return record

    def put(self, key: str, record: dict[str, Any], ttl_seconds: int) -> None:
        blob = encrypt(json.dumps(record, separators=(",", ":")), self._key_hex)
        self._backend.put(self._storage_key(key), blob, ttl_seconds)

    def get(self, key: str) -> dict[str, Any] | None:
        blob = self._backend.get(self._storage_key(key))
        if blob is None:
            return None
        return self._open(blob)

    def delete(self, key: str) -> None:
        self._backend.delete(self._storage_key(key))

    def consume(self, key: str) -> dict[str, Any] | None:
        """
        Single-use read. A record that fails to decrypt stays in place.
        Returns the record only if this call's delete removed it.
        """
        storage_key = self._storage_key(key)
        blob = self._backend.get(storage_key)
        if blob is None:
            return None
        record = self._open(blob)
        if record is None:
            return None
        if not self._backend.delete(storage_key):
            logger.info("Concurrent consume lost for %s record", self.namespace)
            return None
        return record


def build_backend(kind: str) -> KeyValueBackend:
    if kind == "memory":
        return MemoryBackend()
    if kind == "sql":
        return SqlBackend(SessionLocal)
    raise ValueError(f"Unknown store backend: {kind!r}")
