"""
Revocation registry (access-token blacklist).

Access tokens are self-contained, so logging out before they expire needs a
record of the tokens we no longer accept. An entry only has to live until the
token's own expiry: after that the codec rejects the token anyway.

Two backends share one interface:
- InMemoryRevocationRegistry: a lock-guarded dict, swept on a timer.
- RedisRevocationRegistry: keys with native TTL, shared by every instance.
"""
from __future__ import annotations

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

import redis

from utils.security import TokenCodec

logger = logging.getLogger(__name__)

# Max entries removed per lock acquisition during a sweep
SWEEP_BATCH_SIZE = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class RevocationRegistry(ABC):
    def __init__(self, codec: TokenCodec):
        self.codec = codec

    def blacklist(self, token: str) -> None:
        """
        Reject `token` from now until its own expiry. Garbage input and
        tokens already past expiry are dropped silently.
        """
        expiry = self.codec.expiry_of(token)
        if expiry is None:
            logger.debug("Ignoring unparseable token on blacklist")
            return
        if expiry <= _utcnow():
            logger.debug("Ignoring already expired token on blacklist")
            return
        self._store(token, expiry)
        logger.info("Access token %s... blacklisted until %s", token[:8], expiry.isoformat())

    @abstractmethod
    def _store(self, token: str, expiry: datetime) -> None: ...

    @abstractmethod
    def is_blacklisted(self, token: str) -> bool: ...

    @abstractmethod
    def sweep_expired(self, now: Optional[datetime] = None) -> int: ...

    @abstractmethod
    def __len__(self) -> int: ...


class InMemoryRevocationRegistry(RevocationRegistry):
    """Single-process registry; safe under Flask's threaded request handling."""

    def __init__(self, codec: TokenCodec):
        super().__init__(codec)
        self._entries: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def _store(self, token: str, expiry: datetime) -> None:
        with self._lock:
            self._entries[token] = expiry

    def is_blacklisted(self, token: str) -> bool:
        if not token:
            return False
        with self._lock:
            return token in self._entries

    def expiry_for(self, token: str) -> Optional[datetime]:
        with self._lock:
            return self._entries.get(token)

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Drop every entry whose expiry is <= now; entries expiring later are kept."""
        cutoff = _as_aware(now) if now else _utcnow()
        with self._lock:
            expired = [token for token, expiry in self._entries.items() if expiry <= cutoff]
        removed = 0
        for start in range(0, len(expired), SWEEP_BATCH_SIZE):
            with self._lock:
                for token in expired[start:start + SWEEP_BATCH_SIZE]:
                    # Re-check: the token may have been blacklisted again meanwhile
                    expiry = self._entries.get(token)
                    if expiry is not None and expiry <= cutoff:
                        del self._entries[token]
                        removed += 1
        logger.debug("Blacklist sweep removed %d expired entries", removed)
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisRevocationRegistry(RevocationRegistry):
    """Registry shared across processes; Redis expires entries on its own."""

    KEY_PREFIX = "auth:access:denylist:"

    def __init__(self, codec: TokenCodec, client: redis.Redis):
        super().__init__(codec)
        self.client = client

    @classmethod
    def from_url(cls, codec: TokenCodec, redis_url: str, *, socket_timeout: float = 5.0):
        client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(codec, client)

    def _key(self, token: str) -> str:
        return self.KEY_PREFIX + hashlib.sha256(token.encode()).hexdigest()

    def _store(self, token: str, expiry: datetime) -> None:
        ttl = max(1, int((expiry - _utcnow()).total_seconds()))
        self.client.set(self._key(token), "1", ex=ttl)

    def is_blacklisted(self, token: str) -> bool:
        if not token:
            return False
        return bool(self.client.exists(self._key(token)))

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        return 0

    def __len__(self) -> int:
        return sum(1 for _ in self.client.scan_iter(match=self.KEY_PREFIX + "*"))


def build_revocation_registry(config, codec: TokenCodec) -> RevocationRegistry:
    backend = (config.get("REVOCATION_BACKEND") or "memory").lower()
    if backend == "redis":
        logger.info("Using Redis revocation registry")
        return RedisRevocationRegistry.from_url(codec, config["REDIS_URL"])
    if backend != "memory":
        raise ValueError(f"Unknown REVOCATION_BACKEND: {backend}")
    return InMemoryRevocationRegistry(codec)
