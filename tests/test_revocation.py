import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from services.revocation import (
    InMemoryRevocationRegistry,
    RedisRevocationRegistry,
    build_revocation_registry,
)
from utils.security import TokenCodec

SECRET = "registry-test-secret"


def token_expiring_in(minutes, subject="u"):
    return TokenCodec(SECRET, expires_in=timedelta(minutes=minutes)).encode(subject)


@pytest.fixture
def registry():
    return InMemoryRevocationRegistry(TokenCodec(SECRET))


def test_blacklist_and_membership(registry):
    token = token_expiring_in(60)
    assert not registry.is_blacklisted(token)
    registry.blacklist(token)
    assert registry.is_blacklisted(token)
    assert len(registry) == 1


def test_blacklist_stores_token_expiry(registry):
    token = token_expiring_in(60)
    registry.blacklist(token)
    assert registry.expiry_for(token) == registry.codec.expiry_of(token)


def test_blacklist_is_idempotent(registry):
    token = token_expiring_in(60)
    registry.blacklist(token)
    registry.blacklist(token)
    assert registry.is_blacklisted(token)
    assert len(registry) == 1


def test_garbage_and_foreign_tokens_are_dropped(registry):
    registry.blacklist("not-a-token")
    registry.blacklist("")
    registry.blacklist(TokenCodec("other-secret").encode("u"))
    assert len(registry) == 0
    assert not registry.is_blacklisted("not-a-token")
    assert not registry.is_blacklisted("")


def test_already_expired_token_is_not_stored(registry):
    codec = TokenCodec(SECRET)
    stale = codec.encode("u", now=datetime.now(timezone.utc) - timedelta(hours=2))
    registry.blacklist(stale)
    assert len(registry) == 0


def test_sweep_removes_exactly_the_expired_entries(registry):
    tokens = {minutes: token_expiring_in(minutes, subject=str(minutes)) for minutes in (5, 10, 20, 40, 90)}
    for token in tokens.values():
        registry.blacklist(token)
    cutoff = datetime.now(timezone.utc) + timedelta(minutes=30)
    before = {t: registry.expiry_for(t) for t in tokens.values()}

    removed = registry.sweep_expired(cutoff)

    assert removed == 3
    for token, expiry in before.items():
        if expiry <= cutoff:
            assert not registry.is_blacklisted(token)
        else:
            assert registry.is_blacklisted(token)
            assert registry.expiry_for(token) > cutoff


def test_sweep_accepts_naive_utc(registry):
    registry.blacklist(token_expiring_in(5))
    naive_cutoff = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(minutes=10)
    assert registry.sweep_expired(naive_cutoff) == 1


def test_sweep_with_nothing_expired_keeps_everything(registry):
    token = token_expiring_in(60)
    registry.blacklist(token)
    assert registry.sweep_expired() == 0
    assert registry.is_blacklisted(token)


def test_concurrent_blacklist_and_sweep(registry):
    tokens = [token_expiring_in(60, subject=str(i)) for i in range(200)]

    def writer(chunk):
        for token in chunk:
            registry.blacklist(token)

    def sweeper():
        for _ in range(20):
            registry.sweep_expired()

    threads = [threading.Thread(target=writer, args=(tokens[i::4],)) for i in range(4)]
    threads.append(threading.Thread(target=sweeper))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(registry) == 200
    assert all(registry.is_blacklisted(t) for t in tokens)


def test_redis_registry_sets_key_with_ttl():
    client = MagicMock()
    registry = RedisRevocationRegistry(TokenCodec(SECRET), client)
    token = token_expiring_in(10)

    registry.blacklist(token)

    client.set.assert_called_once()
    key, value = client.set.call_args.args
    assert key.startswith(RedisRevocationRegistry.KEY_PREFIX)
    assert token not in key
    assert value == "1"
    assert 0 < client.set.call_args.kwargs["ex"] <= 600


def test_redis_registry_membership_uses_exists():
    client = MagicMock()
    client.exists.return_value = 1
    registry = RedisRevocationRegistry(TokenCodec(SECRET), client)
    token = token_expiring_in(10)

    assert registry.is_blacklisted(token) is True
    client.exists.assert_called_once_with(registry._key(token))

    client.exists.return_value = 0
    assert registry.is_blacklisted(token) is False


def test_redis_registry_ignores_garbage_and_never_sweeps():
    client = MagicMock()
    registry = RedisRevocationRegistry(TokenCodec(SECRET), client)
    registry.blacklist("garbage")
    client.set.assert_not_called()
    assert registry.sweep_expired() == 0


def test_build_registry_selects_backend():
    codec = TokenCodec(SECRET)
    assert isinstance(build_revocation_registry({"REVOCATION_BACKEND": "memory"}, codec),
                      InMemoryRevocationRegistry)
    redis_registry = build_revocation_registry(
        {"REVOCATION_BACKEND": "redis", "REDIS_URL": "redis://localhost:6379/9"}, codec
    )
    assert isinstance(redis_registry, RedisRevocationRegistry)
    with pytest.raises(ValueError):
        build_revocation_registry({"REVOCATION_BACKEND": "etcd"}, codec)
