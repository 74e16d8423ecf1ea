"""
Unit tests for the credential stores.

These tests verify:
- The token pair is read and replaced as a unit
- clear_tokens removes credentials and the cached user record
- The Redis store writes the pair in one transaction
"""

import asyncio

import pytest

from resilient_client.credentials.keys import STORAGE_KEYS
from resilient_client.credentials.memory_store import InMemoryCredentialStore
from resilient_client.credentials.redis_store import RedisCredentialStore
from resilient_client.credentials.store import CredentialPair


class TestInMemoryCredentialStore:
    """Tests for InMemoryCredentialStore."""

    @pytest.mark.asyncio
    async def test_empty_store(self):
        store = InMemoryCredentialStore()

        assert await store.get_tokens() is None
        assert await store.get_access_token() is None
        assert await store.get_refresh_token() is None

    @pytest.mark.asyncio
    async def test_initial_pair(self, credential_store):
        assert await credential_store.get_tokens() == CredentialPair("old-access", "old-refresh")
        assert await credential_store.get_access_token() == "old-access"
        assert await credential_store.get_refresh_token() == "old-refresh"

    @pytest.mark.asyncio
    async def test_set_tokens_replaces_whole_pair(self, credential_store):
        await credential_store.set_tokens("new-access")

        assert await credential_store.get_tokens() == CredentialPair("new-access", None)

    @pytest.mark.asyncio
    async def test_clear_tokens_removes_user(self, credential_store):
        credential_store.user = {"id": 7}

        await credential_store.clear_tokens()
        await credential_store.clear_tokens()

        assert await credential_store.get_tokens() is None
        assert credential_store.user is None

    @pytest.mark.asyncio
    async def test_readers_never_see_mixed_pair(self, credential_store):
        seen = []

        async def reader():
            for _ in range(20):
                seen.append(await credential_store.get_tokens())
                await asyncio.sleep(0)

        async def writer():
            for i in range(20):
                await credential_store.set_tokens(f"access-{i}", f"refresh-{i}")
                await asyncio.sleep(0)

        await asyncio.gather(reader(), writer())

        for pair in seen:
            assert pair.access_token.replace("access", "") == pair.refresh_token.replace("refresh", "")

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await InMemoryCredentialStore().health_check() is True

    def test_pair_is_immutable(self):
        pair = CredentialPair("a", "r")

        with pytest.raises(AttributeError):
            pair.access_token = "b"


class TestRedisCredentialStore:
    """Tests for RedisCredentialStore against an in-memory Redis double."""

    @pytest.mark.asyncio
    async def test_set_and_get_tokens(self, fake_redis):
        store = RedisCredentialStore(key_prefix="user-42", client=fake_redis)

        await store.set_tokens("access", "refresh")

        assert await store.get_tokens() == CredentialPair("access", "refresh")
        assert fake_redis.data["user-42:credentials"] == {
            STORAGE_KEYS.access_token: "access",
            STORAGE_KEYS.refresh_token: "refresh",
        }
        assert fake_redis.executed_transactions == 1

    @pytest.mark.asyncio
    async def test_set_tokens_drops_stale_refresh_token(self, fake_redis):
        store = RedisCredentialStore(client=fake_redis)
        await store.set_tokens("access-1", "refresh-1")

        await store.set_tokens("access-2")

        assert await store.get_tokens() == CredentialPair("access-2", None)

    @pytest.mark.asyncio
    async def test_missing_credentials(self, fake_redis):
        store = RedisCredentialStore(client=fake_redis)

        assert await store.get_tokens() is None
        assert await store.get_access_token() is None

    @pytest.mark.asyncio
    async def test_clear_tokens_removes_user_record(self, fake_redis):
        store = RedisCredentialStore(client=fake_redis)
        await store.set_tokens("access", "refresh")
        fake_redis.data[store.user_key] = {"id": "7"}

        await store.clear_tokens()

        assert await store.get_tokens() is None
        assert fake_redis.data == {}

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        store = RedisCredentialStore(redis_url="redis://localhost:6379/0")

        with pytest.raises(RuntimeError, match="not connected"):
            await store.get_tokens()

    @pytest.mark.asyncio
    async def test_connect_requires_url(self):
        with pytest.raises(RuntimeError, match="redis_url"):
            await RedisCredentialStore().connect()

    @pytest.mark.asyncio
    async def test_health_check(self, fake_redis):
        assert await RedisCredentialStore().health_check() is False
        assert await RedisCredentialStore(client=fake_redis).health_check() is True

    @pytest.mark.asyncio
    async def test_disconnect_releases_client(self, fake_redis):
        store = RedisCredentialStore(client=fake_redis)

        await store.disconnect()

        assert store.client is None

    def test_keys_use_prefix(self):
        store = RedisCredentialStore(key_prefix="tenant:9")

        assert store.credentials_key == "tenant:9:credentials"
        assert store.user_key == "tenant:9:user"
