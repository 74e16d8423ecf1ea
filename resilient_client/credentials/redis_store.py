"""
Redis-based credential store implementation.

This module provides a Redis-backed implementation of the CredentialStore
interface so that credentials survive process restarts and can be shared
by several client processes acting for the same user.

The token pair lives in a single Redis hash. Writes replace the hash
inside one MULTI/EXEC transaction and reads use a single HMGET, so the
two tokens are always observed together.
"""

from typing import Any, Optional

from resilient_client.credentials.keys import STORAGE_KEYS
from resilient_client.credentials.store import CredentialPair, CredentialStore


DEFAULT_KEY_PREFIX = "auth"


class RedisCredentialStore(CredentialStore):
    """
    Redis-backed credential store implementation.

    Keys:
    - "<prefix>:credentials": hash with accessToken / refreshToken fields
    - "<prefix>:user": cached user record, removed with the credentials

    Attributes:
        redis_url: Redis connection URL (e.g., "redis://localhost:6379")
        key_prefix: Namespace for the keys of this store
        client: Redis async client instance (initialized via connect())
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        client: Optional[Any] = None
    ):
        """
        Initialize the Redis credential store.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
            key_prefix: Prefix for every key written by this store
            client: An already connected redis.asyncio client. When given,
                connect() is not needed.
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.client = client

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        This method must be called before using any other methods
        unless a client was passed to the constructor.
        """
        import redis.asyncio as redis
        if not self.redis_url:
            raise RuntimeError("redis_url is required to connect")
        self.client = redis.from_url(self.redis_url, decode_responses=True)

    async def disconnect(self) -> None:
        """
        Close the Redis connection.

        Should be called during application shutdown to cleanly
        release resources.
        """
        if self.client:
            await self.client.close()
            self.client = None

    @property
    def credentials_key(self) -> str:
        return f"{self.key_prefix}:credentials"

    @property
    def user_key(self) -> str:
        return f"{self.key_prefix}:{STORAGE_KEYS.user}"

    def _require_client(self) -> Any:
        if not self.client:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self.client

    async def get_tokens(self) -> Optional[CredentialPair]:
        """
        Read both tokens with a single HMGET.

        Returns:
            The stored pair, or None if no access token is stored.
        """
        client = self._require_client()
        access_token, refresh_token = await client.hmget(
            self.credentials_key,
            [STORAGE_KEYS.access_token, STORAGE_KEYS.refresh_token]
        )
        if access_token is None:
            return None
        return CredentialPair(access_token, refresh_token)

    async def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """
        Replace the stored pair in one transaction.

        The hash is deleted and rewritten inside MULTI/EXEC so a stale
        refresh token never survives next to a new access token.
        """
        client = self._require_client()
        mapping = {STORAGE_KEYS.access_token: access_token}
        if refresh_token is not None:
            mapping[STORAGE_KEYS.refresh_token] = refresh_token

        async with client.pipeline(transaction=True) as pipe:
            await pipe.delete(self.credentials_key).hset(
                self.credentials_key, mapping=mapping
            ).execute()

    async def clear_tokens(self) -> None:
        """Delete the credentials and the cached user record in one call."""
        client = self._require_client()
        await client.delete(self.credentials_key, self.user_key)

    async def health_check(self) -> bool:
        """
        Check connectivity and health of the Redis store.

        Returns:
            True if Redis is healthy and accessible, False otherwise.
        """
        if not self.client:
            return False

        try:
            result = await self.client.ping()
            return result is True
        except Exception:
            return False
