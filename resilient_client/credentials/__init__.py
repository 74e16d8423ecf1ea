"""
Credential storage for the resilient API client.

This module provides the CredentialStore abstraction through which the
request layer reads and replaces the access/refresh token pair, with an
in-memory implementation and a Redis-backed persistent implementation.
"""

from resilient_client.credentials.keys import STORAGE_KEYS
from resilient_client.credentials.memory_store import InMemoryCredentialStore
from resilient_client.credentials.redis_store import DEFAULT_KEY_PREFIX, RedisCredentialStore
from resilient_client.credentials.store import CredentialPair, CredentialStore

__all__ = [
    "STORAGE_KEYS",
    "CredentialPair",
    "CredentialStore",
    "InMemoryCredentialStore",
    "RedisCredentialStore",
    "DEFAULT_KEY_PREFIX",
]
