"""
Resilient API client.

An httpx-based request layer that retries transient failures with
exponential backoff and jitter, and refreshes an expired access token
exactly once no matter how many requests fail with 401 concurrently.
"""

from resilient_client.client import ResilientClient, create_client, create_credential_store
from resilient_client.config.settings import ClientConfig, Settings
from resilient_client.credentials import (
    CredentialPair,
    CredentialStore,
    InMemoryCredentialStore,
    RedisCredentialStore,
)
from resilient_client.errors import (
    ApiClientException,
    ErrorCategory,
    ErrorCode,
    RequestFailedError,
    SessionExpiredError,
)
from resilient_client.resilience import RetryExhaustedException
from resilient_client.transport import ApiRequest, Outcome

__version__ = "0.1.0"

__all__ = [
    "ApiClientException",
    "ApiRequest",
    "ClientConfig",
    "CredentialPair",
    "CredentialStore",
    "ErrorCategory",
    "ErrorCode",
    "InMemoryCredentialStore",
    "Outcome",
    "RedisCredentialStore",
    "RequestFailedError",
    "ResilientClient",
    "RetryExhaustedException",
    "SessionExpiredError",
    "Settings",
    "create_client",
    "create_credential_store",
]
