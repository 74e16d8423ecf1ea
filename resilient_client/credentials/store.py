"""
Credential store abstraction for the resilient API client.

The request layer never touches ambient global state for tokens. It reads
and writes the access/refresh token pair only through a CredentialStore
injected at construction time, which keeps the single-writer invariant
visible at the call sites.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CredentialPair:
    """
    An access token and its refresh token.

    Instances are immutable. A store replaces the whole pair on refresh,
    so a reader never sees a new access token next to an old refresh token.
    """
    access_token: str
    refresh_token: Optional[str] = None


class CredentialStore(ABC):
    """
    Abstract base class for credential storage implementations.

    All methods are async so that persistent implementations (Redis)
    can perform non-blocking I/O.
    """

    @abstractmethod
    async def get_tokens(self) -> Optional[CredentialPair]:
        """
        Read the access and refresh tokens together.

        Returns:
            The stored pair, or None if no credential is stored.
        """
        pass

    @abstractmethod
    async def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """
        Replace the stored pair in a single write.

        Args:
            access_token: The new access token.
            refresh_token: The new refresh token, if the backend issued one.
        """
        pass

    @abstractmethod
    async def clear_tokens(self) -> None:
        """
        Remove the stored credentials and the cached user record.

        This operation is idempotent.
        """
        pass

    async def get_access_token(self) -> Optional[str]:
        tokens = await self.get_tokens()
        return tokens.access_token if tokens else None

    async def get_refresh_token(self) -> Optional[str]:
        tokens = await self.get_tokens()
        return tokens.refresh_token if tokens else None

    async def health_check(self) -> bool:
        """
        Check that the store is reachable.

        Returns:
            True if the store is healthy. Implementations should not raise.
        """
        return True
