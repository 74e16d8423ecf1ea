"""In-process credential store used by tests and short-lived scripts."""

from typing import Any, Optional

from resilient_client.credentials.store import CredentialPair, CredentialStore


class InMemoryCredentialStore(CredentialStore):
    """
    Credential store that keeps the pair in a single attribute.

    Replacing the pair is one reference assignment, so concurrent readers
    see either the old pair or the new pair, never a mix.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None
    ):
        self._tokens: Optional[CredentialPair] = None
        self.user: Optional[dict[str, Any]] = None
        if access_token is not None:
            self._tokens = CredentialPair(access_token, refresh_token)

    async def get_tokens(self) -> Optional[CredentialPair]:
        return self._tokens

    async def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        self._tokens = CredentialPair(access_token, refresh_token)

    async def clear_tokens(self) -> None:
        self._tokens = None
        self.user = None

    def __repr__(self) -> str:
        return f"InMemoryCredentialStore(has_tokens={self._tokens is not None})"
