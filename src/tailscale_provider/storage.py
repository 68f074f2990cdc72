"""OAuth access token storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

from .const import TOKEN_EXPIRY_MARGIN


class TokenStorage(ABC):
    """Abstract class for token storage implementations.

    The client mints OAuth access tokens with the client credentials grant.
    A shared storage lets several provider instances reuse one token
    instead of minting a new one per configured provider.
    """

    @abstractmethod
    async def get_token(self) -> tuple[str, datetime] | None:
        """Get the stored token.

        Returns
        -------
            The stored token and expiration time, or None if no token is stored.

        """
        raise NotImplementedError

    @abstractmethod
    async def set_token(self, access_token: str, expires_at: datetime) -> None:
        """Store the given token.

        Args:
        ----
            access_token: The access token to store.
            expires_at: The expiration time of the access token.

        """
        raise NotImplementedError

    async def get_valid_token(self) -> str | None:
        """Return the stored token unless it is about to expire."""
        stored = await self.get_token()
        if stored is None:
            return None
        access_token, expires_at = stored
        margin = timedelta(seconds=TOKEN_EXPIRY_MARGIN)
        if expires_at - margin <= datetime.now(tz=UTC):
            return None
        return access_token


class InMemoryTokenStorage(TokenStorage):
    """Token storage living only as long as the client does."""

    def __init__(self) -> None:
        """Initialize an empty storage."""
        self._access_token: str | None = None
        self._expires_at: datetime | None = None

    async def get_token(self) -> tuple[str, datetime] | None:
        """Get the stored token."""
        if self._access_token and self._expires_at:
            return self._access_token, self._expires_at
        return None

    async def set_token(self, access_token: str, expires_at: datetime) -> None:
        """Store the token."""
        self._access_token = access_token
        self._expires_at = expires_at
