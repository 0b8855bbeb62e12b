"""
Storage Provider Adapter Interface for CloudMusic.

Hey future me - this is THE contract every storage provider (Dropbox, Yandex Disk, ...)
implements! The engine never talks HTTP itself, it only calls these four methods.

Rules for implementations:
1. Return domain DTOs (RemoteFile, TokenGrant) - NEVER raw JSON
2. Transport problems (network, timeout, 5xx) -> AdapterIOError
3. Credential problems (revoked refresh token, 401/403) -> AdapterAuthError
4. Don't retry internally - retry policy belongs to the caller
5. Register the adapter in StorageAdapterRegistry at startup
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cloudmusic.domain.entities import (
        CatalogEntry,
        ProviderLink,
        ProviderType,
        RemoteFile,
    )


@dataclass(frozen=True)
class TokenGrant:
    """Result of a token refresh.

    Hey future me - refresh_token is None when the provider didn't rotate it.
    Keep the old one in that case!
    """

    access_token: bytes
    expires_in: int
    refresh_token: bytes | None = None

    def __repr__(self) -> str:
        return f"TokenGrant(expires_in={self.expires_in}, rotated={self.refresh_token is not None})"


class IStorageProviderAdapter(ABC):
    """Capability-checked client for one external storage provider."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name for logs and errors."""
        pass

    @abstractmethod
    def can_handle(self, provider_type: ProviderType) -> bool:
        """Check whether this adapter serves the given provider type."""
        pass

    @abstractmethod
    async def refresh_access_token(self, refresh_token: bytes) -> TokenGrant:
        """Exchange a refresh token for a new access token.

        Raises:
            AdapterAuthError: Refresh token is invalid or revoked
            AdapterIOError: Transport failure
        """
        pass

    @abstractmethod
    async def list_files(self, link: ProviderLink) -> list[RemoteFile]:
        """List all audio files reachable through the link's access token.

        Raises:
            AdapterIOError: Transport failure
            AdapterAuthError: Access token rejected
        """
        pass

    @abstractmethod
    async def resolve_url(self, entry: CatalogEntry, link: ProviderLink) -> str:
        """Resolve a playable (usually temporary) URL for a catalog entry.

        Raises:
            AdapterIOError: Transport failure
            AdapterAuthError: Access token rejected
        """
        pass

    async def close(self) -> None:
        """Release HTTP resources. Default: nothing to release."""
        return None


class IStorageAdapterRegistry(ABC):
    """Lookup of adapters by provider type."""

    @abstractmethod
    def get(self, provider_type: ProviderType) -> IStorageProviderAdapter | None:
        """Get the adapter for a provider type, or None."""
        pass

    @abstractmethod
    def require(self, provider_type: ProviderType) -> IStorageProviderAdapter:
        """Get the adapter for a provider type.

        Raises:
            NoAdapterFoundException: If no adapter handles the type
        """
        pass


__all__ = ["IStorageAdapterRegistry", "IStorageProviderAdapter", "TokenGrant"]
