"""Domain ports (interfaces) for dependency inversion."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from types import TracebackType

from cloudmusic.domain.entities import CatalogEntry, ProviderLink, ProviderType
from cloudmusic.domain.ports.storage_provider import (
    IStorageAdapterRegistry,
    IStorageProviderAdapter,
    TokenGrant,
)
from cloudmusic.domain.value_objects import CatalogEntryId, ProviderLinkId


# Hey future me, IProviderLinkRepository is a PORT - the service depends on this ABC, the
# SQLAlchemy implementation lives in infrastructure. Repos only STAGE changes; nothing is
# written until IUnitOfWork.commit(). Exception: delete_owned() and update_token() issue
# their statement immediately, but it still only becomes visible on commit.
class IProviderLinkRepository(ABC):
    """Repository interface for ProviderLink aggregates."""

    @abstractmethod
    async def get_by_id(
        self,
        link_id: ProviderLinkId,
        include_catalog: bool = False,
        for_update: bool = False,
    ) -> ProviderLink | None:
        """Get a link by ID, optionally with its catalog and a row lock."""
        pass

    @abstractmethod
    async def get_by_type_and_name(
        self, provider_type: ProviderType, name: str, user_id: str
    ) -> ProviderLink | None:
        """Get a user's link by provider type and display name."""
        pass

    @abstractmethod
    async def list_by_owner(
        self, user_id: str, include_catalog: bool = False
    ) -> list[ProviderLink]:
        """List all links owned by a user."""
        pass

    @abstractmethod
    async def add(self, link: ProviderLink) -> None:
        """Stage a new link."""
        pass

    @abstractmethod
    async def update(self, link: ProviderLink) -> None:
        """Stage a full update of link fields (catalog not included)."""
        pass

    @abstractmethod
    async def update_token(self, link: ProviderLink) -> None:
        """Partial update of access token, expiry and refresh token only.

        Raises:
            EntityNotFoundException: If no row matched
        """
        pass

    @abstractmethod
    async def delete_owned(self, link_id: ProviderLinkId, user_id: str) -> bool:
        """Delete a link (and its catalog) if owned by user_id.

        Returns:
            True if a row was deleted, False if absent or owned by someone else
        """
        pass


class ICatalogEntryRepository(ABC):
    """Repository interface for CatalogEntry records."""

    @abstractmethod
    async def get_with_link(
        self, entry_id: CatalogEntryId
    ) -> tuple[CatalogEntry, ProviderLink] | None:
        """Get an entry together with its owning link."""
        pass

    @abstractmethod
    async def list_by_link(self, link_id: ProviderLinkId) -> list[CatalogEntry]:
        """List all entries of a link."""
        pass

    @abstractmethod
    async def add_many(self, entries: Iterable[CatalogEntry]) -> None:
        """Stage new entries."""
        pass

    @abstractmethod
    async def remove_many(self, entries: Iterable[CatalogEntry]) -> None:
        """Stage deletion of entries."""
        pass


# Listen up, the unit of work is the ONE transaction boundary per operation. Repositories
# are built in the constructor (explicit, no lazy caching) and share its session. Use it as
# an async context manager - leaving the block without commit() rolls back, which also
# covers cancellation mid-sync.
class IUnitOfWork(ABC):
    """Transaction boundary spanning multiple repository calls."""

    provider_links: IProviderLinkRepository
    catalog_entries: ICatalogEntryRepository

    @abstractmethod
    async def commit(self) -> None:
        """Commit staged changes.

        Raises:
            CommitError: If the commit failed (already rolled back)
        """
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Discard staged changes."""
        pass

    async def __aenter__(self) -> IUnitOfWork:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.rollback()


__all__ = [
    "ICatalogEntryRepository",
    "IProviderLinkRepository",
    "IStorageAdapterRegistry",
    "IStorageProviderAdapter",
    "IUnitOfWork",
    "TokenGrant",
]
