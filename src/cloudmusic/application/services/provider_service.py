"""Provider Service - lifecycle and access engine for linked storage providers.

Hey future me - this is THE service behind every "link my Dropbox", "re-sync" and "play
this file" request. It is request-scoped: one instance per request, holding that request's
unit of work. The adapter registry and the refresh coordinator are process-wide and get
injected.

Operations:
1. add_provider_link()    -> create link + index the whole remote listing, one commit
2. update_provider_link() -> re-list, reconcile, apply diff + bump updated_at, one commit
3. remove_provider_link() -> delete link (catalog cascades), owner-only
4. resolve_file_url()     -> refresh expired token (persisted first!), then ask the adapter
5. list_provider_links() / get_provider_link() -> read side

Error contract:
- Internally we raise DomainException subclasses.
- At the public boundary every DomainException becomes OperationResult.failure(...).
- Anything else (bugs, CancelledError) propagates untouched.
- Adapter errors are passed through as-is, we never retry here.

Ownership:
- Every read-modify-write path loads FIRST, then compares link.user_id with the caller.
  Never trust the caller to have checked.
- remove_provider_link reports "not yours" as EntityNotFoundException so non-owners can't fish for IDs.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

from cloudmusic.application.services.catalog_reconciler import (
    index_remote_files,
    reconcile,
)
from cloudmusic.application.services.results import OperationResult
from cloudmusic.application.services.token_refresh import TokenRefreshCoordinator
from cloudmusic.domain.entities import CatalogEntry, ProviderLink, ProviderType
from cloudmusic.domain.exceptions import (
    DomainException,
    DuplicateEntityException,
    EntityNotFoundException,
    NotOwnerException,
)
from cloudmusic.domain.ports import (
    IStorageAdapterRegistry,
    IStorageProviderAdapter,
    IUnitOfWork,
)
from cloudmusic.domain.value_objects import AccessToken, CatalogEntryId, ProviderLinkId
from cloudmusic.infrastructure.observability.logging import log_operation

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _as_link_id(value: ProviderLinkId | str) -> ProviderLinkId:
    if isinstance(value, ProviderLinkId):
        return value
    return ProviderLinkId.from_string(value)


def _as_entry_id(value: CatalogEntryId | str) -> CatalogEntryId:
    if isinstance(value, CatalogEntryId):
        return value
    return CatalogEntryId.from_string(value)


class ProviderService:
    """Lifecycle manager and access resolution for provider links."""

    def __init__(
        self,
        unit_of_work: IUnitOfWork,
        adapters: IStorageAdapterRegistry,
        refresh_coordinator: TokenRefreshCoordinator | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the service.

        Args:
            unit_of_work: Request-scoped transaction boundary
            adapters: Registry resolving provider type -> adapter
            refresh_coordinator: Shared single-flight coordinator. Without one, the
                service uses a private coordinator (no cross-request joining).
            clock: Source of "now", UTC-aware
        """
        self._uow = unit_of_work
        self._adapters = adapters
        self._refresh = refresh_coordinator or TokenRefreshCoordinator()
        self._clock = clock

    async def _run(
        self,
        operation: str,
        action: Callable[[], Awaitable[T]],
        **context: str,
    ) -> OperationResult[T]:
        # One unit of work per operation; leaving the block rolls back anything uncommitted
        try:
            async with self._uow, log_operation(logger, operation, **context):
                value = await action()
        except DomainException as e:
            return OperationResult.failure(e)
        return OperationResult.ok(value)

    # =========================================================================
    # READ SIDE
    # =========================================================================

    async def list_provider_links(self, user_id: str) -> OperationResult[list[ProviderLink]]:
        """List all provider links owned by a user (without catalogs)."""

        async def action() -> list[ProviderLink]:
            return await self._uow.provider_links.list_by_owner(user_id)

        return await self._run("list_provider_links", action, user_id=user_id)

    async def get_provider_link(
        self, provider_id: ProviderLinkId | str, user_id: str
    ) -> OperationResult[ProviderLink]:
        """Get one provider link with its catalog, owner-only."""

        async def action() -> ProviderLink:
            link_id = _as_link_id(provider_id)
            link = await self._uow.provider_links.get_by_id(link_id, include_catalog=True)
            return self._ensure_owned(link, link_id, user_id)

        return await self._run(
            "get_provider_link", action, link_id=str(provider_id), user_id=user_id
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    # Hey future me - the OAuth code exchange already happened in the HTTP layer, we only
    # receive the issued tokens. Link and initial catalog go out in ONE commit: if the
    # listing or the commit fails, nothing is persisted - no orphaned link without entries.
    async def add_provider_link(
        self,
        provider_type: ProviderType | str,
        user_id: str,
        name: str,
        access_token: bytes | str,
        refresh_token: bytes | str,
        expires_at: datetime | str,
    ) -> OperationResult[ProviderLink]:
        """Link a new storage provider and index its files.

        Returns:
            Result with the created link (catalog populated), or failure with
            ValidationError, DuplicateEntityException, NoAdapterFoundException,
            AdapterIOError/AdapterAuthError, or CommitError
        """

        async def action() -> ProviderLink:
            link = ProviderLink.create(
                name=name,
                user_id=user_id,
                provider_type=provider_type,
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=expires_at,
            )

            existing = await self._uow.provider_links.get_by_type_and_name(
                link.provider_type, link.name, user_id
            )
            if existing is not None:
                raise DuplicateEntityException("ProviderLink", link.name)

            adapter = self._adapters.require(link.provider_type)
            remote = await adapter.list_files(link)

            entries = [
                CatalogEntry.from_remote(link.id, remote_file)
                for remote_file in index_remote_files(remote).values()
            ]

            await self._uow.provider_links.add(link)
            await self._uow.catalog_entries.add_many(entries)
            await self._uow.commit()

            link.catalog = entries
            logger.info(
                "Linked provider",
                extra={
                    "link_id": str(link.id),
                    "provider_type": link.provider_type.value,
                    "files": len(entries),
                },
            )
            return link

        return await self._run(
            "add_provider_link",
            action,
            user_id=user_id,
            provider_type=str(getattr(provider_type, "value", provider_type)),
        )

    # Listen up, this is the sync path. The link row is loaded FOR UPDATE so two concurrent
    # syncs of the same link are serialized by the database, not by us. Deletions, additions
    # and the updated_at bump go out in the same commit - nobody can see the new timestamp
    # with the old catalog. The in-memory catalog is only swapped AFTER a successful commit.
    async def update_provider_link(
        self, provider_id: ProviderLinkId | str, user_id: str
    ) -> OperationResult[ProviderLink]:
        """Re-sync a provider link's catalog with the remote listing.

        Returns:
            Result with the updated link, or failure with EntityNotFoundException,
            NotOwnerException, NoAdapterFoundException, AdapterIOError/AdapterAuthError,
            or CommitError
        """

        async def action() -> ProviderLink:
            link_id = _as_link_id(provider_id)
            link = await self._uow.provider_links.get_by_id(
                link_id, include_catalog=True, for_update=True
            )
            link = self._ensure_owned(link, link_id, user_id)

            adapter = self._adapters.require(link.provider_type)
            remote = await adapter.list_files(link)
            diff = reconcile(link.catalog, remote, link.id)

            await self._uow.catalog_entries.remove_many(diff.to_remove)
            await self._uow.catalog_entries.add_many(diff.to_add)
            link.touch(self._clock())
            await self._uow.provider_links.update(link)
            await self._uow.commit()

            removed_ids = {entry.id for entry in diff.to_remove}
            link.catalog = [e for e in link.catalog if e.id not in removed_ids] + diff.to_add
            logger.info(
                "Synced provider catalog",
                extra={"link_id": str(link.id), **diff.summary()},
            )
            return link

        return await self._run(
            "update_provider_link", action, link_id=str(provider_id), user_id=user_id
        )

    async def remove_provider_link(
        self, provider_id: ProviderLinkId | str, user_id: str
    ) -> OperationResult[None]:
        """Unlink a provider and drop its catalog.

        A link owned by someone else is reported exactly like a missing one.
        """

        async def action() -> None:
            link_id = _as_link_id(provider_id)
            deleted = await self._uow.provider_links.delete_owned(link_id, user_id)
            if not deleted:
                raise EntityNotFoundException("ProviderLink", link_id)
            await self._uow.commit()
            logger.info("Unlinked provider", extra={"link_id": str(link_id)})

        return await self._run(
            "remove_provider_link", action, link_id=str(provider_id), user_id=user_id
        )

    # =========================================================================
    # ACCESS RESOLUTION
    # =========================================================================

    # Hey future me - the refreshed token is committed BEFORE we ask the adapter for a URL.
    # Order matters: if we resolved first and the write then failed, the caller would get a
    # URL minted with a token we no longer have (and the provider may have rotated the
    # refresh token, so the old one is dead too). Commit fails -> CommitError, no URL.
    async def resolve_file_url(
        self, file_id: CatalogEntryId | str, user_id: str
    ) -> OperationResult[str]:
        """Resolve a playable URL for a catalog entry, refreshing the token if expired.

        Returns:
            Result with the provider URL (returned unchanged, no caching), or failure
            with EntityNotFoundException, NotOwnerException, NoAdapterFoundException,
            AdapterAuthError, AdapterIOError, or CommitError
        """

        async def action() -> str:
            entry_id = _as_entry_id(file_id)
            loaded = await self._uow.catalog_entries.get_with_link(entry_id)
            if loaded is None:
                raise EntityNotFoundException("CatalogEntry", entry_id)
            entry, link = loaded
            if not link.is_owned_by(user_id):
                raise NotOwnerException("CatalogEntry", entry_id, user_id)

            adapter = self._adapters.require(link.provider_type)

            now = self._clock()
            if link.access_token.is_expired(now):
                await self._refresh_link_token(link, adapter, now)

            return await adapter.resolve_url(entry, link)

        return await self._run(
            "resolve_file_url", action, file_id=str(file_id), user_id=user_id
        )

    async def _refresh_link_token(
        self, link: ProviderLink, adapter: IStorageProviderAdapter, now: datetime
    ) -> None:
        grant = await self._refresh.refresh(link.id, adapter, link.refresh_token)
        token = AccessToken.from_expires_in(grant.access_token, grant.expires_in, now=now)
        link.update_access_token(token.token, token.expires_at)
        if grant.refresh_token:
            link.update_refresh_token(grant.refresh_token)

        await self._uow.provider_links.update_token(link)
        await self._uow.commit()
        logger.info(
            "Refreshed provider access token",
            extra={"link_id": str(link.id), "expires_at": token.expires_at.isoformat()},
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _ensure_owned(
        link: ProviderLink | None, link_id: ProviderLinkId, user_id: str
    ) -> ProviderLink:
        if link is None:
            raise EntityNotFoundException("ProviderLink", link_id)
        if not link.is_owned_by(user_id):
            raise NotOwnerException("ProviderLink", link_id, user_id)
        return link
