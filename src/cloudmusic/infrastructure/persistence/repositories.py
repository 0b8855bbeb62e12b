"""Repository implementations for domain entities."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cloudmusic.domain.entities import (
    AudioType,
    CatalogEntry,
    ProviderLink,
    ProviderType,
)
from cloudmusic.domain.exceptions import EntityNotFoundException, ValidationError
from cloudmusic.domain.ports import ICatalogEntryRepository, IProviderLinkRepository
from cloudmusic.domain.value_objects import AccessToken, CatalogEntryId, ProviderLinkId

from .models import CatalogEntryModel, ProviderLinkModel, ensure_utc_aware


def _entry_to_entity(model: CatalogEntryModel) -> CatalogEntry:
    # Unknown audio types written by a newer version degrade to UNKNOWN instead of failing
    try:
        audio_type = AudioType(model.audio_type)
    except ValueError:
        audio_type = AudioType.UNKNOWN

    return CatalogEntry(
        id=CatalogEntryId.from_string(model.id),
        provider_link_id=ProviderLinkId.from_string(model.provider_link_id),
        remote_id=model.remote_id,
        content_hash=model.content_hash,
        name=model.name,
        path=model.path,
        audio_type=audio_type,
        size_bytes=model.size_bytes,
    )


def _link_to_entity(
    model: ProviderLinkModel, include_catalog: bool = False
) -> ProviderLink:
    # Hey future me - provider_type is a plain string column. A value we don't know
    # means somebody removed an enum member without a migration. Fail loudly.
    try:
        provider_type = ProviderType(model.provider_type)
    except ValueError as e:
        raise ValidationError(
            f"Invalid provider type '{model.provider_type}' for provider link {model.id}"
        ) from e

    catalog = (
        [_entry_to_entity(entry) for entry in model.catalog_entries]
        if include_catalog
        else []
    )

    return ProviderLink(
        id=ProviderLinkId.from_string(model.id),
        user_id=model.user_id,
        provider_type=provider_type,
        name=model.name,
        access_token=AccessToken(
            token=model.access_token,
            expires_at=ensure_utc_aware(model.access_token_expires_at),
        ),
        refresh_token=model.refresh_token,
        catalog=catalog,
        created_at=ensure_utc_aware(model.created_at),
        updated_at=ensure_utc_aware(model.updated_at),
    )


class ProviderLinkRepository(IProviderLinkRepository):
    """SQLAlchemy implementation of ProviderLink repository."""

    # Hey future me, same deal as every repo here: the session is injected by the unit of
    # work and NEVER committed in this class. add()/update() stage changes, delete_owned()
    # and update_token() execute their statement right away, but it's still inside the
    # open transaction - commit or rollback on the unit of work decides.
    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    # Yo, include_catalog adds a selectinload on catalog_entries (second SELECT ... IN) so
    # a sync doesn't do N+1 queries. for_update adds SELECT ... FOR UPDATE on PostgreSQL;
    # SQLite's dialect silently drops it (SQLite locks the whole DB on write anyway).
    async def get_by_id(
        self,
        link_id: ProviderLinkId,
        include_catalog: bool = False,
        for_update: bool = False,
    ) -> ProviderLink | None:
        """Get a provider link by ID."""
        stmt = select(ProviderLinkModel).where(ProviderLinkModel.id == str(link_id.value))
        if include_catalog:
            stmt = stmt.options(selectinload(ProviderLinkModel.catalog_entries))
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()

        if not model:
            return None

        return _link_to_entity(model, include_catalog=include_catalog)

    async def get_by_type_and_name(
        self, provider_type: ProviderType, name: str, user_id: str
    ) -> ProviderLink | None:
        """Get a user's provider link by type and display name."""
        stmt = select(ProviderLinkModel).where(
            ProviderLinkModel.user_id == user_id,
            ProviderLinkModel.provider_type == provider_type.value,
            ProviderLinkModel.name == name,
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()

        if not model:
            return None

        return _link_to_entity(model)

    async def list_by_owner(
        self, user_id: str, include_catalog: bool = False
    ) -> list[ProviderLink]:
        """List all provider links owned by a user, oldest first."""
        stmt = (
            select(ProviderLinkModel)
            .where(ProviderLinkModel.user_id == user_id)
            .order_by(ProviderLinkModel.created_at, ProviderLinkModel.name)
        )
        if include_catalog:
            stmt = stmt.options(selectinload(ProviderLinkModel.catalog_entries))

        result = await self.session.execute(stmt)
        return [
            _link_to_entity(model, include_catalog=include_catalog)
            for model in result.scalars().all()
        ]

    async def add(self, link: ProviderLink) -> None:
        """Add a new provider link (catalog entries go through the catalog repo)."""
        model = ProviderLinkModel(
            id=str(link.id.value),
            user_id=link.user_id,
            provider_type=link.provider_type.value,
            name=link.name,
            access_token=link.access_token.token,
            access_token_expires_at=link.access_token.expires_at,
            refresh_token=link.refresh_token,
            created_at=link.created_at,
            updated_at=link.updated_at,
        )
        self.session.add(model)

    async def update(self, link: ProviderLink) -> None:
        """Update an existing provider link."""
        stmt = select(ProviderLinkModel).where(ProviderLinkModel.id == str(link.id.value))
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()

        if not model:
            raise EntityNotFoundException("ProviderLink", link.id.value)

        # user_id and provider_type never change after creation
        model.name = link.name
        model.access_token = link.access_token.token
        model.access_token_expires_at = link.access_token.expires_at
        model.refresh_token = link.refresh_token
        model.updated_at = link.updated_at

    # Listen up - token refresh must NOT touch name/updated_at/catalog, so this is a
    # targeted UPDATE of the three token columns instead of update(). A refresh running
    # next to a sync then can't overwrite what the sync wrote.
    async def update_token(self, link: ProviderLink) -> None:
        """Persist only the token columns of a provider link."""
        stmt = (
            update(ProviderLinkModel)
            .where(ProviderLinkModel.id == str(link.id.value))
            .values(
                access_token=link.access_token.token,
                access_token_expires_at=link.access_token.expires_at,
                refresh_token=link.refresh_token,
            )
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise EntityNotFoundException("ProviderLink", link.id.value)

    # Hey future me - ownership is part of the WHERE clause, so "not yours" and "doesn't
    # exist" look identical to the caller (both return False). The catalog is deleted
    # explicitly first; ondelete=CASCADE would do it too, but only when SQLite has the
    # foreign_keys pragma on, and we don't want correctness to depend on that.
    async def delete_owned(self, link_id: ProviderLinkId, user_id: str) -> bool:
        """Delete a provider link and its catalog if owned by user_id."""
        owned = (
            select(ProviderLinkModel.id)
            .where(
                ProviderLinkModel.id == str(link_id.value),
                ProviderLinkModel.user_id == user_id,
            )
            .scalar_subquery()
        )
        await self.session.execute(
            delete(CatalogEntryModel)
            .where(CatalogEntryModel.provider_link_id == owned)
            .execution_options(synchronize_session=False)
        )

        stmt = (
            delete(ProviderLinkModel)
            .where(
                ProviderLinkModel.id == str(link_id.value),
                ProviderLinkModel.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]


class CatalogEntryRepository(ICatalogEntryRepository):
    """SQLAlchemy implementation of CatalogEntry repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get_with_link(
        self, entry_id: CatalogEntryId
    ) -> tuple[CatalogEntry, ProviderLink] | None:
        """Get a catalog entry together with its provider link (no catalog)."""
        stmt = (
            select(CatalogEntryModel)
            .where(CatalogEntryModel.id == str(entry_id.value))
            .options(selectinload(CatalogEntryModel.provider_link))
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()

        if not model:
            return None

        return _entry_to_entity(model), _link_to_entity(model.provider_link)

    async def list_by_link(self, link_id: ProviderLinkId) -> list[CatalogEntry]:
        """List all catalog entries of a provider link, ordered by path."""
        stmt = (
            select(CatalogEntryModel)
            .where(CatalogEntryModel.provider_link_id == str(link_id.value))
            .order_by(CatalogEntryModel.path)
        )
        result = await self.session.execute(stmt)
        return [_entry_to_entity(model) for model in result.scalars().all()]

    async def add_many(self, entries: Iterable[CatalogEntry]) -> None:
        """Stage new catalog entries."""
        self.session.add_all(
            [
                CatalogEntryModel(
                    id=str(entry.id.value),
                    provider_link_id=str(entry.provider_link_id.value),
                    remote_id=entry.remote_id,
                    content_hash=entry.content_hash,
                    name=entry.name,
                    path=entry.path,
                    audio_type=entry.audio_type.value,
                    size_bytes=entry.size_bytes,
                )
                for entry in entries
            ]
        )

    # Yo, one DELETE ... WHERE id IN (...) per call instead of N session.delete() calls.
    # Empty input is a no-op - no statement is sent.
    async def remove_many(self, entries: Iterable[CatalogEntry]) -> None:
        """Delete catalog entries by ID."""
        ids = [str(entry.id.value) for entry in entries]
        if not ids:
            return

        stmt = (
            delete(CatalogEntryModel)
            .where(CatalogEntryModel.id.in_(ids))
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)
