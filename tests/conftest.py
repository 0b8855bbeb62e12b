"""Shared fixtures and in-memory fakes for the provider engine tests.

Hey future me - FakeUnitOfWork mimics the real transaction semantics on purpose:
repositories write into a *pending* copy of the state, commit() publishes it, rollback()
throws it away. That's what lets the atomicity tests assert "catalog afterwards equals
catalog before" without a database. The SQLAlchemy-backed tests live under
tests/unit/infrastructure/persistence.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

import pytest

from cloudmusic.domain.entities import (
    CatalogEntry,
    ProviderLink,
    ProviderType,
    RemoteFile,
)
from cloudmusic.domain.exceptions import CommitError, EntityNotFoundException
from cloudmusic.domain.ports import (
    ICatalogEntryRepository,
    IProviderLinkRepository,
    IStorageProviderAdapter,
    IUnitOfWork,
    TokenGrant,
)
from cloudmusic.domain.value_objects import AccessToken, CatalogEntryId, ProviderLinkId

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


class _State:
    def __init__(self) -> None:
        self.links: dict[ProviderLinkId, ProviderLink] = {}
        self.entries: dict[CatalogEntryId, CatalogEntry] = {}


class FakeProviderLinkRepository(IProviderLinkRepository):
    def __init__(self, uow: FakeUnitOfWork) -> None:
        self._uow = uow

    def _load(self, link: ProviderLink, include_catalog: bool) -> ProviderLink:
        loaded = copy.deepcopy(link)
        loaded.catalog = (
            [
                e
                for e in self._uow.pending.entries.values()
                if e.provider_link_id == link.id
            ]
            if include_catalog
            else []
        )
        return loaded

    async def get_by_id(
        self,
        link_id: ProviderLinkId,
        include_catalog: bool = False,
        for_update: bool = False,
    ) -> ProviderLink | None:
        self._uow.locked_for_update |= for_update
        link = self._uow.pending.links.get(link_id)
        return self._load(link, include_catalog) if link else None

    async def get_by_type_and_name(
        self, provider_type: ProviderType, name: str, user_id: str
    ) -> ProviderLink | None:
        for link in self._uow.pending.links.values():
            if (link.provider_type, link.name, link.user_id) == (provider_type, name, user_id):
                return self._load(link, False)
        return None

    async def list_by_owner(
        self, user_id: str, include_catalog: bool = False
    ) -> list[ProviderLink]:
        return [
            self._load(link, include_catalog)
            for link in self._uow.pending.links.values()
            if link.user_id == user_id
        ]

    async def add(self, link: ProviderLink) -> None:
        stored = copy.deepcopy(link)
        stored.catalog = []
        self._uow.pending.links[link.id] = stored

    async def update(self, link: ProviderLink) -> None:
        if link.id not in self._uow.pending.links:
            raise EntityNotFoundException("ProviderLink", link.id)
        stored = copy.deepcopy(link)
        stored.catalog = []
        self._uow.pending.links[link.id] = stored

    async def update_token(self, link: ProviderLink) -> None:
        stored = self._uow.pending.links.get(link.id)
        if stored is None:
            raise EntityNotFoundException("ProviderLink", link.id)
        stored.access_token = link.access_token
        stored.refresh_token = link.refresh_token

    async def delete_owned(self, link_id: ProviderLinkId, user_id: str) -> bool:
        link = self._uow.pending.links.get(link_id)
        if link is None or link.user_id != user_id:
            return False
        del self._uow.pending.links[link_id]
        for entry_id in [
            e.id for e in self._uow.pending.entries.values() if e.provider_link_id == link_id
        ]:
            del self._uow.pending.entries[entry_id]
        return True


class FakeCatalogEntryRepository(ICatalogEntryRepository):
    def __init__(self, uow: FakeUnitOfWork) -> None:
        self._uow = uow

    async def get_with_link(
        self, entry_id: CatalogEntryId
    ) -> tuple[CatalogEntry, ProviderLink] | None:
        entry = self._uow.pending.entries.get(entry_id)
        if entry is None:
            return None
        link = self._uow.pending.links.get(entry.provider_link_id)
        if link is None:
            return None
        return entry, copy.deepcopy(link)

    async def list_by_link(self, link_id: ProviderLinkId) -> list[CatalogEntry]:
        return [e for e in self._uow.pending.entries.values() if e.provider_link_id == link_id]

    async def add_many(self, entries: Iterable[CatalogEntry]) -> None:
        for entry in entries:
            self._uow.pending.entries[entry.id] = entry

    async def remove_many(self, entries: Iterable[CatalogEntry]) -> None:
        for entry in entries:
            self._uow.pending.entries.pop(entry.id, None)


class FakeUnitOfWork(IUnitOfWork):
    """In-memory unit of work with real commit/rollback visibility."""

    def __init__(self) -> None:
        self.committed = _State()
        self.pending = _State()
        self.commits = 0
        self.rollbacks = 0
        self.fail_commit = False
        self.locked_for_update = False
        self.provider_links = FakeProviderLinkRepository(self)
        self.catalog_entries = FakeCatalogEntryRepository(self)

    def seed(self, link: ProviderLink, entries: Iterable[CatalogEntry] = ()) -> None:
        """Put a link and its entries straight into committed state."""
        stored = copy.deepcopy(link)
        stored.catalog = []
        self.committed.links[link.id] = stored
        for entry in entries:
            self.committed.entries[entry.id] = entry
        self.pending = copy.deepcopy(self.committed)

    async def commit(self) -> None:
        if self.fail_commit:
            self.pending = copy.deepcopy(self.committed)
            raise CommitError("simulated commit failure")
        self.commits += 1
        self.committed = copy.deepcopy(self.pending)

    async def rollback(self) -> None:
        self.rollbacks += 1
        self.pending = copy.deepcopy(self.committed)


class FakeAdapter(IStorageProviderAdapter):
    """Scriptable adapter recording every call."""

    def __init__(
        self,
        provider_type: ProviderType = ProviderType.DROPBOX,
        files: list[RemoteFile] | None = None,
        grant: TokenGrant | None = None,
    ) -> None:
        self.provider_type = provider_type
        self.files = files or []
        self.grant = grant or TokenGrant(access_token=b"fresh-token", expires_in=3600)
        self.list_error: Exception | None = None
        self.refresh_error: Exception | None = None
        self.refresh_gate: asyncio.Event | None = None
        self.refresh_calls: list[bytes] = []
        self.resolve_calls: list[tuple[CatalogEntry, bytes]] = []
        self.closed = False

    @property
    def name(self) -> str:
        return f"fake-{self.provider_type.value}"

    def can_handle(self, provider_type: ProviderType) -> bool:
        return provider_type == self.provider_type

    async def refresh_access_token(self, refresh_token: bytes) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.grant

    async def list_files(self, link: ProviderLink) -> list[RemoteFile]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.files)

    async def resolve_url(self, entry: CatalogEntry, link: ProviderLink) -> str:
        self.resolve_calls.append((entry, link.access_token.token))
        return f"https://cdn.example/{entry.remote_id}?t={link.access_token.token.decode()}"

    async def close(self) -> None:
        self.closed = True


def remote_file(remote_id: str, name: str | None = None) -> RemoteFile:
    """Build a RemoteFile with a path derived from its name."""
    name = name or f"{remote_id}.mp3"
    return RemoteFile(
        remote_id=remote_id,
        name=name,
        path=f"/Music/{name}",
        content_hash=f"hash-{remote_id}",
        size_bytes=1024,
    )


def make_link(
    user_id: str = "user-1",
    name: str = "My Dropbox",
    provider_type: ProviderType = ProviderType.DROPBOX,
    expires_at: datetime | None = None,
    access_token: bytes = b"stale-token",
    refresh_token: bytes = b"refresh-token",
) -> ProviderLink:
    """Build a ProviderLink with sensible defaults (token valid for an hour)."""
    return ProviderLink(
        id=ProviderLinkId.generate(),
        user_id=user_id,
        provider_type=provider_type,
        name=name,
        access_token=AccessToken(
            token=access_token,
            expires_at=expires_at or FIXED_NOW + timedelta(hours=1),
        ),
        refresh_token=refresh_token,
        created_at=FIXED_NOW - timedelta(days=1),
        updated_at=FIXED_NOW - timedelta(days=1),
    )


@pytest.fixture
def fake_uow() -> FakeUnitOfWork:
    """Fresh in-memory unit of work."""
    return FakeUnitOfWork()


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    """Dropbox-typed fake adapter with an empty listing."""
    return FakeAdapter()
