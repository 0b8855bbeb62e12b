"""
Storage Adapter Registry for CloudMusic.

Hey future me - this is THE place the engine asks "who handles Dropbox?".
The map is built ONCE at startup from the adapters' own can_handle() answers,
so a lookup at request time is a plain dict access.

Usage:
    registry = StorageAdapterRegistry.from_adapters([DropboxAdapter(...), YandexDiskAdapter(...)])

    adapter = registry.require(ProviderType.DROPBOX)
    files = await adapter.list_files(link)

Concurrency:
    Read-only after construction, so sharing it across requests is safe.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from cloudmusic.domain.entities import ProviderType
from cloudmusic.domain.exceptions import NoAdapterFoundException
from cloudmusic.domain.ports import IStorageAdapterRegistry, IStorageProviderAdapter

logger = logging.getLogger(__name__)


class StorageAdapterRegistry(IStorageAdapterRegistry):
    """
    Map of provider type to storage adapter.

    Each ProviderType has at most ONE adapter. If two adapters claim the same
    type, the first one wins and the second is logged and ignored.
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._adapters: dict[ProviderType, IStorageProviderAdapter] = {}

    @classmethod
    def from_adapters(
        cls, adapters: Iterable[IStorageProviderAdapter]
    ) -> StorageAdapterRegistry:
        """
        Build a registry by asking every adapter which provider types it handles.

        Args:
            adapters: Adapter instances to register

        Returns:
            Populated registry
        """
        registry = cls()
        for adapter in adapters:
            registry.register(adapter)
        return registry

    def register(self, adapter: IStorageProviderAdapter) -> None:
        """
        Register an adapter for every provider type it can handle.

        Args:
            adapter: Adapter instance to register
        """
        for provider_type in ProviderType:
            if not adapter.can_handle(provider_type):
                continue
            existing = self._adapters.get(provider_type)
            if existing is not None:
                logger.warning(
                    "Adapter %s ignored for %s, already served by %s",
                    adapter.name,
                    provider_type.value,
                    existing.name,
                )
                continue
            self._adapters[provider_type] = adapter

    def get(self, provider_type: ProviderType) -> IStorageProviderAdapter | None:
        """
        Get the adapter for a provider type.

        Returns:
            Adapter instance or None if not registered
        """
        return self._adapters.get(provider_type)

    def require(self, provider_type: ProviderType) -> IStorageProviderAdapter:
        """
        Get the adapter, raising if not found.

        Raises:
            NoAdapterFoundException: If no adapter handles the provider type
        """
        adapter = self._adapters.get(provider_type)
        if adapter is None:
            raise NoAdapterFoundException(provider_type)
        return adapter

    def all(self) -> Iterator[IStorageProviderAdapter]:
        """Iterate over distinct registered adapters."""
        seen: set[int] = set()
        for adapter in self._adapters.values():
            if id(adapter) not in seen:
                seen.add(id(adapter))
                yield adapter

    @property
    def available_types(self) -> list[ProviderType]:
        """Provider types with a registered adapter."""
        return list(self._adapters.keys())

    async def close_all(self) -> None:
        """Close every registered adapter's HTTP resources."""
        for adapter in self.all():
            await adapter.close()
