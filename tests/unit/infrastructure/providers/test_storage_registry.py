"""Tests for StorageAdapterRegistry."""

import logging

import pytest
from conftest import FakeAdapter

from cloudmusic.domain.entities import ProviderType
from cloudmusic.domain.exceptions import NoAdapterFoundException
from cloudmusic.infrastructure.providers import StorageAdapterRegistry


class MultiTypeAdapter(FakeAdapter):
    """Adapter claiming every provider type."""

    def can_handle(self, provider_type: ProviderType) -> bool:
        return True


class TestStorageAdapterRegistry:
    """Test capability-based adapter lookup."""

    def test_lookup_by_capability(self) -> None:
        dropbox = FakeAdapter(ProviderType.DROPBOX)
        yandex = FakeAdapter(ProviderType.YANDEX_DISK)

        registry = StorageAdapterRegistry.from_adapters([dropbox, yandex])

        assert registry.get(ProviderType.DROPBOX) is dropbox
        assert registry.require(ProviderType.YANDEX_DISK) is yandex
        assert set(registry.available_types) == {ProviderType.DROPBOX, ProviderType.YANDEX_DISK}

    def test_missing_adapter(self) -> None:
        """Test get() returns None while require() raises."""
        registry = StorageAdapterRegistry.from_adapters([FakeAdapter(ProviderType.DROPBOX)])

        assert registry.get(ProviderType.YANDEX_DISK) is None
        with pytest.raises(NoAdapterFoundException) as exc_info:
            registry.require(ProviderType.YANDEX_DISK)
        assert exc_info.value.error_kind == "no_adapter"
        assert "yandex_disk" in exc_info.value.message

    def test_first_registration_wins(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a second adapter for the same type is ignored with a warning."""
        first = FakeAdapter(ProviderType.DROPBOX)
        second = FakeAdapter(ProviderType.DROPBOX)

        with caplog.at_level(logging.WARNING):
            registry = StorageAdapterRegistry.from_adapters([first, second])

        assert registry.require(ProviderType.DROPBOX) is first
        assert "already served by" in caplog.text

    def test_one_adapter_for_many_types_is_listed_once(self) -> None:
        adapter = MultiTypeAdapter()

        registry = StorageAdapterRegistry.from_adapters([adapter])

        assert registry.require(ProviderType.YANDEX_DISK) is adapter
        assert list(registry.all()) == [adapter]

    async def test_close_all(self) -> None:
        adapters = [FakeAdapter(ProviderType.DROPBOX), FakeAdapter(ProviderType.YANDEX_DISK)]
        registry = StorageAdapterRegistry.from_adapters(adapters)

        await registry.close_all()

        assert all(adapter.closed for adapter in adapters)
