"""Storage provider adapters and their registry."""

from .dropbox_provider import DropboxAdapter
from .http_adapter import OAuthHttpAdapter
from .registry import StorageAdapterRegistry
from .yandex_provider import YandexDiskAdapter

__all__ = [
    "DropboxAdapter",
    "OAuthHttpAdapter",
    "StorageAdapterRegistry",
    "YandexDiskAdapter",
]
