"""Yandex Disk storage adapter (REST API v1)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from cloudmusic.config.settings import YandexSettings
from cloudmusic.domain.entities import CatalogEntry, ProviderLink, ProviderType, RemoteFile
from cloudmusic.domain.exceptions import AdapterIOError, ValidationError

from .http_adapter import OAuthHttpAdapter

logger = logging.getLogger(__name__)


class YandexDiskAdapter(OAuthHttpAdapter):
    """Lists audio files and resolves download links through the Yandex Disk API."""

    PROVIDER_TYPE = ProviderType.YANDEX_DISK
    # Yandex wants "OAuth <token>", not "Bearer <token>"
    AUTH_SCHEME = "OAuth"

    def __init__(
        self,
        settings: YandexSettings,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Yandex Disk adapter.

        Args:
            settings: Yandex app credentials, endpoints and page size
            timeout: HTTP timeout in seconds
            http_client: Pre-built client (tests); created lazily otherwise
        """
        super().__init__(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            token_url=settings.token_url,
            timeout=timeout,
            http_client=http_client,
        )
        self.api_base_url = settings.api_base_url.rstrip("/")
        self.page_size = settings.page_size

    # Listen up, /resources/files is a FLAT list of every file on the disk, filtered
    # server-side by media_type=audio. It pages with limit/offset and has no "total" or
    # "has_more" field, so a page shorter than limit is the end.
    async def list_files(self, link: ProviderLink) -> list[RemoteFile]:
        """
        List every audio file on the linked Yandex Disk.

        Args:
            link: Provider link whose access token authorizes the listing

        Returns:
            Remote audio files
        """
        files: list[RemoteFile] = []
        offset = 0
        while True:
            page = await self._api_request(
                "GET",
                f"{self.api_base_url}/resources/files",
                link.access_token.token,
                params={
                    "media_type": "audio",
                    "limit": self.page_size,
                    "offset": offset,
                },
            )
            items = page.get("items", [])
            files.extend(self._parse_item(item) for item in items)
            if len(items) < self.page_size:
                break
            offset += len(items)

        logger.debug(
            "Listed Yandex Disk files",
            extra={"link_id": str(link.id), "files": len(files)},
        )
        return files

    def _parse_item(self, item: dict[str, Any]) -> RemoteFile:
        try:
            return RemoteFile(
                remote_id=item["resource_id"],
                name=item.get("name", ""),
                path=item.get("path", ""),
                content_hash=item.get("md5", ""),
                size_bytes=int(item.get("size", 0)),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise AdapterIOError(
                f"Yandex Disk returned an unreadable file item: {item.get('path')!r}",
                provider=self.name,
            ) from e

    async def resolve_url(self, entry: CatalogEntry, link: ProviderLink) -> str:
        """
        Get a download link for a catalog entry.

        Returns:
            Direct download URL (href)
        """
        body = await self._api_request(
            "GET",
            f"{self.api_base_url}/resources/download",
            link.access_token.token,
            params={"path": entry.path},
        )
        href = body.get("href")
        if not href:
            raise AdapterIOError(
                "Yandex Disk download response has no href", provider=self.name
            )
        return str(href)
