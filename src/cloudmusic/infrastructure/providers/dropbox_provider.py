"""Dropbox storage adapter (API v2)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from cloudmusic.config.settings import DropboxSettings
from cloudmusic.domain.entities import CatalogEntry, ProviderLink, ProviderType, RemoteFile
from cloudmusic.domain.exceptions import AdapterIOError, ValidationError

from .http_adapter import OAuthHttpAdapter

logger = logging.getLogger(__name__)

# Dropbox has no "audio only" filter, so we pick by suffix
AUDIO_SUFFIXES = (".mp3", ".flac", ".ogg", ".oga", ".opus", ".m4a", ".aac", ".wav", ".wma")


def _is_audio(name: str) -> bool:
    return name.lower().endswith(AUDIO_SUFFIXES)


class DropboxAdapter(OAuthHttpAdapter):
    """Lists audio files and mints temporary links through the Dropbox API."""

    PROVIDER_TYPE = ProviderType.DROPBOX
    AUTH_SCHEME = "Bearer"

    LIST_PAGE_LIMIT = 2000

    def __init__(
        self,
        settings: DropboxSettings,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Dropbox adapter.

        Args:
            settings: Dropbox app credentials and endpoints
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

    # Yo, Dropbox paginates list_folder with a cursor: first call to /files/list_folder,
    # then /files/list_folder/continue until has_more is false. recursive=True walks the
    # whole account, which for big music folders means MANY pages - don't drop the loop.
    async def list_files(self, link: ProviderLink) -> list[RemoteFile]:
        """
        List every audio file in the linked Dropbox account.

        Args:
            link: Provider link whose access token authorizes the listing

        Returns:
            Remote audio files (folders and deleted entries skipped)
        """
        token = link.access_token.token
        page = await self._api_request(
            "POST",
            f"{self.api_base_url}/files/list_folder",
            token,
            json={
                "path": "",
                "recursive": True,
                "include_deleted": False,
                "limit": self.LIST_PAGE_LIMIT,
            },
        )

        files: list[RemoteFile] = []
        pages = 1
        while True:
            files.extend(self._parse_entries(page.get("entries", [])))
            if not page.get("has_more"):
                break
            cursor = page.get("cursor")
            if not cursor:
                raise AdapterIOError(
                    "Dropbox reported more entries but sent no cursor",
                    provider=self.name,
                )
            page = await self._api_request(
                "POST",
                f"{self.api_base_url}/files/list_folder/continue",
                token,
                json={"cursor": cursor},
            )
            pages += 1

        logger.debug(
            "Listed Dropbox files",
            extra={"link_id": str(link.id), "files": len(files), "pages": pages},
        )
        return files

    # Listen up, a listing entry we can't read is the provider's fault, not the caller's -
    # missing id, null size, empty id all become AdapterIOError like any other bad response.
    def _parse_entries(self, entries: list[dict[str, Any]]) -> list[RemoteFile]:
        files = []
        for item in entries:
            if item.get(".tag") != "file":
                continue
            name = item.get("name", "")
            if not _is_audio(name):
                continue
            try:
                files.append(
                    RemoteFile(
                        remote_id=item["id"],
                        name=name,
                        path=item.get("path_display") or item.get("path_lower", ""),
                        content_hash=item.get("content_hash", ""),
                        size_bytes=int(item.get("size", 0)),
                    )
                )
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                raise AdapterIOError(
                    f"Dropbox returned an unreadable listing entry: {name!r}",
                    provider=self.name,
                ) from e
        return files

    # Hey future me - get_temporary_link accepts "id:..." in the path field. We send the
    # remote id, not the stored path, so a file renamed since the last sync still plays.
    # Links live about 4 hours; we never cache them.
    async def resolve_url(self, entry: CatalogEntry, link: ProviderLink) -> str:
        """
        Get a temporary streaming link for a catalog entry.

        Returns:
            Temporary direct-download URL
        """
        body = await self._api_request(
            "POST",
            f"{self.api_base_url}/files/get_temporary_link",
            link.access_token.token,
            json={"path": entry.remote_id},
        )
        url = body.get("link")
        if not url:
            raise AdapterIOError(
                "Dropbox temporary link response has no link", provider=self.name
            )
        return str(url)
