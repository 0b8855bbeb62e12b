"""Domain entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from cloudmusic.domain.exceptions import ValidationError
from cloudmusic.domain.value_objects import (
    AccessToken,
    CatalogEntryId,
    ProviderLinkId,
    ensure_utc,
)


# Hey future me, every storage provider we can link needs a value here! The string value is
# what lands in the provider_links.provider_type column, so don't rename existing values
# without a migration.
class ProviderType(str, Enum):
    """External storage providers a user can link."""

    DROPBOX = "dropbox"
    YANDEX_DISK = "yandex_disk"


class AudioType(str, Enum):
    """Audio codec of a catalog entry, inferred from the remote path suffix."""

    MP3 = "mp3"
    FLAC = "flac"
    UNKNOWN = "unknown"

    @classmethod
    def from_path(cls, path: str) -> AudioType:
        """Infer audio type from the file suffix (case-insensitive)."""
        lowered = path.lower()
        if lowered.endswith(".flac"):
            return cls.FLAC
        if lowered.endswith(".mp3"):
            return cls.MP3
        return cls.UNKNOWN


def _as_bytes(value: bytes | str, what: str) -> bytes:
    if isinstance(value, str):
        value = value.encode("utf-8")
    if not value:
        raise ValidationError(f"{what} cannot be empty")
    return value


def _parse_expiry(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value.strip():
        try:
            return ensure_utc(datetime.fromisoformat(value.strip()))
        except ValueError as e:
            raise ValidationError(f"Invalid access token expiry: {value!r}") from e
    raise ValidationError("Access token expiry is required")


# Yo, RemoteFile is what adapters hand back from list_files(). It's a plain DTO - no DB id,
# no link id. remote_id is the provider-assigned identifier (Dropbox "id:...", Yandex
# resource_id) and it is stable across renames and moves. Reconciliation keys on it ONLY.
@dataclass(frozen=True)
class RemoteFile:
    """A file as reported by a storage provider listing."""

    remote_id: str
    name: str
    path: str
    content_hash: str
    size_bytes: int

    def __post_init__(self) -> None:
        """Validate remote file data."""
        if not self.remote_id:
            raise ValidationError("Remote file id cannot be empty")
        if self.size_bytes < 0:
            raise ValidationError("File size cannot be negative")


# Listen, CatalogEntry is frozen on purpose - an indexed file is never patched in place.
# On each sync it is kept as is, added, or deleted. If a provider changes the content hash
# under the same remote_id we keep the old row; content is treated as immutable once indexed.
@dataclass(frozen=True)
class CatalogEntry:
    """Locally indexed record of one remote audio file."""

    id: CatalogEntryId
    provider_link_id: ProviderLinkId
    remote_id: str
    content_hash: str
    name: str
    path: str
    audio_type: AudioType
    size_bytes: int

    def __post_init__(self) -> None:
        """Validate catalog entry data."""
        if not self.remote_id:
            raise ValidationError("Remote file id cannot be empty")
        if self.size_bytes < 0:
            raise ValidationError("File size cannot be negative")

    @classmethod
    def from_remote(
        cls, provider_link_id: ProviderLinkId, remote: RemoteFile
    ) -> CatalogEntry:
        """Create a new catalog entry for a freshly listed remote file."""
        return cls(
            id=CatalogEntryId.generate(),
            provider_link_id=provider_link_id,
            remote_id=remote.remote_id,
            content_hash=remote.content_hash,
            name=remote.name,
            path=remote.path,
            audio_type=AudioType.from_path(remote.path),
            size_bytes=remote.size_bytes,
        )


# Hey future me, ProviderLink is the aggregate root: one user's connection to one storage
# account, holding the token pair and (when loaded with it) the catalog. user_id is set once
# and then locked - see __setattr__. Tokens are raw bytes because providers hand out opaque
# strings and we never look inside them.
@dataclass
class ProviderLink:
    """A user's authorized connection to one external storage account."""

    id: ProviderLinkId
    user_id: str
    provider_type: ProviderType
    name: str
    access_token: AccessToken
    refresh_token: bytes
    catalog: list[CatalogEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate provider link data."""
        if not self.name or not self.name.strip():
            raise ValidationError("Provider name cannot be empty")
        if not self.user_id:
            raise ValidationError("Provider owner cannot be empty")
        if not self.refresh_token:
            raise ValidationError("Refresh token cannot be empty")

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "user_id" and "user_id" in self.__dict__:
            raise AttributeError("ProviderLink.user_id is immutable")
        super().__setattr__(name, value)

    @classmethod
    def create(
        cls,
        name: str,
        user_id: str,
        provider_type: ProviderType,
        access_token: bytes | str,
        refresh_token: bytes | str,
        expires_at: datetime | str,
    ) -> ProviderLink:
        """Create a new link from tokens issued by an already-finished OAuth exchange.

        Raises:
            ValidationError: If any input is empty or the expiry cannot be parsed
        """
        if not isinstance(provider_type, ProviderType):
            try:
                provider_type = ProviderType(provider_type)
            except ValueError as e:
                raise ValidationError(f"Unknown provider type: {provider_type!r}") from e
        if not name or not name.strip():
            raise ValidationError("Provider name cannot be empty")

        now = datetime.now(UTC)
        return cls(
            id=ProviderLinkId.generate(),
            user_id=user_id,
            provider_type=provider_type,
            name=name.strip(),
            access_token=AccessToken(
                token=_as_bytes(access_token, "Access token"),
                expires_at=_parse_expiry(expires_at),
            ),
            refresh_token=_as_bytes(refresh_token, "Refresh token"),
            created_at=now,
            updated_at=now,
        )

    def is_owned_by(self, user_id: str) -> bool:
        """Check if the given user owns this link."""
        return self.user_id == user_id

    def update_access_token(self, token: bytes, expires_at: datetime) -> None:
        """Replace the access token after a refresh."""
        self.access_token = AccessToken(token=token, expires_at=expires_at)

    def update_refresh_token(self, refresh_token: bytes) -> None:
        """Replace the refresh token when the provider rotated it."""
        if not refresh_token:
            raise ValidationError("Refresh token cannot be empty")
        self.refresh_token = refresh_token

    def touch(self, now: datetime | None = None) -> None:
        """Bump updated_at after a sync."""
        self.updated_at = now or datetime.now(UTC)

    def __repr__(self) -> str:
        return (
            f"ProviderLink(id={self.id}, user_id={self.user_id!r}, "
            f"provider_type={self.provider_type.value}, name={self.name!r}, "
            f"catalog={len(self.catalog)} entries)"
        )


__all__ = [
    "AudioType",
    "CatalogEntry",
    "ProviderLink",
    "ProviderType",
    "RemoteFile",
]
