"""Value objects for the domain layer."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from cloudmusic.domain.exceptions import ValidationError


# Hey future me, typed IDs stop you from passing a catalog entry ID where a provider
# link ID is expected. Both are UUIDs underneath, and a mix-up only shows up as an
# EntityNotFoundException at runtime that's a pain to trace. frozen=True makes them hashable.
@dataclass(frozen=True)
class ProviderLinkId:
    """Provider link identifier."""

    value: uuid.UUID

    @classmethod
    def generate(cls) -> ProviderLinkId:
        """Generate a new random ID."""
        return cls(value=uuid.uuid4())

    @classmethod
    def from_string(cls, value: str) -> ProviderLinkId:
        """Create from string representation."""
        try:
            return cls(value=uuid.UUID(value))
        except (ValueError, AttributeError, TypeError) as e:
            raise ValidationError(f"Invalid provider link id: {value!r}") from e

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CatalogEntryId:
    """Catalog entry identifier."""

    value: uuid.UUID

    @classmethod
    def generate(cls) -> CatalogEntryId:
        """Generate a new random ID."""
        return cls(value=uuid.uuid4())

    @classmethod
    def from_string(cls, value: str) -> CatalogEntryId:
        """Create from string representation."""
        try:
            return cls(value=uuid.UUID(value))
        except (ValueError, AttributeError, TypeError) as e:
            raise ValidationError(f"Invalid catalog entry id: {value!r}") from e

    def __str__(self) -> str:
        return str(self.value)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


# Listen up, AccessToken pairs the opaque token bytes with their expiry so the two can
# never drift apart. expires_at is ALWAYS a concrete UTC-aware timestamp - no None
# meaning "never expires". Providers that hand out long-lived tokens still get a date.
@dataclass(frozen=True)
class AccessToken:
    """Short-lived provider access token with its expiry."""

    token: bytes
    expires_at: datetime

    def __post_init__(self) -> None:
        """Validate token data."""
        if not isinstance(self.expires_at, datetime):
            raise ValidationError("Access token expiry must be a timestamp")
        object.__setattr__(self, "expires_at", ensure_utc(self.expires_at))

    @classmethod
    def from_expires_in(
        cls, token: bytes, expires_in: int, now: datetime | None = None
    ) -> AccessToken:
        """Build a token that expires ``expires_in`` seconds after ``now``."""
        if expires_in < 0:
            raise ValidationError("expires_in cannot be negative")
        issued_at = now or datetime.now(UTC)
        return cls(token=token, expires_at=issued_at + timedelta(seconds=expires_in))

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if token is past its expiration time."""
        return self.expires_at < ensure_utc(now or datetime.now(UTC))

    def __repr__(self) -> str:
        # Never print token bytes into logs
        return f"AccessToken(expires_at={self.expires_at.isoformat()})"


__all__ = [
    "AccessToken",
    "CatalogEntryId",
    "ProviderLinkId",
    "ensure_utc",
]
