"""Tests for domain value objects."""

import uuid
from datetime import UTC, datetime, timedelta, timezone

import pytest

from cloudmusic.domain.exceptions import ValidationError
from cloudmusic.domain.value_objects import (
    AccessToken,
    CatalogEntryId,
    ProviderLinkId,
    ensure_utc,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestIds:
    """Test typed identifiers."""

    def test_round_trip_through_string(self) -> None:
        link_id = ProviderLinkId.generate()

        assert ProviderLinkId.from_string(str(link_id)) == link_id

    def test_ids_are_hashable(self) -> None:
        value = uuid.uuid4()

        assert len({CatalogEntryId(value), CatalogEntryId(value)}) == 1

    @pytest.mark.parametrize("bad", ["", "not-a-uuid", "1234"])
    def test_invalid_string_raises_validation_error(self, bad: str) -> None:
        with pytest.raises(ValidationError):
            CatalogEntryId.from_string(bad)


class TestEnsureUtc:
    """Test timestamp normalization."""

    def test_naive_is_assumed_utc(self) -> None:
        assert ensure_utc(datetime(2026, 3, 1, 12, 0)) == NOW

    def test_aware_is_converted(self) -> None:
        local = datetime(2026, 3, 1, 7, 0, tzinfo=timezone(timedelta(hours=-5)))

        converted = ensure_utc(local)

        assert converted == NOW
        assert converted.tzinfo == UTC


class TestAccessToken:
    """Test access token expiry handling."""

    def test_expired_only_strictly_after_expiry(self) -> None:
        """Test expires_at < now means expired; equality is still valid."""
        token = AccessToken(token=b"t", expires_at=NOW)

        assert not token.is_expired(NOW)
        assert not token.is_expired(NOW - timedelta(seconds=1))
        assert token.is_expired(NOW + timedelta(microseconds=1))

    def test_from_expires_in(self) -> None:
        token = AccessToken.from_expires_in(b"t", 3600, now=NOW)

        assert token.expires_at == NOW + timedelta(hours=1)

    def test_from_expires_in_rejects_negative(self) -> None:
        with pytest.raises(ValidationError):
            AccessToken.from_expires_in(b"t", -1, now=NOW)

    def test_naive_expiry_is_normalized(self) -> None:
        token = AccessToken(token=b"t", expires_at=datetime(2026, 3, 1, 12, 0))

        assert token.expires_at.tzinfo == UTC

    def test_missing_expiry_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AccessToken(token=b"t", expires_at=None)  # type: ignore[arg-type]

    def test_repr_hides_token(self) -> None:
        assert "secret" not in repr(AccessToken(token=b"secret", expires_at=NOW))
