"""SQLAlchemy ORM models for CloudMusic."""

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import (
    BigInteger,
    ForeignKey,
    Index,
    LargeBinary,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Hey future me, ALL timestamps are UTC. Never datetime.now() without a timezone.
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# SQLite drops tzinfo on the way back, so anything read from the DB goes through this
# before it's compared with datetime.now(UTC). Otherwise: "can't compare offset-naive and
# offset-aware datetimes".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, ProviderLinkModel is one user's connection to one storage account. The
# (user_id, provider_type, name) unique constraint backs the service-level duplicate check.
# cascade="all, delete-orphan" + ondelete=CASCADE on the FK means deleting the link wipes
# its catalog both through the ORM and through a bulk DELETE statement - which is what
# delete_owned() issues. Tokens are opaque bytes (LargeBinary).
class ProviderLinkModel(Base):
    """SQLAlchemy model for ProviderLink entity."""

    __tablename__ = "provider_links"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # 'dropbox', 'yandex_disk' (plain strings, not a DB enum - SQLite compatibility)
    provider_type: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    access_token: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    access_token_expires_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    refresh_token: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    catalog_entries: Mapped[list["CatalogEntryModel"]] = relationship(
        "CatalogEntryModel",
        back_populates="provider_link",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "provider_type", "name", name="uq_provider_links_owner_type_name"
        ),
        Index("ix_provider_links_expires", "access_token_expires_at"),
    )


# Hey future me, (provider_link_id, remote_id) is the natural key of a catalog entry -
# reconciliation keys on remote_id within one link. id is our own UUID so the player can
# reference files without leaking provider ids. size is BigInteger: FLAC rips go past 2 GiB
# rarely, but Integer would overflow on them.
class CatalogEntryModel(Base):
    """SQLAlchemy model for CatalogEntry entity."""

    __tablename__ = "catalog_entries"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    provider_link_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("provider_links.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    remote_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    path: Mapped[str] = mapped_column(String(1024), nullable=False)
    # 'mp3', 'flac', 'unknown'
    audio_type: Mapped[str] = mapped_column(String(16), nullable=False, default="unknown")
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    provider_link: Mapped["ProviderLinkModel"] = relationship(
        "ProviderLinkModel", back_populates="catalog_entries"
    )

    __table_args__ = (
        UniqueConstraint(
            "provider_link_id", "remote_id", name="uq_catalog_entries_link_remote"
        ),
    )
