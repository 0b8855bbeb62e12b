"""create provider_links and catalog_entries tables

Revision ID: a1c0f3e2d4b5
Revises:
Create Date: 2026-10-19 10:00:00.000000

Hey future me - INITIAL SCHEMA!

provider_links: one row per (user, storage account). Tokens are opaque bytes.
catalog_entries: one row per indexed remote audio file, FK -> provider_links with
ON DELETE CASCADE so dropping a link drops its catalog.

KEY DESIGN DECISIONS:
1. (user_id, provider_type, name) is unique - a user can't link two accounts under the same name
2. (provider_link_id, remote_id) is unique - reconciliation keys on remote_id per link
3. provider_type / audio_type are plain strings, not DB enums (SQLite compatibility)
"""

import logging

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a1c0f3e2d4b5"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create provider tables (idempotent - skips existing tables)."""
    conn = op.get_bind()
    existing = set(sa.inspect(conn).get_table_names())

    if "provider_links" in existing:
        logging.info("Table provider_links already exists - skipping creation")
    else:
        op.create_table(
            "provider_links",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(64), nullable=False),
            # provider_type: "dropbox", "yandex_disk"
            sa.Column("provider_type", sa.String(32), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("access_token", sa.LargeBinary(), nullable=False),
            sa.Column(
                "access_token_expires_at", sa.DateTime(timezone=True), nullable=False
            ),
            sa.Column("refresh_token", sa.LargeBinary(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            # SQLite can't ALTER TABLE ADD CONSTRAINT, so constraints go inline
            sa.UniqueConstraint(
                "user_id",
                "provider_type",
                "name",
                name="uq_provider_links_owner_type_name",
            ),
        )
        op.create_index("ix_provider_links_user_id", "provider_links", ["user_id"])
        op.create_index(
            "ix_provider_links_expires", "provider_links", ["access_token_expires_at"]
        )

    if "catalog_entries" in existing:
        logging.info("Table catalog_entries already exists - skipping creation")
    else:
        op.create_table(
            "catalog_entries",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column(
                "provider_link_id",
                sa.String(36),
                sa.ForeignKey("provider_links.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("remote_id", sa.String(255), nullable=False),
            sa.Column("content_hash", sa.String(128), nullable=False, server_default=""),
            sa.Column("name", sa.String(512), nullable=False),
            sa.Column("path", sa.String(1024), nullable=False),
            # audio_type: "mp3", "flac", "unknown"
            sa.Column(
                "audio_type", sa.String(16), nullable=False, server_default="unknown"
            ),
            sa.Column("size_bytes", sa.BigInteger(), nullable=False, server_default="0"),
            sa.UniqueConstraint(
                "provider_link_id", "remote_id", name="uq_catalog_entries_link_remote"
            ),
        )
        op.create_index(
            "ix_catalog_entries_provider_link_id",
            "catalog_entries",
            ["provider_link_id"],
        )


def downgrade() -> None:
    """Drop provider tables (catalog first, it references provider_links)."""
    conn = op.get_bind()
    existing = set(sa.inspect(conn).get_table_names())

    if "catalog_entries" in existing:
        op.drop_index("ix_catalog_entries_provider_link_id", table_name="catalog_entries")
        op.drop_table("catalog_entries")

    if "provider_links" in existing:
        op.drop_index("ix_provider_links_expires", table_name="provider_links")
        op.drop_index("ix_provider_links_user_id", table_name="provider_links")
        op.drop_table("provider_links")
