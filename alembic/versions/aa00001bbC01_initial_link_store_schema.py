"""initial link store schema

Revision ID: aa00001bbC01
Revises:
Create Date: 2026-10-16 09:00:00.000000

Hey future me - the whole Link Store in one revision:

- tracks          → one row per distinct source track, unique (source_platform, source_id)
- platform_links  → one row per (track, platform), confidence in [0, 1], never deleted
- smart_links     → user-facing composite links (written by the editor, read here)
- link_reports    → audit trail of user "this link is broken" reports

ix_platform_links_staleness backs the verification batch query
(ORDER BY last_verified_at NULLS FIRST).
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "aa00001bbC01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the link store tables."""
    op.create_table(
        "tracks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("source_platform", sa.String(32), nullable=False),
        sa.Column("source_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("artist", sa.String(512), nullable=False),
        sa.Column("isrc", sa.String(12), nullable=True),
        sa.Column("album", sa.String(512), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("artwork_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("source_platform", "source_id", name="uq_tracks_source"),
    )
    op.create_index("ix_tracks_isrc", "tracks", ["isrc"])

    op.create_table(
        "platform_links",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "track_id",
            sa.String(36),
            sa.ForeignKey("tracks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_checked_status", sa.Integer(), nullable=True),
        sa.Column("last_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "track_id", "platform", name="uq_platform_links_track_platform"
        ),
        sa.CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_platform_links_confidence"
        ),
    )
    op.create_index(
        "ix_platform_links_staleness", "platform_links", ["last_verified_at"]
    )

    op.create_table(
        "smart_links",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("slug", sa.String(128), nullable=False, unique=True),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("template", sa.String(64), nullable=True),
        sa.Column("cover_image_url", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("click_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "track_id",
            sa.String(36),
            sa.ForeignKey("tracks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "link_reports",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "track_id",
            sa.String(36),
            sa.ForeignKey("tracks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_link_reports_track_platform", "link_reports", ["track_id", "platform"]
    )


def downgrade() -> None:
    """Drop the link store tables."""
    op.drop_index("ix_link_reports_track_platform", table_name="link_reports")
    op.drop_table("link_reports")
    op.drop_table("smart_links")
    op.drop_index("ix_platform_links_staleness", table_name="platform_links")
    op.drop_table("platform_links")
    op.drop_index("ix_tracks_isrc", table_name="tracks")
    op.drop_table("tracks")
