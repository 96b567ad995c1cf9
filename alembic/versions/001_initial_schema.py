"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Create queries, listings, station_distances, query_listings,
crawl_sessions and session_listings.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "queries",
        sa.Column("id", sa.String(length=300), nullable=False),
        sa.Column("description", sa.String(length=300), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("region", sa.String(length=20), nullable=True),
        sa.Column("kind", sa.String(length=20), nullable=True),
        sa.Column("stations", sa.Text(), nullable=True),
        sa.Column("metro", sa.String(length=50), nullable=True),
        sa.Column("price_min", sa.Integer(), nullable=True),
        sa.Column("price_max", sa.Integer(), nullable=True),
        sa.Column("sections", sa.String(length=200), nullable=True),
        sa.Column("rooms", sa.String(length=100), nullable=True),
        sa.Column("floor_range", sa.String(length=50), nullable=True),
        sa.Column("group_hash", sa.String(length=100), nullable=True),
        sa.Column("is_valid", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_queries_region", "queries", ["region"])
    op.create_index("ix_queries_group_hash", "queries", ["group_hash"])

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("identity_key", sa.String(length=500), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("link", sa.String(length=500), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("rooms", sa.String(length=100), nullable=True),
        sa.Column("distance_title", sa.String(length=200), nullable=True),
        sa.Column("distance_text", sa.String(length=100), nullable=True),
        sa.Column("price", sa.Integer(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("image_urls", sa.JSON(), nullable=True),
        sa.Column("content_hash", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("first_seen_at", sa.DateTime(), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("identity_key"),
    )
    op.create_index("ix_listings_content_hash", "listings", ["content_hash"])
    op.create_index("ix_listings_is_active", "listings", ["is_active"])

    op.create_table(
        "station_distances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.Column("station_id", sa.String(length=50), nullable=False),
        sa.Column("station_name", sa.String(length=100), nullable=False),
        sa.Column("distance_m", sa.Integer(), nullable=True),
        sa.Column("distance_text", sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("listing_id", "station_id", "station_name", name="uq_listing_station"),
    )
    op.create_index("ix_station_distances_listing_id", "station_distances", ["listing_id"])
    op.create_index("ix_station_distances_station_name", "station_distances", ["station_name"])
    op.create_index("ix_station_distances_distance_m", "station_distances", ["distance_m"])

    op.create_table(
        "query_listings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("query_id", sa.String(length=300), nullable=False),
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.Column("first_appeared_at", sa.DateTime(), nullable=False),
        sa.Column("last_appeared_at", sa.DateTime(), nullable=False),
        sa.Column("notified", sa.Boolean(), nullable=True),
        sa.Column("notified_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["query_id"], ["queries.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("query_id", "listing_id", name="uq_query_listing"),
    )
    op.create_index("ix_query_listings_query_id", "query_listings", ["query_id"])
    op.create_index("ix_query_listings_listing_id", "query_listings", ["listing_id"])

    op.create_table(
        "crawl_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("query_id", sa.String(length=300), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "RUNNING", "COMPLETED", "FAILED", name="sessionstatus"),
            nullable=False,
        ),
        sa.Column("max_latest", sa.Integer(), nullable=True),
        sa.Column("notify_mode", sa.String(length=20), nullable=True),
        sa.Column("filtered_mode", sa.String(length=20), nullable=True),
        sa.Column("filter_config", sa.JSON(), nullable=True),
        sa.Column("is_multi_station", sa.Boolean(), nullable=True),
        sa.Column("stations_crawled", sa.Text(), nullable=True),
        sa.Column("max_concurrent", sa.Integer(), nullable=True),
        sa.Column("delay_between_requests", sa.Float(), nullable=True),
        sa.Column("enable_merging", sa.Boolean(), nullable=True),
        sa.Column("total_listings", sa.Integer(), nullable=True),
        sa.Column("new_listings", sa.Integer(), nullable=True),
        sa.Column("updated_listings", sa.Integer(), nullable=True),
        sa.Column("unchanged_listings", sa.Integer(), nullable=True),
        sa.Column("failed_listings", sa.Integer(), nullable=True),
        sa.Column("errors", sa.JSON(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["query_id"], ["queries.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crawl_sessions_query_id", "crawl_sessions", ["query_id"])

    op.create_table(
        "session_listings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("NEW", "UPDATED", "UNCHANGED", name="listingstatus"),
            nullable=False,
        ),
        sa.Column("was_new", sa.Boolean(), nullable=True),
        sa.Column("was_notified", sa.Boolean(), nullable=True),
        sa.Column("notify_mode", sa.String(length=20), nullable=True),
        sa.Column("silent_notify", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["crawl_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "listing_id", name="uq_session_listing"),
    )
    op.create_index("ix_session_listings_session_id", "session_listings", ["session_id"])
    op.create_index("ix_session_listings_listing_id", "session_listings", ["listing_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("session_listings")
    op.drop_table("crawl_sessions")
    op.drop_table("query_listings")
    op.drop_table("station_distances")
    op.drop_table("listings")
    op.drop_table("queries")
