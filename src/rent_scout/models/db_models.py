"""SQLAlchemy ORM models."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from rent_scout.models.pydantic_models import (
    ListingData,
    ListingStatus,
    SessionStatus,
    StationDistanceData,
)


def utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Query(Base):
    """A search definition, keyed by its canonical query id."""

    __tablename__ = "queries"

    id: Mapped[str] = mapped_column(String(300), primary_key=True)
    description: Mapped[str] = mapped_column(String(300), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)

    # Parsed search criteria
    region: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    kind: Mapped[str | None] = mapped_column(String(20), nullable=True)
    stations: Mapped[str | None] = mapped_column(Text, nullable=True)  # comma-joined
    metro: Mapped[str | None] = mapped_column(String(50), nullable=True)
    price_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sections: Mapped[str | None] = mapped_column(String(200), nullable=True)
    rooms: Mapped[str | None] = mapped_column(String(100), nullable=True)
    floor_range: Mapped[str | None] = mapped_column(String(50), nullable=True)
    group_hash: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    is_valid: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    # Relationships
    sessions: Mapped[list["CrawlSession"]] = relationship(
        "CrawlSession", back_populates="query", cascade="all, delete-orphan"
    )
    listings: Mapped[list["QueryListing"]] = relationship(
        "QueryListing", back_populates="query", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Query(id='{self.id}', description='{self.description}')>"


class Listing(Base):
    """Rental listing, unique by identity key. Deactivated, never deleted."""

    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_key: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rooms: Mapped[str | None] = mapped_column(String(100), nullable=True)
    distance_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    distance_text: Mapped[str | None] = mapped_column(String(100), nullable=True)
    price: Mapped[int | None] = mapped_column(Integer, nullable=True)  # TWD per month
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    image_urls: Mapped[list[str]] = mapped_column(JSON, default=list)

    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Timestamps
    first_seen_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    # Relationships
    station_distances: Mapped[list["StationDistance"]] = relationship(
        "StationDistance", back_populates="listing", cascade="all, delete-orphan"
    )
    queries: Mapped[list["QueryListing"]] = relationship(
        "QueryListing", back_populates="listing", cascade="all, delete-orphan"
    )

    def to_snapshot(self) -> ListingData:
        """Rebuild the normalized listing last stored, for change detection."""
        return ListingData(
            title=self.title,
            link=self.link,
            category=self.category,
            rooms=self.rooms,
            distance_title=self.distance_title,
            distance_text=self.distance_text,
            tags=list(self.tags or []),
            image_urls=list(self.image_urls or []),
            station_distances=[
                StationDistanceData(
                    station_id=sd.station_id or None,
                    station_name=sd.station_name,
                    distance_m=sd.distance_m,
                    distance_text=sd.distance_text,
                )
                for sd in self.station_distances
            ],
        )

    def __repr__(self) -> str:
        title = (self.title or "")[:30]
        return f"<Listing(id={self.id}, identity='{self.identity_key}', title='{title}')>"


class StationDistance(Base):
    """Distance from a listing to one station."""

    __tablename__ = "station_distances"
    __table_args__ = (
        UniqueConstraint("listing_id", "station_id", "station_name", name="uq_listing_station"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listing_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    station_id: Mapped[str] = mapped_column(String(50), nullable=False, default="")  # "" = unknown
    station_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    distance_m: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    distance_text: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Relationships
    listing: Mapped["Listing"] = relationship("Listing", back_populates="station_distances")


class QueryListing(Base):
    """Appearance of a listing in a query's results."""

    __tablename__ = "query_listings"
    __table_args__ = (UniqueConstraint("query_id", "listing_id", name="uq_query_listing"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    query_id: Mapped[str] = mapped_column(
        String(300), ForeignKey("queries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    listing_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    first_appeared_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    last_appeared_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    notified: Mapped[bool] = mapped_column(Boolean, default=False)
    notified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    query: Mapped["Query"] = relationship("Query", back_populates="listings")
    listing: Mapped["Listing"] = relationship("Listing", back_populates="queries")


class CrawlSession(Base):
    """One pipeline run against one search definition."""

    __tablename__ = "crawl_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    query_id: Mapped[str] = mapped_column(
        String(300), ForeignKey("queries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(SessionStatus), default=SessionStatus.PENDING, nullable=False
    )

    # Run options
    max_latest: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notify_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    filtered_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    filter_config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    is_multi_station: Mapped[bool] = mapped_column(Boolean, default=False)
    stations_crawled: Mapped[str | None] = mapped_column(Text, nullable=True)  # comma-joined
    max_concurrent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    delay_between_requests: Mapped[float | None] = mapped_column(Float, nullable=True)
    enable_merging: Mapped[bool] = mapped_column(Boolean, default=True)

    # Aggregate counts
    total_listings: Mapped[int] = mapped_column(Integer, default=0)
    new_listings: Mapped[int] = mapped_column(Integer, default=0)
    updated_listings: Mapped[int] = mapped_column(Integer, default=0)
    unchanged_listings: Mapped[int] = mapped_column(Integer, default=0)
    failed_listings: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Timestamps
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    query: Mapped["Query"] = relationship("Query", back_populates="sessions")
    listings: Mapped[list["SessionListing"]] = relationship(
        "SessionListing", back_populates="session", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<CrawlSession(id={self.id}, query_id='{self.query_id}', status={self.status})>"


class SessionListing(Base):
    """Participation of a listing in a crawl session."""

    __tablename__ = "session_listings"
    __table_args__ = (UniqueConstraint("session_id", "listing_id", name="uq_session_listing"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("crawl_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    listing_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Enum(ListingStatus), nullable=False)
    was_new: Mapped[bool] = mapped_column(Boolean, default=False)
    was_notified: Mapped[bool] = mapped_column(Boolean, default=False)
    notify_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    silent_notify: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    # Relationships
    session: Mapped["CrawlSession"] = relationship("CrawlSession", back_populates="listings")
    listing: Mapped["Listing"] = relationship("Listing")
