"""Unit tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from rent_scout.models.pydantic_models import (
    ChangeResult,
    CrawlSettings,
    ListingData,
    ListingStatus,
    PersistenceSettings,
    SessionStatus,
    Settings,
    StationDistanceData,
)


class TestListingData:
    """Tests for ListingData normalization."""

    def test_strings_stripped(self):
        listing = ListingData(title="  Studio ", rooms=" 1房 ")
        assert listing.title == "Studio"
        assert listing.rooms == "1房"

    def test_empty_strings_become_none(self):
        listing = ListingData(title="Studio", category="", distance_text="   ")
        assert listing.category is None
        assert listing.distance_text is None

    def test_tags_deduplicated_in_order(self):
        listing = ListingData(tags=["近捷運", " 近捷運 ", "", "可開伙"])
        assert listing.tags == ["近捷運", "可開伙"]

    def test_comma_joined_tags_split(self):
        assert ListingData(tags="a, b,a").tags == ["a", "b"]

    def test_none_lists_become_empty(self):
        listing = ListingData(tags=None, image_urls=None)
        assert listing.tags == []
        assert listing.image_urls == []

    def test_primary_distance(self):
        listing = ListingData(distance_title="距公館捷運站", distance_text="5分鐘")
        assert listing.primary_distance_m == 400
        primary = listing.primary_station_distance()
        assert primary is not None
        assert primary.station_id is None
        assert primary.station_name == "公館"
        assert primary.distance_m == 400

    def test_no_primary_without_title(self):
        assert ListingData(distance_text="350公尺").primary_station_distance() is None


class TestStationDistanceAnnotations:
    """Tests for station distance helpers on ListingData."""

    def test_add_station_distance(self):
        listing = ListingData(title="Studio")
        listing.add_station_distance("4232", "公館", "350公尺")
        assert listing.station_distances == [
            StationDistanceData(
                station_id="4232", station_name="公館", distance_m=350, distance_text="350公尺"
            )
        ]

    def test_same_station_added_once(self):
        listing = ListingData(title="Studio")
        listing.add_station_distance("4232", "公館", "350公尺")
        listing.add_station_distance("4232", "公館", "400公尺")
        assert len(listing.station_distances) == 1

    def test_merge_station_distances(self):
        first = ListingData(title="Studio")
        first.add_station_distance("4232", "公館", "350公尺")
        second = ListingData(title="Studio")
        second.add_station_distance("4233", "台電大樓", "600公尺")

        first.merge_station_distances(second)

        assert [d.station_id for d in first.station_distances] == ["4232", "4233"]

    def test_merge_keeps_stations_without_id(self):
        first = ListingData(
            title="Studio", station_distances=[StationDistanceData(station_name="公館", distance_m=350)]
        )
        second = ListingData(
            title="Studio",
            station_distances=[StationDistanceData(station_name="台電大樓", distance_m=600)],
        )

        first.merge_station_distances(second)

        assert [(d.station_name, d.distance_m) for d in first.station_distances] == [
            ("公館", 350),
            ("台電大樓", 600),
        ]

    def test_same_unknown_station_merged_once(self):
        first = ListingData(title="Studio", station_distances=[StationDistanceData(station_name="公館")])
        second = ListingData(title="Studio", station_distances=[StationDistanceData(station_name="公館")])

        first.merge_station_distances(second)

        assert len(first.station_distances) == 1

    def test_known_and_unknown_id_kept_apart(self):
        listing = ListingData(title="Studio", station_distances=[StationDistanceData(station_name="台電大樓")])
        listing.add_station_distance("4232", "公館", "350公尺")
        assert [d.station_id for d in listing.station_distances] == [None, "4232"]

    def test_all_station_distances_includes_primary(self):
        listing = ListingData(distance_title="距公館捷運站", distance_text="350公尺")
        listing.add_station_distance("4233", "台電大樓", "600公尺")
        names = [d.station_name for d in listing.all_station_distances()]
        assert names == ["公館", "台電大樓"]

    def test_negative_distance_rejected(self):
        with pytest.raises(ValidationError):
            StationDistanceData(station_name="公館", distance_m=-1)


class TestEnums:
    """Tests for status enums."""

    def test_session_status_values(self):
        assert SessionStatus("completed") == SessionStatus.COMPLETED
        assert SessionStatus.RUNNING.value == "running"

    def test_listing_status_values(self):
        assert [s.value for s in ListingStatus] == ["new", "updated", "unchanged"]


class TestChangeResult:
    """Tests for ChangeResult."""

    def test_frozen(self):
        result = ChangeResult(has_changed=False, hash="abc")
        with pytest.raises(ValidationError):
            result.has_changed = True


class TestSettings:
    """Tests for settings models."""

    def test_defaults(self):
        settings = Settings()
        assert settings.allowed_hosts == ["591.com.tw"]
        assert settings.crawl.max_concurrent == 3
        assert settings.crawl.delay_between_requests == 1.0
        assert settings.persistence.batch_size == 5
        assert settings.persistence.page_size == 1000
        assert settings.persistence.transaction_timeout_seconds == 60.0
        assert settings.persistence.cache_ttl_seconds == 300.0
        assert settings.persistence.cache_max_size == 100

    @pytest.mark.parametrize("batch_size", [2, 9])
    def test_batch_size_bounds(self, batch_size):
        with pytest.raises(ValidationError):
            PersistenceSettings(batch_size=batch_size)

    def test_max_concurrent_positive(self):
        with pytest.raises(ValidationError):
            CrawlSettings(max_concurrent=0)
