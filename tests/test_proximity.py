"""Unit tests for ProximityIndex and the bounding-box prefilter."""

import math
from unittest.mock import MagicMock

import pytest

from geo_lookup.errors import UnresolvableFeatureTypeError
from geo_lookup.proximity import KM_PER_DEGREE, ProximityIndex, bounding_box, haversine_km

from conftest import NYC, FakeGeoRepository, make_feature


@pytest.fixture
def index(fake_repo, ready):
    return ProximityIndex(fake_repo, ready)


class TestBoundingBox:
    def test_deltas_follow_latitude(self):
        bbox = bounding_box(*NYC, 50)
        assert bbox.lat_delta == pytest.approx(50 / 111)
        expected_lng = 50 / (KM_PER_DEGREE * math.cos(math.radians(NYC[0])))
        assert bbox.lng_delta == pytest.approx(expected_lng)
        assert bbox.lng_delta == pytest.approx(0.594, abs=0.001)
        assert bbox.min_lng < NYC[1] < bbox.max_lng

    def test_pole_uses_full_longitude_range(self):
        bbox = bounding_box(90.0, 10.0, 25)
        assert (bbox.min_lng, bbox.max_lng) == (-180.0, 180.0)

    def test_antimeridian_uses_full_longitude_range(self):
        bbox = bounding_box(-17.7, 179.9, 50)
        assert (bbox.min_lng, bbox.max_lng) == (-180.0, 180.0)


def test_haversine_new_york_to_los_angeles():
    assert haversine_km(40.7128, -74.0060, 34.0522, -118.2437) == pytest.approx(3936, rel=0.01)


def test_haversine_zero_distance():
    assert haversine_km(*NYC, *NYC) == 0.0


class TestResolveFeatureType:
    def test_explicit_values_are_uppercased(self, index, fake_repo):
        assert index.resolve_feature_type("p", "pplx", keyword="school") == ("P", "PPLX")
        assert fake_repo.keyword_calls == []

    def test_keyword_lookup(self, index):
        assert index.resolve_feature_type(keyword="School") == ("S", "SCH")

    def test_keyword_picks_first_by_class_and_code(self, index):
        assert index.resolve_feature_type(keyword="city") == ("P", "PPL")

    def test_unknown_keyword_raises(self, index):
        with pytest.raises(UnresolvableFeatureTypeError) as exc:
            index.resolve_feature_type(keyword="volcano")
        assert exc.value.keyword == "volcano"

    def test_nothing_given_raises(self, index):
        with pytest.raises(UnresolvableFeatureTypeError):
            index.resolve_feature_type(keyword="   ")


class TestNearestFeatures:
    def test_sorted_nearest_first_within_radius(self, index):
        results = index.nearest_features(*NYC, feature_class="P", feature_code="PPL", radius_km=10)
        assert [r.name for r in results] == ["Jersey City", "Hoboken"]
        assert results[0].distance_km < results[1].distance_km
        assert all(r.source == "feature" for r in results)

    def test_limit_truncates(self, index):
        results = index.nearest_features(*NYC, feature_class="P", feature_code="PPL", radius_km=10, limit=1)
        assert [r.name for r in results] == ["Jersey City"]

    def test_radius_excludes_far_features(self, index):
        results = index.nearest_features(*NYC, feature_class="P", feature_code="PPL", radius_km=200)
        assert "Philadelphia" in [r.name for r in results]
        results = index.nearest_features(*NYC, feature_class="P", feature_code="PPL", radius_km=100)
        assert "Philadelphia" not in [r.name for r in results]

    def test_box_corner_outside_radius_is_filtered(self, ready):
        # Inside the bounding box but farther than the radius along the diagonal
        corner = make_feature(1, "Corner", NYC[0] + 0.4, NYC[1] + 0.55)
        index = ProximityIndex(FakeGeoRepository(features=[corner]), ready)
        assert index.nearest_features(*NYC, feature_class="P", radius_km=50) == []

    def test_keyword_resolution(self, index):
        results = index.nearest_features(*NYC, keyword="neighborhood", radius_km=5)
        assert [r.name for r in results] == ["Financial District"]
        assert results[0].feature_code == "PPLX"

    def test_unresolvable_keyword_returns_empty(self, index, fake_repo):
        assert index.nearest_features(*NYC, keyword="volcano") == []
        assert fake_repo.box_calls == []

    def test_no_type_returns_empty(self, index):
        assert index.nearest_features(*NYC) == []

    def test_unavailable_capability_returns_empty(self, fake_repo, unavailable):
        index = ProximityIndex(fake_repo, unavailable)
        assert index.nearest_features(*NYC, feature_class="P") == []
        assert fake_repo.box_calls == []

    def test_backend_error_returns_empty(self, ready):
        repo = MagicMock()
        repo.features_in_box.side_effect = RuntimeError("connection refused")
        assert ProximityIndex(repo, ready).nearest_features(*NYC, feature_class="P") == []

    def test_missing_coordinates_return_empty(self, index):
        assert index.nearest_features(None, NYC[1], feature_class="P") == []


class TestClosestHelpers:
    def test_closest_county_or_parish(self, index):
        result = index.closest_county_or_parish(*NYC)
        assert result.name == "Kings County Seat"

    def test_closest_subdivision_within_one_km(self, index):
        assert index.closest_subdivision(*NYC).name == "Financial District"
        assert index.closest_subdivision(40.80, -73.95) is None

    def test_radius_can_be_overridden(self, index):
        assert index.closest_subdivision(40.80, -73.95, radius_km=15).name == "Financial District"
        assert index.closest_county_or_parish(*NYC, radius_km=1) is None
        assert index.closest_township(*NYC, radius_km=0.5) is None

    def test_closest_township_is_coarsest_first(self, index):
        # The ADM4 ward is nearer, but ADM3 is searched first
        result = index.closest_township(*NYC)
        assert result.feature_code == "ADM3"
        assert result.name == "Manhattan Township"

    def test_closest_township_falls_through_levels(self, ready):
        ward = make_feature(203, "Battery Ward", 40.705, -74.015, "A", "ADM4")
        index = ProximityIndex(FakeGeoRepository(features=[ward]), ready)
        assert index.closest_township(*NYC).feature_code == "ADM4"
