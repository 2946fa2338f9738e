"""Unit tests for the GeoLookupService facade."""

import math
import sys
from types import SimpleNamespace

import pytest

from geo_lookup.errors import InvalidCoordinateError, SpatialCapabilityUnavailableError
from geo_lookup.models import BoundaryResult, Metro, SpatialCapability
from geo_lookup.service import GeoLookupService, compare_record, resolve_record

from conftest import NYC, FakeGeoRepository


@pytest.fixture
def repo(nyc_boundaries, nyc_features, feature_types):
    return FakeGeoRepository(
        boundaries=nyc_boundaries,
        features=nyc_features,
        feature_types=feature_types,
        metros=[Metro(id=1, name="New York Metro", country_code="US")],
        members={1: [2]}
    )


@pytest.fixture
def service(repo, geo_config):
    return GeoLookupService(repository=repo, config=geo_config)


class TestResolve:
    def test_full_context(self, service):
        context = service.resolve(*NYC, expected_country="US")

        assert context.valid
        assert (context.latitude, context.longitude) == NYC
        assert context.state_or_province.name == "New York"
        assert isinstance(context.county_or_parish, BoundaryResult)
        assert context.county_or_parish.name == "New York County"
        assert context.township.name == "Lower Manhattan"
        assert context.subdivision.name == "Financial District"
        assert [m.name for m in context.metros] == ["New York Metro"]
        assert len(context.boundaries) == 4

    def test_radians_with_country(self, service):
        context = service.resolve(math.radians(NYC[0]), math.radians(NYC[1]), expected_country="US")
        assert context.latitude == pytest.approx(NYC[0])
        assert context.state_or_province.name == "New York"

    def test_repeated_requests_on_warm_worker(self, service):
        point = (math.radians(NYC[0]), math.radians(NYC[1]))
        for _ in range(sys.getrecursionlimit() + 50):
            context = service.resolve(*point, expected_country="US")
        assert context.state_or_province.name == "New York"

    def test_metros_optional(self, service):
        assert service.resolve(*NYC, include_metros=False).metros == []

    def test_invalid_coordinates(self, service):
        context = service.resolve(None, -74.0)
        assert not context.valid
        assert context.boundaries == []

    def test_invalid_coordinates_strict(self, service):
        with pytest.raises(InvalidCoordinateError):
            service.resolve(2000, 0, strict=True)

    def test_unavailable_capability_still_validates(self, repo, geo_config):
        repo.capability = SpatialCapability.unavailable("PostGIS extension is not installed")
        context = GeoLookupService(repository=repo, config=geo_config).resolve(*NYC)

        assert context.valid
        assert not context.capability.available
        assert context.state_or_province is None
        assert repo.containment_calls == []

    def test_require_capability_raises_when_unavailable(self, service, repo):
        assert service.require_capability().available

        repo.capability = SpatialCapability.unavailable("missing tables: geonames")
        with pytest.raises(SpatialCapabilityUnavailableError) as exc_info:
            service.require_capability()
        assert exc_info.value.reason == "missing tables: geonames"

    def test_boundary_geometry_not_serialized(self, service):
        dumped = service.resolve(*NYC).model_dump(mode="json")
        assert "geometry" not in dumped["boundaries"][0]
        assert dumped["county_or_parish"]["source"] == "boundary"

    def test_explicit_capability_skips_probe(self, service, repo):
        repo.capability = SpatialCapability.unavailable("should not be probed")
        context = service.resolve(*NYC, capability=SpatialCapability.ready())
        assert context.state_or_province.name == "New York"


class TestNearestAndMetro:
    def test_nearest(self, service):
        results = service.nearest(*NYC, keyword="neighborhood", radius_km=5)
        assert [r.name for r in results] == ["Financial District"]

    def test_nearest_rejects_converted_out_of_range(self, service):
        with pytest.raises(InvalidCoordinateError):
            service.nearest(95, 180, feature_class="P")

    def test_metro_contains(self, service):
        metro, contained = service.metro_contains(1, *NYC)
        assert metro.name == "New York Metro"
        assert contained

    def test_unknown_metro(self, service):
        assert service.metro_contains(99, *NYC) == (None, False)


class TestRecordHelpers:
    def test_resolve_record(self, service):
        listing = SimpleNamespace(latitude=NYC[0], longitude=NYC[1])
        assert resolve_record(listing, service).state_or_province.name == "New York"

    def test_resolve_record_without_coordinates(self, service):
        assert not resolve_record(SimpleNamespace(), service).valid

    def test_compare_record(self, service):
        listing = SimpleNamespace(latitude=NYC[0], longitude=NYC[1], county_or_parish="New York County")
        text = compare_record(listing, service)
        assert "GEO SOURCES COMPARISON" in text

    def test_ingestor_shares_repository(self, service, repo):
        assert service.ingestor().repository is repo
