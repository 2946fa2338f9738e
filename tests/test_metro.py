"""Unit tests for MetroResolver."""

import pytest

from geo_lookup.metro import MetroResolver
from geo_lookup.models import Metro

from conftest import NYC, FakeGeoRepository


@pytest.fixture
def metro():
    return Metro(id=1, name="New York Metro", country_code="us", population=1_000_000,
                 details="Tri-state area")


@pytest.fixture
def repo(nyc_boundaries, metro):
    return FakeGeoRepository(
        boundaries=nyc_boundaries,
        metros=[metro, Metro(id=2, name="Tokyo Metro", country_code="JP")],
        members={1: [2, 6], 2: [7]},
        union_stats={1: {"area_km2": 12345.678, "lat": 40.9, "lng": -74.3}}
    )


@pytest.fixture
def resolver(repo, ready):
    return MetroResolver(repo, ready)


class TestContainment:
    def test_point_in_member(self, resolver, metro):
        assert resolver.contains_point(metro, *NYC)
        assert resolver.contains_point(1, *NYC)

    def test_point_outside_members(self, resolver, metro):
        assert not resolver.contains_point(metro, 35.6, 139.7)

    def test_adding_member_never_removes_points(self, resolver, metro):
        assert resolver.contains_point(metro, *NYC)
        resolver.add_boundary(metro, 7)
        assert resolver.contains_point(metro, *NYC)
        assert resolver.contains_point(metro, 35.6, 139.7)
        assert 7 in metro.boundary_ids

    def test_removing_member(self, resolver, metro):
        resolver.add_boundary(metro, 2)
        resolver.remove_boundary(metro, 2)
        assert not resolver.contains_point(metro, *NYC)
        assert 2 not in metro.boundary_ids

    def test_unavailable_capability(self, repo, metro, unavailable):
        assert not MetroResolver(repo, unavailable).contains_point(metro, *NYC)
        assert MetroResolver(repo, unavailable).metros_containing(*NYC) == []

    def test_invalid_point(self, resolver, metro):
        assert not resolver.contains_point(metro, 500, 500)

    def test_metros_containing(self, resolver):
        assert [m.name for m in resolver.metros_containing(*NYC)] == ["New York Metro"]
        assert resolver.within_metro(35.6, 139.7).name == "Tokyo Metro"
        assert resolver.within_metro(0.0, 0.0) is None


class TestStatistics:
    def test_area_and_centroid(self, resolver, metro):
        assert resolver.total_area_km2(metro) == 12345.68
        assert resolver.centroid(metro) == (40.9, -74.3)

    def test_population_density(self, resolver, metro):
        assert resolver.population_density(metro) == pytest.approx(81.0)

    def test_density_requires_population(self, resolver):
        assert resolver.population_density(Metro(id=2, name="Tokyo Metro")) is None

    def test_stats_error_returns_none(self, repo, ready, metro):
        repo.union_stats[1] = RuntimeError("ST_Union failed")
        resolver = MetroResolver(repo, ready)
        assert resolver.total_area_km2(metro) is None
        assert resolver.centroid(metro) is None

    def test_membership_summaries(self, resolver, metro):
        assert resolver.boundary_names(metro) == ["New Jersey", "New York County"]
        assert resolver.admin_levels(metro) == ["ADM1", "ADM2"]
        assert not resolver.is_multi_state(metro)

    def test_multi_state(self, resolver, metro):
        resolver.add_boundary(metro, 1)
        assert resolver.is_multi_state(metro)

    def test_display_name(self, resolver, metro):
        assert resolver.display_name(metro) == (
            "New York Metro - (US) - 2 boundaries, 2 admin levels\nTri-state area"
        )

    def test_geographic_summary(self, resolver, metro):
        summary = resolver.geographic_summary(metro)
        assert summary["total_boundaries"] == 2
        assert summary["by_level"] == {"ADM1": 1, "ADM2": 1}
        assert summary["spans_multiple_states"] is False
        assert summary["total_area_km2"] == 12345.68
        assert summary["population_density"] == pytest.approx(81.0)
