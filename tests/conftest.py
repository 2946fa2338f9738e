"""Shared fixtures: an in-memory stand-in for GeoLookupRepository."""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import pytest
from shapely.geometry import box

from geo_lookup.config import GeoLookupConfig
from geo_lookup.geometry import make_point
from geo_lookup.models import (
    AdmLevel, Boundary, FeatureTypeCode, Metro, NamedFeature, SpatialCapability
)


class FakeConnection:
    """Connection handed out by FakeGeoRepository.session()."""

    def __init__(self):
        self.savepoints = 0
        self.rolled_back = 0

    @contextmanager
    def transaction(self):
        self.savepoints += 1
        try:
            yield self
        except Exception:
            self.rolled_back += 1
            raise


class FakeGeoRepository:
    """
    Same read/write surface as GeoLookupRepository, answered from memory.

    Containment runs against shapely geometries built in (lng, lat) order,
    the same order the SQL path encodes points in.
    """

    def __init__(self, boundaries=None, features=None, feature_types=None,
                 metros=None, members=None, capability=None, union_stats=None):
        self.schema_name = "geo"
        self.boundaries: List[Boundary] = list(boundaries or [])
        self.features: List[NamedFeature] = list(features or [])
        self.feature_types: List[FeatureTypeCode] = list(feature_types or [])
        self.metros: Dict[int, Metro] = {m.id: m for m in (metros or [])}
        self.members: Dict[int, List[int]] = {k: list(v) for k, v in (members or {}).items()}
        self.capability = capability or SpatialCapability.ready()
        self.union_stats = union_stats or {}

        self.stored: Dict[tuple, Dict[str, Any]] = {}
        self.fail_store_names: set = set()
        self.containment_calls: List[tuple] = []
        self.keyword_calls: List[str] = []
        self.box_calls: List[tuple] = []
        self.sessions: List[FakeConnection] = []
        self.commits = 0

    # Capability -------------------------------------------------------------

    def probe_capability(self) -> SpatialCapability:
        return self.capability

    # Boundaries -------------------------------------------------------------

    def containing_boundaries(self, latitude, longitude, levels=None, limit=None):
        self.containment_calls.append((latitude, longitude))
        point = make_point(latitude, longitude)
        wanted = {AdmLevel(level) for level in levels} if levels else None
        found = [
            b for b in self.boundaries
            if b.geometry is not None and b.geometry.contains(point)
            and (wanted is None or b.level in wanted)
        ]
        found.sort(key=lambda b: (b.level.value, b.name))
        return found[:limit] if limit else found

    def boundary_counts_by_level(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for b in self.boundaries:
            counts[b.level.value] = counts.get(b.level.value, 0) + 1
        return counts

    @contextmanager
    def session(self):
        conn = FakeConnection()
        self.sessions.append(conn)
        yield conn
        self.commits += 1

    def upsert_boundary(self, row: Dict[str, Any], conn) -> bool:
        if row["name"] in self.fail_store_names:
            raise RuntimeError(f"duplicate key value violates constraint for {row['name']}")
        key = (row["name"], row["level"], row["shape_id"])
        inserted = key not in self.stored
        self.stored[key] = dict(row)
        return inserted

    # Named features ---------------------------------------------------------

    def features_in_box(self, bbox, feature_class=None, feature_code=None):
        self.box_calls.append((bbox, feature_class, feature_code))
        return [
            f for f in self.features
            if bbox.min_lat <= f.latitude <= bbox.max_lat
            and bbox.min_lng <= f.longitude <= bbox.max_lng
            and (not feature_class or f.feature_class == feature_class.upper())
            and (not feature_code or f.feature_code == feature_code.upper())
        ]

    def find_feature_type_by_keyword(self, keyword: str) -> Optional[FeatureTypeCode]:
        self.keyword_calls.append(keyword)
        needle = keyword.strip().lower()
        matches = [
            t for t in self.feature_types
            if needle in (t.name or "").lower() or needle in (t.description or "").lower()
        ]
        matches.sort(key=lambda t: (t.feature_class, t.feature_code))
        return matches[0] if matches else None

    # Metros -----------------------------------------------------------------

    def _boundary(self, boundary_id: int) -> Optional[Boundary]:
        return next((b for b in self.boundaries if b.id == boundary_id), None)

    def get_metro(self, metro_id: int) -> Optional[Metro]:
        metro = self.metros.get(metro_id)
        if metro is None:
            return None
        return metro.model_copy(update={"boundary_ids": sorted(self.members.get(metro_id, []))})

    def metro_contains_point(self, metro_id, latitude, longitude) -> bool:
        point = make_point(latitude, longitude)
        return any(
            b.geometry.contains(point)
            for b in self.metro_boundaries(metro_id) if b.geometry is not None
        )

    def metros_containing_point(self, latitude, longitude) -> List[Metro]:
        hits = [self.get_metro(mid) for mid in self.metros
                if self.metro_contains_point(mid, latitude, longitude)]
        return sorted(hits, key=lambda m: m.name)

    def metro_boundaries(self, metro_id: int) -> List[Boundary]:
        members = [self._boundary(bid) for bid in self.members.get(metro_id, [])]
        return sorted((b for b in members if b is not None), key=lambda b: b.name)

    def add_metro_boundary(self, metro_id: int, boundary_id: int) -> None:
        ids = self.members.setdefault(metro_id, [])
        if boundary_id not in ids:
            ids.append(boundary_id)

    def remove_metro_boundary(self, metro_id: int, boundary_id: int) -> None:
        ids = self.members.get(metro_id, [])
        if boundary_id in ids:
            ids.remove(boundary_id)

    def metro_union_stats(self, metro_id: int):
        stats = self.union_stats.get(metro_id)
        if isinstance(stats, Exception):
            raise stats
        return stats


# ============================================================================
# Sample data (lng/lat boxes around New York City and Tokyo)
# ============================================================================

def make_boundary(id, name, level, min_lng, min_lat, max_lng, max_lat, group="USA"):
    return Boundary(
        id=id,
        name=name,
        level=AdmLevel(level),
        shape_id=f"{group}-{level}-{id}",
        shape_iso=group,
        shape_group=group,
        source_url="https://example.org/boundaries.geojson",
        geometry=box(min_lng, min_lat, max_lng, max_lat)
    )


def make_feature(id, name, latitude, longitude, feature_class="P", feature_code="PPL", **extra):
    return NamedFeature(
        id=id, name=name, latitude=latitude, longitude=longitude,
        feature_class=feature_class, feature_code=feature_code, country_code="US", **extra
    )


NYC = (40.7128, -74.0060)


@pytest.fixture
def geo_config():
    return GeoLookupConfig(
        geo_schema="geo",
        boundary_cache_dir="/tmp/unused",
        geoboundaries_api_url="https://gb.test/api/current/gbOpen/",
        http_timeout_seconds=5
    )


@pytest.fixture
def nyc_boundaries():
    return [
        make_boundary(1, "New York", "ADM1", -80.0, 40.0, -72.0, 45.0),
        make_boundary(2, "New York County", "ADM2", -74.05, 40.68, -73.90, 40.88),
        make_boundary(3, "City of New York", "ADM3", -74.30, 40.50, -73.70, 40.95),
        make_boundary(4, "Lower Manhattan", "ADM4", -74.02, 40.70, -73.97, 40.75),
        make_boundary(5, "Kings County", "ADM2", -74.05, 40.55, -73.85, 40.67),
        make_boundary(6, "New Jersey", "ADM1", -75.6, 38.9, -74.06, 41.4),
        make_boundary(7, "Tokyo", "ADM1", 139.0, 35.0, 140.0, 36.0, group="JPN"),
    ]


@pytest.fixture
def nyc_features():
    return [
        make_feature(101, "Financial District", 40.7075, -74.0113, "P", "PPLX"),
        make_feature(102, "Hoboken", 40.7440, -74.0324, "P", "PPL"),
        make_feature(103, "Jersey City", 40.7178, -74.0431, "P", "PPL"),
        make_feature(104, "Philadelphia", 39.9526, -75.1652, "P", "PPL"),
        make_feature(201, "Kings County Seat", 40.6500, -73.9500, "A", "ADM2"),
        make_feature(202, "Manhattan Township", 40.7300, -73.9900, "A", "ADM3"),
        make_feature(203, "Battery Ward", 40.7050, -74.0150, "A", "ADM4"),
    ]


@pytest.fixture
def feature_types():
    return [
        FeatureTypeCode(feature_class="P", feature_code="PPL", name="populated place",
                        description="a city, town, village, or other agglomeration"),
        FeatureTypeCode(feature_class="P", feature_code="PPLX", name="section of populated place",
                        description="a neighborhood or section of a city"),
        FeatureTypeCode(feature_class="S", feature_code="SCH", name="school",
                        description="building where instruction is given"),
    ]


@pytest.fixture
def fake_repo(nyc_boundaries, nyc_features, feature_types):
    return FakeGeoRepository(
        boundaries=nyc_boundaries,
        features=nyc_features,
        feature_types=feature_types
    )


@pytest.fixture
def ready():
    return SpatialCapability.ready()


@pytest.fixture
def unavailable():
    return SpatialCapability.unavailable("schema 'geo' does not exist")
