# ============================================================================
# CONTEXT - GEO LOOKUP MODULE
# ============================================================================
# STATUS: Standalone Module - Geographic lookup engine
# PURPOSE: Coordinate validation, boundary containment, nearest features,
#          boundary import and metro membership over PostGIS
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: GeoLookupService, GeoLookupConfig, get_geo_triggers, component classes
# DEPENDENCIES: psycopg, pydantic, shapely, httpx, pycountry, azure-functions
# PATTERNS: Service Layer, Repository Pattern, Standalone Module
# ENTRY_POINTS: from geo_lookup import GeoLookupService, get_geo_triggers
# ============================================================================

"""
Geo Lookup - Standalone Module

Architecture:
    geo_lookup/
    ├── config.py       # Environment-based configuration
    ├── models.py       # Pydantic models (boundaries, features, metros, results)
    ├── errors.py       # Exception hierarchy
    ├── countries.py    # ISO2 -> ISO3/name resolution
    ├── geometry.py     # Point WKT, haversine, resilient MultiPolygon builder
    ├── repository.py   # PostGIS access (psycopg)
    ├── coordinates.py  # CoordinateValidator
    ├── proximity.py    # ProximityIndex
    ├── locator.py      # BoundaryLocator
    ├── ingest.py       # GeoBoundariesClient, BoundaryIngestor
    ├── metro.py        # MetroResolver
    ├── comparison.py   # GeoSourceComparator
    ├── service.py      # Facade wiring one capability probe per operation
    └── triggers.py     # Azure Functions HTTP handlers

Integration:
    from geo_lookup import get_geo_triggers

    for trigger in get_geo_triggers():
        app.route(
            route=trigger['route'],
            methods=trigger['methods'],
            auth_level=func.AuthLevel.ANONYMOUS
        )(trigger['handler'])
"""

from .config import GeoLookupConfig, get_geo_config
from .coordinates import CoordinateValidator
from .errors import (
    FetchError,
    GeoLookupError,
    GeometryConstructionError,
    InvalidCoordinateError,
    SpatialCapabilityUnavailableError,
    UnresolvableFeatureTypeError,
)
from .ingest import BoundaryIngestor, GeoBoundariesClient
from .locator import BoundaryLocator
from .metro import MetroResolver
from .proximity import ProximityIndex
from .repository import GeoLookupRepository
from .service import GeoLookupService, compare_record, resolve_record
from .triggers import get_geo_triggers

__version__ = "1.0.0"
__all__ = [
    "GeoLookupConfig",
    "get_geo_config",
    "GeoLookupRepository",
    "GeoLookupService",
    "CoordinateValidator",
    "BoundaryLocator",
    "ProximityIndex",
    "BoundaryIngestor",
    "GeoBoundariesClient",
    "MetroResolver",
    "resolve_record",
    "compare_record",
    "get_geo_triggers",
    "GeoLookupError",
    "InvalidCoordinateError",
    "UnresolvableFeatureTypeError",
    "SpatialCapabilityUnavailableError",
    "FetchError",
    "GeometryConstructionError",
]
