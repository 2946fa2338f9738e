# ============================================================================
# CONTEXT - GEO LOOKUP SERVICE
# ============================================================================
# STATUS: Service Layer - Facade over the lookup components
# PURPOSE: One capability probe per operation, components wired with that value
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: GeoLookupService, GeoComponents, resolve_record, compare_record
# DEPENDENCIES: util_logger, geo_lookup components
# PATTERNS: Facade, explicit capability passing
# ENTRY_POINTS: GeoLookupService().resolve(40.7128, -74.0060)
# ============================================================================

"""
Geo Lookup Service

Usage:
    service = GeoLookupService()
    context = service.resolve(40.7128, -74.0060, expected_country="US")
    context.state_or_province.name   # "New York"

    # Any object with latitude/longitude attributes
    context = resolve_record(listing, service)
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from util_logger import LoggerFactory, ComponentType

from .comparison import ExtraSourceProvider, GeoSourceComparator
from .config import GeoLookupConfig, get_geo_config
from .coordinates import CoordinateValidator, coerce_float, normalize_point
from .errors import InvalidCoordinateError, SpatialCapabilityUnavailableError
from .ingest import BoundaryIngestor, GeoBoundariesClient
from .locator import BoundaryLocator
from .metro import MetroResolver
from .models import GeoContext, HasCoordinates, Metro, ProximityResult, SpatialCapability
from .proximity import ProximityIndex
from .repository import GeoLookupRepository


@dataclass
class GeoComponents:
    """Components sharing one capability value."""
    capability: SpatialCapability
    proximity: ProximityIndex
    locator: BoundaryLocator
    validator: CoordinateValidator
    metros: MetroResolver


class GeoLookupService:
    """Entry point for lookups, comparisons and imports."""

    def __init__(self, repository: Optional[GeoLookupRepository] = None,
                 config: Optional[GeoLookupConfig] = None):
        self.config = config or get_geo_config()
        self._repository = repository
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "GeoLookupService")

    @property
    def repository(self) -> GeoLookupRepository:
        if self._repository is None:
            self._repository = GeoLookupRepository(self.config)
        return self._repository

    def probe_capability(self) -> SpatialCapability:
        capability = self.repository.probe_capability()
        if not capability.available:
            self.logger.warning(f"⚠️ Spatial lookups unavailable: {capability.reason}")
        return capability

    def require_capability(self) -> SpatialCapability:
        """
        probe_capability(), raising when lookups cannot run.

        Raises:
            SpatialCapabilityUnavailableError: schema, tables or PostGIS missing
        """
        capability = self.probe_capability()
        if not capability.available:
            raise SpatialCapabilityUnavailableError(capability.reason or "spatial backend not configured")
        return capability

    def components(self, capability: Optional[SpatialCapability] = None) -> GeoComponents:
        capability = capability or self.probe_capability()
        proximity = ProximityIndex(self.repository, capability)
        locator = BoundaryLocator(self.repository, capability, proximity=proximity)
        return GeoComponents(
            capability=capability,
            proximity=proximity,
            locator=locator,
            validator=CoordinateValidator(locator),
            metros=MetroResolver(self.repository, capability)
        )

    # ------------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------------

    def resolve(
        self,
        latitude,
        longitude,
        expected_country: Optional[str] = None,
        include_metros: bool = True,
        strict: bool = False,
        capability: Optional[SpatialCapability] = None
    ) -> GeoContext:
        """
        Full geographic context for a coordinate pair.

        Args:
            latitude, longitude: Degrees or radians
            expected_country: ISO2 hint for degree/radian disambiguation
            include_metros: Also resolve containing metros
            strict: Raise InvalidCoordinateError instead of returning valid=False
            capability: Reuse an already probed capability
        """
        parts = self.components(capability)
        context = GeoContext(
            input_latitude=coerce_float(latitude),
            input_longitude=coerce_float(longitude),
            capability=parts.capability
        )

        point = parts.validator.validate(latitude, longitude, expected_country)
        if point is None:
            if strict:
                raise InvalidCoordinateError(latitude, longitude)
            return context

        lat, lng = point
        context.latitude, context.longitude = lat, lng
        context.valid = True

        if not parts.capability.available:
            return context

        context.boundaries = parts.locator.containing_boundaries(lat, lng)
        context.state_or_province = parts.locator.state_or_province(lat, lng)
        context.county_or_parish = parts.locator.county_or_parish(lat, lng)
        context.township = parts.locator.township(lat, lng)
        context.subdivision = parts.locator.subdivision_with_boundary_context(lat, lng)
        if include_metros:
            context.metros = parts.metros.metros_containing(lat, lng)

        self.logger.debug(f"Resolved ({lat}, {lng}): {len(context.boundaries)} boundaries")
        return context

    def nearest(
        self,
        latitude,
        longitude,
        feature_class: Optional[str] = None,
        feature_code: Optional[str] = None,
        keyword: Optional[str] = None,
        radius_km: float = 100,
        limit: int = 5,
        capability: Optional[SpatialCapability] = None
    ) -> List[ProximityResult]:
        """
        Nearest named features; raises InvalidCoordinateError on unusable coordinates.
        """
        parts = self.components(capability)
        lat, lng = self._require_point(parts, latitude, longitude)
        return parts.proximity.nearest_features(
            lat, lng,
            feature_class=feature_class,
            feature_code=feature_code,
            keyword=keyword,
            radius_km=radius_km,
            limit=limit
        )

    def metro_contains(
        self,
        metro_id: int,
        latitude,
        longitude,
        capability: Optional[SpatialCapability] = None
    ) -> Tuple[Optional[Metro], bool]:
        """(metro, contained); metro is None when the id is unknown."""
        parts = self.components(capability)
        lat, lng = self._require_point(parts, latitude, longitude)
        metro = self.repository.get_metro(metro_id)
        if metro is None:
            return None, False
        return metro, parts.metros.contains_point(metro, lat, lng)

    @staticmethod
    def _require_point(parts: GeoComponents, latitude, longitude) -> Tuple[float, float]:
        """Validated degrees that also pass the range check (swap repaired)."""
        lat, lng = parts.validator.require_valid(latitude, longitude)
        point = normalize_point(lat, lng)
        if point is None:
            raise InvalidCoordinateError(latitude, longitude, reason="outside degree range")
        return point

    # ------------------------------------------------------------------------
    # Tooling
    # ------------------------------------------------------------------------

    def comparator(self, extra_source: Optional[ExtraSourceProvider] = None,
                   capability: Optional[SpatialCapability] = None) -> GeoSourceComparator:
        parts = self.components(capability)
        return GeoSourceComparator(parts.locator, parts.proximity, extra_source=extra_source)

    def ingestor(self, client: Optional[GeoBoundariesClient] = None) -> BoundaryIngestor:
        return BoundaryIngestor(self.repository, client=client, config=self.config)


def resolve_record(record: HasCoordinates, service: Optional[GeoLookupService] = None,
                   expected_country: Optional[str] = None) -> GeoContext:
    """Geographic context for any object exposing latitude/longitude."""
    service = service or GeoLookupService()
    return service.resolve(
        getattr(record, "latitude", None),
        getattr(record, "longitude", None),
        expected_country=expected_country
    )


def compare_record(record: HasCoordinates, service: Optional[GeoLookupService] = None,
                   extra_source: Optional[ExtraSourceProvider] = None) -> str:
    """Rendered source comparison table for a record."""
    service = service or GeoLookupService()
    comparator = service.comparator(extra_source=extra_source)
    return comparator.render(comparator.compare(record))
