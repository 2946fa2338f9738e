# ============================================================================
# CONTEXT - BOUNDARY LOCATOR
# ============================================================================
# STATUS: Component - Point-in-polygon resolution
# PURPOSE: Administrative boundaries containing a point, with proximity fallback
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: BoundaryLocator
# DEPENDENCIES: util_logger, geo_lookup.repository, geo_lookup.proximity
# PATTERNS: Containment first, named-feature fallback
# ============================================================================

"""
Boundary Locator

Resolvers:
    county_or_parish   ADM2 containment; else the nearest ADM2 feature, whose
                       own coordinates are run through ADM2 containment again
                       so the boundary dataset's naming wins when it can
    state_or_province  ADM1 containment only
    township           ADM5, then ADM4, then ADM3 containment (finest first);
                       else the proximity township fallback

Containment never raises: backend errors are logged and read as "no
boundary", and an unavailable capability short-circuits to empty.
"""

from typing import List, Optional, Sequence

from util_logger import LoggerFactory, ComponentType

from .coordinates import coerce_float, normalize_point
from .models import (
    AdmLevel, Boundary, BoundaryResult, LocationMatch, SpatialCapability, SubdivisionResult
)
from .proximity import ProximityIndex

TOWNSHIP_LEVELS = [AdmLevel.ADM5, AdmLevel.ADM4, AdmLevel.ADM3]
SUBDIVISION_CONTEXT_LEVELS = [AdmLevel.ADM2, AdmLevel.ADM3, AdmLevel.ADM4, AdmLevel.ADM5]


class BoundaryLocator:
    """Resolves the administrative boundaries containing a point."""

    def __init__(self, repository, capability: SpatialCapability,
                 proximity: Optional[ProximityIndex] = None):
        self.repository = repository
        self.capability = capability
        self.proximity = proximity
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "BoundaryLocator")

    def containing_boundaries(
        self,
        latitude: float,
        longitude: float,
        levels: Optional[Sequence[AdmLevel]] = None
    ) -> List[Boundary]:
        """
        Boundaries containing the point, ordered by level, at most the containment limit.

        A swapped lat/lng pair is repaired; any other out-of-range point gives [].
        """
        point = normalize_point(latitude, longitude)
        if point is None:
            self.logger.debug(f"Containment skipped for out-of-range point ({latitude}, {longitude})")
            return []
        if point[0] != coerce_float(latitude):
            self.logger.info(f"Swapped latitude/longitude ({latitude}, {longitude}) -> {point}")

        if not self.capability.available:
            self.logger.debug(f"Containment skipped: {self.capability.reason}")
            return []

        try:
            return self.repository.containing_boundaries(point[0], point[1], levels=levels)
        except Exception as e:
            self.logger.error(f"❌ Containment query failed for {point}: {type(e).__name__}: {e}")
            return []

    def containing_boundary(self, latitude: float, longitude: float, level: AdmLevel) -> Optional[Boundary]:
        boundaries = self.containing_boundaries(latitude, longitude, levels=[level])
        return boundaries[0] if boundaries else None

    def county_or_parish(self, latitude: float, longitude: float) -> Optional[LocationMatch]:
        boundary = self.containing_boundary(latitude, longitude, AdmLevel.ADM2)
        if boundary:
            return BoundaryResult(boundary=boundary, level=AdmLevel.ADM2)

        if self.proximity is None:
            return None

        nearby = self.proximity.closest_county_or_parish(latitude, longitude)
        if nearby is None:
            return None

        bridged = self.containing_boundary(nearby.feature.latitude, nearby.feature.longitude, AdmLevel.ADM2)
        if bridged:
            self.logger.debug(f"County bridged through {nearby.feature.name} to {bridged.name}")
            return BoundaryResult(
                boundary=bridged,
                distance_km=nearby.distance_km,
                level=AdmLevel.ADM2,
                via_feature=nearby.feature
            )

        return nearby

    def state_or_province(self, latitude: float, longitude: float) -> Optional[BoundaryResult]:
        boundary = self.containing_boundary(latitude, longitude, AdmLevel.ADM1)
        if boundary:
            return BoundaryResult(boundary=boundary, level=AdmLevel.ADM1)
        return None

    def township(self, latitude: float, longitude: float) -> Optional[LocationMatch]:
        for level in TOWNSHIP_LEVELS:
            boundary = self.containing_boundary(latitude, longitude, level)
            if boundary:
                return BoundaryResult(boundary=boundary, level=level)

        if self.proximity is None:
            return None
        return self.proximity.closest_township(latitude, longitude)

    def subdivision_with_boundary_context(self, latitude: float, longitude: float) -> SubdivisionResult:
        """Nearest PPLX feature plus the ADM2-ADM5 boundaries containing the point."""
        match = self.proximity.closest_subdivision(latitude, longitude) if self.proximity else None
        boundaries = self.containing_boundaries(latitude, longitude, levels=SUBDIVISION_CONTEXT_LEVELS)
        return SubdivisionResult(match=match, boundaries=boundaries)
