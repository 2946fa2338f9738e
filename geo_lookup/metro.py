# ============================================================================
# CONTEXT - METRO RESOLVER
# ============================================================================
# STATUS: Component - Metropolitan area membership and statistics
# PURPOSE: Point-in-metro tests and union-based aggregates over member boundaries
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: MetroResolver
# DEPENDENCIES: util_logger, geo_lookup.repository
# PATTERNS: Existential containment, aggregate over ST_Union
# ============================================================================

"""
Metro Resolver

A metro is a set of member boundaries. A point is in the metro when ANY
member contains it, so adding a member never removes a point. Area and
centroid come from the union of the members; overlapping members count once.
"""

from collections import Counter
from typing import Any, Dict, List, Optional, Tuple, Union

from util_logger import LoggerFactory, ComponentType

from .coordinates import normalize_point
from .models import AdmLevel, Boundary, Metro, SpatialCapability

MetroRef = Union[Metro, int]


def _metro_id(metro: MetroRef) -> int:
    return metro.id if isinstance(metro, Metro) else int(metro)


class MetroResolver:
    """Metro lookups and statistics."""

    def __init__(self, repository, capability: SpatialCapability):
        self.repository = repository
        self.capability = capability
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "MetroResolver")

    # ------------------------------------------------------------------------
    # Containment
    # ------------------------------------------------------------------------

    def contains_point(self, metro: MetroRef, latitude: float, longitude: float) -> bool:
        """True iff any member boundary contains the point."""
        point = normalize_point(latitude, longitude)
        if point is None or not self.capability.available:
            return False
        try:
            return self.repository.metro_contains_point(_metro_id(metro), point[0], point[1])
        except Exception as e:
            self.logger.error(f"❌ Metro containment failed for metro {_metro_id(metro)}: {e}")
            return False

    def metros_containing(self, latitude: float, longitude: float) -> List[Metro]:
        point = normalize_point(latitude, longitude)
        if point is None or not self.capability.available:
            return []
        try:
            return self.repository.metros_containing_point(point[0], point[1])
        except Exception as e:
            self.logger.error(f"❌ Metro lookup failed for {point}: {e}")
            return []

    def within_metro(self, latitude: float, longitude: float) -> Optional[Metro]:
        metros = self.metros_containing(latitude, longitude)
        return metros[0] if metros else None

    # ------------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------------

    def add_boundary(self, metro: MetroRef, boundary_id: int) -> None:
        self.repository.add_metro_boundary(_metro_id(metro), boundary_id)
        if isinstance(metro, Metro) and boundary_id not in metro.boundary_ids:
            metro.boundary_ids.append(boundary_id)
        self.logger.info(f"Added boundary {boundary_id} to metro {_metro_id(metro)}")

    def remove_boundary(self, metro: MetroRef, boundary_id: int) -> None:
        self.repository.remove_metro_boundary(_metro_id(metro), boundary_id)
        if isinstance(metro, Metro) and boundary_id in metro.boundary_ids:
            metro.boundary_ids.remove(boundary_id)
        self.logger.info(f"Removed boundary {boundary_id} from metro {_metro_id(metro)}")

    def boundaries(self, metro: MetroRef) -> List[Boundary]:
        return self.repository.metro_boundaries(_metro_id(metro))

    # ------------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------------

    def _union_stats(self, metro: MetroRef) -> Optional[Dict[str, Any]]:
        try:
            return self.repository.metro_union_stats(_metro_id(metro))
        except Exception as e:
            self.logger.warning(f"⚠️ Error calculating metro statistics: {e}")
            return None

    def total_area_km2(self, metro: MetroRef) -> Optional[float]:
        stats = self._union_stats(metro)
        if not stats or stats.get("area_km2") is None:
            return None
        return round(float(stats["area_km2"]), 2)

    def centroid(self, metro: MetroRef) -> Optional[Tuple[float, float]]:
        """(lat, lng) of the union's centroid."""
        stats = self._union_stats(metro)
        if not stats or stats.get("lat") is None:
            return None
        return float(stats["lat"]), float(stats["lng"])

    def population_density(self, metro: Metro, area_km2: Optional[float] = None) -> Optional[float]:
        """People per km2, rounded to one decimal."""
        if not metro.population:
            return None
        area = area_km2 if area_km2 is not None else self.total_area_km2(metro)
        if not area:
            return None
        return round(metro.population / area, 1)

    def boundary_names(self, metro: MetroRef) -> List[str]:
        return sorted(b.name for b in self.boundaries(metro) if b.name)

    def admin_levels(self, metro: MetroRef) -> List[str]:
        return sorted({b.level.value for b in self.boundaries(metro)})

    def is_multi_state(self, metro: MetroRef) -> bool:
        return sum(1 for b in self.boundaries(metro) if b.level == AdmLevel.ADM1) > 1

    def display_name(self, metro: Metro) -> str:
        """E.g. 'Bay Area - (US) - 9 boundaries, 2 admin levels'."""
        parts = [metro.name]
        if metro.country_code:
            parts.append(f"({metro.country_code})")

        members = self.boundaries(metro)
        if members:
            level_count = len({b.level for b in members})
            plural = "s" if level_count != 1 else ""
            parts.append(f"{len(members)} boundaries, {level_count} admin level{plural}")

        description = " - ".join(parts)
        if metro.details:
            description += f"\n{metro.details}"
        return description

    def geographic_summary(self, metro: Metro) -> Dict[str, Any]:
        members = self.boundaries(metro)
        area = self.total_area_km2(metro) if members else None
        by_level = Counter(b.level.value for b in members)
        return {
            "total_boundaries": len(members),
            "by_level": dict(sorted(by_level.items())),
            "boundary_names": sorted(b.name for b in members if b.name),
            "spans_multiple_states": by_level.get(AdmLevel.ADM1.value, 0) > 1,
            "admin_levels": sorted(by_level),
            "total_area_km2": area,
            "population_density": self.population_density(metro, area_km2=area),
        }
