# ============================================================================
# CONTEXT - PROXIMITY INDEX
# ============================================================================
# STATUS: Component - Nearest named feature search
# PURPOSE: Bounding-box prefilter in SQL, exact haversine ranking in Python
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ProximityIndex, bounding_box, haversine_km
# DEPENDENCIES: math, util_logger, geo_lookup.repository
# PATTERNS: Two-phase search (cheap prefilter, exact filter)
# ============================================================================

"""
Proximity Index

nearest_features():
    1. No class or code -> resolve one from the keyword via the
       feature_codes table; nothing resolved -> []
    2. Bounding box: lat_delta = r / 111, lng_delta = r / (111 * cos(lat))
    3. Prefilter rows inside the box (plus class/code equality)
    4. Haversine distance; keep <= r; sort ascending; truncate to limit

Near the poles (cos(lat) -> 0) and where the box would cross the
antimeridian the longitude range widens to [-180, 180]; step 4 still filters
exactly.
"""

import math
from typing import List, Optional, Tuple

from util_logger import LoggerFactory, ComponentType

from .errors import UnresolvableFeatureTypeError
from .geometry import haversine_km
from .models import BoundingBox, ProximityResult, SpatialCapability

KM_PER_DEGREE = 111.0

# Below this cos(lat) the longitude delta is meaningless
_MIN_COS_LAT = 1e-6

TOWNSHIP_CODES = ["ADM3", "ADM4", "ADM5"]

__all__ = ["ProximityIndex", "bounding_box", "haversine_km", "KM_PER_DEGREE", "TOWNSHIP_CODES"]


def bounding_box(latitude: float, longitude: float, radius_km: float) -> BoundingBox:
    """Degree box around a point, wide enough to hold every point within radius_km."""
    lat_delta = radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(latitude))

    if abs(cos_lat) < _MIN_COS_LAT:
        min_lng, max_lng = -180.0, 180.0
    else:
        lng_delta = radius_km / (KM_PER_DEGREE * cos_lat)
        min_lng, max_lng = longitude - lng_delta, longitude + lng_delta
        if min_lng < -180.0 or max_lng > 180.0:
            min_lng, max_lng = -180.0, 180.0

    return BoundingBox(
        min_lat=latitude - lat_delta,
        max_lat=latitude + lat_delta,
        min_lng=min_lng,
        max_lng=max_lng
    )


class ProximityIndex:
    """Nearest named features to a point, over the separately maintained feature table."""

    def __init__(self, repository, capability: SpatialCapability):
        self.repository = repository
        self.capability = capability
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ProximityIndex")

    def resolve_feature_type(
        self,
        feature_class: Optional[str] = None,
        feature_code: Optional[str] = None,
        keyword: Optional[str] = None
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Class/code to search for.

        Explicit class or code wins; the keyword is consulted only when both
        are missing.

        Raises:
            UnresolvableFeatureTypeError: nothing given, or keyword matched nothing
        """
        if feature_class or feature_code:
            return (
                feature_class.upper() if feature_class else None,
                feature_code.upper() if feature_code else None
            )

        if not keyword or not keyword.strip():
            raise UnresolvableFeatureTypeError()

        feature_type = self.repository.find_feature_type_by_keyword(keyword)
        if feature_type is None:
            raise UnresolvableFeatureTypeError(keyword)

        self.logger.debug(f"Keyword '{keyword}' resolved to {feature_type.full_code}")
        return feature_type.feature_class, feature_type.feature_code

    def nearest_features(
        self,
        latitude: float,
        longitude: float,
        feature_class: Optional[str] = None,
        feature_code: Optional[str] = None,
        keyword: Optional[str] = None,
        radius_km: float = 100,
        limit: int = 5
    ) -> List[ProximityResult]:
        """
        Named features within radius_km, nearest first.

        Returns [] when the feature type cannot be resolved, the capability is
        unavailable, or the backend fails.
        """
        if latitude is None or longitude is None:
            return []
        if not self.capability.available:
            self.logger.debug(f"Proximity skipped: {self.capability.reason}")
            return []

        try:
            feature_class, feature_code = self.resolve_feature_type(feature_class, feature_code, keyword)
            if not (feature_class or feature_code):
                return []

            bbox = bounding_box(latitude, longitude, radius_km)
            candidates = self.repository.features_in_box(bbox, feature_class, feature_code)
        except UnresolvableFeatureTypeError as e:
            self.logger.warning(f"⚠️ {e}")
            return []
        except Exception as e:
            self.logger.error(f"❌ Proximity query failed near ({latitude}, {longitude}): {e}")
            return []

        results = []
        for feature in candidates:
            distance = haversine_km(latitude, longitude, feature.latitude, feature.longitude)
            if distance <= radius_km:
                results.append(ProximityResult(
                    feature=feature,
                    distance_km=distance,
                    feature_class=feature.feature_class,
                    feature_code=feature.feature_code
                ))

        results.sort(key=lambda r: r.distance_km)
        return results[:limit]

    def closest_county_or_parish(self, latitude: float, longitude: float,
                                 radius_km: float = 50) -> Optional[ProximityResult]:
        results = self.nearest_features(latitude, longitude, feature_class="A", feature_code="ADM2",
                                        radius_km=radius_km, limit=1)
        return results[0] if results else None

    def closest_subdivision(self, latitude: float, longitude: float,
                            radius_km: float = 1) -> Optional[ProximityResult]:
        results = self.nearest_features(latitude, longitude, feature_class="P", feature_code="PPLX",
                                        radius_km=radius_km, limit=1)
        return results[0] if results else None

    def closest_township(self, latitude: float, longitude: float,
                         radius_km: float = 25) -> Optional[ProximityResult]:
        """Coarsest first: ADM3, then ADM4, then ADM5."""
        for code in TOWNSHIP_CODES:
            results = self.nearest_features(latitude, longitude, feature_class="A", feature_code=code,
                                            radius_km=radius_km, limit=1)
            if results:
                return results[0]
        return None
