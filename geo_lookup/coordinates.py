# ============================================================================
# CONTEXT - COORDINATE VALIDATION
# ============================================================================
# STATUS: Component - Degree/radian disambiguation
# PURPOSE: Decide whether an incoming (lat, lng) pair is degrees or radians
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: CoordinateValidator, is_valid_latitude, is_valid_longitude, normalize_point
# DEPENDENCIES: math, util_logger
# PATTERNS: Heuristic with optional country oracle
# ============================================================================

"""
Coordinate Validation

Algorithm:
    1. Either value missing or not numeric -> invalid
    2. |lat| > 1000 or |lng| > 1000 -> invalid
    3. |lat| > 90 or |lng| > 180 -> radians; convert both and return
    4. Both in degree range and an expected country is given: accept the
       degrees reading if a boundary of that country contains it, else (when
       both |v| <= pi) the radians reading if one does
    5. Otherwise return the values unchanged as degrees

Known ambiguity:
    Small radian values near the equator with no expected country are
    indistinguishable from degrees and come back unchanged.
"""

import math
from typing import Any, Optional, Tuple

from util_logger import LoggerFactory, ComponentType

from .countries import lookup_country
from .errors import InvalidCoordinateError

MAX_MAGNITUDE = 1000.0

Coordinates = Tuple[float, float]


def coerce_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def is_valid_latitude(latitude: float) -> bool:
    return -90.0 <= latitude <= 90.0


def is_valid_longitude(longitude: float) -> bool:
    return -180.0 <= longitude <= 180.0


def normalize_point(latitude: Any, longitude: Any) -> Optional[Coordinates]:
    """
    Range-check a point, repairing a swapped latitude/longitude.

    Latitude out of range but valid once swapped -> swapped pair.
    Longitude out of range on its own -> None.
    """
    lat, lng = coerce_float(latitude), coerce_float(longitude)
    if lat is None or lng is None:
        return None

    if not is_valid_latitude(lat):
        if is_valid_latitude(lng) and is_valid_longitude(lat):
            return lng, lat
        return None

    if not is_valid_longitude(lng):
        return None

    return lat, lng


class CoordinateValidator:
    """
    Disambiguates degree and radian encodings.

    The locator is the country oracle for step 4; without one (or with the
    spatial capability unavailable) the country hint has no effect.
    """

    def __init__(self, locator=None):
        self.locator = locator
        self.logger = LoggerFactory.create_logger(ComponentType.VALIDATOR, "CoordinateValidator")

    def validate(
        self,
        latitude: Any,
        longitude: Any,
        expected_country: Optional[str] = None
    ) -> Optional[Coordinates]:
        """
        Args:
            latitude, longitude: Candidate values (degrees or radians)
            expected_country: ISO2 code the point is expected to fall in

        Returns:
            (lat, lng) in degrees, or None if the input is invalid
        """
        lat, lng = coerce_float(latitude), coerce_float(longitude)
        if lat is None or lng is None:
            return None

        if abs(lat) > MAX_MAGNITUDE or abs(lng) > MAX_MAGNITUDE:
            self.logger.debug(f"Rejecting ({lat}, {lng}): magnitude above {MAX_MAGNITUDE}")
            return None

        if abs(lat) > 90 or abs(lng) > 180:
            converted = (math.degrees(lat), math.degrees(lng))
            self.logger.debug(f"Out of degree range, treating ({lat}, {lng}) as radians -> {converted}")
            return converted

        if expected_country:
            if self.coordinates_match_country(lat, lng, expected_country):
                return lat, lng

            if abs(lat) <= math.pi and abs(lng) <= math.pi:
                as_degrees = (math.degrees(lat), math.degrees(lng))
                if self.coordinates_match_country(as_degrees[0], as_degrees[1], expected_country):
                    self.logger.info(
                        f"Radians reading of ({lat}, {lng}) falls in {expected_country.upper()}"
                    )
                    return as_degrees

        return lat, lng

    def require_valid(
        self,
        latitude: Any,
        longitude: Any,
        expected_country: Optional[str] = None
    ) -> Coordinates:
        """validate(), raising InvalidCoordinateError instead of returning None."""
        result = self.validate(latitude, longitude, expected_country)
        if result is None:
            raise InvalidCoordinateError(latitude, longitude)
        return result

    def coordinates_match_country(self, latitude: float, longitude: float, country_iso2: str) -> bool:
        """True if any boundary tagged with the country's ISO3 code contains the point."""
        if not (is_valid_latitude(latitude) and is_valid_longitude(longitude)):
            return False
        if self.locator is None or not self.locator.capability.available:
            return False

        found = lookup_country(country_iso2)
        if found is None:
            return False
        iso3 = found[0]
        boundaries = self.locator.containing_boundaries(latitude, longitude)
        return any(boundary.matches_country(iso3) for boundary in boundaries)
