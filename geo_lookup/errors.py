"""
Geo lookup exception hierarchy.

Lookups (containment, proximity) swallow expected data-absence conditions and
return empty results; these exceptions surface at the edges: HTTP triggers,
explicit `require_*` helpers, and ingestion error records.
"""

from typing import Any, Dict, Optional


class GeoLookupError(Exception):
    """Base class for every geo lookup failure."""


class InvalidCoordinateError(GeoLookupError, ValueError):
    """Coordinates out of range and not repairable by axis swap or unit conversion."""

    def __init__(self, latitude: Any, longitude: Any, reason: str = "out of range"):
        self.latitude = latitude
        self.longitude = longitude
        self.reason = reason
        super().__init__(f"Invalid coordinates ({latitude}, {longitude}): {reason}")


class UnresolvableFeatureTypeError(GeoLookupError):
    """No feature class, code or keyword match could be determined."""

    def __init__(self, keyword: Optional[str] = None):
        self.keyword = keyword
        if keyword:
            message = f"No feature type matches keyword '{keyword}'"
        else:
            message = "Feature class, feature code or keyword is required"
        super().__init__(message)


class SpatialCapabilityUnavailableError(GeoLookupError):
    """The spatial backend (schema, tables) is missing or unreachable."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Spatial lookup capability unavailable: {reason}")


class FetchError(GeoLookupError):
    """HTTP or payload failure while fetching boundary data for one level."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class GeometryConstructionError(GeoLookupError):
    """A feature's coordinates could not be assembled into a multipolygon."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.details = details or {}
        super().__init__(message)
