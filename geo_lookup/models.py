# ============================================================================
# CONTEXT - GEO LOOKUP MODELS
# ============================================================================
# STATUS: Models - Boundaries, named features, metros and lookup results
# PURPOSE: Typed records passed between repository, components and triggers
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: AdmLevel, SpatialCapability, HasCoordinates, BoundingBox, FeatureTypeCode,
#          NamedFeature, Boundary, Metro, ProximityResult, BoundaryResult,
#          SubdivisionResult, GeoContext, CountryInfo, ImportErrorRecord, ImportResult,
#          GeoContextQueryParameters, NearestFeaturesQueryParameters
# INTERFACES: Pydantic BaseModel, typing.Protocol
# DEPENDENCIES: pydantic, shapely
# PATTERNS: Data Transfer Objects (DTOs)
# ============================================================================

"""
Geo Lookup Models

Boundary geometry is carried as a shapely geometry and excluded from
serialization; every other field dumps straight to JSON via model_dump().
"""

import re
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from shapely.geometry.base import BaseGeometry

from .countries import country_name_for_iso3
from .geometry import haversine_km


class AdmLevel(str, Enum):
    """geoBoundaries administrative levels, country down to block."""
    ADM0 = "ADM0"
    ADM1 = "ADM1"
    ADM2 = "ADM2"
    ADM3 = "ADM3"
    ADM4 = "ADM4"
    ADM5 = "ADM5"

    @property
    def number(self) -> int:
        return int(self.value[3])

    @property
    def description(self) -> str:
        return ADM_LEVEL_DESCRIPTIONS[self]

    @classmethod
    def from_number(cls, number: int) -> "AdmLevel":
        return cls(f"ADM{number}")


ADM_LEVEL_DESCRIPTIONS = {
    AdmLevel.ADM0: "Country",
    AdmLevel.ADM1: "State/Province",
    AdmLevel.ADM2: "County/District",
    AdmLevel.ADM3: "Municipality",
    AdmLevel.ADM4: "Neighborhood/Ward",
    AdmLevel.ADM5: "Sub-Neighborhood/Block",
}

# Levels fetched by the ingestor, in order
IMPORTABLE_LEVELS = [AdmLevel.ADM1, AdmLevel.ADM2, AdmLevel.ADM3, AdmLevel.ADM4, AdmLevel.ADM5]


@runtime_checkable
class HasCoordinates(Protocol):
    """Any record exposing latitude/longitude attributes."""
    latitude: Any
    longitude: Any


class SpatialCapability(BaseModel):
    """
    Whether the spatial backend can answer containment/proximity queries.

    Probed once per logical operation and passed to each component.
    """
    available: bool
    reason: Optional[str] = None

    @classmethod
    def ready(cls) -> "SpatialCapability":
        return cls(available=True)

    @classmethod
    def unavailable(cls, reason: str) -> "SpatialCapability":
        return cls(available=False, reason=reason)


class BoundingBox(BaseModel):
    """Rectangular degree range used to prefilter proximity candidates."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @property
    def lat_delta(self) -> float:
        return (self.max_lat - self.min_lat) / 2

    @property
    def lng_delta(self) -> float:
        return (self.max_lng - self.min_lng) / 2


class FeatureTypeCode(BaseModel):
    """GeoNames feature class/code pair with its human-readable description."""
    feature_class: str
    feature_code: str
    name: Optional[str] = None
    description: Optional[str] = None

    @field_validator("feature_class", "feature_code")
    @classmethod
    def uppercase(cls, v: str) -> str:
        return v.upper()

    @property
    def full_code(self) -> str:
        """E.g. 'P.PPL'."""
        return f"{self.feature_class}.{self.feature_code}"

    @property
    def display_name(self) -> str:
        return f"{self.feature_code} - {self.name}"

    @property
    def admin_level(self) -> Optional[int]:
        """Numeric level for administrative codes (A.ADM2 -> 2), else None."""
        if self.feature_class != "A":
            return None
        match = re.match(r"ADM(\d)", self.feature_code)
        return int(match.group(1)) if match else None


class NamedFeature(BaseModel):
    """A named point feature (populated place, administrative seat, ...)."""
    id: int
    name: str
    latitude: float
    longitude: float
    feature_class: Optional[str] = None
    feature_code: Optional[str] = None
    country_code: Optional[str] = None
    population: Optional[int] = None
    admin1_name: Optional[str] = None
    admin2_name: Optional[str] = None

    @field_validator("feature_class", "feature_code", "country_code")
    @classmethod
    def uppercase(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    def distance_to(self, latitude: float, longitude: float) -> float:
        """Great-circle distance in km."""
        return haversine_km(self.latitude, self.longitude, latitude, longitude)

    @property
    def is_populated_place(self) -> bool:
        return self.feature_class == "P"

    @property
    def is_administrative(self) -> bool:
        return self.feature_class == "A"

    @property
    def administrative_level(self) -> Optional[str]:
        if self.is_administrative and self.feature_code and self.feature_code.startswith("ADM"):
            return self.feature_code
        return None

    @property
    def display_name(self) -> str:
        """E.g. 'Brooklyn, New York, Kings County, US (PPLX)'."""
        parts = [self.name]
        if self.admin1_name:
            parts.append(self.admin1_name)
        if self.admin2_name and self.admin2_name != self.admin1_name:
            parts.append(self.admin2_name)
        if self.country_code:
            parts.append(self.country_code)
        description = ", ".join(parts)
        if self.feature_code:
            description += f" ({self.feature_code})"
        return description


class Boundary(BaseModel):
    """An administrative boundary polygon from geoBoundaries."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[int] = None
    name: str
    level: AdmLevel
    shape_id: Optional[str] = None
    shape_iso: Optional[str] = None
    shape_group: Optional[str] = None
    source_url: Optional[str] = None
    geometry: Optional[BaseGeometry] = Field(default=None, exclude=True)

    @property
    def country_iso3(self) -> Optional[str]:
        """First ISO3-looking token in shape_group, then shape_iso."""
        for tag in (self.shape_group, self.shape_iso):
            if tag:
                match = re.search(r"([A-Z]{3})", tag)
                if match:
                    return match.group(1)
        return None

    def matches_country(self, iso3: str) -> bool:
        """True if shape_iso or shape_group carries the ISO3 code."""
        iso3 = iso3.upper()
        return any(iso3 in tag.upper() for tag in (self.shape_iso, self.shape_group) if tag)

    @property
    def display_name(self) -> str:
        """E.g. 'Los Angeles County (ADM2 - County/District, United States)'."""
        suffix = ""
        iso3 = self.country_iso3
        if iso3:
            suffix = f", {country_name_for_iso3(iso3) or iso3}"
        return f"{self.name} ({self.level.value} - {self.level.description}{suffix})"

    @property
    def is_country(self) -> bool:
        return self.level == AdmLevel.ADM0

    @property
    def is_state_province(self) -> bool:
        return self.level == AdmLevel.ADM1

    @property
    def is_county_district(self) -> bool:
        return self.level == AdmLevel.ADM2

    @property
    def is_municipality(self) -> bool:
        return self.level == AdmLevel.ADM3

    @property
    def is_neighborhood(self) -> bool:
        return self.level == AdmLevel.ADM4

    @property
    def is_sub_neighborhood(self) -> bool:
        return self.level == AdmLevel.ADM5


class Metro(BaseModel):
    """A metropolitan area defined as a set of member boundaries."""
    id: int
    name: str
    country_code: Optional[str] = None
    population: Optional[int] = None
    details: Optional[str] = None
    boundary_ids: List[int] = Field(default_factory=list)

    @field_validator("country_code")
    @classmethod
    def uppercase(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class ProximityResult(BaseModel):
    """A named feature found by proximity search."""
    feature: NamedFeature
    distance_km: float
    feature_class: Optional[str] = None
    feature_code: Optional[str] = None
    source: Literal["feature"] = "feature"

    @property
    def name(self) -> str:
        return self.feature.name


class BoundaryResult(BaseModel):
    """
    A boundary resolved for a point.

    distance_km is 0.0 for exact containment; a boundary reached through a
    nearby feature's coordinates carries that feature's distance.
    """
    boundary: Boundary
    distance_km: float = 0.0
    level: AdmLevel
    via_feature: Optional[NamedFeature] = None
    source: Literal["boundary"] = "boundary"

    @property
    def name(self) -> str:
        return self.boundary.name


LocationMatch = Union[BoundaryResult, ProximityResult]


class SubdivisionResult(BaseModel):
    """Nearest PPLX feature plus the ADM2-ADM5 boundaries containing the point."""
    match: Optional[ProximityResult] = None
    boundaries: List[Boundary] = Field(default_factory=list)

    @property
    def name(self) -> Optional[str]:
        return self.match.name if self.match else None


class GeoContext(BaseModel):
    """Everything resolved for one coordinate pair."""
    input_latitude: Optional[float] = None
    input_longitude: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    valid: bool = False
    capability: SpatialCapability
    boundaries: List[Boundary] = Field(default_factory=list)
    state_or_province: Optional[BoundaryResult] = None
    county_or_parish: Optional[LocationMatch] = None
    township: Optional[LocationMatch] = None
    subdivision: Optional[SubdivisionResult] = None
    metros: List[Metro] = Field(default_factory=list)


class CountryInfo(BaseModel):
    iso2: str
    iso3: str
    name: str


class ImportErrorRecord(BaseModel):
    """One per-feature (or per-level fetch) failure collected during ingestion."""
    name: Optional[str] = None
    adm_level: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    kind: Literal["geometry", "attributes", "fetch", "store"] = "geometry"


class ImportResult(BaseModel):
    """Outcome of a country or level import."""
    success: bool
    total_processed: int = 0
    errors: List[ImportErrorRecord] = Field(default_factory=list)
    country: CountryInfo
    levels_imported: List[str] = Field(default_factory=list)


# ============================================================================
# REQUEST PARAMETERS
# ============================================================================

class PointQueryParameters(BaseModel):
    """lat/lng as received; degree/radian handling happens in the validator."""
    lat: float = Field(description="Latitude (degrees or radians)")
    lng: float = Field(description="Longitude (degrees or radians)")


class GeoContextQueryParameters(PointQueryParameters):
    country: Optional[str] = Field(
        default=None,
        pattern=r"^[A-Za-z]{2}$",
        description="Expected ISO2 country, used to disambiguate radians"
    )
    include_metros: bool = Field(default=True, description="Resolve containing metros")


class NearestFeaturesQueryParameters(PointQueryParameters):
    feature_class: Optional[str] = Field(default=None, max_length=1)
    feature_code: Optional[str] = Field(default=None, max_length=10)
    keyword: Optional[str] = Field(default=None, max_length=100)
    radius_km: float = Field(default=100, gt=0, le=1000)
    limit: int = Field(default=5, ge=1, le=100)

    @model_validator(mode="after")
    def require_feature_type(self) -> "NearestFeaturesQueryParameters":
        if not (self.feature_class or self.feature_code or self.keyword):
            raise ValueError("One of feature_class, feature_code or keyword is required")
        return self
