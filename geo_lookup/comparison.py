"""
Geo source comparison.

Lines up a record's stored geo attributes against what the boundary dataset
(polygon containment) and the named-feature dataset (nearest feature) say
for the same coordinates. Hosts with more sources (an upstream listing feed,
say) pass an ExtraSourceProvider at construction.
"""

import re
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from util_logger import LoggerFactory, ComponentType

from .models import HasCoordinates

GEO_ATTRIBUTES = [
    "city",
    "county_or_parish",
    "state_or_province",
    "township",
    "subdivision_name",
    "country",
    "postal_code",
]

MUNICIPAL_PREFIXES = [
    "City of", "Borough of", "Township of", "Town of",
    "Village of", "Municipality of", "County of", "District of",
]
MUNICIPAL_SUFFIXES = [
    "City", "Borough", "Township", "Town",
    "Village", "Municipality", "County", "District",
]

COLUMN_WIDTH = 20
MAX_DISPLAY_LENGTH = 18
MISSING = "(nil)"


def clean_municipal_name(name: Optional[str]) -> Optional[str]:
    """
    Strip one leading "City of"-style prefix and one trailing " County"-style suffix.

    A suffix that is the whole name is kept ("Town" stays "Town").
    """
    if name is None or not name.strip():
        return None

    cleaned = name.strip()

    for prefix in MUNICIPAL_PREFIXES:
        pattern = re.compile(rf"^{re.escape(prefix)}\s+", re.IGNORECASE)
        if pattern.match(cleaned):
            cleaned = pattern.sub("", cleaned, count=1)
            break

    for suffix in MUNICIPAL_SUFFIXES:
        pattern = re.compile(rf"\s+{re.escape(suffix)}$", re.IGNORECASE)
        if pattern.search(cleaned) and cleaned.lower() != suffix.lower():
            cleaned = pattern.sub("", cleaned, count=1)
            break

    return cleaned.strip()


def truncate_value(value: Any) -> Optional[str]:
    """Strings over 18 characters become the first 16 plus '...'."""
    if value is None:
        return None
    text = str(value)
    if len(text) > MAX_DISPLAY_LENGTH:
        return text[:16] + "..."
    return text


class ExtraSourceProvider(Protocol):
    """Additional comparison columns supplied by the host application."""

    def columns(self, record: Any, attribute: str) -> Dict[str, Any]:
        """Column name -> value for one attribute of one record."""
        ...

    def legend(self) -> Dict[str, str]:
        """Column name -> description, printed under the table."""
        ...


class ComparisonRow(BaseModel):
    attribute: str
    current: Any = None
    boundary: Optional[str] = None
    geoname: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)
    differs: bool = False


class ComparisonReport(BaseModel):
    latitude: float
    longitude: float
    rows: List[ComparisonRow] = Field(default_factory=list)
    extra_columns: List[str] = Field(default_factory=list)
    extra_legend: Dict[str, str] = Field(default_factory=dict)

    @property
    def differing_attributes(self) -> List[str]:
        return [row.attribute for row in self.rows if row.differs]


class GeoSourceComparator:
    """Builds and renders ComparisonReports."""

    def __init__(self, locator, proximity, extra_source: Optional[ExtraSourceProvider] = None):
        self.locator = locator
        self.proximity = proximity
        self.extra_source = extra_source
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "GeoSourceComparator")

    def boundary_value(self, attribute: str, latitude: float, longitude: float) -> Optional[str]:
        """Polygon-containment answer for an attribute (None where boundaries have no opinion)."""
        if attribute == "county_or_parish":
            result = self.locator.county_or_parish(latitude, longitude)
            return result.name if result else None
        if attribute == "state_or_province":
            result = self.locator.state_or_province(latitude, longitude)
            return result.name if result else None
        if attribute == "township":
            result = self.locator.township(latitude, longitude)
            return clean_municipal_name(result.name) if result else None
        if attribute == "subdivision_name":
            return self.locator.subdivision_with_boundary_context(latitude, longitude).name
        return None

    def geoname_value(self, attribute: str, latitude: float, longitude: float) -> Optional[str]:
        """Nearest-feature answer for an attribute (None where features have no opinion)."""
        if attribute == "county_or_parish":
            result = self.proximity.closest_county_or_parish(latitude, longitude)
        elif attribute == "township":
            result = self.proximity.closest_township(latitude, longitude)
        elif attribute == "subdivision_name":
            result = self.proximity.closest_subdivision(latitude, longitude)
        else:
            return None
        return result.name if result else None

    def compare(self, record: HasCoordinates) -> Optional[ComparisonReport]:
        """None when the record has no coordinates."""
        latitude = getattr(record, "latitude", None)
        longitude = getattr(record, "longitude", None)
        if latitude is None or longitude is None:
            return None
        latitude, longitude = float(latitude), float(longitude)

        rows = []
        extra_columns: List[str] = []
        for attribute in GEO_ATTRIBUTES:
            current = getattr(record, attribute, None)
            boundary = self.boundary_value(attribute, latitude, longitude)
            geoname = self.geoname_value(attribute, latitude, longitude)
            extra = self.extra_source.columns(record, attribute) if self.extra_source else {}
            for column in extra:
                if column not in extra_columns:
                    extra_columns.append(column)

            sources = [boundary, geoname] + list(extra.values())
            rows.append(ComparisonRow(
                attribute=attribute,
                current=current,
                boundary=boundary,
                geoname=geoname,
                extra=extra,
                differs=all(current != value for value in sources)
            ))

        report = ComparisonReport(
            latitude=latitude,
            longitude=longitude,
            rows=rows,
            extra_columns=extra_columns,
            extra_legend=self.extra_source.legend() if self.extra_source else {}
        )
        self.logger.debug(f"Compared ({latitude}, {longitude}): {len(report.differing_attributes)} attributes differ")
        return report

    @staticmethod
    def render(report: Optional[ComparisonReport]) -> str:
        """Fixed-width text table; '*' marks rows whose current value matches no source."""
        if report is None:
            return "No coordinates available for comparison"

        columns = ["ATTRIBUTE", "CURRENT", "BOUNDARY", "GEONAMES"] + [c.upper() for c in report.extra_columns]
        total_width = len(columns) * COLUMN_WIDTH + 4
        rule = "-" * (total_width + len(columns) - 1)

        def line(values: List[str]) -> str:
            return " ".join(f"{value:<{COLUMN_WIDTH}}" for value in values)

        lines = [
            "=" * total_width,
            "GEO SOURCES COMPARISON",
            f"Coordinates: {report.latitude}, {report.longitude}",
            "=" * total_width,
            line(columns),
            rule,
        ]
        for row in report.rows:
            values = [
                row.attribute.upper(),
                truncate_value(row.current) or MISSING,
                truncate_value(row.boundary) or MISSING,
                truncate_value(row.geoname) or MISSING,
            ] + [truncate_value(row.extra.get(c)) or MISSING for c in report.extra_columns]
            lines.append(line(values) + (" *" if row.differs else ""))

        lines += [
            rule,
            "* = Current value differs from all sources",
            "",
            "Legend:",
            "  CURRENT  - Value currently stored on the record",
            "  BOUNDARY - Value from GeoBoundaries.org (precise polygon containment)",
            "  GEONAMES - Value from Geonames.org (nearest feature lookup)",
        ]
        for column, description in report.extra_legend.items():
            lines.append(f"  {column.upper():<8} - {description}")
        lines.append("=" * total_width)

        return "\n".join(lines)
