# ============================================================================
# CONTEXT - GEO LOOKUP CONFIGURATION
# ============================================================================
# STATUS: Configuration - Geo lookup package settings
# PURPOSE: Table names, cache directory and geoBoundaries endpoint settings
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: GeoLookupConfig, get_geo_config
# INTERFACES: Pydantic BaseModel
# PYDANTIC_MODELS: GeoLookupConfig
# DEPENDENCIES: pydantic, os
# SOURCE: Environment variables (database credentials live in config.py)
# PATTERNS: Settings Pattern, Singleton via cached function
# ENTRY_POINTS: from geo_lookup.config import get_geo_config
# ============================================================================

"""
Geo Lookup Configuration

Environment Variables (all optional):
    - GEO_SCHEMA: Schema holding the lookup tables (default: "geo")
    - GEO_BOUNDARIES_TABLE: Administrative boundary polygons (default: "geoboundaries")
    - GEO_FEATURES_TABLE: Named point features (default: "geonames")
    - GEO_FEATURE_CODES_TABLE: Feature type dictionary (default: "feature_codes")
    - GEO_METROS_TABLE: Metropolitan areas (default: "metros")
    - GEO_METRO_MEMBERS_TABLE: Metro/boundary join table (default: "geoboundaries_metros")
    - GEO_BOUNDARY_CACHE_DIR: Download cache for boundary payloads (default: "/tmp/geoboundaries")
    - GEOBOUNDARIES_API_URL: geoBoundaries metadata endpoint
    - GEO_HTTP_TIMEOUT: Timeout for metadata/geometry downloads in seconds (default: 30)
    - GEO_CONTAINMENT_LIMIT: Max boundaries returned by one containment query (default: 50)
    - GEO_QUERY_TIMEOUT: PostgreSQL statement timeout in seconds (default: 30)
"""

import os
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class GeoLookupConfig(BaseModel):
    """
    Configuration for the geo lookup package.

    Connection credentials come from the application config
    (config.get_postgres_connection_string) so one identity serves every component.
    """

    # Tables
    geo_schema: str = Field(
        default_factory=lambda: os.getenv("GEO_SCHEMA", "geo"),
        description="PostgreSQL schema containing the lookup tables"
    )
    boundaries_table: str = Field(
        default_factory=lambda: os.getenv("GEO_BOUNDARIES_TABLE", "geoboundaries"),
        description="Administrative boundary polygons (ADM0-ADM5)"
    )
    features_table: str = Field(
        default_factory=lambda: os.getenv("GEO_FEATURES_TABLE", "geonames"),
        description="Named point features"
    )
    feature_codes_table: str = Field(
        default_factory=lambda: os.getenv("GEO_FEATURE_CODES_TABLE", "feature_codes"),
        description="Feature class/code dictionary used for keyword resolution"
    )
    metros_table: str = Field(
        default_factory=lambda: os.getenv("GEO_METROS_TABLE", "metros"),
        description="Metropolitan areas"
    )
    metro_members_table: str = Field(
        default_factory=lambda: os.getenv("GEO_METRO_MEMBERS_TABLE", "geoboundaries_metros"),
        description="Many-to-many join between metros and boundaries"
    )

    # Ingestion
    boundary_cache_dir: str = Field(
        default_factory=lambda: os.getenv("GEO_BOUNDARY_CACHE_DIR", "/tmp/geoboundaries"),
        description="Directory for cached boundary payloads"
    )
    geoboundaries_api_url: str = Field(
        default_factory=lambda: os.getenv(
            "GEOBOUNDARIES_API_URL", "https://www.geoboundaries.org/api/current/gbOpen"
        ),
        description="geoBoundaries metadata endpoint ({base}/{ISO3}/{ADMn}/)"
    )
    http_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("GEO_HTTP_TIMEOUT", "30")),
        gt=0,
        le=600,
        description="Timeout for geoBoundaries HTTP requests"
    )

    # Query Settings
    containment_limit: int = Field(
        default_factory=lambda: int(os.getenv("GEO_CONTAINMENT_LIMIT", "50")),
        ge=1,
        le=1000,
        description="Maximum number of boundaries returned by one containment query"
    )
    query_timeout_seconds: int = Field(
        default_factory=lambda: int(os.getenv("GEO_QUERY_TIMEOUT", "30")),
        ge=1,
        le=300,
        description="Maximum query execution time in seconds"
    )

    @field_validator("geoboundaries_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoint paths are joined with '/', so drop any trailing slash."""
        return v.rstrip("/")


# Singleton instance cache
_config_cache: Optional[GeoLookupConfig] = None


def get_geo_config() -> GeoLookupConfig:
    """
    Get singleton geo lookup configuration instance.

    Returns:
        Cached configuration instance
    """
    global _config_cache

    if _config_cache is None:
        _config_cache = GeoLookupConfig()

    return _config_cache
