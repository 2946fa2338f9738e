# ============================================================================
# CONTEXT - BOUNDARY INGESTION
# ============================================================================
# STATUS: Component - geoBoundaries import pipeline
# PURPOSE: Fetch, cache, assemble and upsert ADM1-ADM5 boundary polygons
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: BoundaryIngestor, GeoBoundariesClient, GeoBoundariesResponse, cache_file_path
# DEPENDENCIES: httpx (sync), shapely, util_logger, geo_lookup.repository
# SOURCE: geoBoundaries gbOpen API ({base}/{ISO3}/{ADMn}/)
# PATTERNS: Collect-and-continue error handling, on-disk download cache
# ENTRY_POINTS: BoundaryIngestor(repo).import_country("US")
# ============================================================================

"""
Boundary Ingestion

Per level:
    1. GET {base}/{ISO3}/{ADMn}/ metadata; 404 means the level does not exist
    2. Download URL: simplifiedGeometryGeoJSON, else gjDownloadURL
    3. Payload cached as {ISO3}-{ADMn}-{sha1(url)[:8]}.geojson; an unreadable
       cache file is deleted and downloaded again, once
    4. Each feature -> MultiPolygon -> upsert keyed by (name, level, shape_id)

import_country() walks ADM1..ADM5 and stops at the first level with no data.
Features without shapeName or shapeID, and features whose geometry cannot be
built, become ImportErrorRecords. A cache directory that cannot be written
only costs the cache. Only a missing or malformed country code / level raises.
"""

import hashlib
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from util_logger import LoggerFactory, ComponentType, log_exceptions

from .config import GeoLookupConfig, get_geo_config
from .countries import resolve_country
from .errors import FetchError, GeometryConstructionError
from .geometry import build_multipolygon, geometry_summary
from .models import CountryInfo, IMPORTABLE_LEVELS, ImportErrorRecord, ImportResult

ADM_LEVEL_PATTERN = re.compile(r"^ADM[1-5]$")
ISO2_PATTERN = re.compile(r"^[A-Za-z]{2}$")
IDENTITY_PROPERTIES = ("shapeName", "shapeID")


def cache_file_path(cache_dir: Union[str, Path], iso3: str, adm_level: str, source_url: str) -> Path:
    """{cache_dir}/{ISO3}-{ADMn}-{first 8 hex of sha1(url)}.geojson"""
    url_hash = hashlib.sha1(source_url.encode("utf-8")).hexdigest()[:8]
    return Path(cache_dir) / f"{iso3}-{adm_level}-{url_hash}.geojson"


# ============================================================================
# GEOBOUNDARIES CLIENT
# ============================================================================

@dataclass
class GeoBoundariesResponse:
    """Response wrapper for geoBoundaries calls."""
    success: bool
    status_code: int
    data: Optional[Any] = None
    text: Optional[str] = None
    error: Optional[str] = None


class GeoBoundariesClient:
    """
    geoBoundaries metadata and download client (sync httpx).

    Usage:
        client = GeoBoundariesClient(base_url="https://www.geoboundaries.org/api/current/gbOpen")
        response = client.get_level_metadata("USA", "ADM1")
        if response.success:
            url = response.data["simplifiedGeometryGeoJSON"]
        client.close()
    """

    def __init__(self, base_url: str, timeout: float = 30.0,
                 http_client: Optional[httpx.Client] = None):
        """
        Args:
            base_url: Metadata endpoint root
            timeout: Request timeout in seconds
            http_client: Pre-built client (tests pass one with a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = http_client

    def _get_client(self) -> httpx.Client:
        """Get or create sync HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True
            )
        return self._client

    def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            self._client.close()

    def _get(self, url: str) -> GeoBoundariesResponse:
        try:
            response = self._get_client().get(url)
        except httpx.TimeoutException:
            return GeoBoundariesResponse(
                success=False,
                status_code=504,
                error=f"geoBoundaries timeout after {self.timeout}s: {url}"
            )
        except httpx.RequestError as e:
            return GeoBoundariesResponse(
                success=False,
                status_code=500,
                error=f"geoBoundaries request error: {str(e)}"
            )

        if response.status_code >= 400:
            return GeoBoundariesResponse(
                success=False,
                status_code=response.status_code,
                error=f"HTTP {response.status_code} from {url}: {response.text[:200]}"
            )

        try:
            text = response.content.decode("utf-8")
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return GeoBoundariesResponse(
                success=False,
                status_code=response.status_code,
                error=f"Invalid JSON from {url}: {type(e).__name__}: {e}"
            )

        return GeoBoundariesResponse(success=True, status_code=response.status_code, data=data, text=text)

    def get_level_metadata(self, iso3: str, adm_level: str) -> GeoBoundariesResponse:
        """Metadata for one country/level; data is the metadata dict."""
        response = self._get(f"{self.base_url}/{iso3}/{adm_level}/")
        if response.success and isinstance(response.data, list):
            response.data = response.data[0] if response.data else {}
        return response

    def download_geojson(self, url: str) -> GeoBoundariesResponse:
        """Boundary FeatureCollection; text keeps the raw payload for caching."""
        return self._get(url)


# ============================================================================
# INGESTOR
# ============================================================================

class BoundaryIngestor:
    """
    Imports geoBoundaries polygons into the boundary table.

    Levels run sequentially; each level's features are upserted on one
    connection, each inside its own savepoint.
    """

    def __init__(self, repository, client: Optional[GeoBoundariesClient] = None,
                 config: Optional[GeoLookupConfig] = None):
        self.repository = repository
        self.config = config or get_geo_config()
        self.client = client or GeoBoundariesClient(
            base_url=self.config.geoboundaries_api_url,
            timeout=self.config.http_timeout_seconds
        )
        self.logger = LoggerFactory.create_logger(ComponentType.INGESTOR, "BoundaryIngestor")

    # ------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------

    @log_exceptions(ComponentType.INGESTOR, "BoundaryIngestor")
    def import_country(self, iso2: str, cache_dir: Optional[Union[str, Path]] = None) -> ImportResult:
        """
        Import ADM1..ADM5 for a country, stopping at the first level without data.

        Args:
            iso2: ISO 3166-1 alpha-2 country code
            cache_dir: Download cache (defaults to config.boundary_cache_dir)

        Raises:
            ValueError: iso2 missing or not two letters
        """
        iso2 = self._require_iso2(iso2)
        iso3, name = resolve_country(iso2)
        cache = Path(cache_dir or self.config.boundary_cache_dir)
        log = LoggerFactory.create_with_context(
            ComponentType.INGESTOR, "BoundaryIngestor", operation="import_country", country=iso3
        )
        log.info(f"🌍 Importing boundaries for {name} ({iso2} -> {iso3})")

        errors: List[ImportErrorRecord] = []
        total = 0
        imported: List[str] = []

        for level in IMPORTABLE_LEVELS:
            count = self._import_adm_level(iso3, level.value, cache, errors)
            if count is None:
                log.info(f"⏭️ Skipping remaining ADM levels ({level.value} and higher not available)")
                break
            total += count
            imported.append(level.value)

        log.info(f"✅ {iso3}: {total} boundaries across {len(imported)} levels, {len(errors)} errors")

        return ImportResult(
            success=True,
            total_processed=total,
            errors=errors,
            country=CountryInfo(iso2=iso2, iso3=iso3, name=name),
            levels_imported=imported
        )

    @log_exceptions(ComponentType.INGESTOR, "BoundaryIngestor")
    def import_level(self, iso2: str, adm_level: str,
                     cache_dir: Optional[Union[str, Path]] = None) -> ImportResult:
        """
        Import a single level.

        Raises:
            ValueError: iso2 invalid, or adm_level not ADM1..ADM5
        """
        iso2 = self._require_iso2(iso2)
        if not adm_level or not ADM_LEVEL_PATTERN.match(str(adm_level).upper()):
            raise ValueError("Please provide ADM level (ADM1-ADM5)")
        adm_level = str(adm_level).upper()

        iso3, name = resolve_country(iso2)
        cache = Path(cache_dir or self.config.boundary_cache_dir)

        errors: List[ImportErrorRecord] = []
        count = self._import_adm_level(iso3, adm_level, cache, errors)
        if count is None:
            self.logger.warning(f"⚠️ {iso3} {adm_level}: no boundaries imported")

        return ImportResult(
            success=count is not None,
            total_processed=count or 0,
            errors=errors,
            country=CountryInfo(iso2=iso2, iso3=iso3, name=name),
            levels_imported=[adm_level] if count is not None else []
        )

    # ------------------------------------------------------------------------
    # Level pipeline
    # ------------------------------------------------------------------------

    @staticmethod
    def _require_iso2(iso2: Optional[str]) -> str:
        if not iso2 or not ISO2_PATTERN.match(iso2.strip()):
            raise ValueError("Please provide a 2-letter country code")
        return iso2.strip().upper()

    def _import_adm_level(self, iso3: str, adm_level: str, cache_dir: Path,
                          errors: List[ImportErrorRecord]) -> Optional[int]:
        """
        Returns:
            Number of boundaries upserted, or None if the level has no data
        """
        log = LoggerFactory.create_with_context(
            ComponentType.INGESTOR, "BoundaryIngestor", operation="import_level",
            country=iso3, adm_level=adm_level
        )

        try:
            source_url = self._resolve_download_url(iso3, adm_level, log)
            if source_url is None:
                return None
            data = self._load_feature_collection(iso3, adm_level, source_url, cache_dir, log)
        except FetchError as e:
            log.error(f"❌ {e}")
            errors.append(ImportErrorRecord(
                name=None,
                adm_level=adm_level,
                message=f"FetchError: {e}",
                details={"url": e.url, "status_code": e.status_code},
                kind="fetch"
            ))
            return None

        features = data.get("features") if isinstance(data, dict) else None
        if not features:
            log.warning(f"⚠️ No boundary features found in GeoJSON for {adm_level}")
            return None

        count = self._process_features(features, adm_level, source_url, errors, log)
        log.info(f"✅ Processed {count} boundaries for {adm_level}")
        return count

    def _resolve_download_url(self, iso3: str, adm_level: str, log) -> Optional[str]:
        response = self.client.get_level_metadata(iso3, adm_level)

        if response.status_code == 404:
            log.warning(f"⚠️ {adm_level} boundaries not available for {iso3} (404 Not Found)")
            return None
        if not response.success:
            raise FetchError(response.error or "metadata request failed",
                             url=f"{self.client.base_url}/{iso3}/{adm_level}/",
                             status_code=response.status_code)

        metadata = response.data if isinstance(response.data, dict) else {}
        url = metadata.get("simplifiedGeometryGeoJSON") or metadata.get("gjDownloadURL")
        if not url:
            log.warning(f"⚠️ No download URL found in API response for {adm_level}")
            return None

        variant = "simplified" if metadata.get("simplifiedGeometryGeoJSON") else "full resolution"
        log.info(f"📐 Using {variant} geometry for {iso3} {adm_level}")
        return url

    def _load_feature_collection(self, iso3: str, adm_level: str, source_url: str,
                                 cache_dir: Path, log) -> Dict[str, Any]:
        cached = cache_file_path(cache_dir, iso3, adm_level, source_url)

        if cached.exists():
            log.info(f"📂 Using cached GeoJSON: {cached}")
            try:
                return json.loads(cached.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
                log.warning(f"⚠️ Unreadable cache file {cached.name}, re-downloading: {type(e).__name__}")
                try:
                    cached.unlink()
                except OSError as unlink_error:
                    log.warning(f"⚠️ Could not remove cache file {cached.name}: {unlink_error}")

        log.info(f"⬇️ Downloading GeoJSON from {source_url}")
        response = self.client.download_geojson(source_url)
        if not response.success:
            raise FetchError(response.error or "download failed", url=source_url,
                             status_code=response.status_code)

        # Cache write failures leave the download usable, just uncached
        try:
            cached.parent.mkdir(parents=True, exist_ok=True)
            cached.write_text(response.text, encoding="utf-8")
            log.debug(f"💾 Cached GeoJSON to {cached}")
        except OSError as e:
            log.warning(f"⚠️ Could not cache GeoJSON to {cached}: {type(e).__name__}: {e}")
        return response.data

    def _process_features(self, features: List[Any], adm_level: str, source_url: str,
                          errors: List[ImportErrorRecord], log) -> int:
        count = 0
        inserted = 0

        with self.repository.session() as conn:
            for feature in features:
                props = (feature.get("properties") if isinstance(feature, dict) else None) or {}
                geometry = feature.get("geometry") if isinstance(feature, dict) else None
                name = props.get("shapeName")

                # name and shapeID form the upsert key; a NULL in either never conflicts
                missing = [key for key in IDENTITY_PROPERTIES if not props.get(key)]
                if missing:
                    errors.append(ImportErrorRecord(
                        name=name or "Unknown",
                        adm_level=adm_level,
                        message=f"Feature is missing {', '.join(missing)}",
                        details={"missing": missing, "properties": sorted(props)},
                        kind="attributes"
                    ))
                    log.warning(f"❌ Skipping {name!r}: missing {', '.join(missing)}")
                    continue

                try:
                    if not isinstance(geometry, dict) or not geometry.get("coordinates"):
                        raise GeometryConstructionError("Feature has no geometry coordinates",
                                                        details=geometry_summary(geometry))

                    multi = build_multipolygon(geometry, name=name)
                    row = {
                        "name": name,
                        "level": adm_level,
                        "shape_id": props.get("shapeID"),
                        "shape_iso": props.get("shapeISO"),
                        "shape_group": props.get("shapeGroup"),
                        "source_url": source_url,
                        "wkt": multi.wkt,
                    }
                    with conn.transaction():
                        if self.repository.upsert_boundary(row, conn):
                            inserted += 1
                    count += 1

                except GeometryConstructionError as e:
                    details = dict(e.details) or geometry_summary(geometry)
                    errors.append(ImportErrorRecord(
                        name=name or "Unknown",
                        adm_level=adm_level,
                        message=f"{type(e).__name__}: {e}",
                        details=details,
                        kind="geometry"
                    ))
                    log.warning(f"❌ Failed to process {name!r}: {e}")

                except Exception as e:
                    errors.append(ImportErrorRecord(
                        name=name or "Unknown",
                        adm_level=adm_level,
                        message=f"{type(e).__name__}: {e}",
                        details=geometry_summary(geometry),
                        kind="store"
                    ))
                    log.error(f"❌ Failed to store {name!r}: {type(e).__name__}: {e}")

        log.debug(f"{adm_level}: {inserted} inserted, {count - inserted} updated")
        return count
