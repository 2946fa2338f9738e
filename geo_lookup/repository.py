# ============================================================================
# CONTEXT - GEO LOOKUP REPOSITORY
# ============================================================================
# STATUS: Repository - PostGIS boundary, feature and metro access
# PURPOSE: Every SQL statement issued by the geo lookup package
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: GeoLookupRepository
# INTERFACES: PostgreSQLRepository (infrastructure.postgresql)
# DEPENDENCIES: psycopg, psycopg.sql, infrastructure.postgresql
# SOURCE: PostgreSQL/PostGIS database (configurable schema)
# SCOPE: Containment, bounding-box prefilter, keyword lookup, metro membership, boundary upsert
# VALIDATION: SQL injection prevention via psycopg.sql composition
# PATTERNS: Repository Pattern, SQL Composition
# ENTRY_POINTS: repo = GeoLookupRepository(config); repo.containing_boundaries(lat, lng)
# ============================================================================

"""
Geo Lookup Repository - PostGIS Direct Access

Tables (provisioned outside this package, names configurable):
    geoboundaries         id, name, level, shape_id, shape_iso, shape_group,
                          source_url, boundary geometry(MultiPolygon, 4326),
                          created_at, updated_at; UNIQUE (name, level, shape_id)
    geonames              id, name, latitude, longitude, feature_class,
                          feature_code, country_code, population,
                          admin1_name, admin2_name
    feature_codes         feature_class, feature_code, name, description
    metros                id, name, country_code, population, details
    geoboundaries_metros  metro_id, geoboundary_id

Safety:
- All queries use psycopg.sql.SQL() composition
- Schema/table names via sql.Identifier()
- Values via parameterized queries (%s placeholders)

Read methods raise psycopg errors; callers (BoundaryLocator, ProximityIndex)
decide whether an error means "no result".
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg
from psycopg import sql

from infrastructure.postgresql import PostgreSQLRepository

from .config import GeoLookupConfig, get_geo_config
from .geometry import point_wkt
from .models import AdmLevel, Boundary, BoundingBox, FeatureTypeCode, Metro, NamedFeature, SpatialCapability

# Setup logging
logger = logging.getLogger(__name__)

_BOUNDARY_COLUMNS = ["id", "name", "level", "shape_id", "shape_iso", "shape_group", "source_url"]
_FEATURE_COLUMNS = ["id", "name", "latitude", "longitude", "feature_class", "feature_code",
                    "country_code", "population", "admin1_name", "admin2_name"]


class GeoLookupRepository(PostgreSQLRepository):
    """
    PostGIS repository for boundary containment, feature proximity and metros.

    Each public read opens its own connection (see PostgreSQLRepository);
    ingestion holds one connection per level through session().
    """

    def __init__(self, config: Optional[GeoLookupConfig] = None,
                 connection_string: Optional[str] = None):
        self.config = config or get_geo_config()
        super().__init__(
            connection_string=connection_string,
            schema_name=self.config.geo_schema,
            statement_timeout_seconds=self.config.query_timeout_seconds
        )

    # ========================================================================
    # IDENTIFIERS
    # ========================================================================

    def _table(self, table_name: str) -> sql.Composed:
        return sql.SQL("{schema}.{table}").format(
            schema=sql.Identifier(self.schema_name),
            table=sql.Identifier(table_name)
        )

    @staticmethod
    def _columns(columns: Sequence[str], alias: Optional[str] = None) -> sql.Composed:
        if alias:
            return sql.SQL(", ").join(sql.Identifier(alias, c) for c in columns)
        return sql.SQL(", ").join(sql.Identifier(c) for c in columns)

    # ========================================================================
    # CAPABILITY
    # ========================================================================

    def probe_capability(self) -> SpatialCapability:
        """
        Check that PostGIS, the schema and the lookup tables are present.

        Never raises; connection failures are reported as unavailable.
        """
        required = [self.config.boundaries_table, self.config.features_table]
        try:
            with self._get_cursor() as cur:
                cur.execute("SELECT EXISTS (SELECT 1 FROM pg_extension WHERE extname = 'postgis') AS ok")
                if not cur.fetchone()["ok"]:
                    return SpatialCapability.unavailable("PostGIS extension is not installed")

                cur.execute(
                    "SELECT schema_name FROM information_schema.schemata WHERE schema_name = %s",
                    (self.schema_name,)
                )
                if not cur.fetchone():
                    return SpatialCapability.unavailable(f"schema '{self.schema_name}' does not exist")

                cur.execute("""
                    SELECT table_name FROM information_schema.tables
                    WHERE table_schema = %s AND table_name = ANY(%s)
                """, (self.schema_name, required))
                present = {row["table_name"] for row in cur.fetchall()}

            missing = [t for t in required if t not in present]
            if missing:
                return SpatialCapability.unavailable(f"missing tables: {', '.join(missing)}")

            return SpatialCapability.ready()

        except Exception as e:
            logger.error(f"Error probing spatial capability: {e}")
            return SpatialCapability.unavailable(f"{type(e).__name__}: {e}")

    # ========================================================================
    # BOUNDARIES
    # ========================================================================

    def containing_boundaries(
        self,
        latitude: float,
        longitude: float,
        levels: Optional[Sequence[AdmLevel]] = None,
        limit: Optional[int] = None
    ) -> List[Boundary]:
        """
        Boundaries whose geometry contains the point, ordered by level.

        Args:
            latitude, longitude: Degrees, already range-checked
            levels: Restrict to these ADM levels (all when None)
            limit: Row cap (defaults to config.containment_limit)
        """
        params: List[Any] = [point_wkt(latitude, longitude)]
        level_filter = sql.SQL("")
        if levels:
            level_filter = sql.SQL("AND level = ANY(%s)")
            params.append([AdmLevel(level).value for level in levels])
        params.append(limit or self.config.containment_limit)

        query = sql.SQL("""
            SELECT {columns}
            FROM {table}
            WHERE ST_Contains(boundary, ST_GeomFromText(%s, 4326))
            {level_filter}
            ORDER BY level, name
            LIMIT %s
        """).format(
            columns=self._columns(_BOUNDARY_COLUMNS),
            table=self._table(self.config.boundaries_table),
            level_filter=level_filter
        )

        with self._get_cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()

        logger.debug(f"Containment ({latitude}, {longitude}) levels={levels}: {len(rows)} boundaries")
        return [self._row_to_boundary(row) for row in rows]

    def boundary_counts_by_level(self) -> Dict[str, int]:
        query = sql.SQL("SELECT level, COUNT(*) AS n FROM {table} GROUP BY level ORDER BY level").format(
            table=self._table(self.config.boundaries_table)
        )
        with self._get_cursor() as cur:
            cur.execute(query)
            return {row["level"]: row["n"] for row in cur.fetchall()}

    @contextmanager
    def session(self) -> Iterator[psycopg.Connection]:
        """
        One connection for a batch of writes; committed when the block exits cleanly.
        """
        with self._get_connection() as conn:
            yield conn
            conn.commit()

    def upsert_boundary(self, row: Dict[str, Any], conn: psycopg.Connection) -> bool:
        """
        Insert or update one boundary keyed by (name, level, shape_id).

        Args:
            row: name, level, shape_id, shape_iso, shape_group, source_url, wkt
            conn: Connection from session(); the caller owns the transaction

        Returns:
            True if a new row was inserted, False if an existing row was updated
        """
        query = sql.SQL("""
            INSERT INTO {table}
                (name, level, shape_id, shape_iso, shape_group, source_url, boundary, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, ST_Multi(ST_GeomFromText(%s, 4326)), now(), now())
            ON CONFLICT (name, level, shape_id) DO UPDATE SET
                shape_iso = EXCLUDED.shape_iso,
                shape_group = EXCLUDED.shape_group,
                source_url = EXCLUDED.source_url,
                boundary = EXCLUDED.boundary,
                updated_at = now()
            RETURNING (xmax = 0) AS inserted
        """).format(table=self._table(self.config.boundaries_table))

        with self._get_cursor(conn) as cur:
            cur.execute(query, (
                row["name"], row["level"], row["shape_id"], row.get("shape_iso"),
                row.get("shape_group"), row.get("source_url"), row["wkt"]
            ))
            result = cur.fetchone()
            return bool(result and result["inserted"])

    # ========================================================================
    # NAMED FEATURES
    # ========================================================================

    def features_in_box(
        self,
        bbox: BoundingBox,
        feature_class: Optional[str] = None,
        feature_code: Optional[str] = None
    ) -> List[NamedFeature]:
        """Named features inside the box, optionally filtered by class/code equality."""
        conditions = [
            sql.SQL("latitude BETWEEN %s AND %s"),
            sql.SQL("longitude BETWEEN %s AND %s"),
        ]
        params: List[Any] = [bbox.min_lat, bbox.max_lat, bbox.min_lng, bbox.max_lng]

        if feature_class:
            conditions.append(sql.SQL("feature_class = %s"))
            params.append(feature_class.upper())
        if feature_code:
            conditions.append(sql.SQL("feature_code = %s"))
            params.append(feature_code.upper())

        query = sql.SQL("SELECT {columns} FROM {table} WHERE {where}").format(
            columns=self._columns(_FEATURE_COLUMNS),
            table=self._table(self.config.features_table),
            where=sql.SQL(" AND ").join(conditions)
        )

        with self._get_cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()

        logger.debug(f"Bounding-box prefilter {feature_class}/{feature_code}: {len(rows)} candidates")
        return [NamedFeature(**row) for row in rows]

    def find_feature_type_by_keyword(self, keyword: str) -> Optional[FeatureTypeCode]:
        """First feature type whose name or description contains the keyword (case-insensitive)."""
        pattern = f"%{keyword.strip().lower()}%"
        query = sql.SQL("""
            SELECT feature_class, feature_code, name, description
            FROM {table}
            WHERE LOWER(name) LIKE %s OR LOWER(description) LIKE %s
            ORDER BY feature_class, feature_code
            LIMIT 1
        """).format(table=self._table(self.config.feature_codes_table))

        with self._get_cursor() as cur:
            cur.execute(query, (pattern, pattern))
            row = cur.fetchone()

        return FeatureTypeCode(**row) if row else None

    # ========================================================================
    # METROS
    # ========================================================================

    def _metro_select(self) -> sql.Composed:
        return sql.SQL("""
            SELECT mt.id, mt.name, mt.country_code, mt.population, mt.details,
                   COALESCE(
                       array_agg(mm.geoboundary_id ORDER BY mm.geoboundary_id)
                           FILTER (WHERE mm.geoboundary_id IS NOT NULL),
                       '{{}}'
                   ) AS boundary_ids
            FROM {metros} mt
            LEFT JOIN {members} mm ON mm.metro_id = mt.id
        """).format(
            metros=self._table(self.config.metros_table),
            members=self._table(self.config.metro_members_table)
        )

    def get_metro(self, metro_id: int) -> Optional[Metro]:
        query = self._metro_select() + sql.SQL(" WHERE mt.id = %s GROUP BY mt.id")
        with self._get_cursor() as cur:
            cur.execute(query, (metro_id,))
            row = cur.fetchone()
        return Metro(**row) if row else None

    def metro_contains_point(self, metro_id: int, latitude: float, longitude: float) -> bool:
        """True iff any member boundary of the metro contains the point."""
        query = sql.SQL("""
            SELECT EXISTS (
                SELECT 1
                FROM {members} mm
                JOIN {boundaries} b ON b.id = mm.geoboundary_id
                WHERE mm.metro_id = %s
                AND ST_Contains(b.boundary, ST_GeomFromText(%s, 4326))
            ) AS contains
        """).format(
            members=self._table(self.config.metro_members_table),
            boundaries=self._table(self.config.boundaries_table)
        )
        with self._get_cursor() as cur:
            cur.execute(query, (metro_id, point_wkt(latitude, longitude)))
            return bool(cur.fetchone()["contains"])

    def metros_containing_point(self, latitude: float, longitude: float) -> List[Metro]:
        query = self._metro_select() + sql.SQL("""
            WHERE EXISTS (
                SELECT 1
                FROM {members} m2
                JOIN {boundaries} b ON b.id = m2.geoboundary_id
                WHERE m2.metro_id = mt.id
                AND ST_Contains(b.boundary, ST_GeomFromText(%s, 4326))
            )
            GROUP BY mt.id
            ORDER BY mt.name
        """).format(
            members=self._table(self.config.metro_members_table),
            boundaries=self._table(self.config.boundaries_table)
        )
        with self._get_cursor() as cur:
            cur.execute(query, (point_wkt(latitude, longitude),))
            return [Metro(**row) for row in cur.fetchall()]

    def metro_boundaries(self, metro_id: int) -> List[Boundary]:
        query = sql.SQL("""
            SELECT {columns}
            FROM {members} mm
            JOIN {boundaries} b ON b.id = mm.geoboundary_id
            WHERE mm.metro_id = %s
            ORDER BY b.name
        """).format(
            columns=self._columns(_BOUNDARY_COLUMNS, alias="b"),
            members=self._table(self.config.metro_members_table),
            boundaries=self._table(self.config.boundaries_table)
        )
        with self._get_cursor() as cur:
            cur.execute(query, (metro_id,))
            return [self._row_to_boundary(row) for row in cur.fetchall()]

    def add_metro_boundary(self, metro_id: int, boundary_id: int) -> None:
        query = sql.SQL("""
            INSERT INTO {members} (metro_id, geoboundary_id)
            VALUES (%s, %s)
            ON CONFLICT DO NOTHING
        """).format(members=self._table(self.config.metro_members_table))
        with self._get_cursor() as cur:
            cur.execute(query, (metro_id, boundary_id))

    def remove_metro_boundary(self, metro_id: int, boundary_id: int) -> None:
        query = sql.SQL("DELETE FROM {members} WHERE metro_id = %s AND geoboundary_id = %s").format(
            members=self._table(self.config.metro_members_table)
        )
        with self._get_cursor() as cur:
            cur.execute(query, (metro_id, boundary_id))

    def metro_union_stats(self, metro_id: int) -> Optional[Dict[str, Any]]:
        """
        Area (km2) and centroid of the union of a metro's member boundaries.

        Overlapping members are counted once because the union is taken first.
        """
        query = sql.SQL("""
            WITH u AS (
                SELECT ST_Union(b.boundary) AS geom
                FROM {members} mm
                JOIN {boundaries} b ON b.id = mm.geoboundary_id
                WHERE mm.metro_id = %s
            )
            SELECT ST_Area(ST_Transform(geom, 3857)) / 1000000.0 AS area_km2,
                   ST_Y(ST_Centroid(geom)) AS lat,
                   ST_X(ST_Centroid(geom)) AS lng
            FROM u
            WHERE geom IS NOT NULL
        """).format(
            members=self._table(self.config.metro_members_table),
            boundaries=self._table(self.config.boundaries_table)
        )
        with self._get_cursor() as cur:
            cur.execute(query, (metro_id,))
            return cur.fetchone()

    # ========================================================================
    # ROW MAPPING
    # ========================================================================

    @staticmethod
    def _row_to_boundary(row: Dict[str, Any]) -> Boundary:
        return Boundary(
            id=row.get("id"),
            name=row["name"],
            level=AdmLevel(row["level"]),
            shape_id=row.get("shape_id"),
            shape_iso=row.get("shape_iso"),
            shape_group=row.get("shape_group"),
            source_url=row.get("source_url")
        )
