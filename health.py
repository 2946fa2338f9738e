# ============================================================================
# CONTEXT - HEALTH CHECK MODULE
# ============================================================================
# STATUS: Core Infrastructure - Health Monitoring
# PURPOSE: Public and detailed health checks for the geo lookup API
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: get_public_health, get_detailed_health, get_app_identity, HealthStatus
# DEPENDENCIES: psycopg, config, util_logger, geo_lookup
# PATTERNS: Two-tier health checks (public/detailed) for APIM
# ============================================================================

"""
Health Check Module

1. Public Health (/api/health):
   - Status and timestamp only
   - Always returns 200 (status in body indicates health)

2. Detailed Health (/api/health/detailed):
   - Database connectivity with latency
   - Spatial capability (PostGIS, geo schema, lookup tables) and boundary counts
   - geo_lookup module status
   - Returns 503 if unhealthy

Usage:
    from health import get_public_health, get_detailed_health

    result = get_public_health()
    # {"status": "healthy", "timestamp": "2026-10-19T12:00:00Z"}
"""

import time
import uuid
import psycopg
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional, Dict, Any

from config import get_postgres_connection_string, get_app_config
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "HealthService")

APP_NAME = "geo-lookup-api"
APP_DESCRIPTION = "Geographic Lookup API (boundaries, named features, metros)"


class HealthStatus(str, Enum):
    """Health status values."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"      # Non-critical components failing
    UNHEALTHY = "unhealthy"    # Critical components failing


@dataclass
class CheckResult:
    """Result of a single health check."""
    status: str              # "pass" or "fail"
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "status": self.status,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message
        }
        if self.details:
            result["details"] = self.details
        return result


def get_app_identity() -> Dict[str, str]:
    """Name and description logged at startup and returned by detailed health."""
    return {"name": APP_NAME, "description": APP_DESCRIPTION}


# ============================================================================
# Health Check Functions
# ============================================================================

def check_database_connectivity(timeout_seconds: float = 5.0) -> CheckResult:
    """
    SELECT 1 against PostgreSQL. Critical: failure means UNHEALTHY.
    """
    start_time = time.perf_counter()

    try:
        conn_string = get_postgres_connection_string()
        config = get_app_config()

        with psycopg.connect(conn_string, connect_timeout=int(timeout_seconds)) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()

        return CheckResult(
            status="pass",
            latency_ms=(time.perf_counter() - start_time) * 1000,
            message="PostgreSQL connection successful",
            details={
                "host": config.postgis_host,
                "database": config.postgis_database,
                "auth_mode": "managed_identity" if config.use_managed_identity else "password"
            }
        )

    except Exception as e:
        logger.error(f"Database connectivity check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=(time.perf_counter() - start_time) * 1000,
            message=f"Database connection failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_spatial_capability(repository=None) -> CheckResult:
    """
    Spatial capability probe plus boundary counts per level.

    Critical: without the capability every lookup returns empty.
    """
    start_time = time.perf_counter()

    try:
        if repository is None:
            from geo_lookup import GeoLookupRepository
            repository = GeoLookupRepository()

        capability = repository.probe_capability()
        if not capability.available:
            return CheckResult(
                status="fail",
                latency_ms=(time.perf_counter() - start_time) * 1000,
                message=f"Spatial lookups unavailable: {capability.reason}",
                details={"schema": repository.schema_name, "available": False}
            )

        counts = repository.boundary_counts_by_level()
        total = sum(counts.values())

        return CheckResult(
            status="pass",
            latency_ms=(time.perf_counter() - start_time) * 1000,
            message=f"{total} boundaries across {len(counts)} levels",
            details={
                "schema": repository.schema_name,
                "boundaries_by_level": counts
            }
        )

    except Exception as e:
        logger.error(f"Spatial capability check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=(time.perf_counter() - start_time) * 1000,
            message=f"Spatial capability check failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_api_modules() -> CheckResult:
    """
    geo_lookup import and trigger registration. Non-critical: failure means DEGRADED.
    """
    start_time = time.perf_counter()

    try:
        from geo_lookup import get_geo_triggers, get_geo_config
        triggers = get_geo_triggers()
        config = get_geo_config()
        return CheckResult(
            status="pass",
            latency_ms=(time.perf_counter() - start_time) * 1000,
            message="All modules loaded",
            details={
                "geo_lookup": {
                    "available": True,
                    "endpoints": len(triggers),
                    "schema": config.geo_schema
                }
            }
        )
    except Exception as e:
        return CheckResult(
            status="fail",
            latency_ms=(time.perf_counter() - start_time) * 1000,
            message="No API modules available",
            details={"geo_lookup": {"available": False, "endpoints": 0, "error": str(e)}}
        )


# ============================================================================
# Main Entry Points
# ============================================================================

def get_public_health() -> Dict[str, Any]:
    """
    Status and timestamp only, decided by database connectivity.
    """
    start_time = time.perf_counter()

    db_result = check_database_connectivity(timeout_seconds=3.0)
    status = HealthStatus.HEALTHY if db_result.status == "pass" else HealthStatus.UNHEALTHY

    logger.info("Public health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round((time.perf_counter() - start_time) * 1000, 2),
            'check_type': 'public'
        }
    })

    return {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def get_detailed_health() -> Dict[str, Any]:
    """
    Full metrics for APIM probes. Block from external access via APIM policy.
    """
    start_time = time.perf_counter()
    request_id = str(uuid.uuid4())[:8]

    checks = {}
    critical_failures = []
    non_critical_failures = []

    db_result = check_database_connectivity()
    checks["database"] = db_result.to_dict()
    if db_result.status == "fail":
        critical_failures.append("database")

    spatial_result = check_spatial_capability()
    checks["spatial_capability"] = spatial_result.to_dict()
    if spatial_result.status == "fail":
        critical_failures.append("spatial_capability")

    modules_result = check_api_modules()
    checks["api_modules"] = modules_result.to_dict()
    if modules_result.status == "fail":
        non_critical_failures.append("api_modules")

    if critical_failures:
        status = HealthStatus.UNHEALTHY
    elif non_critical_failures:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    total_duration = (time.perf_counter() - start_time) * 1000

    logger.info("Detailed health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'detailed',
            'request_id': request_id,
            'critical_failures': critical_failures,
            'non_critical_failures': non_critical_failures,
            'database_latency_ms': db_result.latency_ms
        }
    })

    identity = get_app_identity()
    return {
        "status": status.value,
        "app": identity["name"],
        "description": identity["description"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "checks": checks,
        "total_duration_ms": round(total_duration, 2)
    }
