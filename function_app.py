# ============================================================================
# CONTEXT - AZURE FUNCTIONS ENTRY POINT
# ============================================================================
# STATUS: Core Infrastructure - Function App Entry Point
# PURPOSE: Main entry point for Azure Functions runtime with the geo lookup API
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: app (FunctionApp instance)
# DEPENDENCIES: azure-functions, geo_lookup, health
# ============================================================================

"""
Azure Functions Entry Point for geo-lookup-api

Architecture:
    - Geo lookup API: 3 endpoints over PostGIS boundaries, named features, metros
    - Health checks: 2 endpoints for monitoring and APIM integration
        - /api/health - Public (minimal response for external callers)
        - /api/health/detailed - Internal (full metrics for APIM probes)

Deployment:
    - Local: func start
    - Azure: func azure functionapp publish <app-name> --python --build remote
"""

import json
import logging

import azure.functions as func

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = func.FunctionApp()

# ============================================================================
# Geo Lookup API - 3 Endpoints
# ============================================================================

try:
    from geo_lookup import get_geo_triggers

    logger.info("Registering Geo Lookup API endpoints...")

    geo_triggers = get_geo_triggers()

    @app.route(route="geo/context", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def geo_context(req: func.HttpRequest) -> func.HttpResponse:
        return geo_triggers[0]['handler'](req)

    @app.route(route="geo/nearest", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def geo_nearest(req: func.HttpRequest) -> func.HttpResponse:
        return geo_triggers[1]['handler'](req)

    @app.route(route="geo/metros/{metro_id}/contains", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def geo_metro_contains(req: func.HttpRequest) -> func.HttpResponse:
        return geo_triggers[2]['handler'](req)

    logger.info("✅ Geo Lookup API registered successfully (3 endpoints)")

except ImportError as e:
    logger.warning(f"⚠️ Geo lookup module not available: {e}")
    logger.warning("Geo Lookup API will not be available")

# ============================================================================
# Health Check Endpoints - 2 Endpoints (Public + Detailed)
# ============================================================================

@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """
    Public health check. Always 200; status in body indicates health.
    """
    from health import get_public_health

    return func.HttpResponse(
        json.dumps(get_public_health(), default=str),
        mimetype="application/json",
        status_code=200,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )


@app.route(route="health/detailed", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_detailed(req: func.HttpRequest) -> func.HttpResponse:
    """
    Detailed health check for APIM probes. 503 if unhealthy, 200 otherwise.
    """
    from health import get_detailed_health, HealthStatus

    result = get_detailed_health()
    status_code = 503 if result["status"] == HealthStatus.UNHEALTHY.value else 200

    return func.HttpResponse(
        json.dumps(result, default=str, indent=2),
        mimetype="application/json",
        status_code=status_code,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )

# ============================================================================
# Application Startup
# ============================================================================

from health import get_app_identity
_app_identity = get_app_identity()

logger.info("=" * 60)
logger.info(f"{_app_identity['name']} - {_app_identity['description']}")
logger.info("=" * 60)
logger.info("Available endpoints:")
logger.info("  - GET /api/health - Public health check (minimal)")
logger.info("  - GET /api/health/detailed - Detailed health (APIM only)")
logger.info("  - GET /api/geo/context - Boundaries, county, township, subdivision, metros")
logger.info("  - GET /api/geo/nearest - Nearest named features")
logger.info("  - GET /api/geo/metros/{id}/contains - Metro membership of a point")
logger.info("=" * 60)
