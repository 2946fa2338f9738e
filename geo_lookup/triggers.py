# ============================================================================
# CONTEXT - GEO LOOKUP TRIGGERS
# ============================================================================
# STATUS: Standalone HTTP Triggers - Geo lookup endpoints
# PURPOSE: Azure Functions HTTP triggers over GeoLookupService
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: get_geo_triggers (returns list of trigger configurations)
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# PYDANTIC_MODELS: GeoContextQueryParameters, NearestFeaturesQueryParameters
# DEPENDENCIES: azure.functions, pydantic, geo_lookup.service
# PATTERNS: Trigger Pattern, Factory Pattern (get_geo_triggers)
# ENTRY_POINTS: Function App route registration via get_geo_triggers()
# ============================================================================

"""
Geo Lookup HTTP Triggers

Endpoints:
- GET /api/geo/context?lat=..&lng=..[&country=US][&include_metros=false]
- GET /api/geo/nearest?lat=..&lng=..&feature_class=P[&feature_code=..][&keyword=..]
- GET /api/geo/metros/{metro_id}/contains?lat=..&lng=..

Every endpoint probes the spatial capability once per request and answers
503 when PostGIS or the geo tables are missing.

Integration:
    In function_app.py:

    from geo_lookup import get_geo_triggers

    for trigger in get_geo_triggers():
        app.route(
            route=trigger['route'],
            methods=trigger['methods'],
            auth_level=func.AuthLevel.ANONYMOUS
        )(trigger['handler'])
"""

import json
from typing import Any, Dict, List, Optional

import azure.functions as func
from pydantic import ValidationError

from util_logger import LoggerFactory, ComponentType

from .errors import InvalidCoordinateError, SpatialCapabilityUnavailableError
from .models import GeoContextQueryParameters, NearestFeaturesQueryParameters, PointQueryParameters
from .service import GeoLookupService

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "GeoTriggers")


# ============================================================================
# TRIGGER REGISTRY FUNCTION
# ============================================================================

def get_geo_triggers(service: Optional[GeoLookupService] = None) -> List[Dict[str, Any]]:
    """
    Trigger configurations for function_app.py.

    Returns:
        List of dicts with keys route, methods, handler
    """
    service = service or GeoLookupService()
    return [
        {
            'route': 'geo/context',
            'methods': ['GET'],
            'handler': GeoContextTrigger(service).handle
        },
        {
            'route': 'geo/nearest',
            'methods': ['GET'],
            'handler': NearestFeaturesTrigger(service).handle
        },
        {
            'route': 'geo/metros/{metro_id}/contains',
            'methods': ['GET'],
            'handler': MetroContainsTrigger(service).handle
        }
    ]


# ============================================================================
# BASE TRIGGER CLASS
# ============================================================================

class BaseGeoTrigger:
    """
    Shared response helpers and the per-request capability check.
    """

    def __init__(self, service: Optional[GeoLookupService] = None):
        self.service = service or GeoLookupService()

    def _check_capability(self):
        """
        Returns:
            (capability, None) when lookups can run, (None, 503 response) otherwise
        """
        try:
            capability = self.service.require_capability()
        except SpatialCapabilityUnavailableError as e:
            return None, self._service_unavailable_response(e.reason)
        except Exception as e:
            logger.error(f"❌ Capability probe failed: {e}")
            return None, self._service_unavailable_response(f"{type(e).__name__}: {e}")
        return capability, None

    def _service_unavailable_response(self, reason: Optional[str]) -> func.HttpResponse:
        return self._error_response(
            message=f"Geo lookups are not available: {reason or 'spatial backend not configured'}",
            status_code=503,
            error_type="ServiceUnavailable"
        )

    def _query_params(self, req: func.HttpRequest) -> Dict[str, str]:
        """Query string as a plain dict, empty values dropped."""
        return {k: v for k, v in req.params.items() if v not in (None, "")}

    def _json_response(self, data: Any, status_code: int = 200) -> func.HttpResponse:
        if hasattr(data, 'model_dump'):
            data = data.model_dump(mode='json')
        return func.HttpResponse(
            body=json.dumps(data, indent=2, default=str),
            status_code=status_code,
            mimetype="application/json"
        )

    def _error_response(
        self,
        message: str,
        status_code: int = 400,
        error_type: str = "BadRequest"
    ) -> func.HttpResponse:
        error_body = {
            "code": error_type,
            "description": message
        }
        return func.HttpResponse(
            body=json.dumps(error_body, indent=2),
            status_code=status_code,
            mimetype="application/json"
        )

    def _internal_error(self, action: str, error: Exception) -> func.HttpResponse:
        logger.error(f"❌ Error {action}: {type(error).__name__}: {error}")
        return self._error_response(
            message=f"Internal server error: {str(error)}",
            status_code=500,
            error_type="InternalServerError"
        )


# ============================================================================
# ENDPOINT TRIGGERS
# ============================================================================

class GeoContextTrigger(BaseGeoTrigger):
    """
    Full geographic context for a point.

    Endpoint: GET /api/geo/context
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        try:
            params = GeoContextQueryParameters(**self._query_params(req))
        except ValidationError as e:
            return self._error_response(message=f"Invalid query parameters: {str(e)}")

        capability, unavailable = self._check_capability()
        if unavailable:
            return unavailable

        try:
            context = self.service.resolve(
                params.lat,
                params.lng,
                expected_country=params.country.upper() if params.country else None,
                include_metros=params.include_metros,
                strict=True,
                capability=capability
            )
            logger.info(f"Geo context requested for ({params.lat}, {params.lng})")
            return self._json_response(context)

        except InvalidCoordinateError as e:
            logger.warning(f"⚠️ Rejected coordinates: {e}")
            return self._error_response(message=str(e), error_type="InvalidCoordinates")
        except Exception as e:
            return self._internal_error("resolving geo context", e)


class NearestFeaturesTrigger(BaseGeoTrigger):
    """
    Nearest named features of a class, code or keyword-resolved type.

    Endpoint: GET /api/geo/nearest

    Query Parameters:
    - lat, lng: required
    - feature_class / feature_code / keyword: at least one
    - radius_km: search radius (0-1000, default 100)
    - limit: 1-100, default 5
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        try:
            params = NearestFeaturesQueryParameters(**self._query_params(req))
        except ValidationError as e:
            return self._error_response(message=f"Invalid query parameters: {str(e)}")

        capability, unavailable = self._check_capability()
        if unavailable:
            return unavailable

        try:
            results = self.service.nearest(
                params.lat,
                params.lng,
                feature_class=params.feature_class,
                feature_code=params.feature_code,
                keyword=params.keyword,
                radius_km=params.radius_km,
                limit=params.limit,
                capability=capability
            )
            logger.info(f"Nearest features for ({params.lat}, {params.lng}): {len(results)} returned")
            return self._json_response({
                "numberReturned": len(results),
                "results": [r.model_dump(mode='json') for r in results]
            })

        except InvalidCoordinateError as e:
            logger.warning(f"⚠️ Rejected coordinates: {e}")
            return self._error_response(message=str(e), error_type="InvalidCoordinates")
        except Exception as e:
            return self._internal_error("querying nearest features", e)


class MetroContainsTrigger(BaseGeoTrigger):
    """
    Whether a metro contains a point.

    Endpoint: GET /api/geo/metros/{metro_id}/contains
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        raw_id = req.route_params.get('metro_id')
        try:
            metro_id = int(raw_id)
        except (TypeError, ValueError):
            return self._error_response(message=f"Invalid metro id: {raw_id!r}")

        try:
            params = PointQueryParameters(**self._query_params(req))
        except ValidationError as e:
            return self._error_response(message=f"Invalid query parameters: {str(e)}")

        capability, unavailable = self._check_capability()
        if unavailable:
            return unavailable

        try:
            metro, contained = self.service.metro_contains(
                metro_id, params.lat, params.lng, capability=capability
            )
            if metro is None:
                return self._error_response(
                    message=f"Metro '{metro_id}' not found",
                    status_code=404,
                    error_type="NotFound"
                )

            return self._json_response({
                "metro": metro.model_dump(mode='json'),
                "latitude": params.lat,
                "longitude": params.lng,
                "contains": contained
            })

        except InvalidCoordinateError as e:
            logger.warning(f"⚠️ Rejected coordinates: {e}")
            return self._error_response(message=str(e), error_type="InvalidCoordinates")
        except Exception as e:
            return self._internal_error("checking metro containment", e)
