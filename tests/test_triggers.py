"""Unit tests for the geo HTTP triggers."""

import json

import azure.functions as func
import pytest

from geo_lookup.models import Metro, SpatialCapability
from geo_lookup.service import GeoLookupService
from geo_lookup.triggers import (
    GeoContextTrigger, MetroContainsTrigger, NearestFeaturesTrigger, get_geo_triggers
)

from conftest import FakeGeoRepository


def _request(route, params=None, route_params=None):
    return func.HttpRequest(
        method="GET",
        url=f"http://localhost:7071/api/{route}",
        params=params or {},
        route_params=route_params or {},
        body=b""
    )


def _json(response):
    return json.loads(response.get_body())


@pytest.fixture
def repo(nyc_boundaries, nyc_features, feature_types):
    return FakeGeoRepository(
        boundaries=nyc_boundaries,
        features=nyc_features,
        feature_types=feature_types,
        metros=[Metro(id=1, name="New York Metro", country_code="US")],
        members={1: [2]}
    )


@pytest.fixture
def service(repo, geo_config):
    return GeoLookupService(repository=repo, config=geo_config)


def test_registry_routes(service):
    routes = [t["route"] for t in get_geo_triggers(service)]
    assert routes == ["geo/context", "geo/nearest", "geo/metros/{metro_id}/contains"]


class TestGeoContextTrigger:
    def test_success(self, service):
        response = GeoContextTrigger(service).handle(
            _request("geo/context", {"lat": "40.7128", "lng": "-74.0060", "country": "us"})
        )
        body = _json(response)

        assert response.status_code == 200
        assert response.mimetype == "application/json"
        assert body["valid"] is True
        assert body["state_or_province"]["boundary"]["name"] == "New York"
        assert "geometry" not in body["boundaries"][0]
        assert body["metros"][0]["name"] == "New York Metro"

    def test_include_metros_false(self, service):
        response = GeoContextTrigger(service).handle(
            _request("geo/context", {"lat": "40.7128", "lng": "-74.0060", "include_metros": "false"})
        )
        assert _json(response)["metros"] == []

    def test_missing_lat_is_bad_request(self, service):
        response = GeoContextTrigger(service).handle(_request("geo/context", {"lng": "-74.0"}))
        assert response.status_code == 400
        assert _json(response)["code"] == "BadRequest"

    def test_bad_country_is_bad_request(self, service):
        response = GeoContextTrigger(service).handle(
            _request("geo/context", {"lat": "40.7", "lng": "-74.0", "country": "USA"})
        )
        assert response.status_code == 400

    def test_invalid_coordinates(self, service):
        response = GeoContextTrigger(service).handle(_request("geo/context", {"lat": "5000", "lng": "0"}))
        assert response.status_code == 400
        assert _json(response)["code"] == "InvalidCoordinates"

    def test_unavailable_capability(self, service, repo):
        repo.capability = SpatialCapability.unavailable("schema 'geo' does not exist")
        response = GeoContextTrigger(service).handle(_request("geo/context", {"lat": "40.7", "lng": "-74.0"}))

        assert response.status_code == 503
        body = _json(response)
        assert body["code"] == "ServiceUnavailable"
        assert "schema 'geo' does not exist" in body["description"]

    def test_unexpected_error(self, service, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(service, "resolve", boom)
        response = GeoContextTrigger(service).handle(_request("geo/context", {"lat": "40.7", "lng": "-74.0"}))
        assert response.status_code == 500
        assert _json(response)["code"] == "InternalServerError"


class TestNearestFeaturesTrigger:
    def test_success(self, service):
        response = NearestFeaturesTrigger(service).handle(_request("geo/nearest", {
            "lat": "40.7128", "lng": "-74.0060", "feature_class": "P", "feature_code": "PPL",
            "radius_km": "10", "limit": "1",
        }))
        body = _json(response)

        assert response.status_code == 200
        assert body["numberReturned"] == 1
        assert body["results"][0]["feature"]["name"] == "Jersey City"

    def test_requires_feature_type(self, service):
        response = NearestFeaturesTrigger(service).handle(
            _request("geo/nearest", {"lat": "40.7", "lng": "-74.0"})
        )
        assert response.status_code == 400
        assert "feature_class" in _json(response)["description"]

    @pytest.mark.parametrize("extra", [{"radius_km": "0"}, {"radius_km": "5000"}, {"limit": "0"}])
    def test_rejects_out_of_range_parameters(self, service, extra):
        params = {"lat": "40.7", "lng": "-74.0", "keyword": "school", **extra}
        response = NearestFeaturesTrigger(service).handle(_request("geo/nearest", params))
        assert response.status_code == 400

    def test_unresolvable_keyword_is_empty(self, service):
        response = NearestFeaturesTrigger(service).handle(
            _request("geo/nearest", {"lat": "40.7", "lng": "-74.0", "keyword": "volcano"})
        )
        assert response.status_code == 200
        assert _json(response)["results"] == []


class TestMetroContainsTrigger:
    def test_contains(self, service):
        response = MetroContainsTrigger(service).handle(_request(
            "geo/metros/1/contains", {"lat": "40.7128", "lng": "-74.0060"}, {"metro_id": "1"}
        ))
        body = _json(response)

        assert response.status_code == 200
        assert body["contains"] is True
        assert body["metro"]["boundary_ids"] == [2]

    def test_not_contained(self, service):
        response = MetroContainsTrigger(service).handle(_request(
            "geo/metros/1/contains", {"lat": "35.6", "lng": "139.7"}, {"metro_id": "1"}
        ))
        assert _json(response)["contains"] is False

    def test_unknown_metro(self, service):
        response = MetroContainsTrigger(service).handle(_request(
            "geo/metros/42/contains", {"lat": "40.7", "lng": "-74.0"}, {"metro_id": "42"}
        ))
        assert response.status_code == 404
        assert _json(response)["code"] == "NotFound"

    def test_invalid_metro_id(self, service):
        response = MetroContainsTrigger(service).handle(_request(
            "geo/metros/abc/contains", {"lat": "40.7", "lng": "-74.0"}, {"metro_id": "abc"}
        ))
        assert response.status_code == 400
