"""Unit tests for the health module."""

from unittest.mock import patch

import health
from health import CheckResult, HealthStatus, check_spatial_capability, get_detailed_health

from geo_lookup.models import SpatialCapability

from conftest import FakeGeoRepository


def _result(status):
    return CheckResult(status=status, latency_ms=1.0, message=status)


def test_spatial_capability_pass(nyc_boundaries):
    result = check_spatial_capability(FakeGeoRepository(boundaries=nyc_boundaries))
    assert result.status == "pass"
    assert result.details["boundaries_by_level"]["ADM1"] == 3


def test_spatial_capability_fail():
    repo = FakeGeoRepository(capability=SpatialCapability.unavailable("missing tables: geonames"))
    result = check_spatial_capability(repo)
    assert result.status == "fail"
    assert "geonames" in result.message


def test_check_result_to_dict_omits_empty_details():
    assert "details" not in _result("pass").to_dict()


@patch.object(health, "check_api_modules", return_value=_result("pass"))
@patch.object(health, "check_spatial_capability", return_value=_result("pass"))
@patch.object(health, "check_database_connectivity", return_value=_result("pass"))
def test_detailed_health_healthy(mock_db, mock_spatial, mock_modules):
    result = get_detailed_health()
    assert result["status"] == HealthStatus.HEALTHY.value
    assert result["app"] == "geo-lookup-api"
    assert set(result["checks"]) == {"database", "spatial_capability", "api_modules"}


@patch.object(health, "check_api_modules", return_value=_result("fail"))
@patch.object(health, "check_spatial_capability", return_value=_result("pass"))
@patch.object(health, "check_database_connectivity", return_value=_result("pass"))
def test_detailed_health_degraded(mock_db, mock_spatial, mock_modules):
    assert get_detailed_health()["status"] == HealthStatus.DEGRADED.value


@patch.object(health, "check_api_modules", return_value=_result("pass"))
@patch.object(health, "check_spatial_capability", return_value=_result("fail"))
@patch.object(health, "check_database_connectivity", return_value=_result("pass"))
def test_detailed_health_unhealthy(mock_db, mock_spatial, mock_modules):
    assert get_detailed_health()["status"] == HealthStatus.UNHEALTHY.value


@patch.object(health, "check_database_connectivity", return_value=_result("fail"))
def test_public_health(mock_db):
    result = health.get_public_health()
    assert result["status"] == "unhealthy"
    assert set(result) == {"status", "timestamp"}
