"""Unit tests for ISO 3166 code conversion."""

from unittest.mock import patch

from geo_lookup.countries import country_name_for_iso3, iso2_to_iso3, lookup_country, resolve_country


def test_resolve_known_country():
    assert resolve_country("us") == ("USA", "United States")


def test_resolve_strips_whitespace():
    assert iso2_to_iso3(" de ") == "DEU"


@patch("geo_lookup.countries.pycountry.countries.get", return_value=None)
def test_manual_override_when_library_lacks_code(mock_get):
    assert resolve_country("SX") == ("SXM", "Sint Maarten (Dutch part)")


def test_unknown_code_falls_back_to_itself():
    assert resolve_country("XX") == ("XX", "XX")


def test_country_name_for_iso3():
    assert country_name_for_iso3("usa") == "United States"
    assert country_name_for_iso3("ZZZ") is None


@patch("geo_lookup.countries.pycountry.countries.get", return_value=None)
def test_country_name_from_override(mock_get):
    assert country_name_for_iso3("BLM") == "Saint Barthélemy"


def test_lookup_country_misses_unknown_code():
    assert lookup_country("XX") is None
    assert lookup_country("mf") == ("MAF", "Saint Martin (French part)")
