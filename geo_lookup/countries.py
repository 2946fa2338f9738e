"""
ISO 3166-1 country code conversion.

geoBoundaries addresses countries by alpha-3 code while callers (and the
GeoNames feature table) use alpha-2. pycountry covers almost everything; the
override table fills the territories some pycountry releases lack.
"""

import logging
from typing import Optional, Tuple

import pycountry

logger = logging.getLogger(__name__)

# ISO2 -> (ISO3, name)
MANUAL_OVERRIDES = {
    "BL": ("BLM", "Saint Barthélemy"),
    "MF": ("MAF", "Saint Martin (French part)"),
    "SX": ("SXM", "Sint Maarten (Dutch part)"),
}


def lookup_country(iso2: str) -> Optional[Tuple[str, str]]:
    """(iso3, name) from pycountry or the overrides, or None when neither knows the code."""
    iso2 = iso2.strip().upper()

    country = pycountry.countries.get(alpha_2=iso2)
    if country is not None:
        return country.alpha_3, country.name

    return MANUAL_OVERRIDES.get(iso2)


def resolve_country(iso2: str) -> Tuple[str, str]:
    """
    Resolve an ISO2 code to (iso3, name).

    Falls back to the ISO2 code itself so the caller can still attempt a
    fetch and log what went wrong.
    """
    found = lookup_country(iso2)
    if found is not None:
        return found

    iso2 = iso2.strip().upper()
    logger.warning(f"⚠️ No ISO3 mapping for country code {iso2}, using it verbatim")
    return iso2, iso2


def iso2_to_iso3(iso2: str) -> str:
    return resolve_country(iso2)[0]


def country_name_for_iso3(iso3: str) -> Optional[str]:
    """Country name for an ISO3 code, or None when unknown."""
    iso3 = iso3.upper()
    country = pycountry.countries.get(alpha_3=iso3)
    if country is not None:
        return country.name
    for override_iso3, name in MANUAL_OVERRIDES.values():
        if override_iso3 == iso3:
            return name
    return None
