"""
Address geocoding through the MapQuest geocoding API.

``geocode`` returns the fields of a ``schemas.Location`` or None when no key is
configured or the provider has no match.
"""
import logging
from typing import Any, Dict, Optional

import httpx

import config
from errors import ErrorResponse

logger = logging.getLogger(__name__)

MAPQUEST_URL = "https://www.mapquestapi.com/geocoding/v1/address"
TIMEOUT_SECONDS = 10.0


def _format_address(loc: Dict[str, Any]) -> str:
    parts = [loc.get("street"), loc.get("adminArea5"), loc.get("adminArea3"), loc.get("postalCode"), loc.get("adminArea1")]
    return ", ".join(p for p in parts if p)


def geocode(address: str) -> Optional[Dict[str, Any]]:
    if not config.GEOCODER_API_KEY:
        logger.warning("GEOCODER_API_KEY is not set; skipping geocoding of %r", address)
        return None
    if config.GEOCODER_PROVIDER != "mapquest":
        logger.error("Unsupported geocoder provider %r", config.GEOCODER_PROVIDER)
        raise ErrorResponse(f"Unsupported geocoder provider: {config.GEOCODER_PROVIDER}", 500)

    resp = httpx.get(
        MAPQUEST_URL,
        params={"key": config.GEOCODER_API_KEY, "location": address},
        timeout=TIMEOUT_SECONDS,
    )
    resp.raise_for_status()
    results = resp.json().get("results") or []
    locations = results[0].get("locations") if results else None
    if not locations:
        logger.info("No geocoding match for %r", address)
        return None

    loc = locations[0]
    lat_lng = loc.get("latLng") or {}
    if lat_lng.get("lat") is None or lat_lng.get("lng") is None:
        logger.info("Geocoding match for %r has no coordinates", address)
        return None

    return {
        "type": "Point",
        "coordinates": [lat_lng["lng"], lat_lng["lat"]],
        "formatted_address": _format_address(loc),
        "street": loc.get("street"),
        "city": loc.get("adminArea5"),
        "state": loc.get("adminArea3"),
        "zipcode": loc.get("postalCode"),
        "country": loc.get("adminArea1"),
    }
