"""
Module for resolving a named place via the Google Maps Geocoding API.
---------------------------------
Logs each lookup with a unique search ID and reports errors in a structured,
JSON-formatted log.

Functions:
    google_viewport_geocoder(query, api_key) -> Polygon | None:
        Geocode a structured place query and return the result's viewport as a
        rectangular polygon, or None when the place is unknown.
"""

import uuid
from typing import Dict, Optional

import requests
from shapely.geometry import Polygon, box

from ..config import API_KEY, REQUEST_TIMEOUT
from ..utils import logger

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
# Order in which structured fields are joined into a free-form address
ADDRESS_ORDER = ("postal_code", "city", "county", "state", "country")


def build_address(query: Dict[str, str]) -> str:
    return ", ".join(query[name] for name in ADDRESS_ORDER if query.get(name))


def google_viewport_geocoder(query: Dict[str, str], api_key: Optional[str] = None) -> Optional[Polygon]:
    """
    Query the Google Maps Geocoding API for a named place.

    This function:
      1. Generates a short, unique `search_id` for tracing.
      2. Joins the structured query into an address string.
      3. Makes an HTTP GET to the Geocoding endpoint.
      4. Returns the first result's viewport as a shapely box.

    Args:
        query (dict): Named place fields (country, state, county, city, postal_code).
        api_key (str): Google Maps API key, defaults to GOOGLE_MAPS_API_KEY.

    Returns:
        Polygon | None: The viewport polygon, None if the API found nothing.

    Raises:
        ValueError: If no API key is configured.
        requests.HTTPError: If the HTTP request fails (4xx/5xx status).
    """
    api_key = api_key or API_KEY
    if not api_key:
        raise ValueError("GOOGLE_MAPS_API_KEY environment variable is required for Google geocoding")

    search_id: str = str(uuid.uuid4())[:8]
    address = build_address(query)

    logger.info(f"Geocoding place", extra={
        "operation": "geocode",
        "search_id": search_id,
        "address": address
    })

    try:
        response = requests.get(
            GEOCODE_URL,
            params={"address": address, "key": api_key},
            timeout=REQUEST_TIMEOUT
        )
        response.raise_for_status()
        data = response.json().get('results', [])

        if not data:
            logger.warning(f"Place not found", extra={
                "operation": "geocode",
                "search_id": search_id,
                "address": address,
                "status": "not_found"
            })
            return None

        viewport = data[0]['geometry']['viewport']
        sw = viewport['southwest']
        ne = viewport['northeast']

        logger.info(f"Successfully geocoded place", extra={
            "operation": "geocode",
            "search_id": search_id,
            "address": address,
            "viewport": viewport,
            "status": "success"
        })

        return box(sw['lng'], sw['lat'], ne['lng'], ne['lat'])

    except Exception as e:
        logger.error(f"Error geocoding place: {str(e)}", extra={
            "operation": "geocode",
            "search_id": search_id,
            "address": address,
            "error": str(e),
            "status": "error"
        })
        raise
