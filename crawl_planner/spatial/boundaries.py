"""Administrative boundary lookup through OpenStreetMap (Nominatim) via osmnx."""

from typing import Dict

import osmnx as ox
from shapely.geometry.base import BaseGeometry

from ..utils import logger

# osmnx structured queries use Nominatim's field names
NOMINATIM_FIELDS = {
    "country": "country",
    "state": "state",
    "county": "county",
    "city": "city",
    "postal_code": "postalcode",
}


def osm_boundary_geocoder(query: Dict[str, str]) -> BaseGeometry:
    """Return the boundary polygon of a named place."""
    structured = {NOMINATIM_FIELDS[name]: value for name, value in query.items() if name in NOMINATIM_FIELDS}

    gdf = ox.geocode_to_gdf(structured)
    polygon = gdf.geometry.iloc[0]

    logger.info("Fetched place boundary", extra={
        "operation": "geocode_boundary",
        "query": structured,
        "geometry_type": polygon.geom_type,
        "bounds": list(polygon.bounds)
    })
    return polygon
