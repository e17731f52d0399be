"""
Area Resolution Module
----------------------

Turns a user supplied area descriptor into a resolved search area: a shapely
geometry (Polygon or MultiPolygon, or a bare Point for the degenerate case), a
representative center and an optional zoom level.

A descriptor names its area in exactly one way:
  - an explicit center (lat/lng), optionally with a radius in kilometres
  - a named place (country/state/county/city/postal code) handed to a geocoder
  - an explicit polygon (GeoJSON Polygon, MultiPolygon or Point+radiusKm, or a
    plain list of [lng, lat] pairs)

An empty descriptor resolves to None, meaning the search is not bound to a location.

Functions:
    resolve_area(descriptor, geocoder) -> ResolvedArea | None
    circle_polygon(lat, lng, radius_km, vertices) -> Polygon
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from shapely.geometry import MultiPolygon, Point, Polygon, mapping, shape
from shapely.geometry.base import BaseGeometry

from ..config import CIRCLE_VERTICES, DEFAULT_POINT_ZOOM, VIEWPORT_PX
from ..errors import InvalidAreaError
from ..utils import logger

EARTH_RADIUS_KM = 6371.0088
EARTH_CIRCUMFERENCE_M = 40075016.686
WORLD_TILE_PX = 256
NAMED_PLACE_FIELDS = ("country", "state", "county", "city", "postal_code")

Geocoder = Callable[[Dict[str, str]], Optional[BaseGeometry]]


@dataclass(frozen=True)
class AreaDescriptor:
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_km: Optional[float] = None
    zoom: Optional[int] = None
    country: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    polygon: Optional[Union[Dict[str, Any], Sequence[Sequence[float]]]] = field(default=None, hash=False)

    @property
    def named_place(self) -> Dict[str, str]:
        """Non-empty named place fields, in the order a structured geocoder expects them."""
        return {
            name: str(getattr(self, name)).strip()
            for name in NAMED_PLACE_FIELDS
            if getattr(self, name) is not None and str(getattr(self, name)).strip()
        }

    @property
    def has_point(self) -> bool:
        return self.lat is not None or self.lng is not None

    @property
    def is_empty(self) -> bool:
        return not self.has_point and not self.named_place and not self.polygon


@dataclass(frozen=True)
class ResolvedArea:
    geometry: BaseGeometry
    center: Tuple[float, float]  # (lat, lng)
    kind: str
    zoom: Optional[int] = None
    radius_km: Optional[float] = None

    @property
    def is_point(self) -> bool:
        return self.geometry.geom_type == "Point"

    def contains(self, lat: float, lng: float) -> bool:
        """Whether (lat, lng) lies inside the area or on its boundary.

        A bare point covers the ground its single search tile can see.
        """
        if self.is_point:
            zoom = self.zoom if self.zoom is not None else DEFAULT_POINT_ZOOM
            return distance_m(self.center, (lat, lng)) <= visible_radius_m(self.center[0], zoom)
        return self.geometry.intersects(Point(lng, lat))

    def with_zoom(self, zoom: int) -> "ResolvedArea":
        return replace(self, zoom=zoom)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "geometry": mapping(self.geometry),
            "center": list(self.center),
            "kind": self.kind,
            "zoom": self.zoom,
            "radius_km": self.radius_km,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolvedArea":
        return cls(
            geometry=shape(data["geometry"]),
            center=(float(data["center"][0]), float(data["center"][1])),
            kind=data["kind"],
            zoom=data.get("zoom"),
            radius_km=data.get("radius_km"),
        )

# ----------------------------------------------------------------------------------------------------------

def distance_m(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Great-circle distance in meters between two (lat, lng) pairs."""
    lat1, lng1 = map(math.radians, a)
    lat2, lng2 = map(math.radians, b)
    h = (math.sin((lat2 - lat1) / 2) ** 2
         + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2)
    return 2 * EARTH_RADIUS_KM * 1000 * math.asin(min(1.0, math.sqrt(h)))


def visible_radius_m(lat: float, zoom: int, viewport_px: int = VIEWPORT_PX) -> float:
    """Approximate the radius in meters of the ground one search at (lat, zoom) can see.

    Args:
        lat (float): Latitude of the tile center.
        zoom (int): Map zoom level.
        viewport_px (int): Width of the rendered map in pixels.

    Returns:
        float: Half the viewport width converted to meters at that latitude.
    """
    meters_per_px = EARTH_CIRCUMFERENCE_M * math.cos(math.radians(lat)) / (WORLD_TILE_PX * 2 ** zoom)
    return meters_per_px * viewport_px / 2


def circle_polygon(lat: float, lng: float, radius_km: float, vertices: int = CIRCLE_VERTICES) -> Polygon:
    """Approximate a geodesic circle with a closed polygon of `vertices` points."""
    angular = radius_km / EARTH_RADIUS_KM
    lat_r = math.radians(lat)
    lng_r = math.radians(lng)
    ring = []
    for i in range(vertices):
        bearing = 2 * math.pi * i / vertices
        p_lat = math.asin(
            math.sin(lat_r) * math.cos(angular)
            + math.cos(lat_r) * math.sin(angular) * math.cos(bearing)
        )
        p_lng = lng_r + math.atan2(
            math.sin(bearing) * math.sin(angular) * math.cos(lat_r),
            math.cos(angular) - math.sin(lat_r) * math.sin(p_lat),
        )
        ring.append((round(math.degrees(p_lng), 7), round(math.degrees(p_lat), 7)))
    return Polygon(ring)


def _check_coordinates(lat: float, lng: float) -> None:
    if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        raise InvalidAreaError(f"Coordinates out of range: lat={lat}, lng={lng}")


def _polygon_from_ring(ring: Sequence[Sequence[float]]) -> BaseGeometry:
    try:
        points = [(float(p[0]), float(p[1])) for p in ring]
    except (TypeError, ValueError, IndexError) as e:
        raise InvalidAreaError("Polygon vertices must be [lng, lat] pairs") from e

    distinct = list(dict.fromkeys(points))
    if len(distinct) < 3:
        raise InvalidAreaError(f"Polygon needs at least 3 distinct vertices, got {len(distinct)}")
    for lng, lat in distinct:
        _check_coordinates(lat, lng)

    polygon = Polygon(points)
    if not polygon.is_valid:
        polygon = polygon.buffer(0)
    if polygon.is_empty or polygon.area == 0:
        raise InvalidAreaError("Polygon has no area")
    return polygon


def _geometry_from_custom(custom: Union[Dict[str, Any], Sequence[Sequence[float]]]) -> Tuple[BaseGeometry, Optional[float]]:
    """Parse an explicit polygon. Returns the geometry and, for Point+radius input, the radius."""
    if not isinstance(custom, dict):
        return _polygon_from_ring(custom), None

    geo_type = custom.get("type")
    coordinates = custom.get("coordinates")

    if geo_type == "Polygon":
        if not coordinates:
            raise InvalidAreaError("Polygon has no coordinates")
        return _polygon_from_ring(coordinates[0]), None

    if geo_type == "MultiPolygon":
        parts = []
        for poly in coordinates or []:
            if not poly:
                continue
            repaired = _polygon_from_ring(poly[0])
            parts.extend(repaired.geoms if repaired.geom_type == "MultiPolygon" else [repaired])
        if not parts:
            raise InvalidAreaError("MultiPolygon has no polygons")
        return MultiPolygon(parts), None

    if geo_type == "Point":
        radius_km = custom.get("radiusKm", custom.get("radius_km"))
        lng, lat = float(coordinates[0]), float(coordinates[1])
        _check_coordinates(lat, lng)
        if radius_km is None:
            return Point(lng, lat), None
        if float(radius_km) <= 0:
            raise InvalidAreaError("radiusKm must be positive")
        return circle_polygon(lat, lng, float(radius_km)), float(radius_km)

    raise InvalidAreaError(f"Unsupported geometry type: {geo_type!r}")


def _center_of(geometry: BaseGeometry) -> Tuple[float, float]:
    center = geometry.centroid
    if not geometry.is_empty and not geometry.intersects(center):
        center = geometry.representative_point()
    return round(center.y, 7), round(center.x, 7)

# ----------------------------------------------------------------------------------------------------------

def resolve_area(descriptor: AreaDescriptor, geocoder: Optional[Geocoder] = None) -> Optional[ResolvedArea]:
    """
    Resolve an area descriptor into a ResolvedArea.

    Args:
        descriptor (AreaDescriptor): What the user asked to search.
        geocoder (callable): Maps a structured named place query to a shapely geometry
            (or None when the place is unknown). Only needed for named places.

    Returns:
        ResolvedArea | None: None when the descriptor names no area at all.

    Raises:
        InvalidAreaError: If the descriptor is contradictory or cannot be resolved.
    """
    named = descriptor.named_place
    sources = [name for name, given in (
        ("point", descriptor.has_point),
        ("named place", bool(named)),
        ("polygon", bool(descriptor.polygon)),
    ) if given]

    if len(sources) > 1:
        raise InvalidAreaError(f"Area is described more than once: {' and '.join(sources)}")

    if descriptor.radius_km is not None and descriptor.radius_km <= 0:
        raise InvalidAreaError("radius_km must be positive")

    if descriptor.is_empty:
        logger.info("No area given, searches will not be bound to a location", extra={
            "operation": "resolve_area",
            "status": "no_area"
        })
        return None

    if descriptor.has_point:
        if descriptor.lat is None or descriptor.lng is None:
            raise InvalidAreaError("Both lat and lng are required for a point area")
        lat, lng = float(descriptor.lat), float(descriptor.lng)
        _check_coordinates(lat, lng)
        if descriptor.radius_km:
            area = ResolvedArea(
                geometry=circle_polygon(lat, lng, descriptor.radius_km),
                center=(lat, lng),
                kind="circle",
                zoom=descriptor.zoom,
                radius_km=descriptor.radius_km,
            )
        else:
            area = ResolvedArea(geometry=Point(lng, lat), center=(lat, lng), kind="point", zoom=descriptor.zoom)

    elif descriptor.polygon:
        geometry, radius_km = _geometry_from_custom(descriptor.polygon)
        if radius_km is not None:
            kind = "circle"
        elif geometry.geom_type == "Point":
            kind = "point"
        else:
            kind = "polygon"
        area = ResolvedArea(
            geometry=geometry,
            center=_center_of(geometry),
            kind=kind,
            zoom=descriptor.zoom,
            radius_km=radius_km,
        )

    else:
        if geocoder is None:
            raise InvalidAreaError(f"A geocoder is required to resolve {named}")
        try:
            geometry = geocoder(named)
        except InvalidAreaError:
            raise
        except Exception as e:
            logger.error(f"Error geocoding area: {str(e)}", extra={
                "operation": "resolve_area",
                "query": named,
                "error": str(e),
                "status": "error"
            })
            raise InvalidAreaError(f"Could not geocode {named}: {e}") from e

        if geometry is None or geometry.is_empty:
            raise InvalidAreaError(f"Place not found: {named}")

        radius_km = None
        if geometry.geom_type == "Point" and descriptor.radius_km:
            geometry = circle_polygon(geometry.y, geometry.x, descriptor.radius_km)
            radius_km = descriptor.radius_km
        elif geometry.geom_type not in ("Point", "Polygon", "MultiPolygon"):
            # Boundaries sometimes come back as collections; keep their areal hull
            geometry = geometry.convex_hull

        area = ResolvedArea(
            geometry=geometry,
            center=_center_of(geometry),
            kind="place",
            zoom=descriptor.zoom,
            radius_km=radius_km,
        )

    vertices = vertex_count(area)
    if not area.is_point and vertices < 3:
        raise InvalidAreaError(f"Area has {vertices} vertices, a polygon needs at least 3")

    logger.info("Resolved search area", extra={
        "operation": "resolve_area",
        "kind": area.kind,
        "geometry_type": area.geometry.geom_type,
        "vertices": vertices,
        "center": {"lat": area.center[0], "lng": area.center[1]},
        "bounds": list(area.geometry.bounds),
        "zoom": area.zoom,
        "status": "success"
    })
    return area


def vertex_count(area: ResolvedArea) -> int:
    """Number of distinct exterior vertices of the area (1 for a point, 0 for non-areal shapes)."""
    geom_type = area.geometry.geom_type
    if geom_type == "Point":
        return 1
    if geom_type == "Polygon":
        polygons: List[Polygon] = [area.geometry]
    elif geom_type == "MultiPolygon":
        polygons = list(area.geometry.geoms)
    else:
        return 0
    return sum(len(set(p.exterior.coords)) for p in polygons)
