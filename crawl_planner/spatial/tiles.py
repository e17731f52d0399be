"""
Tiling Module for Map Search Planning
-------------------------------------

This module provides utilities for covering a resolved area with a grid of map
search tiles. Every tile is the center of one map search at a fixed zoom level;
the map renders a viewport of `viewport_px` pixels around it, so the zoom level
decides how much ground one search sees.

Tile spacing is derived from the visible span at the chosen zoom: adjacent tiles
are `(1 - overlap)` of a visible span apart, so neighbouring viewports share a
thin strip and nothing at the area's edges is missed. A grid cell is kept when it
intersects the area geometry.

Tiles come out north to south, west to east. The grid is centered on the area's
bounds and indexed with integers, so the same area and zoom always produce the
same sequence, and a restarted run can resume at any offset.

Functions:
  visible_span_deg(zoom, viewport_px) -> float:
    Longitude span of one viewport in degrees (independent of latitude in Web Mercator).

  estimate_tile_count(area, zoom, ...) -> int:
    Number of tiles the area needs at `zoom`, exact for small grids.

  choose_zoom(area, max_per_search, ...) -> int:
    Pick a zoom when the user did not set one.

  generate_tiles(area, zoom, max_per_search, start, ...) -> list[SearchTile]:
    The ordered tile grid covering the area.
"""

import math
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from shapely.geometry import box
from shapely.prepared import prep

from ..config import (
    DEFAULT_POINT_ZOOM,
    MAX_ZOOM,
    MIN_ZOOM,
    TILE_OVERLAP,
    VIEWPORT_PX,
    ZOOM_CAP_MULTIPLE,
)
from ..utils import logger
from .area import WORLD_TILE_PX, ResolvedArea

GOOGLE_MAPS_URL = "https://www.google.com/maps"
MAX_MERCATOR_LAT = 85.05112878
EXACT_COUNT_LIMIT = 20000


@dataclass(frozen=True)
class SearchTile:
    lat: float
    lng: float
    zoom: int
    row: int = 0
    col: int = 0

    @property
    def url(self) -> str:
        return f"{GOOGLE_MAPS_URL}/@{self.lat},{self.lng},{self.zoom}z/search"


def visible_span_deg(zoom: int, viewport_px: int = VIEWPORT_PX) -> float:
    return 360.0 * viewport_px / (WORLD_TILE_PX * 2 ** zoom)


def _grid(
        area: ResolvedArea,
        zoom: int,
        overlap: float,
        viewport_px: int
        ) -> Tuple[float, float, int, int, float, float]:
    """Grid origin (north-west), row/col counts and steps in degrees for an area."""
    if not 0 <= overlap < 1:
        raise ValueError("overlap must be in [0, 1)")

    lng_min, lat_min, lng_max, lat_max = area.geometry.bounds
    span = visible_span_deg(zoom, viewport_px)

    # Latitude span shrinks towards the poles, size rows for the most poleward edge
    lat_ref = min(max(abs(lat_min), abs(lat_max)), MAX_MERCATOR_LAT)
    lat_step = span * math.cos(math.radians(lat_ref)) * (1 - overlap)
    lng_step = span * (1 - overlap)

    n_rows = max(1, math.ceil((lat_max - lat_min) / lat_step))
    n_cols = max(1, math.ceil((lng_max - lng_min) / lng_step))

    # Center the grid on the bounds so the slack is shared by opposite edges
    north = lat_max + (n_rows * lat_step - (lat_max - lat_min)) / 2
    west = lng_min - (n_cols * lng_step - (lng_max - lng_min)) / 2
    return north, west, n_rows, n_cols, lat_step, lng_step


def iter_tiles(
        area: ResolvedArea,
        zoom: int,
        overlap: float = TILE_OVERLAP,
        viewport_px: int = VIEWPORT_PX
        ) -> Iterator[SearchTile]:
    """Yield the tiles covering `area` at `zoom`, north to south, west to east."""
    if area.is_point:
        yield SearchTile(lat=area.center[0], lng=area.center[1], zoom=zoom)
        return

    north, west, n_rows, n_cols, lat_step, lng_step = _grid(area, zoom, overlap, viewport_px)
    geometry = prep(area.geometry)

    for row in range(n_rows):
        cell_north = north - row * lat_step
        cell_south = cell_north - lat_step
        for col in range(n_cols):
            cell_west = west + col * lng_step
            cell_east = cell_west + lng_step
            if not geometry.intersects(box(cell_west, cell_south, cell_east, cell_north)):
                continue
            yield SearchTile(
                lat=round(cell_north - lat_step / 2, 7),
                lng=round(cell_west + lng_step / 2, 7),
                zoom=zoom,
                row=row,
                col=col,
            )


def estimate_tile_count(
        area: ResolvedArea,
        zoom: int,
        overlap: float = TILE_OVERLAP,
        viewport_px: int = VIEWPORT_PX
        ) -> int:
    if area.is_point:
        return 1
    _, _, n_rows, n_cols, _, _ = _grid(area, zoom, overlap, viewport_px)
    cells = n_rows * n_cols
    if cells <= EXACT_COUNT_LIMIT:
        return sum(1 for _ in iter_tiles(area, zoom, overlap, viewport_px))

    # Too many cells to walk, scale the bounding grid by how much of it the area fills
    lng_min, lat_min, lng_max, lat_max = area.geometry.bounds
    bbox_area = (lng_max - lng_min) * (lat_max - lat_min)
    fill = area.geometry.area / bbox_area if bbox_area else 1.0
    return max(1, math.ceil(cells * fill))


def choose_zoom(
        area: ResolvedArea,
        max_per_search: Optional[int],
        min_zoom: int = MIN_ZOOM,
        max_zoom: int = MAX_ZOOM,
        cap_multiple: int = ZOOM_CAP_MULTIPLE,
        overlap: float = TILE_OVERLAP,
        viewport_px: int = VIEWPORT_PX
        ) -> int:
    """
    Pick a zoom level for an area when the user did not set one.

    Small caps get finer zoom (each search sees fewer, closer places), large caps
    get coarser zoom. The preferred zoom is `max_zoom - round(log10(cap))`, then
    it is coarsened until the tile count fits within `cap_multiple * cap`, so a
    small cap is not spent on a huge number of tiles before it is reached.
    """
    if area.is_point:
        return DEFAULT_POINT_ZOOM

    cap = max(1, max_per_search or 1)
    zoom = max_zoom - round(math.log10(cap))
    zoom = min(max(zoom, min_zoom), max_zoom)

    tile_budget = cap_multiple * cap
    count = estimate_tile_count(area, zoom, overlap, viewport_px)
    while zoom > min_zoom and count > tile_budget:
        zoom -= 1
        count = estimate_tile_count(area, zoom, overlap, viewport_px)

    logger.info("Chose zoom for area", extra={
        "operation": "choose_zoom",
        "zoom": zoom,
        "max_per_search": max_per_search,
        "estimated_tiles": count,
        "tile_budget": tile_budget
    })
    return zoom


def generate_tiles(
        area: ResolvedArea,
        zoom: Optional[int] = None,
        max_per_search: Optional[int] = None,
        start: int = 0,
        overlap: float = TILE_OVERLAP,
        viewport_px: int = VIEWPORT_PX
        ) -> List[SearchTile]:
    """Create the grid of tiles covering the area, skipping the first `start` tiles."""
    if zoom is None:
        zoom = area.zoom if area.zoom is not None else choose_zoom(
            area, max_per_search, overlap=overlap, viewport_px=viewport_px
        )

    tiles = [
        tile for index, tile in enumerate(iter_tiles(area, zoom, overlap, viewport_px))
        if index >= start
    ]

    lng_min, lat_min, lng_max, lat_max = area.geometry.bounds
    logger.info(f"Generated search tiles", extra={
        "operation": "generate_tiles",
        "tile_count": len(tiles),
        "skipped": start,
        "zoom": zoom,
        "overlap": overlap,
        "bounds": {
            "lat_min": lat_min,
            "lat_max": lat_max,
            "lng_min": lng_min,
            "lng_max": lng_max
        }
    })

    return tiles
