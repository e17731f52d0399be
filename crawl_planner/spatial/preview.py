"""
Renders a resolved area and its search tiles onto an HTML map, to eyeball the
coverage before spending a crawl on it.
"""

from pathlib import Path
from typing import Sequence, Union

import folium
from shapely.geometry import mapping

from ..utils import logger
from .area import ResolvedArea, visible_radius_m
from .tiles import SearchTile


def render_area_map(
        area: ResolvedArea,
        tiles: Sequence[SearchTile],
        output_path: Union[str, Path],
        label: str = "Search area"
        ) -> Path:
    """Save an HTML map with the area polygon, its center and one circle per tile."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Create the map
    zoom_start = area.zoom if area.zoom is not None else 12
    m = folium.Map(location=list(area.center), zoom_start=zoom_start, tiles="CartoDB positron")

    if not area.is_point:
        # Add the polygon to the map with styling
        folium.GeoJson(
            data=mapping(area.geometry),
            style_function=lambda x: {
                'fillColor': '#3388ff',
                'color': '#3388ff',
                'weight': 2,
                'fillOpacity': 0.2
            }
        ).add_to(m)

    for tile in tiles:
        folium.Circle(
            location=[tile.lat, tile.lng],
            radius=visible_radius_m(tile.lat, tile.zoom),
            color='#ff7800',
            weight=1,
            fill=False,
            tooltip=tile.url
        ).add_to(m)

    # Add a marker at the center
    folium.Marker(
        location=list(area.center),
        popup=label,
        icon=folium.Icon(color="red", icon="info-sign")
    ).add_to(m)

    m.save(str(output_path))

    logger.info("Saved area preview map", extra={
        "operation": "render_area_map",
        "output_path": str(output_path),
        "tile_count": len(tiles)
    })
    return output_path
