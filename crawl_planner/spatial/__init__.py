from .area import AreaDescriptor, ResolvedArea, circle_polygon, resolve_area, visible_radius_m
from .tiles import SearchTile, choose_zoom, generate_tiles, iter_tiles

__all__ = [
    "AreaDescriptor",
    "ResolvedArea",
    "circle_polygon",
    "resolve_area",
    "SearchTile",
    "choose_zoom",
    "generate_tiles",
    "iter_tiles",
    "visible_radius_m",
]
