import pytest
from shapely.geometry import Polygon, box

from crawl_planner.config import DEFAULT_POINT_ZOOM
from crawl_planner.spatial.area import AreaDescriptor, ResolvedArea, resolve_area, visible_radius_m
from crawl_planner.spatial.tiles import (
    SearchTile,
    _grid,
    choose_zoom,
    estimate_tile_count,
    generate_tiles,
    iter_tiles,
    visible_span_deg,
)


def _polygon_area(geometry):
    return ResolvedArea(geometry=geometry, center=(geometry.centroid.y, geometry.centroid.x), kind="polygon")


def test_tile_url():
    tile = SearchTile(lat=1.5, lng=10.25, zoom=15)
    assert tile.url == "https://www.google.com/maps/@1.5,10.25,15z/search"


def test_visible_span_halves_per_zoom_level():
    assert visible_span_deg(14) == pytest.approx(2 * visible_span_deg(15))
    assert visible_radius_m(0.0, 14) == pytest.approx(2 * visible_radius_m(0.0, 15))
    assert visible_radius_m(60.0, 15) < visible_radius_m(0.0, 15), "Ground per pixel shrinks towards the poles"


def test_point_area_yields_single_tile():
    area = resolve_area(AreaDescriptor(lat=1.5, lng=10.5))
    tiles = generate_tiles(area)
    assert tiles == [SearchTile(lat=1.5, lng=10.5, zoom=DEFAULT_POINT_ZOOM)]


def test_small_area_fits_in_one_tile():
    area = _polygon_area(box(10.0, 1.0, 10.005, 1.005))
    tiles = generate_tiles(area, zoom=15)
    assert len(tiles) == 1
    assert area.contains(tiles[0].lat, tiles[0].lng)


def test_tiles_are_ordered_north_to_south_west_to_east(springfield):
    tiles = generate_tiles(springfield, zoom=16)
    assert len(tiles) > 1
    positions = [(tile.row, tile.col) for tile in tiles]
    assert positions == sorted(positions), "Tiles must come out row by row"
    for earlier, later in zip(tiles, tiles[1:]):
        if earlier.row == later.row:
            assert later.lng > earlier.lng
        else:
            assert later.lat < earlier.lat


def test_tiling_is_deterministic_and_restartable(springfield):
    full = generate_tiles(springfield, zoom=16)
    assert generate_tiles(springfield, zoom=16) == full
    assert generate_tiles(springfield, zoom=16, start=3) == full[3:]


def test_tiles_cover_the_area(springfield):
    zoom = 16
    tiles = generate_tiles(springfield, zoom=zoom)
    half_span = visible_span_deg(zoom) / 2

    lng_min, lat_min, lng_max, lat_max = springfield.geometry.bounds
    samples = [
        (lat_min + (lat_max - lat_min) * i / 10, lng_min + (lng_max - lng_min) * j / 10)
        for i in range(11) for j in range(11)
    ]
    for lat, lng in samples:
        assert any(
            abs(tile.lat - lat) <= half_span and abs(tile.lng - lng) <= half_span for tile in tiles
        ), f"({lat}, {lng}) is not visible from any tile"


def test_neighbouring_tiles_overlap_slightly(springfield):
    zoom = 16
    tiles = generate_tiles(springfield, zoom=zoom, overlap=0.1)
    first_row = [tile for tile in tiles if tile.row == tiles[0].row]
    step = first_row[1].lng - first_row[0].lng
    assert step == pytest.approx(visible_span_deg(zoom) * 0.9, rel=1e-4)


def test_cells_outside_the_area_are_skipped():
    triangle = _polygon_area(Polygon([(0.0, 0.0), (0.2, 0.0), (0.0, 0.2)]))
    _, _, n_rows, n_cols, _, _ = _grid(triangle, 14, 0.1, 640)
    tiles = list(iter_tiles(triangle, 14))
    assert 0 < len(tiles) < n_rows * n_cols
    assert estimate_tile_count(triangle, 14) == len(tiles)


def test_invalid_overlap_is_rejected(springfield):
    with pytest.raises(ValueError):
        generate_tiles(springfield, zoom=15, overlap=1.0)


def test_choose_zoom_finer_for_small_caps():
    area = _polygon_area(box(10.0, 1.0, 10.1, 1.1))
    small_cap_zoom = choose_zoom(area, 10)
    large_cap_zoom = choose_zoom(area, 10000)
    assert small_cap_zoom > large_cap_zoom, "Smaller caps should search at finer zoom"


def test_choose_zoom_keeps_tile_count_near_cap():
    area = _polygon_area(box(10.0, 1.0, 10.1, 1.1))
    zoom = choose_zoom(area, 10, cap_multiple=4)
    assert estimate_tile_count(area, zoom) <= 40


def test_choose_zoom_stops_at_min_zoom():
    huge = _polygon_area(box(0.0, 0.0, 20.0, 20.0))
    assert choose_zoom(huge, 1, min_zoom=10) == 10


def test_generate_tiles_uses_area_zoom(springfield):
    tiles = generate_tiles(springfield)
    assert {tile.zoom for tile in tiles} == {15}
