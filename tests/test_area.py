import pytest
from shapely.geometry import LineString, Point

from crawl_planner.errors import InvalidAreaError
from crawl_planner.spatial.area import (
    AreaDescriptor,
    ResolvedArea,
    circle_polygon,
    resolve_area,
    vertex_count,
)

SQUARE = {"type": "Polygon", "coordinates": [[[10.0, 1.0], [10.02, 1.0], [10.02, 1.02], [10.0, 1.02], [10.0, 1.0]]]}


def test_empty_descriptor_resolves_to_none():
    assert resolve_area(AreaDescriptor()) is None, "An empty descriptor should not bind searches to a location"


def test_point_without_radius():
    area = resolve_area(AreaDescriptor(lat=1.5, lng=10.5))
    assert area.kind == "point"
    assert area.is_point
    assert area.center == (1.5, 10.5)
    assert area.contains(1.5, 10.5)
    assert area.contains(1.5005, 10.5005), "A point covers what its search tile can see"
    assert not area.contains(1.6, 10.5)


def test_point_with_radius_becomes_circle():
    area = resolve_area(AreaDescriptor(lat=1.0, lng=10.0, radius_km=1))
    assert area.kind == "circle"
    assert area.radius_km == 1
    assert area.contains(1.0, 10.0)
    assert not area.contains(1.02, 10.0), "Point ~2 km north should be outside a 1 km circle"

    # 1 km is ~0.009 degrees of latitude
    _, _, _, north = area.geometry.bounds
    assert north - 1.0 == pytest.approx(0.008993, abs=1e-4)


def test_circle_polygon_is_closed_and_valid():
    polygon = circle_polygon(48.85, 2.35, 5, vertices=16)
    assert polygon.is_valid
    assert len(set(polygon.exterior.coords)) == 16


def test_lat_without_lng_is_invalid():
    with pytest.raises(InvalidAreaError):
        resolve_area(AreaDescriptor(lat=1.0))


def test_non_positive_radius_is_invalid():
    with pytest.raises(InvalidAreaError):
        resolve_area(AreaDescriptor(lat=1.0, lng=10.0, radius_km=0))


def test_out_of_range_coordinates_are_invalid():
    with pytest.raises(InvalidAreaError):
        resolve_area(AreaDescriptor(lat=95.0, lng=10.0))


def test_named_place_and_polygon_are_contradictory(springfield_geocoder):
    with pytest.raises(InvalidAreaError):
        resolve_area(AreaDescriptor(city="Springfield", polygon=SQUARE), springfield_geocoder)
    assert springfield_geocoder.calls == [], "Geocoder should not be called for a contradictory descriptor"


def test_point_and_named_place_are_contradictory(springfield_geocoder):
    with pytest.raises(InvalidAreaError):
        resolve_area(AreaDescriptor(lat=1.0, lng=10.0, city="Springfield"), springfield_geocoder)


def test_polygon_needs_three_distinct_vertices():
    ring = [[10.0, 1.0], [10.02, 1.0], [10.0, 1.0], [10.02, 1.0]]
    with pytest.raises(InvalidAreaError):
        resolve_area(AreaDescriptor(polygon={"type": "Polygon", "coordinates": [ring]}))


def test_geojson_polygon():
    area = resolve_area(AreaDescriptor(polygon=SQUARE, zoom=14))
    assert area.kind == "polygon"
    assert area.zoom == 14
    assert area.center == pytest.approx((1.01, 10.01))
    assert vertex_count(area) == 4


def test_plain_coordinate_list():
    area = resolve_area(AreaDescriptor(polygon=[[10.0, 1.0], [10.02, 1.0], [10.02, 1.02]]))
    assert area.kind == "polygon"
    assert area.geometry.area > 0


def test_self_intersecting_polygon_is_repaired():
    bowtie = [[0, 0], [1, 1], [1, 0], [0, 1], [0, 0]]
    area = resolve_area(AreaDescriptor(polygon={"type": "Polygon", "coordinates": [bowtie]}))
    assert area.geometry.is_valid
    assert area.geometry.area > 0


def test_multipolygon_center_lies_inside():
    multi = {"type": "MultiPolygon", "coordinates": [
        [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
        [[[5, 5], [6, 5], [6, 6], [5, 6], [5, 5]]],
    ]}
    area = resolve_area(AreaDescriptor(polygon=multi))
    assert area.geometry.geom_type == "MultiPolygon"
    assert area.contains(*area.center), "Center of a split area must fall inside one of its parts"


def test_geojson_point_with_radius():
    area = resolve_area(AreaDescriptor(polygon={"type": "Point", "coordinates": [10.0, 1.0], "radiusKm": 2}))
    assert area.kind == "circle"
    assert area.radius_km == 2
    assert area.contains(1.0, 10.0)


def test_named_place_uses_geocoder(springfield_geocoder):
    area = resolve_area(AreaDescriptor(city="Springfield", country="US"), springfield_geocoder)
    assert area.kind == "place"
    assert springfield_geocoder.calls == [{"country": "US", "city": "Springfield"}]
    assert area.contains(1.01, 10.01)


def test_unknown_named_place_is_invalid(springfield_geocoder):
    with pytest.raises(InvalidAreaError):
        resolve_area(AreaDescriptor(city="Shelbyville"), springfield_geocoder)


def test_named_place_without_geocoder_is_invalid():
    with pytest.raises(InvalidAreaError):
        resolve_area(AreaDescriptor(city="Springfield"))


def test_geocoder_failure_is_wrapped():
    def broken(query):
        raise ConnectionError("boom")

    with pytest.raises(InvalidAreaError) as exc_info:
        resolve_area(AreaDescriptor(city="Springfield"), broken)
    assert isinstance(exc_info.value.__cause__, ConnectionError)


def test_geocoded_point_with_radius_becomes_circle():
    area = resolve_area(AreaDescriptor(city="Springfield", radius_km=3), lambda query: Point(10.0, 1.0))
    assert area.radius_km == 3
    assert not area.is_point
    assert area.contains(1.0, 10.0)


def test_resolved_area_survives_persistence(springfield):
    restored = ResolvedArea.from_dict(springfield.to_dict())
    assert restored.geometry.equals(springfield.geometry)
    assert restored.center == springfield.center
    assert restored.kind == springfield.kind
    assert restored.zoom == 15


def test_point_reach_follows_zoom():
    wide = resolve_area(AreaDescriptor(lat=1.5, lng=10.5, zoom=12))
    close = resolve_area(AreaDescriptor(lat=1.5, lng=10.5, zoom=18))
    assert wide.contains(1.52, 10.5)
    assert not close.contains(1.52, 10.5)


def test_geocoded_line_is_invalid():
    road = LineString([(10.0, 1.0), (10.02, 1.02)])
    with pytest.raises(InvalidAreaError, match="0 vertices"):
        resolve_area(AreaDescriptor(city="Springfield"), lambda query: road)
