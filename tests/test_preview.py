from crawl_planner.spatial.area import AreaDescriptor, resolve_area
from crawl_planner.spatial.preview import render_area_map
from crawl_planner.spatial.tiles import generate_tiles


def test_render_area_map(tmp_path, springfield):
    tiles = generate_tiles(springfield)
    output = render_area_map(springfield, tiles, tmp_path / "maps" / "springfield.html", label="Springfield")

    assert output.exists(), "Preview map was not written"
    html = output.read_text(encoding="utf-8")
    assert "Springfield" in html
    assert html.count("L.circle(") == len(tiles), "One circle per tile expected"


def test_render_point_area(tmp_path):
    area = resolve_area(AreaDescriptor(lat=1.5, lng=10.5, zoom=15))
    output = render_area_map(area, generate_tiles(area), tmp_path / "point.html")
    assert output.exists()
