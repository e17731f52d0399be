import os
import tempfile

# The package creates its storage directories on import, keep them out of the working tree
os.environ.setdefault("CRAWL_PLANNER_HOME", tempfile.mkdtemp(prefix="crawl_planner_tests_"))

import pytest
from shapely.geometry import box

from crawl_planner.spatial.area import AreaDescriptor, resolve_area
from crawl_planner.storage.checkpoint import KeyValueStore

# Roughly 2 km x 2 km just north of the equator
SPRINGFIELD = box(10.0, 1.0, 10.02, 1.02)


@pytest.fixture
def store(tmp_path):
    return KeyValueStore("default", tmp_path / "stores")


@pytest.fixture
def cache_store(tmp_path):
    return KeyValueStore("places-cache", tmp_path / "stores")


@pytest.fixture
def springfield_geocoder():
    calls = []

    def geocoder(query):
        calls.append(query)
        if query.get("city") == "Springfield":
            return SPRINGFIELD
        return None

    geocoder.calls = calls
    return geocoder


@pytest.fixture
def springfield(springfield_geocoder):
    area = resolve_area(AreaDescriptor(city="Springfield"), springfield_geocoder)
    return area.with_zoom(15)
