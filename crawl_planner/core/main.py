#!/usr/bin/env python3
"""Command line entry point: plan the start requests of a crawl from a JSON input file."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import CACHE_STORE_NAME, RUN_STORE_NAME, get_config
from ..errors import InvalidAreaError
from ..spatial.boundaries import osm_boundary_geocoder
from ..spatial.geocode import google_viewport_geocoder
from ..spatial.preview import render_area_map
from ..storage.checkpoint import KeyValueStore
from ..utils.logger import setup_logger
from .models import CrawlInput
from .planner import CrawlPlanner

GEOCODERS = {
    "osm": osm_boundary_geocoder,
    "google": google_viewport_geocoder,
}


def main(
    input_path: Path,
    geocoder: str = "osm",
    preview_map: Optional[Path] = None,
    store_dir: Optional[Path] = None,
    verbose: bool = False
) -> Dict[str, Any]:
    """
    Plan the start requests of a crawl.

    Args:
        input_path: JSON file with the crawl input (snake_case or camelCase keys)
        geocoder: Which geocoder resolves named places ("osm" or "google")
        preview_map: Optional HTML file to render the area and its tiles into
        store_dir: Directory holding the key-value stores (defaults to the configured one)
        verbose: Log at DEBUG level on the console

    Returns:
        Dict containing the planning outcome and metadata
    """
    logger = setup_logger("crawl_planner", level=logging.DEBUG if verbose else logging.INFO)

    try:
        with open(input_path, encoding="utf-8") as f:
            crawl_input = CrawlInput.from_dict(json.load(f))

        logger.info(f"Planning crawl from {input_path}", extra={
            "operation": "plan",
            "input_path": str(input_path),
            "config": get_config()
        })

        planner = CrawlPlanner(
            crawl_input,
            run_store=KeyValueStore(RUN_STORE_NAME, store_dir) if store_dir else None,
            cache_store=KeyValueStore(CACHE_STORE_NAME, store_dir) if store_dir else None,
            geocoder=GEOCODERS[geocoder],
        )
        requests_list = planner.prepare_start_requests()

        if preview_map is not None and planner.area is not None:
            render_area_map(planner.area, planner.tiles, preview_map)

        return {
            'status': 'success',
            'request_count': len(requests_list),
            'tile_count': len(planner.tiles),
            'zoom': planner.area.zoom if planner.area is not None else None,
            'preview_map': str(preview_map) if preview_map else None
        }

    except InvalidAreaError as e:
        logger.error(f"Invalid area: {str(e)}")
        return {
            'status': 'error',
            'error': str(e)
        }


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Plan the start requests of a map-search crawl")
    parser.add_argument("input", type=Path, help="Path to the JSON crawl input")
    parser.add_argument("-g", "--geocoder", choices=sorted(GEOCODERS), default="osm",
                        help="Geocoder used for named places")
    parser.add_argument("-m", "--preview-map", type=Path, help="Write an HTML preview of the area and tiles")
    parser.add_argument("-s", "--store-dir", type=Path, help="Directory of the key-value stores")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on the console")
    return parser.parse_args(argv)


def cli(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    result = main(
        args.input,
        geocoder=args.geocoder,
        preview_map=args.preview_map,
        store_dir=args.store_dir,
        verbose=args.verbose
    )
    print(json.dumps(result, indent=2))
    return 0 if result['status'] == 'success' else 1


if __name__ == "__main__":
    sys.exit(cli())
