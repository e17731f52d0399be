"""
Configuration module for the crawl planner.
-------------------------------------------

This module defines all of the tunable parameters, file paths, and environment-driven settings
used to plan, budget and enqueue a map-search crawl.
"""

import os
from pathlib import Path
from typing import Dict, Any

from dotenv import load_dotenv

# Values in a local .env file fill in unset environment variables
load_dotenv()

# Base paths
CRAWL_PLANNER_HOME = os.getenv('CRAWL_PLANNER_HOME', 'storage')
DATA_DIR = Path(CRAWL_PLANNER_HOME) / 'data'
LOGS_DIR = Path(CRAWL_PLANNER_HOME) / 'logs'
STORES_DIR = DATA_DIR / 'key_value_stores'
RESULTS_DIR = DATA_DIR / 'results'

# Create necessary directories
for directory in [DATA_DIR, LOGS_DIR, STORES_DIR, RESULTS_DIR]:
    directory.mkdir(parents=True, exist_ok=True)

# Store names
RUN_STORE_NAME = os.getenv('RUN_STORE_NAME', 'default')
CACHE_STORE_NAME = os.getenv('CACHE_STORE_NAME', 'places-cache')

# Tiling parameters
MIN_ZOOM = int(os.getenv('MIN_ZOOM', 10))
MAX_ZOOM = int(os.getenv('MAX_ZOOM', 17))
DEFAULT_POINT_ZOOM = int(os.getenv('DEFAULT_POINT_ZOOM', 15))
TILE_OVERLAP = float(os.getenv('TILE_OVERLAP', 0.1))  # fraction of the visible width shared by neighbours
VIEWPORT_PX = int(os.getenv('VIEWPORT_PX', 640))  # rendered map width in pixels
ZOOM_CAP_MULTIPLE = int(os.getenv('ZOOM_CAP_MULTIPLE', 4))
CIRCLE_VERTICES = int(os.getenv('CIRCLE_VERTICES', 32))

# Search parameters
MAX_CRAWLED_PLACES_PER_SEARCH = int(os.getenv('MAX_CRAWLED_PLACES_PER_SEARCH', 9999999))
PREVIEW_SIZE = int(os.getenv('PREVIEW_SIZE', 10))

# Enqueueing
FIRST_BATCH_SIZE = int(os.getenv('FIRST_BATCH_SIZE', 20))
MAX_PUSH_RETRIES = int(os.getenv('MAX_PUSH_RETRIES', 3))
RETRY_DELAY = float(os.getenv('RETRY_DELAY', 0.5))  # seconds between queue push attempts

# Persistence
PERSIST_INTERVAL_SECS = float(os.getenv('PERSIST_INTERVAL_SECS', 60))
CHUNK_SIZE = int(os.getenv('CHUNK_SIZE', 500))

# Concurrency settings
MAX_WORKERS = int(os.getenv('MAX_WORKERS', 10))
WORKER_IDLE_SLEEP = float(os.getenv('WORKER_IDLE_SLEEP', 0.05))

# API configuration (only needed by the Google geocoder)
API_KEY = os.getenv('GOOGLE_MAPS_API_KEY')
REQUEST_TIMEOUT = float(os.getenv('REQUEST_TIMEOUT', 30))


def get_config() -> Dict[str, Any]:
    """
    Get the current configuration as a dictionary.
    Useful for logging and debugging.
    """
    return {
        'paths': {
            'crawl_planner_home': CRAWL_PLANNER_HOME,
            'data_dir': str(DATA_DIR),
            'logs_dir': str(LOGS_DIR),
            'stores_dir': str(STORES_DIR),
            'results_dir': str(RESULTS_DIR)
        },
        'tiling': {
            'min_zoom': MIN_ZOOM,
            'max_zoom': MAX_ZOOM,
            'default_point_zoom': DEFAULT_POINT_ZOOM,
            'tile_overlap': TILE_OVERLAP,
            'viewport_px': VIEWPORT_PX,
            'zoom_cap_multiple': ZOOM_CAP_MULTIPLE
        },
        'enqueueing': {
            'first_batch_size': FIRST_BATCH_SIZE,
            'max_push_retries': MAX_PUSH_RETRIES,
            'retry_delay': RETRY_DELAY
        },
        'processing': {
            'max_workers': MAX_WORKERS,
            'chunk_size': CHUNK_SIZE,
            'persist_interval_secs': PERSIST_INTERVAL_SECS
        },
        'google_api_key_set': bool(API_KEY)
    }
