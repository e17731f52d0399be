"""
crawl_planner
~~~~~~~~~~~~~

Plans and budgets large map-search crawls.

This package turns search terms and a geographic area into a tiled stream of
crawl requests, reuses places found by earlier runs, and caps accepted results
per search while crawl workers run concurrently.
"""

__version__ = "0.1.0"

# -------------------------------------------------------------------
# Package-level logger (this lives in utils/logger.py, not to be
# confused with the stdlib `logging` package)
# -------------------------------------------------------------------
from .utils.logger     import logger

# -------------------------------------------------------------------
# Errors
# -------------------------------------------------------------------
from .errors           import (
    BudgetPersistenceError,
    CacheUnavailableError,
    InvalidAreaError,
    InvalidSearchTermError,
)

# -------------------------------------------------------------------
# Spatial resolution & tiling
# -------------------------------------------------------------------
from .spatial.area     import AreaDescriptor, ResolvedArea, resolve_area
from .spatial.tiles    import SearchTile, choose_zoom, generate_tiles

# -------------------------------------------------------------------
# Storage
# -------------------------------------------------------------------
from .storage          import KeyValueStore, create_deduper, create_places_cache

# -------------------------------------------------------------------
# Planning, budgeting & enqueueing
# -------------------------------------------------------------------
from .core             import (
    BackgroundEnqueuer,
    CrawlBudgetTracker,
    CrawlInput,
    CrawlOutcome,
    CrawlPlanner,
    CrawlRequest,
    Label,
    PlaceResult,
    RequestQueue,
    build_start_requests,
)

# -------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------
__all__ = [
    # logging
    "logger",
    # errors
    "BudgetPersistenceError",
    "CacheUnavailableError",
    "InvalidAreaError",
    "InvalidSearchTermError",
    # spatial
    "AreaDescriptor",
    "ResolvedArea",
    "resolve_area",
    "SearchTile",
    "choose_zoom",
    "generate_tiles",
    # storage
    "KeyValueStore",
    "create_deduper",
    "create_places_cache",
    # core
    "BackgroundEnqueuer",
    "CrawlBudgetTracker",
    "CrawlInput",
    "CrawlOutcome",
    "CrawlPlanner",
    "CrawlRequest",
    "Label",
    "PlaceResult",
    "RequestQueue",
    "build_start_requests",
]
