from .budget import CrawlBudgetTracker
from .builder import build_start_requests, expand_start_urls, log_preview, normalize_start_url
from .enqueuer import BackgroundEnqueuer
from .models import NO_SEARCH, CrawlInput, CrawlOutcome, CrawlRequest, Label, PlaceResult
from .planner import CrawlPlanner
from .queue import RequestQueue

__all__ = [
    "CrawlBudgetTracker",
    "build_start_requests",
    "expand_start_urls",
    "log_preview",
    "normalize_start_url",
    "BackgroundEnqueuer",
    "NO_SEARCH",
    "CrawlInput",
    "CrawlOutcome",
    "CrawlRequest",
    "Label",
    "PlaceResult",
    "CrawlPlanner",
    "RequestQueue",
]
