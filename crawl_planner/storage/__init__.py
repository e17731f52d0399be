from .checkpoint import KeyValueStore
from .deduper import ExportDeduper, NullDeduper, create_deduper
from .places_cache import CachedPlace, NullPlacesCache, PlacesCache, create_places_cache
from .results import ResultsWriter, flush_chunk

__all__ = [
    "KeyValueStore",
    "ExportDeduper",
    "NullDeduper",
    "create_deduper",
    "CachedPlace",
    "NullPlacesCache",
    "PlacesCache",
    "create_places_cache",
    "ResultsWriter",
    "flush_chunk",
]
