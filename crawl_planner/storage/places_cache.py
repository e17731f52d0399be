"""
Places Cache Module
-------------------

A cross-run store of places discovered by earlier crawls, keyed by a user
chosen cache key. Every entry remembers where the place is and which search
terms found it, so a later run over the same area can revisit known places
directly instead of searching the whole grid again.

Classes:
    PlacesCache: The persisted cache.
    NullPlacesCache: Same interface, stores nothing and finds nothing. Used when
        caching is turned off so callers never check a flag.

Functions:
    create_places_cache(enabled, cache_key, store) -> PlacesCache | NullPlacesCache
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import CacheUnavailableError, StateStoreError
from ..utils import logger
from .checkpoint import KeyValueStore

CACHE_KEY_PREFIX = "PLACES-CACHE"


@dataclass
class CachedPlace:
    place_id: str
    location: Tuple[float, float]  # (lat, lng)
    keywords: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {"location": list(self.location), "keywords": list(self.keywords)}

    @classmethod
    def from_dict(cls, place_id: str, data: Dict) -> "CachedPlace":
        lat, lng = data["location"]
        return cls(place_id=place_id, location=(float(lat), float(lng)), keywords=list(data.get("keywords", [])))


class PlacesCache:
    """Places discovered in earlier runs, persisted under `PLACES-CACHE-<cache_key>`."""

    def __init__(self, store: KeyValueStore, cache_key: str = ""):
        self.store = store
        self.cache_key = cache_key
        self.storage_key = f"{CACHE_KEY_PREFIX}-{cache_key}" if cache_key else CACHE_KEY_PREFIX
        self._places: Dict[str, CachedPlace] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._places)

    def _load(self) -> Dict[str, CachedPlace]:
        try:
            saved = self.store.get_value(self.storage_key, default={})
            return {place_id: CachedPlace.from_dict(place_id, data) for place_id, data in saved.items()}
        except (StateStoreError, AttributeError, KeyError, TypeError, ValueError) as e:
            raise CacheUnavailableError(f"Places cache {self.storage_key!r} is unreadable: {e}") from e

    def initialize(self) -> None:
        try:
            places = self._load()
        except CacheUnavailableError as e:
            logger.warning(f"Starting with an empty places cache: {str(e)}", extra={
                "operation": "load_places_cache",
                "cache_key": self.cache_key,
                "error": str(e),
                "status": "cold_start"
            })
            places = {}

        with self._lock:
            self._places = places

        logger.info("Places cache initialized", extra={
            "operation": "load_places_cache",
            "cache_key": self.cache_key,
            "cached_places": len(places)
        })

    def record(self, place_id: str, location: Optional[Tuple[float, float]], term: Optional[str]) -> None:
        """Add a discovered place, or union `term` into its keywords if it is known."""
        if not place_id or location is None:
            return
        with self._lock:
            cached = self._places.get(place_id)
            if cached is None:
                self._places[place_id] = CachedPlace(
                    place_id=place_id,
                    location=(float(location[0]), float(location[1])),
                    keywords=[term] if term else [],
                )
            elif term and term not in cached.keywords:
                cached.keywords = cached.keywords + [term]

    def places_in_polygon(self, area, limit: Optional[int], terms: Iterable[str]) -> List[Tuple[str, str]]:
        """
        Cached places inside `area` found under any of `terms`.

        Returns one (place_id, term) pair per matching term, in discovery order,
        at most `limit` pairs in total (no limit when `limit` is None).
        """
        if area is None or (limit is not None and limit <= 0):
            return []
        active = [term for term in terms if isinstance(term, str) and term.strip()]
        if not active:
            return []

        with self._lock:
            candidates = [(p.place_id, p.location, tuple(p.keywords)) for p in self._places.values()]

        pairs: List[Tuple[str, str]] = []
        for place_id, (lat, lng), keywords in candidates:
            matched = [term for term in active if term in keywords]
            if not matched or not area.contains(lat, lng):
                continue
            for term in matched:
                pairs.append((place_id, term))
                if limit is not None and len(pairs) >= limit:
                    return pairs
        return pairs

    def snapshot(self) -> Dict[str, Dict]:
        with self._lock:
            return {place_id: place.to_dict() for place_id, place in self._places.items()}

    def save(self) -> None:
        places = self.snapshot()
        self.store.set_value(self.storage_key, places)
        logger.info("Saved places cache", extra={
            "operation": "save_places_cache",
            "cache_key": self.cache_key,
            "cached_places": len(places)
        })


class NullPlacesCache:
    """Caching turned off: nothing is recorded and nothing is ever found."""

    def __len__(self) -> int:
        return 0

    def initialize(self) -> None:
        pass

    def record(self, place_id: str, location, term) -> None:
        pass

    def places_in_polygon(self, area, limit: Optional[int], terms: Sequence[str]) -> List[Tuple[str, str]]:
        return []

    def snapshot(self) -> Dict[str, Dict]:
        return {}

    def save(self) -> None:
        pass


def create_places_cache(enabled: bool, cache_key: str = "", store: Optional[KeyValueStore] = None):
    if not enabled:
        return NullPlacesCache()
    if store is None:
        raise ValueError("A store is required when the places cache is enabled")
    return PlacesCache(store, cache_key)
