"""Value types shared by the planner, the queue and the page crawler."""

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..config import MAX_CRAWLED_PLACES_PER_SEARCH, MAX_WORKERS
from ..spatial.area import AreaDescriptor

# Logical search used when places are collected without a search term
NO_SEARCH = "all_places_no_search"


class Label(str, Enum):
    SEARCH = "SEARCH"
    PLACE = "PLACE"
    DETAIL = "DETAIL"


@dataclass(frozen=True)
class CrawlRequest:
    url: str
    unique_key: str
    label: Label
    search_term: Optional[str] = None
    rank: Optional[int] = None
    search_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "label", Label(self.label))
        if self.search_id is None:
            object.__setattr__(self, "search_id", self.search_term or NO_SEARCH)

    def follow_up(self, url: str, unique_key: str, label: Label = Label.PLACE, rank: Optional[int] = None) -> "CrawlRequest":
        """A request discovered while handling this one, charged to the same logical search."""
        return CrawlRequest(
            url=url,
            unique_key=unique_key,
            label=label,
            search_term=self.search_term,
            rank=rank,
            search_id=self.search_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["label"] = self.label.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlRequest":
        return cls(**data)


@dataclass
class PlaceResult:
    place_id: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    title: Optional[str] = None
    url: Optional[str] = None
    search_term: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def location(self) -> Optional[tuple]:
        if self.lat is None or self.lng is None:
            return None
        return (self.lat, self.lng)

    def to_row(self) -> Dict[str, Any]:
        return {
            "place_id": self.place_id,
            "title": self.title,
            "lat": self.lat,
            "lng": self.lng,
            "url": self.url,
            "search_term": self.search_term,
            "data": json.dumps(self.data, sort_keys=True, default=str) if self.data else None,
        }


@dataclass
class CrawlOutcome:
    places: List[PlaceResult] = field(default_factory=list)
    follow_ups: List[CrawlRequest] = field(default_factory=list)

# ----------------------------------------------------------------------------------------------------------

def _as_float(value) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return float(value)


def _first(data: Dict[str, Any], *names, default=None):
    for name in names:
        if data.get(name) not in (None, ""):
            return data[name]
    return default


@dataclass
class CrawlInput:
    """Everything a run needs to know from the user."""
    start_urls: List[str] = field(default_factory=list)
    search_terms: List[Any] = field(default_factory=list)
    all_places_no_search: bool = False
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_km: Optional[float] = None
    zoom: Optional[int] = None
    country: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    custom_geolocation: Optional[Any] = None
    max_crawled_places_per_search: int = MAX_CRAWLED_PLACES_PER_SEARCH
    cache_places: bool = False
    cache_key: str = ""
    export_place_urls: bool = False
    max_concurrency: int = MAX_WORKERS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlInput":
        """Build an input from a dict, accepting snake_case or the crawler's camelCase keys."""
        start_urls = []
        for item in _first(data, "start_urls", "startUrls", default=[]):
            # Start URLs may come as plain strings or as {"url": ...} request objects
            start_urls.append(item["url"] if isinstance(item, dict) else item)

        zoom = _first(data, "zoom")
        return cls(
            start_urls=start_urls,
            search_terms=list(_first(data, "search_terms", "searchStringsArray", default=[])),
            all_places_no_search=bool(_first(data, "all_places_no_search", "allPlacesNoSearchAction", default=False)),
            lat=_as_float(_first(data, "lat")),
            lng=_as_float(_first(data, "lng")),
            radius_km=_as_float(_first(data, "radius_km", "radiusKm")),
            zoom=int(zoom) if zoom is not None else None,
            country=_first(data, "country", "countryCode"),
            state=_first(data, "state"),
            county=_first(data, "county"),
            city=_first(data, "city"),
            postal_code=_first(data, "postal_code", "postalCode"),
            custom_geolocation=_first(data, "custom_geolocation", "customGeolocation"),
            max_crawled_places_per_search=int(_first(
                data, "max_crawled_places_per_search", "maxCrawledPlacesPerSearch",
                default=MAX_CRAWLED_PLACES_PER_SEARCH
            )),
            cache_places=bool(_first(data, "cache_places", "cachePlaces", default=False)),
            cache_key=str(_first(data, "cache_key", "cacheKey", default="")),
            export_place_urls=bool(_first(data, "export_place_urls", "exportPlaceUrls", default=False)),
            max_concurrency=int(_first(data, "max_concurrency", "maxConcurrency", default=MAX_WORKERS)),
        )

    def area_descriptor(self) -> AreaDescriptor:
        return AreaDescriptor(
            lat=self.lat,
            lng=self.lng,
            radius_km=self.radius_km,
            zoom=self.zoom,
            country=self.country,
            state=self.state,
            county=self.county,
            city=self.city,
            postal_code=self.postal_code,
            polygon=self.custom_geolocation,
        )
