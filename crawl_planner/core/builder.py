"""
Search Request Builder Module
-----------------------------

Combines start URLs, search terms, the tile grid and the places cache into the
ordered list of start requests for a run.

Rules:
    - Start URLs win over search terms. Terms given alongside start URLs are
      dropped with a warning; every valid Google Maps start URL becomes one
      request keyed by its normalized form.
    - A `place_id:<id>` term addresses one place directly and skips tiling.
    - Any other term is searched once per tile. With no area at all, it is
      searched once without a location.
    - Known places from the cache that match the terms and lie in the area are
      appended after all tile searches, one request per (place, term) pair.
    - Blank terms are skipped with a warning.

The order of the returned list is part of the contract: start URL or tile
requests first in generation order, cache-derived requests last.
"""

from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import requests

from ..config import PREVIEW_SIZE, REQUEST_TIMEOUT
from ..errors import InvalidSearchTermError
from ..spatial.tiles import GOOGLE_MAPS_URL, SearchTile
from ..utils import logger
from .models import NO_SEARCH, CrawlRequest, Label

MAPS_SEARCH_URL = f"{GOOGLE_MAPS_URL}/search"
PLACE_ID_PREFIX = "place_id:"
SHORT_URL_HOSTS = {"goo.gl", "maps.app.goo.gl"}
# Query parameters Google adds for tracking/UI state, they do not change what the URL shows
NOISE_PARAMS = {"entry", "g_ep", "hl", "authuser", "ucbcb", "shorturl", "coh", "skid", "g_st", "lucs"}

# ----------------------------------------------------------------------------------------------------------

def is_google_maps_url(url: str) -> bool:
    parts = urlsplit(url.strip())
    host = parts.netloc.lower()
    return (
        parts.scheme in ("http", "https")
        and (host.startswith("google.") or ".google." in host)
        and parts.path.startswith("/maps")
    )


def normalize_start_url(url: str) -> str:
    """Strip fragments, tracking parameters, place data blobs and trailing slashes."""
    parts = urlsplit(url.strip())
    path = parts.path
    if "/maps/place/" in path and "/data=" in path:
        path = path.split("/data=")[0]
    path = path.rstrip("/") or "/"
    query = urlencode([
        (key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in NOISE_PARAMS
    ])
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, query, ""))


def label_for_url(url: str) -> Label:
    parts = urlsplit(url)
    if "/maps/place/" in parts.path or "query_place_id=" in parts.query:
        return Label.PLACE
    return Label.SEARCH


def expand_start_urls(urls: Iterable[str], session: Optional[requests.Session] = None) -> List[str]:
    """Follow redirects of shortened map links (goo.gl) to the full Google Maps URL."""
    http = session or requests
    expanded = []
    for url in urls:
        if not isinstance(url, str):
            expanded.append(url)
            continue
        host = urlsplit(url.strip()).netloc.lower()
        if host not in SHORT_URL_HOSTS:
            expanded.append(url)
            continue
        try:
            response = http.head(url.strip(), allow_redirects=True, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            expanded.append(response.url)
            logger.info("Expanded short start URL", extra={
                "operation": "expand_start_urls",
                "short_url": url,
                "url": response.url
            })
        except requests.RequestException as e:
            logger.warning(f"Could not expand short start URL: {str(e)}", extra={
                "operation": "expand_start_urls",
                "short_url": url,
                "error": str(e),
                "status": "unexpanded"
            })
            expanded.append(url)
    return expanded


def validate_search_term(term) -> str:
    if not isinstance(term, str) or not term.strip():
        raise InvalidSearchTermError(f'Search "{term}" is not a valid search')
    return term.strip()


def clean_search_terms(terms: Iterable) -> List[str]:
    """Valid, stripped, de-duplicated terms in input order. Invalid ones are logged and skipped."""
    cleaned: List[str] = []
    for term in terms:
        try:
            valid = validate_search_term(term)
        except InvalidSearchTermError as e:
            logger.warning(f"WRONG INPUT: {str(e)}, skipping", extra={
                "operation": "build_requests",
                "search_term": repr(term),
                "status": "skipped"
            })
            continue
        if valid not in cleaned:
            cleaned.append(valid)
    return cleaned


def place_request_url(place_id: str, query: str) -> str:
    return f"{MAPS_SEARCH_URL}/?api=1&query={quote(query, safe=':')}&query_place_id={place_id}"

# ----------------------------------------------------------------------------------------------------------

def _start_url_requests(start_urls: Sequence[str]) -> List[CrawlRequest]:
    built: List[CrawlRequest] = []
    seen = set()
    for url in start_urls:
        if not isinstance(url, str) or not is_google_maps_url(url):
            logger.warning(f"Start URL is not a Google Maps URL, skipping", extra={
                "operation": "build_requests",
                "url": repr(url),
                "status": "skipped"
            })
            continue
        key = normalize_start_url(url)
        if key in seen:
            continue
        seen.add(key)
        built.append(CrawlRequest(
            url=url.strip(),
            unique_key=key,
            label=label_for_url(url),
            search_id=key,
        ))
    return built


def _term_requests(term: str, tiles: Sequence[SearchTile]) -> List[CrawlRequest]:
    if PLACE_ID_PREFIX in term:
        clean_search = "".join(term.split())
        place_id = clean_search.split(PLACE_ID_PREFIX, 1)[1]
        if not place_id:
            logger.warning(f"Search {term!r} has no place id, skipping", extra={
                "operation": "build_requests",
                "search_term": term,
                "status": "skipped"
            })
            return []
        return [CrawlRequest(
            url=place_request_url(place_id, clean_search),
            unique_key=place_id,
            label=Label.PLACE,
            search_term=term,
        )]

    base_urls = [tile.url for tile in tiles] or [MAPS_SEARCH_URL]
    built: List[CrawlRequest] = []
    seen = set()
    for base_url in base_urls:
        url = base_url if term == NO_SEARCH else f"{base_url}/{quote(term)}"
        if url in seen:
            continue
        seen.add(url)
        built.append(CrawlRequest(
            url=url,
            unique_key=url,
            label=Label.SEARCH,
            search_term=None if term == NO_SEARCH else term,
            search_id=term,
        ))
    return built


def _cached_place_requests(pairs: Iterable[Tuple[str, str]]) -> List[CrawlRequest]:
    built = []
    for place_id, term in pairs:
        built.append(CrawlRequest(
            url=place_request_url(place_id, term),
            unique_key=f"{place_id}|{term}",
            label=Label.PLACE,
            search_term=None if term == NO_SEARCH else term,
            rank=None,
            search_id=term,
        ))
    return built


def build_start_requests(
        start_urls: Sequence[str],
        search_terms: Sequence,
        tiles: Sequence[SearchTile],
        cache,
        area=None,
        max_per_search: Optional[int] = None,
        all_places_no_search: bool = False
        ) -> List[CrawlRequest]:
    """
    Build the ordered start requests of a run.

    Args:
        start_urls: Google Maps URLs given by the user. Take precedence over search terms.
        search_terms: Search strings, may include `place_id:<id>` entries.
        tiles: Tile grid covering the area, empty when the search has no area.
        cache: PlacesCache or NullPlacesCache consulted for already known places.
        area: The resolved area the cache hits must lie in.
        max_per_search: Per-search cap, limits cache hits to `max_per_search * len(terms)`.
            None means no limit.
        all_places_no_search: Collect every place in the area without a search term.

    Returns:
        list[CrawlRequest]: Tile/start URL requests first, cache-derived requests last.
    """
    search_terms = list(search_terms or [])

    if start_urls:
        if search_terms or all_places_no_search:
            logger.warning("Using Start URLs disables search. You can use either search or Start URLs.", extra={
                "operation": "build_requests",
                "ignored_search_terms": [str(term) for term in search_terms],
                "status": "search_disabled"
            })
        return _start_url_requests(start_urls)

    if all_places_no_search:
        if search_terms:
            logger.warning("You cannot use search terms with the all places option. Clearing them out.", extra={
                "operation": "build_requests",
                "ignored_search_terms": [str(term) for term in search_terms],
                "status": "search_cleared"
            })
        terms = [NO_SEARCH]
    else:
        terms = clean_search_terms(search_terms)

    built: List[CrawlRequest] = []
    for term in terms:
        built.extend(_term_requests(term, tiles))

    limit = None if max_per_search is None else max_per_search * len(terms)
    pairs = cache.places_in_polygon(area, limit, terms) if terms else []
    cached = _cached_place_requests(pairs)
    if cached:
        logger.info("Reusing cached places", extra={
            "operation": "build_requests",
            "cached_requests": len(cached),
            "limit": limit
        })
    built.extend(cached)
    return built


def log_preview(requests_list: Sequence[CrawlRequest], size: int = PREVIEW_SIZE) -> List[str]:
    """Log the URLs of the first `size` requests and return them."""
    preview = [request.url for request in requests_list[:size]]
    logger.info(f"Prepared {len(requests_list)} Start URLs (showing max {size})", extra={
        "operation": "build_requests",
        "request_count": len(requests_list),
        "preview": preview
    })
    return preview
