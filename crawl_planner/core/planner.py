"""
Crawl Planner Orchestration
---------------------------

CrawlPlanner runs one map-search crawl end to end:

1. Prepare - resolve the area, tile it, build the start requests (reusing the
   places cache) and persist them. A restarted run finds the persisted request
   list and skips this step.
2. Enqueue - a BackgroundEnqueuer streams the start requests into the queue,
   skipping searches whose budget is already spent.
3. Crawl - worker threads pull requests and hand them to the page crawler. Every
   place it returns must pass the crawl budget (and the export deduper) before it
   is written out and recorded in the places cache; follow-up requests pass the
   enqueue budget before they are queued.
4. Shut down - flush results and persist budget counts, cache, dedup set and stats.

The page crawler is any callable taking a CrawlRequest and returning a
CrawlOutcome. It owns fetching, rendering and retries.

Usage:
    planner = CrawlPlanner(CrawlInput(search_terms=["pizza"], city="Springfield"), geocoder=osm_boundary_geocoder)
    summary = planner.run(page_crawler)
"""

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from ..config import CACHE_STORE_NAME, PERSIST_INTERVAL_SECS, RUN_STORE_NAME, WORKER_IDLE_SLEEP
from ..errors import StateStoreError
from ..spatial.area import Geocoder, ResolvedArea, resolve_area
from ..spatial.tiles import SearchTile, choose_zoom, generate_tiles
from ..storage.checkpoint import KeyValueStore
from ..storage.deduper import create_deduper
from ..storage.places_cache import create_places_cache
from ..storage.results import ResultsWriter
from ..utils import logger
from ..utils.metrics import CrawlStats
from ..utils.persist import PersistTimer
from .budget import CrawlBudgetTracker
from .builder import build_start_requests, expand_start_urls, log_preview
from .enqueuer import BackgroundEnqueuer
from .models import NO_SEARCH, CrawlInput, CrawlOutcome, CrawlRequest, Label, PlaceResult
from .queue import RequestQueue

START_REQUESTS_KEY = "START-REQUESTS"
GEOLOCATION_KEY = "GEOLOCATION"

PageCrawler = Callable[[CrawlRequest], CrawlOutcome]


class CrawlPlanner:
    """
    Plans, budgets and runs a map-search crawl.

    Attributes:
        input (CrawlInput): What the user asked for
        run_store (KeyValueStore): Resumable state of this run
        cache_store (KeyValueStore): Cross-run places cache storage
        cache: PlacesCache or NullPlacesCache, picked from `input.cache_places`
        deduper: ExportDeduper or NullDeduper, picked from `input.export_place_urls`
        queue (RequestQueue): Work queue shared by the enqueuer and the workers
        tracker (CrawlBudgetTracker): Created once the start requests are known
        stop_event (threading.Event): Cooperative stop signal for the whole pipeline
    """

    def __init__(
            self,
            crawl_input: CrawlInput,
            run_store: Optional[KeyValueStore] = None,
            cache_store: Optional[KeyValueStore] = None,
            geocoder: Optional[Geocoder] = None,
            results_writer: Optional[ResultsWriter] = None,
            queue: Optional[RequestQueue] = None,
            stop_event: Optional[threading.Event] = None,
            persist_interval: float = PERSIST_INTERVAL_SECS,
            ) -> None:

        self.input:             CrawlInput                  = crawl_input
        self.session_id:        str                         = str(uuid.uuid4())[:8]     # Correlates the log lines of this run
        self.run_store:         KeyValueStore               = run_store or KeyValueStore(RUN_STORE_NAME)
        self.cache_store:       KeyValueStore               = cache_store or KeyValueStore(CACHE_STORE_NAME)
        self.geocoder:          Optional[Geocoder]          = geocoder
        self.stop_event:        threading.Event             = stop_event or threading.Event()
        self.persist_interval:  float                       = persist_interval

        self.stats                                          = CrawlStats(self.run_store)
        self.cache                                          = create_places_cache(crawl_input.cache_places, crawl_input.cache_key, self.cache_store)
        self.deduper                                        = create_deduper(crawl_input.export_place_urls, self.run_store)
        self.results:           ResultsWriter               = results_writer or ResultsWriter()
        self.queue:             RequestQueue                = queue or RequestQueue()

        self.area:              Optional[ResolvedArea]      = None
        self.tiles:             List[SearchTile]            = []
        self.start_requests:    List[CrawlRequest]          = []
        self.tracker:           Optional[CrawlBudgetTracker] = None
        self.enqueuer:          Optional[BackgroundEnqueuer] = None
        self._initialized:      bool                        = False

    def initialize(self) -> None:
        if self._initialized:
            return
        self.cache.initialize()
        self.deduper.initialize()
        self.stats.initialize()
        self._initialized = True

# -------------------------------------------------- Preparation ---------------------------------------------------------

    def resolve_geolocation(self) -> Optional[ResolvedArea]:
        """Resolve the search area once per run; a restart reuses the persisted one."""
        try:
            saved = self.run_store.get_value(GEOLOCATION_KEY)
        except StateStoreError:
            saved = None

        if saved:
            self.area = ResolvedArea.from_dict(saved)
            return self.area

        area = resolve_area(self.input.area_descriptor(), self.geocoder)
        if area is not None and area.zoom is None:
            area = area.with_zoom(choose_zoom(area, self.input.max_crawled_places_per_search))

        if area is not None:
            self.run_store.set_value(GEOLOCATION_KEY, area.to_dict())
        self.area = area
        return area

    def prepare_start_requests(self) -> List[CrawlRequest]:
        """Build (or on restart, reload) the ordered start requests of the run."""
        self.initialize()

        try:
            saved = self.run_store.get_value(START_REQUESTS_KEY)
        except StateStoreError as e:
            logger.warning(f"Persisted start requests unreadable, generating them again: {str(e)}", extra={
                "operation": "prepare_requests",
                "session_id": self.session_id,
                "error": str(e),
                "status": "regenerate"
            })
            saved = None

        if saved:
            logger.warning("Run was restarted, skipping search step because it was already done...", extra={
                "operation": "prepare_requests",
                "session_id": self.session_id,
                "request_count": len(saved),
                "status": "restart_skip"
            })
            self.start_requests = [CrawlRequest.from_dict(data) for data in saved]
            return self.start_requests

        start_urls = expand_start_urls(self.input.start_urls) if self.input.start_urls else []

        # Geolocation is only needed for searches, start URLs carry their own location
        if not start_urls:
            area = self.resolve_geolocation()
            self.tiles = generate_tiles(area, zoom=area.zoom) if area is not None else []

        self.start_requests = build_start_requests(
            start_urls=start_urls,
            search_terms=self.input.search_terms,
            tiles=self.tiles,
            cache=self.cache,
            area=self.area,
            max_per_search=self.input.max_crawled_places_per_search,
            all_places_no_search=self.input.all_places_no_search,
        )
        log_preview(self.start_requests)

        self.run_store.set_value(START_REQUESTS_KEY, [request.to_dict() for request in self.start_requests])
        logger.info("Full list of start requests persisted", extra={
            "operation": "prepare_requests",
            "session_id": self.session_id,
            "store_directory": str(self.run_store.directory),
            "key": START_REQUESTS_KEY
        })
        return self.start_requests

    def create_tracker(self) -> CrawlBudgetTracker:
        per_search = self.input.max_crawled_places_per_search
        searches = {request.search_id for request in self.start_requests}
        self.tracker = CrawlBudgetTracker(len(searches) * per_search, per_search, store=self.run_store)
        self.tracker.initialize()
        return self.tracker

# -------------------------------------------------- Result handling ---------------------------------------------------------

    def handle_place(self, request: CrawlRequest, place: PlaceResult) -> bool:
        """
        Admit one discovered place. Returns True when it was written out.

        The duplicate check and the budget slot are taken in one step, so a
        duplicate never spends budget and a rejected place stays emittable.
        """
        declined = []

        def admit() -> bool:
            accepted = self.tracker.try_accept(request.search_id)
            if not accepted:
                declined.append(place.place_id)
            return accepted

        if not self.deduper.try_emit(place.place_id, admit=admit):
            self.stats.increment("places_rejected" if declined else "duplicates_skipped")
            return False

        term = request.search_term or (NO_SEARCH if request.search_id == NO_SEARCH else None)
        self.cache.record(place.place_id, place.location, term)

        if place.search_term is None:
            place.search_term = request.search_term
        self.results.add(place.to_row())
        self.stats.increment("places_accepted")
        return True

    def handle_follow_up(self, request: CrawlRequest) -> bool:
        """Queue a follow-up request if its search still has budget."""
        if self.tracker.is_finished(request.search_id):
            return False
        if request.label == Label.PLACE and not self.tracker.try_enqueue(request.search_id):
            return False
        added = self.queue.add_request(request)
        if added:
            self.stats.increment("requests_enqueued")
        return added

    def handle_request(self, request: CrawlRequest, page_crawler: PageCrawler) -> None:
        if self.tracker.is_finished(request.search_id):
            logger.debug("Skipping request of a finished search", extra={
                "operation": "crawl",
                "session_id": self.session_id,
                "unique_key": request.unique_key,
                "search_id": request.search_id,
                "skipped": True
            })
            return

        try:
            outcome = page_crawler(request)
        except Exception as e:
            self.stats.increment("crawls_failed")
            logger.error(f"Page crawler failed: {str(e)}", extra={
                "operation": "crawl",
                "session_id": self.session_id,
                "unique_key": request.unique_key,
                "url": request.url,
                "error": str(e),
                "status": "error"
            })
            return

        for place in outcome.places:
            self.handle_place(request, place)
        for follow_up in outcome.follow_ups:
            self.handle_follow_up(follow_up)

    def _worker(self, page_crawler: PageCrawler) -> None:
        while not self.stop_event.is_set():
            request = self.queue.fetch_next()
            if request is None:
                if not self.enqueuer.is_running and self.queue.is_finished():
                    return
                time.sleep(WORKER_IDLE_SLEEP)
                continue
            try:
                self.handle_request(request, page_crawler)
            finally:
                self.queue.mark_handled(request)

# -------------------------------------------------- Run ---------------------------------------------------------

    def stop(self) -> None:
        """Ask the enqueuer and the workers to stop after their current request."""
        self.stop_event.set()

    def run(self, page_crawler: PageCrawler) -> Dict:
        """Prepare, enqueue and crawl until the queue drains, every budget is spent, or stop() is called."""
        start_time = time.time()
        self.prepare_start_requests()
        self.create_tracker()

        logger.info("Starting crawl", extra={
            "operation": "crawl",
            "session_id": self.session_id,
            "start_requests": len(self.start_requests),
            "max_total": self.tracker.max_total,
            "max_per_search": self.tracker.max_per_search,
            "max_concurrency": self.input.max_concurrency
        })

        timer = PersistTimer(self.persist_interval)
        timer.register("crawl_budget", self.tracker.persist)
        timer.register("places_cache", self.cache.save)
        timer.register("export_dedup", self.deduper.persist)
        timer.register("stats", self.stats.persist)
        timer.register("stats_log", self.stats.log_metrics)
        timer.start()

        self.enqueuer = BackgroundEnqueuer(self.queue, self.tracker, stop_event=self.stop_event, stats=self.stats)
        try:
            self.enqueuer.start(self.start_requests)

            workers = max(1, self.input.max_concurrency)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="crawl-worker") as pool:
                futures = [pool.submit(self._worker, page_crawler) for _ in range(workers)]
                for future in futures:
                    future.result()
        finally:
            self.enqueuer.stop()
            self.enqueuer.join()
            self.results.flush()
            timer.stop()

        duration = round(time.time() - start_time, 2)
        logger.info("Crawl complete", extra={
            "operation": "crawl",
            "session_id": self.session_id,
            "accepted_total": self.tracker.accepted_total,
            "queued_requests": self.queue.total_count,
            "handled_requests": self.queue.handled_count,
            "status": "completed",
            "duration": duration
        })

        return {
            "status": "success",
            "session_id": self.session_id,
            "start_requests": len(self.start_requests),
            "queued_requests": self.queue.total_count,
            "handled_requests": self.queue.handled_count,
            "accepted_total": self.tracker.accepted_total,
            "stats": self.stats.to_dict(),
            "output_path": str(self.results.output_path),
            "duration": duration
        }
