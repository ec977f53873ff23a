"""Pipeline orchestration: geocode, grid, sweep, merge, export."""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import requests

from . import config
from .coverage import count_new_ids, merge_records
from .geo import GeoPoint, generate_grid, truncate_grid
from .geocode_client import GeocodeClient
from .http import HttpClient, RateLimiter, RequestMetrics
from .places_client import EntityRecord, PlacesClient
from .reporting import ProgressReporter, ensure_dir, export_filename, write_places_csv

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    records: List[EntityRecord]
    grid_total: int
    grid_processed: int
    failed_points: int
    output_path: Optional[str]
    cancelled: bool = False


def run(
    city: str,
    types: Sequence[str],
    api_key: Optional[str] = None,
    test_limit: Optional[int] = None,
    output_dir: str = config.OUTPUT_DIR,
    write_outputs: bool = True,
    geocode_client: Optional[GeocodeClient] = None,
    places_client: Optional[PlacesClient] = None,
    rate_limiter: Optional[RateLimiter] = None,
    step_km: float = config.GRID_STEP_KM,
    metrics: Optional[RequestMetrics] = None,
    cancel_event: Optional[threading.Event] = None,
    progress_path: Optional[str] = None,
) -> PipelineResult:
    city = (city or "").strip()
    if not city:
        raise ValueError("city must not be empty")
    types = list(types)

    if metrics is None:
        metrics = RequestMetrics()
    if geocode_client is None or places_client is None:
        if not api_key:
            raise ValueError("api_key is required when clients are not injected")
        http_client = HttpClient(
            api_key,
            timeout=config.HTTP_TIMEOUT_SECONDS,
            retry_max=config.HTTP_RETRY_MAX,
            backoff_base=config.HTTP_BACKOFF_BASE,
            backoff_max=config.HTTP_BACKOFF_MAX,
            metrics=metrics,
        )
        if geocode_client is None:
            geocode_client = GeocodeClient(http_client, metrics=metrics)
        if places_client is None:
            places_client = PlacesClient(http_client, metrics=metrics)
    if rate_limiter is None:
        rate_limiter = RateLimiter(config.SEARCH_DELAY_SECONDS)

    progress = ProgressReporter(
        output_path=progress_path,
        log_every=config.PROGRESS_LOG_EVERY,
        write_interval_seconds=config.PROGRESS_WRITE_INTERVAL_SECONDS,
        logger=logger,
        counters=metrics,
    )

    logger.info("Geocoding %s", city)
    logger.info("Types: %s", ", ".join(types))
    progress.set_stage("geocoded")
    bbox = geocode_client.geocode_city(city)
    logger.info(
        "Bounds: sw=(%s, %s) ne=(%s, %s)",
        bbox.southwest.lat,
        bbox.southwest.lng,
        bbox.northeast.lat,
        bbox.northeast.lng,
    )

    full_grid = generate_grid(bbox, step_km)
    grid = truncate_grid(full_grid, test_limit)
    progress.set_stage("grid_built", total_estimate=len(grid))
    if test_limit:
        logger.info("TEST MODE: %s/%s grid points", len(grid), len(full_grid))
    else:
        logger.info("Grid points: %s", len(grid))

    unique: Dict[str, EntityRecord] = {}
    cancelled = False
    processed = 0
    progress.set_stage("searching", total_estimate=len(grid))
    for idx, point in enumerate(grid):
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Cancelled after %s/%s grid points", processed, len(grid))
            cancelled = True
            break
        rate_limiter.acquire()
        places = _search_point(places_client, point, types, idx, metrics)
        new_ids = count_new_ids(unique, places)
        merge_records(unique, places)
        processed += 1
        logger.debug(
            "Point %s (%s, %s): %s places, %s new", idx, point.lat, point.lng, len(places), new_ids
        )
        progress.advance(unique_records=len(unique))

    progress.set_stage("merged", total_estimate=len(unique))
    results = list(unique.values())
    logger.info("Found %s places", len(results))
    if metrics.failed_points:
        logger.warning("%s grid point(s) failed and contributed no places", metrics.failed_points)

    output_path: Optional[str] = None
    if write_outputs:
        ensure_dir(output_dir)
        output_path = os.path.join(output_dir, export_filename(city))
        write_places_csv(output_path, results)
        progress.set_stage("exported", total_estimate=len(results))
        logger.info("CSV exported: %s", output_path)

    progress.set_stage("done")
    return PipelineResult(
        records=results,
        grid_total=len(full_grid),
        grid_processed=processed,
        failed_points=metrics.failed_points,
        output_path=output_path,
        cancelled=cancelled,
    )


def _search_point(
    places_client: PlacesClient,
    point: GeoPoint,
    types: Sequence[str],
    idx: int,
    metrics: RequestMetrics,
) -> List[EntityRecord]:
    # A failed point contributes nothing; the sweep keeps going.
    try:
        return places_client.search_nearby(point, types)
    except (requests.RequestException, ValueError) as exc:
        metrics.failed_points += 1
        logger.warning(
            "Search failed at grid point %s (%s, %s): %s", idx, point.lat, point.lng, exc
        )
        return []
