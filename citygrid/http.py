"""HTTP client with retry/backoff, request pacing and request metrics."""
from __future__ import annotations

import json
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)


@dataclass
class RequestMetrics:
    network_geocode: int = 0
    network_search: int = 0
    retries: int = 0
    failed_points: int = 0

    @property
    def search_count(self) -> int:
        return self.network_search

    def inc_network(self, kind: str) -> None:
        if kind == "geocode":
            self.network_geocode += 1
        elif kind == "search":
            self.network_search += 1
        else:
            raise ValueError(f"Unknown request kind: {kind}")


class RateLimiter:
    """Fixed-interval gate: successive ``acquire`` calls return at least
    ``min_interval`` seconds apart. Safe to share between threads."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = float(min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last: Optional[float] = None

    def acquire(self) -> None:
        with self._lock:
            now = self._clock()
            if self._last is not None:
                wait = self._last + self.min_interval - now
                if wait > 0:
                    self._sleep(wait)
                    now = self._clock()
            self._last = now


class HttpClient:
    def __init__(
        self,
        api_key: str,
        timeout: int = 20,
        retry_max: int = 5,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.retry_max = max(1, int(retry_max))
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.metrics = metrics
        self.session = requests.Session()

    def post_json(
        self,
        url: str,
        body: Dict[str, Any],
        field_mask: str,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        headers = {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": field_mask,
            "Content-Type": "application/json",
        }
        if extra_headers:
            headers.update(extra_headers)
        payload = json.dumps(body)
        return self._send(
            url,
            lambda: self.session.post(url, data=payload, headers=headers, timeout=self.timeout),
        )

    def get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        query = dict(params)
        query["key"] = self.api_key
        return self._send(
            url,
            lambda: self.session.get(url, params=query, timeout=self.timeout),
        )

    def _send(self, url: str, do_request: Callable[[], requests.Response]) -> Dict[str, Any]:
        for attempt in range(1, self.retry_max + 1):
            try:
                resp = do_request()
            except requests.RequestException as exc:
                if attempt >= self.retry_max:
                    raise
                logger.warning("Request to %s failed: %s (attempt %s)", url, exc, attempt)
                self._count_retry()
                self._sleep_backoff(attempt)
                continue

            status = resp.status_code
            if status == 200:
                try:
                    data = resp.json()
                except ValueError:
                    logger.error("Non-JSON response from %s", url)
                    raise
                if not isinstance(data, dict):
                    raise ValueError(f"Unexpected JSON payload from {url}: {type(data).__name__}")
                return data

            if status in (429, 500, 502, 503, 504):
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                if attempt >= self.retry_max:
                    resp.raise_for_status()
                self._count_retry()
                if not self._sleep_retry_after(resp):
                    self._sleep_backoff(attempt)
                continue

            # Non-retryable, including 1xx/2xx/3xx replies other than 200
            logger.error("HTTP %s from %s", status, url)
            raise requests.HTTPError(f"HTTP {status} from {url}", response=resp)

        raise RuntimeError("Unexpected HTTP retry loop exit")

    def _count_retry(self) -> None:
        if self.metrics is not None:
            self.metrics.retries += 1

    def _sleep_backoff(self, attempt: int) -> None:
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        jitter = random.uniform(0, self.backoff_base)
        time.sleep(base + jitter)

    def _sleep_retry_after(self, resp: requests.Response) -> bool:
        retry_after = resp.headers.get("Retry-After")
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        delay = max(0.0, min(delay, self.backoff_max))
        time.sleep(delay)
        return True
