"""Output reporting helpers."""
from __future__ import annotations

import csv
import io
import json
import logging
import os
import re
import tempfile
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional, Protocol, TextIO, Tuple

from . import config
from .places_client import EntityRecord

_WHITESPACE_RE = re.compile(r"\s+")

CSV_HEADER = [
    "id",
    "name",
    "rating",
    "userRatingCount",
    "websiteUri",
    "formattedAddress",
    "latitude",
    "longitude",
]


class RequestCounters(Protocol):
    search_count: int
    failed_points: int


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def export_filename(city: str) -> str:
    return f"{config.OUTPUT_PREFIX}{_WHITESPACE_RE.sub('_', city)}.csv"


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def render_places_csv(records: Iterable[EntityRecord]) -> str:
    """Header line as plain names, then one fully quoted row per record,
    rows joined by newlines.

    Embedded quotes are doubled and missing values become ``""``.
    """
    buf = io.StringIO()
    buf.write(",".join(CSV_HEADER))
    buf.write("\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for r in records:
        writer.writerow(
            [
                _csv_value(v)
                for v in (
                    r.id,
                    r.display_name,
                    r.rating,
                    r.user_rating_count,
                    r.website_uri,
                    r.formatted_address,
                    r.lat,
                    r.lng,
                )
            ]
        )
    # No newline after the last row.
    return buf.getvalue().rstrip("\n")


def write_places_csv(path: str, records: Iterable[EntityRecord]) -> None:
    text = render_places_csv(records)
    with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
        f.write(text)


def write_json_object(path: str, payload: Any) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


class ProgressReporter:
    def __init__(
        self,
        output_path: Optional[str] = None,
        log_every: int = 25,
        write_interval_seconds: float = 5.0,
        logger: Optional[logging.Logger] = None,
        counters: Optional[RequestCounters] = None,
    ) -> None:
        self.output_path = output_path
        self.log_every = max(1, int(log_every)) if log_every else 0
        self.write_interval_seconds = float(write_interval_seconds)
        self.logger = logger or logging.getLogger(__name__)
        self._counters = counters
        self.stage = "init"
        self.processed_count = 0
        self.total_estimate: Optional[int] = None
        self.unique_records = 0
        self._next_log = self.log_every if self.log_every else 0
        self._last_write = 0.0

    def set_stage(self, stage: str, total_estimate: Optional[int] = None) -> None:
        self.stage = stage
        self.processed_count = 0
        self.total_estimate = total_estimate
        self._next_log = self.log_every if self.log_every else 0
        self._write_if_due(force=True)

    def advance(self, count: int = 1, unique_records: Optional[int] = None) -> None:
        if count <= 0:
            return
        self.processed_count += count
        if unique_records is not None:
            self.unique_records = unique_records
        if self.log_every and self.processed_count >= self._next_log:
            search_requests, failed_points = self._get_counts()
            self.logger.info(
                "Progress: stage=%s processed=%s/%s unique=%s search_requests=%s failed_points=%s",
                self.stage,
                self.processed_count,
                self.total_estimate if self.total_estimate is not None else "?",
                self.unique_records,
                search_requests,
                failed_points,
            )
            self._next_log += self.log_every
        self._write_if_due()

    def _get_counts(self) -> Tuple[int, int]:
        if self._counters is None:
            return (0, 0)
        return (
            int(getattr(self._counters, "search_count", 0)),
            int(getattr(self._counters, "failed_points", 0)),
        )

    def _write_if_due(self, force: bool = False) -> None:
        if not self.output_path:
            return
        now = time.monotonic()
        if not force and (now - self._last_write) < self.write_interval_seconds:
            return
        search_requests, failed_points = self._get_counts()
        write_json_object(
            self.output_path,
            {
                "stage": self.stage,
                "processed_count": self.processed_count,
                "total_estimate": self.total_estimate,
                "unique_records": self.unique_records,
                "search_requests": search_requests,
                "failed_points": failed_points,
                "timestamp": utc_now_iso(),
            },
        )
        self._last_write = now
