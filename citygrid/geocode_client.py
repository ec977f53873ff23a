"""Geocoding API client: city name to bounding box."""
from __future__ import annotations

from typing import Any, Dict, Optional

from . import config
from .geo import BoundingBox, GeoPoint
from .http import HttpClient, RequestMetrics


class GeocodeError(RuntimeError):
    pass


class GeocodeClient:
    def __init__(self, http_client: HttpClient, metrics: Optional[RequestMetrics] = None) -> None:
        self.http = http_client
        self.metrics = metrics

    def geocode_city(self, city: str) -> BoundingBox:
        if self.metrics is not None:
            self.metrics.inc_network("geocode")
        response = self.http.get_json(config.GEOCODE_URL, {"address": city})
        return parse_geocode_response(response, city)


def _parse_corner(raw: Dict[str, Any]) -> GeoPoint:
    return GeoPoint(lat=float(raw["lat"]), lng=float(raw["lng"]))


def parse_geocode_response(response: Dict[str, Any], city: str = "") -> BoundingBox:
    """Box of the first result: ``bounds`` when present, else ``viewport``."""
    results = response.get("results") or []
    if not results:
        status = response.get("status") or "ZERO_RESULTS"
        detail = response.get("error_message")
        message = f"No geocode results for {city!r} (status={status})"
        if detail:
            message += f": {detail}"
        raise GeocodeError(message)

    geometry = results[0].get("geometry") or {}
    box = geometry.get("bounds") or geometry.get("viewport")
    if not box:
        raise GeocodeError(f"Geocode result for {city!r} has no bounds or viewport")
    try:
        return BoundingBox(
            southwest=_parse_corner(box["southwest"]),
            northeast=_parse_corner(box["northeast"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise GeocodeError(f"Malformed geocode geometry for {city!r}: {exc}") from exc
