"""Places API (New) nearby-search client and response parsing."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .geo import GeoPoint
from .http import HttpClient, RequestMetrics

logger = logging.getLogger(__name__)


class PlacesResponseError(ValueError):
    pass


@dataclass(frozen=True)
class EntityRecord:
    id: str
    display_name: Optional[str] = None
    rating: Optional[float] = None
    user_rating_count: Optional[int] = None
    website_uri: Optional[str] = None
    formatted_address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class PlacesClient:
    def __init__(
        self,
        http_client: HttpClient,
        radius_m: int = config.SEARCH_RADIUS_M,
        field_mask: str = config.PLACES_FIELD_MASK_EXPORT,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.http = http_client
        self.radius_m = radius_m
        self.field_mask = field_mask
        self.metrics = metrics

    def search_nearby(self, point: GeoPoint, types: Iterable[str]) -> List[EntityRecord]:
        """One nearby search for ``point``; whatever the provider returns for
        that single call, with no follow-up pages."""
        body = build_nearby_search_body(point, types, self.radius_m)
        if self.metrics is not None:
            self.metrics.inc_network("search")
        response = self.http.post_json(config.PLACES_NEARBY_SEARCH_URL, body, self.field_mask)
        return parse_places_response(response)


def build_nearby_search_body(
    point: GeoPoint,
    types: Iterable[str],
    radius_m: int = config.SEARCH_RADIUS_M,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "locationRestriction": {
            "circle": {
                "center": {"latitude": point.lat, "longitude": point.lng},
                "radius": radius_m,
            }
        },
    }
    included = [t for t in types if t]
    if included:
        body["includedTypes"] = included
    return body


# Adapter/mapper for Places response fields

def _parse_place(p: Dict[str, Any], place_id: Any) -> EntityRecord:
    display = p.get("displayName")
    if isinstance(display, dict):
        name = display.get("text")
    elif display is None or isinstance(display, str):
        name = display
    else:
        raise PlacesResponseError(f"displayName is malformed for {place_id}: {display!r}")

    location = p.get("location")
    if location is None:
        location = {}
    elif not isinstance(location, dict):
        raise PlacesResponseError(f"location is not an object for {place_id}: {location!r}")

    user_rating_count = p.get("userRatingCount")
    try:
        count = int(user_rating_count) if user_rating_count is not None else None
    except (TypeError, ValueError) as exc:
        raise PlacesResponseError(
            f"userRatingCount is malformed for {place_id}: {user_rating_count!r}"
        ) from exc

    return EntityRecord(
        id=str(place_id),
        display_name=name,
        rating=p.get("rating"),
        user_rating_count=count,
        website_uri=p.get("websiteUri"),
        formatted_address=p.get("formattedAddress"),
        lat=location.get("latitude"),
        lng=location.get("longitude"),
    )


def parse_places_response(response: Dict[str, Any]) -> List[EntityRecord]:
    """Map a searchNearby payload to records.

    Places without an id are skipped; any other malformed field raises
    ``PlacesResponseError`` so the caller can drop the whole response.
    """
    places = response.get("places")
    if places is None:
        return []
    if not isinstance(places, list):
        raise PlacesResponseError(f"'places' is not a list: {type(places).__name__}")

    parsed: List[EntityRecord] = []
    for p in places:
        if not isinstance(p, dict):
            raise PlacesResponseError(f"Place entry is not an object: {p!r}")
        place_id = p.get("id")
        if not place_id:
            logger.debug("Skipping place without id: %s", p)
            continue
        parsed.append(_parse_place(p, place_id))
    return parsed
