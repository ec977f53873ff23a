"""Geospatial helpers: degree conversion and the search grid."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from . import config


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(frozen=True)
class BoundingBox:
    southwest: GeoPoint
    northeast: GeoPoint


def km_to_degrees(km: float) -> float:
    """Convert a linear distance to degrees with a flat 111 km/degree factor.

    Ignores the longitude compression towards the poles; good enough for
    city-sized boxes and step sizes of a few kilometres.
    """
    return km / config.KM_PER_DEGREE


def validate_bbox(bbox: BoundingBox) -> None:
    sw = bbox.southwest
    ne = bbox.northeast
    for value in (sw.lat, sw.lng, ne.lat, ne.lng):
        if not math.isfinite(value):
            raise ValueError(f"Bounding box has a non-finite coordinate: {bbox}")
    if sw.lat > ne.lat or sw.lng > ne.lng:
        raise ValueError(
            "Bounding box corners are out of order: "
            f"southwest=({sw.lat}, {sw.lng}) northeast=({ne.lat}, {ne.lng})"
        )


def generate_grid(bbox: BoundingBox, step_km: float) -> List[GeoPoint]:
    """Tile ``bbox`` into a row-major raster of search points.

    Rows run south to north and points within a row west to east, both
    starting at the southwest corner. The bound is inclusive, so a box
    smaller than one step still yields the corner point, and the last
    row/column sits at most one step short of the northeast edge.
    """
    if not math.isfinite(step_km) or step_km <= 0:
        raise ValueError("step_km must be positive")
    validate_bbox(bbox)

    step = km_to_degrees(float(step_km))
    sw = bbox.southwest
    ne = bbox.northeast
    epsilon = 1e-9

    rows = int(math.floor((ne.lat - sw.lat) / step + epsilon)) + 1
    cols = int(math.floor((ne.lng - sw.lng) / step + epsilon)) + 1

    points: List[GeoPoint] = []
    for r in range(rows):
        lat = sw.lat + r * step
        for c in range(cols):
            points.append(GeoPoint(lat=lat, lng=sw.lng + c * step))
    return points


def truncate_grid(points: Sequence[GeoPoint], limit: Optional[int]) -> List[GeoPoint]:
    if limit is not None and limit > 0:
        return list(points[:limit])
    return list(points)
