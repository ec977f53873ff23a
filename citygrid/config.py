"""Project configuration.

Keep API request shapes and sweep constants centralized here. The API key is
never read from the environment inside this package; callers build a
``Settings`` (see ``load_settings``) and pass the key down explicitly.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping

# --- API endpoints ---

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
PLACES_NEARBY_SEARCH_URL = "https://places.googleapis.com/v1/places:searchNearby"

# --- Field masks ---

PLACES_FIELD_MASK_EXPORT = (
    "places.id,places.displayName,places.formattedAddress,places.location,"
    "places.rating,places.userRatingCount,places.websiteUri"
)

# --- Grid sweep ---

KM_PER_DEGREE = 111.0
GRID_STEP_KM = 3.0
# Generously larger than GRID_STEP_KM / 2 so neighbouring circles overlap.
SEARCH_RADIUS_M = 3000
SEARCH_DELAY_SECONDS = 0.3
DEFAULT_PLACE_TYPES: List[str] = ["restaurant", "cafe"]

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 20
HTTP_RETRY_MAX = 5
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0

# --- Outputs ---

API_KEY_ENV = "GOOGLE_API_KEY"
OUTPUT_DIR = "."
OUTPUT_PREFIX = "places_"
PROGRESS_LOG_EVERY = 25
PROGRESS_WRITE_INTERVAL_SECONDS = 5.0


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Settings:
    api_key: str


def load_settings(environ: Mapping[str, str]) -> Settings:
    api_key = (environ.get(API_KEY_ENV) or "").strip()
    if not api_key:
        raise ConfigError(f"Missing {API_KEY_ENV} in environment")
    return Settings(api_key=api_key)
