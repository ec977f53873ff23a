"""Result-set merging for overlapping grid searches."""
from __future__ import annotations

from typing import Dict, Iterable

from .places_client import EntityRecord


def merge_records(
    existing: Dict[str, EntityRecord], incoming: Iterable[EntityRecord]
) -> Dict[str, EntityRecord]:
    """Insert each record under its id, replacing any earlier one whole.

    Mutates and returns ``existing``. Replaying the same batch is a no-op,
    and for a repeated id the record merged last wins.
    """
    for record in incoming:
        existing[record.id] = record
    return existing


def count_new_ids(existing: Dict[str, EntityRecord], incoming: Iterable[EntityRecord]) -> int:
    return len({record.id for record in incoming} - set(existing))
