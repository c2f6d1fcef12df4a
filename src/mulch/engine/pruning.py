"""Shelf-life based staleness."""

from __future__ import annotations

from datetime import datetime

from mulch.config import ShelfLifeConfig
from mulch.models.records import AnyRecord
from mulch.models.records import Classification

_SECONDS_PER_DAY = 86_400


def age_in_days(record: AnyRecord, now: datetime) -> int | None:
    """Whole days since ``recorded_at``; ``None`` if the timestamp is unreadable."""
    recorded = record.recorded_at_datetime()
    if recorded is None:
        return None
    return int((now - recorded).total_seconds() // _SECONDS_PER_DAY)


def is_stale(record: AnyRecord, now: datetime, shelf_life: ShelfLifeConfig) -> bool:
    """Foundational records never go stale; the others expire after their shelf life."""
    if record.classification == Classification.foundational:
        return False
    age = age_in_days(record, now)
    if age is None:
        return False
    if record.classification == Classification.tactical:
        return age > shelf_life.tactical
    return age > shelf_life.observational


def split_stale(
    records: list[AnyRecord],
    now: datetime,
    shelf_life: ShelfLifeConfig,
) -> tuple[list[AnyRecord], list[AnyRecord]]:
    """Partition *records* into ``(kept, stale)``, each in original order."""
    kept: list[AnyRecord] = []
    stale: list[AnyRecord] = []
    for record in records:
        (stale if is_stale(record, now, shelf_life) else kept).append(record)
    return kept, stale
