"""Case-insensitive substring search over records."""

from __future__ import annotations

from mulch.models.records import AnyRecord
from mulch.models.records import RecordType


def filter_by_type(records: list[AnyRecord], record_type: RecordType | str) -> list[AnyRecord]:
    wanted = RecordType(record_type)
    return [r for r in records if r.record_type == wanted]


def _matches(record: AnyRecord, needle: str) -> bool:
    for value in record.model_dump(mode="json", exclude_none=True).values():
        if isinstance(value, str) and needle in value.lower():
            return True
        if isinstance(value, list) and any(
            isinstance(item, str) and needle in item.lower() for item in value
        ):
            return True
    return False


def search_records(records: list[AnyRecord], query: str) -> list[AnyRecord]:
    """Records with *query* in any string field or any string list item."""
    needle = query.lower()
    return [r for r in records if _matches(r, needle)]
