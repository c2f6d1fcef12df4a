"""One-line renderings of records.

``format_record_compact`` is what a consumer actually sees for a record
in a budgeted listing, and therefore what the budget allocator charges
for.  Richer markdown/XML views are built elsewhere on top of the core.
"""

from __future__ import annotations

import re
from typing import assert_never

from mulch.models.records import AnyRecord
from mulch.models.records import ConventionRecord
from mulch.models.records import DecisionRecord
from mulch.models.records import FailureRecord
from mulch.models.records import GuideRecord
from mulch.models.records import PatternRecord
from mulch.models.records import ReferenceRecord

_SENTENCE_END_RE = re.compile(r"[.!?]\s")
_MAX_LEN = 100


def truncate(text: str, max_len: int = _MAX_LEN) -> str:
    """Shorten *text*, preferring to cut at the first sentence boundary."""
    if len(text) <= max_len:
        return text
    match = _SENTENCE_END_RE.search(text)
    if match and 0 < match.start() < max_len:
        return text[: match.start() + 1]
    return text[:max_len] + "..."


def _files(files: list[str] | None) -> str:
    return f" ({', '.join(files)})" if files else ""


def format_record_compact(record: AnyRecord) -> str:
    """Render *record* as a single ``- [type] ...`` bullet."""
    if isinstance(record, ConventionRecord):
        return f"- [convention] {truncate(record.content)}"
    if isinstance(record, PatternRecord):
        return (
            f"- [pattern] {record.name}: {truncate(record.description)}"
            f"{_files(record.files)}"
        )
    if isinstance(record, FailureRecord):
        return (
            f"- [failure] {truncate(record.description)} → {truncate(record.resolution)}"
        )
    if isinstance(record, DecisionRecord):
        return f"- [decision] {record.title}: {truncate(record.rationale)}"
    if isinstance(record, ReferenceRecord):
        detail = ", ".join(record.files) if record.files else truncate(record.description)
        return f"- [reference] {record.name}: {detail}"
    if isinstance(record, GuideRecord):
        return f"- [guide] {record.name}: {truncate(record.description)}"
    assert_never(record)


def record_summary(record: AnyRecord) -> str:
    """Short human label for confirmations and candidate listings."""
    if isinstance(record, ConventionRecord):
        return truncate(record.content, 60)
    if isinstance(record, FailureRecord):
        return truncate(record.description, 60)
    if isinstance(record, DecisionRecord):
        return record.title
    if isinstance(record, (PatternRecord, ReferenceRecord, GuideRecord)):
        return record.name
    assert_never(record)
