"""Compaction — fold several same-type records into one.

The merged record is ``foundational``, stamped with the merge time, and
lists the ids it replaces in ``supersedes``.  Free-text fields are
joined with a blank line in input order; title-like fields keep the
longest input (first one wins a tie); tags and files are unioned in
order of first appearance.  Its id is computed fresh from the merged
key field and may coincide with one of the inputs' ids.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import assert_never

from mulch.config import ShelfLifeConfig
from mulch.engine.pruning import is_stale
from mulch.errors import MulchError
from mulch.models.identity import generate_record_id
from mulch.models.records import AnyRecord
from mulch.models.records import Classification
from mulch.models.records import ConventionRecord
from mulch.models.records import DecisionRecord
from mulch.models.records import FailureRecord
from mulch.models.records import GuideRecord
from mulch.models.records import PatternRecord
from mulch.models.records import RecordType
from mulch.models.records import ReferenceRecord
from mulch.models.records import utc_timestamp

_SEPARATOR = "\n\n"

# A same-type group this large is worth compacting even when nothing in it is stale.
_LARGE_GROUP = 3


class CompactionError(MulchError):
    """Raised when a compaction request violates its preconditions."""

    error_code = "compaction_precondition"


@dataclass(frozen=True)
class CompactionCandidate:
    """A same-type group within one domain that is worth compacting."""

    domain: str
    type: RecordType
    records: list[AnyRecord]

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self.records if r.id]


def _union(values: Iterable[list[str] | None]) -> list[str] | None:
    seen: dict[str, None] = {}
    for items in values:
        for item in items or ():
            seen.setdefault(item, None)
    return list(seen) or None


def _values(records: list[AnyRecord], name: str) -> list:
    return [getattr(r, name) for r in records]


def _longest(values: list[str]) -> str:
    return max(values, key=len)


def _joined(values: list[str]) -> str:
    return _SEPARATOR.join(values)


def merge_records(records: list[AnyRecord], *, recorded_at: str | None = None) -> AnyRecord:
    """Merge two or more records of one type into a single record."""
    if len(records) < 2:
        raise CompactionError("Compaction requires at least 2 records.")
    types = {r.type for r in records}
    if len(types) > 1:
        raise CompactionError(
            f"Cannot compact records of mixed types: {', '.join(sorted(types))}."
        )

    common = {
        "classification": Classification.foundational,
        "recorded_at": recorded_at or utc_timestamp(),
        "tags": _union(r.tags for r in records),
        "supersedes": [r.id for r in records if r.id] or None,
    }

    first = records[0]
    merged: AnyRecord
    if isinstance(first, ConventionRecord):
        merged = ConventionRecord(
            content=_joined(_values(records, "content")),
            **common,
        )
    elif isinstance(first, PatternRecord):
        merged = PatternRecord(
            name=_longest(_values(records, "name")),
            description=_joined(_values(records, "description")),
            files=_union(_values(records, "files")),
            **common,
        )
    elif isinstance(first, FailureRecord):
        merged = FailureRecord(
            description=_joined(_values(records, "description")),
            resolution=_joined(_values(records, "resolution")),
            **common,
        )
    elif isinstance(first, DecisionRecord):
        merged = DecisionRecord(
            title=_longest(_values(records, "title")),
            rationale=_joined(_values(records, "rationale")),
            **common,
        )
    elif isinstance(first, ReferenceRecord):
        merged = ReferenceRecord(
            name=_longest(_values(records, "name")),
            description=_joined(_values(records, "description")),
            files=_union(_values(records, "files")),
            **common,
        )
    elif isinstance(first, GuideRecord):
        merged = GuideRecord(
            name=_longest(_values(records, "name")),
            description=_joined(_values(records, "description")),
            **common,
        )
    else:
        assert_never(first)

    merged.id = generate_record_id(merged)
    return merged


def compact(
    records: list[AnyRecord],
    indices: list[int],
    *,
    replacement: AnyRecord | None = None,
) -> tuple[list[AnyRecord], AnyRecord]:
    """Replace the records at *indices* with one record appended at the end.

    Without *replacement* the inputs are merged with ``merge_records``.
    A caller-supplied replacement is made foundational, gets a fresh
    timestamp and id, and supersedes the inputs.  Returns the new
    sequence and the record that was appended; *records* is not modified.
    """
    unique = sorted(set(indices))
    if len(unique) < 2:
        raise CompactionError("Compaction requires at least 2 records.")
    targets = [records[i] for i in unique]

    if replacement is None:
        result = merge_records(targets)
    else:
        supersedes = [r.id for r in targets if r.id]
        result = replacement.model_copy(
            update={
                "classification": Classification.foundational,
                "recorded_at": utc_timestamp(),
                "supersedes": supersedes or None,
            }
        )
        result.id = generate_record_id(result)

    removed = set(unique)
    remaining = [r for i, r in enumerate(records) if i not in removed]
    remaining.append(result)
    return remaining, result


def find_compaction_candidates(
    domain: str,
    records: list[AnyRecord],
    now: datetime,
    shelf_life: ShelfLifeConfig,
) -> list[CompactionCandidate]:
    """Group by type; a group of two or more qualifies when any member is
    stale or the group has at least three records."""
    groups: dict[RecordType, list[AnyRecord]] = {}
    for record in records:
        groups.setdefault(record.record_type, []).append(record)

    candidates: list[CompactionCandidate] = []
    for record_type, group in groups.items():
        if len(group) < 2:
            continue
        has_stale = any(is_stale(r, now, shelf_life) for r in group)
        if has_stale or len(group) >= _LARGE_GROUP:
            candidates.append(
                CompactionCandidate(domain=domain, type=record_type, records=group)
            )
    return candidates
