"""Duplicate detection and the append / upsert / skip write policy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from mulch.models.identity import generate_record_id
from mulch.models.records import AnyRecord
from mulch.models.records import key_value
from mulch.models.records import NAMED_TYPES


class WriteAction(str, Enum):
    """What a write did to the domain."""

    created = "created"
    updated = "updated"
    skipped = "skipped"


@dataclass(frozen=True)
class DuplicateMatch:
    index: int
    record: AnyRecord


@dataclass(frozen=True)
class WritePlan:
    """Outcome of applying the write policy to an in-memory domain.

    ``records`` is the full new sequence (the input list itself when
    nothing changed); ``index`` is the 0-based position the candidate
    landed on, or of the existing duplicate when skipped.
    """

    action: WriteAction
    index: int
    records: list[AnyRecord]


def find_duplicate(existing: list[AnyRecord], candidate: AnyRecord) -> DuplicateMatch | None:
    """Return the first record of the same type whose key field equals the candidate's.

    Comparison is exact string equality, no normalization.
    """
    key = key_value(candidate)
    for index, record in enumerate(existing):
        if record.type == candidate.type and key_value(record) == key:
            return DuplicateMatch(index=index, record=record)
    return None


def plan_write(
    existing: list[AnyRecord],
    candidate: AnyRecord,
    *,
    force: bool = False,
) -> WritePlan:
    """Decide how *candidate* enters *existing*.

    - no duplicate, or ``force``: append;
    - duplicate of a named variant (pattern, decision, reference,
      guide): replace it in place, keeping its position;
    - duplicate of a convention or failure: skip.

    Any id already on *candidate* is overwritten with the one derived
    from its type and key field.
    """
    candidate.id = generate_record_id(candidate)
    match = None if force else find_duplicate(existing, candidate)
    if match is None:
        return WritePlan(
            action=WriteAction.created,
            index=len(existing),
            records=[*existing, candidate],
        )

    if candidate.record_type in NAMED_TYPES:
        updated = list(existing)
        updated[match.index] = candidate
        return WritePlan(action=WriteAction.updated, index=match.index, records=updated)

    return WritePlan(action=WriteAction.skipped, index=match.index, records=existing)
