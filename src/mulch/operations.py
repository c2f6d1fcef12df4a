"""Mutating and retrieval workflows over a project's domains.

Every mutation follows one shape: take the domain lock, read the whole
file, compute the new record sequence in memory, replace the file
atomically, release the lock.  Retrieval reads without the lock; the
atomic replace guarantees it sees a whole file either way.

The project config is read fresh on every call and passed down; the
lock timing comes in as an explicit ``LockConfig``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone
from pathlib import Path
from typing import Any

from mulch.config import get_expertise_path
from mulch.config import LockConfig
from mulch.config import MulchConfig
from mulch.config import read_config
from mulch.config import validate_domain_name
from mulch.config import write_config
from mulch.engine.budget import apply_budget
from mulch.engine.budget import BudgetResult
from mulch.engine.budget import DEFAULT_BUDGET
from mulch.engine.budget import DomainRecords
from mulch.engine.budget import estimate_tokens
from mulch.engine.budget import TokenEstimator
from mulch.engine.compaction import compact
from mulch.engine.compaction import CompactionCandidate
from mulch.engine.compaction import find_compaction_candidates
from mulch.engine.dedup import plan_write
from mulch.engine.dedup import WriteAction
from mulch.engine.formatting import format_record_compact
from mulch.engine.formatting import record_summary
from mulch.engine.health import governance_level
from mulch.engine.health import GovernanceLevel
from mulch.engine.pruning import split_stale
from mulch.engine.resolver import resolve_identifier
from mulch.engine.search import filter_by_type
from mulch.engine.search import search_records
from mulch.errors import DomainExistsError
from mulch.errors import DomainNotFoundError
from mulch.errors import MulchError
from mulch.models.identity import generate_record_id
from mulch.models.records import AnyRecord
from mulch.models.records import RecordType
from mulch.observability import timed
from mulch.store.codec import record_to_dict
from mulch.store.codec import validate_record
from mulch.store.expertise import create_expertise_file
from mulch.store.expertise import get_file_mod_time
from mulch.store.expertise import read_expertise_file
from mulch.store.expertise import write_expertise_file
from mulch.store.lock import file_lock

logger = logging.getLogger(__name__)

# Fields an edit may never touch directly.
_PROTECTED_FIELDS = frozenset({"type", "id", "recorded_at"})


class RecordUpdateError(MulchError):
    """Raised when an edit names fields the record's type does not have."""

    error_code = "invalid_update"


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WriteOutcome:
    action: WriteAction
    domain: str
    index: int  # 1-based
    record: AnyRecord


@dataclass(frozen=True)
class DeleteOutcome:
    domain: str
    index: int  # 1-based, position before deletion
    record: AnyRecord


@dataclass(frozen=True)
class CompactOutcome:
    domain: str
    removed: int
    record: AnyRecord


@dataclass(frozen=True)
class AutoCompactResult:
    domain: str
    type: RecordType
    count: int


@dataclass(frozen=True)
class PruneResult:
    domain: str
    before: int
    pruned: int
    after: int


@dataclass(frozen=True)
class DomainStatus:
    domain: str
    count: int
    last_updated: datetime | None
    level: GovernanceLevel


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_domain(config: MulchConfig, domain: str) -> None:
    if domain not in config.domains:
        raise DomainNotFoundError(domain, config.domains)


def _selected_domains(config: MulchConfig, domains: list[str] | None) -> list[str]:
    if not domains:
        return list(config.domains)
    for domain in domains:
        _require_domain(config, domain)
    return list(domains)


# ---------------------------------------------------------------------------
# Domains
# ---------------------------------------------------------------------------


def add_domain(
    root: str | Path,
    domain: str,
    *,
    lock_config: LockConfig | None = None,
) -> Path:
    """Register *domain* and create its empty file; returns the file path.

    An existing file for an unregistered domain is kept as is.
    """
    validate_domain_name(domain)
    config = read_config(root)
    if domain in config.domains:
        raise DomainExistsError(domain)

    path = get_expertise_path(domain, root)
    path.parent.mkdir(parents=True, exist_ok=True)
    with timed("operations.add_domain"), file_lock(path, config=lock_config):
        if not path.exists():
            create_expertise_file(path)
    write_config(config.with_domain(domain), root)
    logger.info("Added domain %s", domain)
    return path


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def record_expertise(
    root: str | Path,
    domain: str,
    record: AnyRecord,
    *,
    force: bool = False,
    lock_config: LockConfig | None = None,
) -> WriteOutcome:
    """Append, upsert or skip *record* according to the duplicate policy."""
    config = read_config(root)
    _require_domain(config, domain)
    path = get_expertise_path(domain, root)

    with timed("operations.record"), file_lock(path, config=lock_config):
        existing = read_expertise_file(path)
        plan = plan_write(existing, record, force=force)
        if plan.action is not WriteAction.skipped:
            write_expertise_file(path, plan.records)

    logger.info(
        "%s %s #%d in %s: %s",
        plan.action.value.capitalize(),
        record.type,
        plan.index + 1,
        domain,
        record_summary(record),
    )
    stored = plan.records[plan.index]
    return WriteOutcome(action=plan.action, domain=domain, index=plan.index + 1, record=stored)


def edit_record(
    root: str | Path,
    domain: str,
    identifier: str,
    updates: dict[str, Any],
    *,
    lock_config: LockConfig | None = None,
) -> AnyRecord:
    """Apply *updates* to one record, keeping its position.

    ``None`` values in *updates* are ignored.  The result is validated
    again and its id recomputed, since the key field may have changed.
    """
    changes = {k: v for k, v in updates.items() if v is not None}
    forbidden = sorted(set(changes) & _PROTECTED_FIELDS)
    if forbidden:
        raise RecordUpdateError(f"Cannot edit field(s): {', '.join(forbidden)}.")

    config = read_config(root)
    _require_domain(config, domain)
    path = get_expertise_path(domain, root)

    with timed("operations.edit"), file_lock(path, config=lock_config):
        records = read_expertise_file(path)
        index = resolve_identifier(records, identifier)
        current = records[index]

        unknown = sorted(set(changes) - set(type(current).model_fields))
        if unknown:
            raise RecordUpdateError(
                f"{current.type} records have no field(s): {', '.join(unknown)}."
            )

        data = record_to_dict(current)
        data.update(changes)
        updated = validate_record(data)
        updated.id = generate_record_id(updated)
        records[index] = updated
        write_expertise_file(path, records)

    logger.info("Edited %s #%d in %s", updated.type, index + 1, domain)
    return updated


def delete_record(
    root: str | Path,
    domain: str,
    identifier: str,
    *,
    lock_config: LockConfig | None = None,
) -> DeleteOutcome:
    config = read_config(root)
    _require_domain(config, domain)
    path = get_expertise_path(domain, root)

    with timed("operations.delete"), file_lock(path, config=lock_config):
        records = read_expertise_file(path)
        index = resolve_identifier(records, identifier)
        removed = records.pop(index)
        write_expertise_file(path, records)

    logger.info(
        "Deleted %s #%d from %s: %s", removed.type, index + 1, domain, record_summary(removed)
    )
    return DeleteOutcome(domain=domain, index=index + 1, record=removed)


def compact_records(
    root: str | Path,
    domain: str,
    identifiers: list[str],
    *,
    replacement: AnyRecord | None = None,
    lock_config: LockConfig | None = None,
) -> CompactOutcome:
    """Replace the identified records with one merged (or supplied) record."""
    config = read_config(root)
    _require_domain(config, domain)
    path = get_expertise_path(domain, root)

    with timed("operations.compact"), file_lock(path, config=lock_config):
        records = read_expertise_file(path)
        indices = [resolve_identifier(records, ident) for ident in identifiers]
        remaining, result = compact(records, indices, replacement=replacement)
        write_expertise_file(path, remaining)

    removed = len(records) - len(remaining) + 1
    logger.info("Compacted %d %s records into 1 in %s", removed, result.type, domain)
    return CompactOutcome(domain=domain, removed=removed, record=result)


def analyze_compaction(
    root: str | Path,
    *,
    now: datetime | None = None,
) -> list[CompactionCandidate]:
    config = read_config(root)
    now = now or datetime.now(timezone.utc)
    candidates: list[CompactionCandidate] = []
    for domain in config.domains:
        records = read_expertise_file(get_expertise_path(domain, root))
        candidates.extend(
            find_compaction_candidates(domain, records, now, config.shelf_life)
        )
    return candidates


def auto_compact(
    root: str | Path,
    *,
    now: datetime | None = None,
    lock_config: LockConfig | None = None,
) -> list[AutoCompactResult]:
    """Merge every compaction candidate group in every domain."""
    config = read_config(root)
    now = now or datetime.now(timezone.utc)
    results: list[AutoCompactResult] = []

    for domain in config.domains:
        path = get_expertise_path(domain, root)
        with timed("operations.auto_compact"), file_lock(path, config=lock_config):
            current = read_expertise_file(path)
            candidates = find_compaction_candidates(domain, current, now, config.shelf_life)
            for candidate in candidates:
                members = {id(r) for r in candidate.records}
                indices = [i for i, r in enumerate(current) if id(r) in members]
                current, _ = compact(current, indices)
                results.append(
                    AutoCompactResult(domain=domain, type=candidate.type, count=len(indices))
                )
            if candidates:
                write_expertise_file(path, current)

    return results


def prune_records(
    root: str | Path,
    *,
    dry_run: bool = False,
    now: datetime | None = None,
    lock_config: LockConfig | None = None,
) -> list[PruneResult]:
    """Remove records past their shelf life from every domain."""
    config = read_config(root)
    now = now or datetime.now(timezone.utc)
    results: list[PruneResult] = []

    for domain in config.domains:
        path = get_expertise_path(domain, root)
        with timed("operations.prune"), file_lock(path, config=lock_config):
            records = read_expertise_file(path)
            kept, stale = split_stale(records, now, config.shelf_life)
            if not stale:
                continue
            if not dry_run:
                write_expertise_file(path, kept)
        results.append(
            PruneResult(domain=domain, before=len(records), pruned=len(stale), after=len(kept))
        )
        logger.info(
            "%s %d stale record(s) from %s", "Would prune" if dry_run else "Pruned", len(stale), domain
        )

    return results


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


def read_domains(
    root: str | Path,
    domains: list[str] | None = None,
    *,
    record_type: RecordType | str | None = None,
) -> list[DomainRecords]:
    """Read the requested domains (default: all configured) without locking."""
    config = read_config(root)
    groups: list[DomainRecords] = []
    for domain in _selected_domains(config, domains):
        records = read_expertise_file(get_expertise_path(domain, root))
        if record_type is not None:
            records = filter_by_type(records, record_type)
        groups.append(DomainRecords(domain=domain, records=records))
    return groups


def query_expertise(
    root: str | Path,
    domains: list[str] | None = None,
    *,
    record_type: RecordType | str | None = None,
    budget: int | None = DEFAULT_BUDGET,
    estimator: TokenEstimator = estimate_tokens,
) -> BudgetResult:
    """Records of the requested domains, fitted into *budget* when given."""
    with timed("operations.query"):
        groups = read_domains(root, domains, record_type=record_type)
        if budget is None:
            kept = [g for g in groups if g.records]
            return BudgetResult(kept=kept, dropped_count=0, dropped_domain_count=0)
        return apply_budget(
            groups,
            budget,
            lambda record, _domain: format_record_compact(record),
            estimator=estimator,
        )


def search_expertise(
    root: str | Path,
    query: str,
    *,
    domain: str | None = None,
    record_type: RecordType | str | None = None,
) -> list[DomainRecords]:
    """Matching records grouped by domain; domains without matches are omitted."""
    with timed("operations.search"):
        groups = read_domains(root, [domain] if domain else None, record_type=record_type)
        results = []
        for group in groups:
            matches = search_records(group.records, query)
            if matches:
                results.append(DomainRecords(domain=group.domain, records=matches))
        return results


def domain_status(root: str | Path) -> list[DomainStatus]:
    config = read_config(root)
    statuses = []
    for domain in config.domains:
        path = get_expertise_path(domain, root)
        count = len(read_expertise_file(path))
        statuses.append(
            DomainStatus(
                domain=domain,
                count=count,
                last_updated=get_file_mod_time(path),
                level=governance_level(count, config.governance),
            )
        )
    return statuses
