"""Mulch MCP server — FastMCP v2 tools over a project's expertise store.

Tools delegate to ``mulch.operations``; the blocking file work runs in
a worker thread.  Call ``configure(root)`` before using the server, or
start it with ``mulch-mcp --root <project>``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any

from fastmcp import FastMCP
from pydantic import ValidationError

from mulch import operations
from mulch.config import init_mulch_dir
from mulch.config import LockConfig
from mulch.config import read_config
from mulch.engine.budget import DEFAULT_BUDGET
from mulch.engine.budget import DomainRecords
from mulch.engine.budget import format_budget_summary
from mulch.engine.compaction import CompactionCandidate
from mulch.engine.health import CheckStatus
from mulch.engine.health import run_health_checks
from mulch.errors import MulchError
from mulch.models.records import AnyRecord
from mulch.models.records import RecordType
from mulch.models.schemas import AddDomainResult
from mulch.models.schemas import CheckEntry
from mulch.models.schemas import CompactionAnalysisResult
from mulch.models.schemas import CompactionGroup
from mulch.models.schemas import CompactResult
from mulch.models.schemas import DeleteResult
from mulch.models.schemas import DoctorResult
from mulch.models.schemas import DomainEntries
from mulch.models.schemas import DomainStatusEntry
from mulch.models.schemas import EditResult
from mulch.models.schemas import InitResult
from mulch.models.schemas import PrunedDomain
from mulch.models.schemas import PruneResult
from mulch.models.schemas import QueryResult
from mulch.models.schemas import RecordResult
from mulch.models.schemas import SearchResult
from mulch.models.schemas import StatusResult
from mulch.observability import timed
from mulch.store.codec import MalformedRecordError
from mulch.store.codec import record_to_dict
from mulch.store.codec import validate_record
from mulch.store.lock import LockTimeoutError

logger = logging.getLogger(__name__)

mcp = FastMCP("Mulch")

# ---------------------------------------------------------------------------
# Project root (set via configure())
# ---------------------------------------------------------------------------

_root: Path | None = None
_lock_config: LockConfig | None = None


def configure(root: str | Path, *, lock_config: LockConfig | None = None) -> None:
    """Point the server at a project root.

    Must be called before the MCP tools can function.  The root does not
    need a ``.mulch/`` directory yet; ``init_project`` creates it.
    """
    global _root, _lock_config
    _root = Path(root).resolve()
    _lock_config = lock_config


def _get_root() -> Path:
    """Return the configured project root or raise."""
    if _root is None:
        raise RuntimeError("Project root not configured. Call configure() first.")
    return _root


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Failures of the store itself rather than of the request.
_SERVER_ERRORS = (LockTimeoutError, MalformedRecordError)


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(part) for part in err.get("loc", ()))
    msg = str(err.get("msg", "Invalid input"))
    return f"{loc}: {msg}" if loc else msg


def _failure(exc: Exception) -> dict[str, str]:
    """Map a caught exception to ``status``/``error_code``/``message`` fields.

    Must be called from inside the ``except`` block.
    """
    if isinstance(exc, ValidationError):
        return {
            "status": "rejected",
            "error_code": "validation_error",
            "message": _validation_message(exc),
        }
    if isinstance(exc, _SERVER_ERRORS):
        logger.exception("Store failure")
        return {"status": "error", "error_code": exc.error_code, "message": str(exc)}
    if isinstance(exc, MulchError):
        logger.warning("Rejected request: %s", exc)
        return {"status": "rejected", "error_code": exc.error_code, "message": str(exc)}
    return {"status": "rejected", "error_code": "invalid_argument", "message": str(exc)}


def _record_payload(record: AnyRecord) -> dict[str, Any]:
    return record_to_dict(record)


def _entries(groups: list[DomainRecords]) -> list[DomainEntries]:
    return [
        DomainEntries(
            domain=group.domain,
            records=[_record_payload(r) for r in group.records],
        )
        for group in groups
    ]


def _group(candidate: CompactionCandidate) -> CompactionGroup:
    return CompactionGroup(
        domain=candidate.domain,
        type=candidate.type.value,
        count=len(candidate.records),
        ids=candidate.ids,
    )


def _record_type(value: str | None) -> RecordType | None:
    return RecordType(value) if value is not None else None


# ---------------------------------------------------------------------------
# Tools: project and domains
# ---------------------------------------------------------------------------


@mcp.tool
async def init_project() -> InitResult:
    """Create the .mulch/ directory, default config, README and .gitattributes entry.

    Safe to call on an already initialized project.
    """
    root = _get_root()
    with timed("mcp.init_project"):
        try:
            await asyncio.to_thread(init_mulch_dir, root)
            config = await asyncio.to_thread(read_config, root)
        except MulchError as exc:
            return InitResult(root=str(root), **_failure(exc))
        return InitResult(status="initialized", root=str(root), domains=list(config.domains))


@mcp.tool
async def add_domain(domain: str) -> AddDomainResult:
    """Register a new expertise domain and create its empty file.

    Args:
        domain: Domain name (letters, digits, '-' and '_').
    """
    root = _get_root()
    with timed("mcp.add_domain"):
        try:
            path = await asyncio.to_thread(
                operations.add_domain, root, domain, lock_config=_lock_config
            )
        except (MulchError, ValueError) as exc:
            return AddDomainResult(domain=domain, **_failure(exc))
        return AddDomainResult(status="created", domain=domain, path=str(path))


# ---------------------------------------------------------------------------
# Tools: mutations
# ---------------------------------------------------------------------------


@mcp.tool
async def record_expertise(
    domain: str,
    record: dict,
    force: bool = False,
) -> RecordResult:
    """Record one expertise entry in a domain.

    A record whose type and key field match an existing entry updates it
    in place (pattern, decision, reference, guide) or is skipped
    (convention, failure), unless ``force`` is set.

    Args:
        domain: Target domain.
        record: The record object; ``type`` selects the variant.
        force: Always append, even when a duplicate exists.
    """
    root = _get_root()
    with timed("mcp.record_expertise"):
        try:
            parsed = validate_record(record)
            outcome = await asyncio.to_thread(
                operations.record_expertise,
                root,
                domain,
                parsed,
                force=force,
                lock_config=_lock_config,
            )
        except (MulchError, ValueError) as exc:
            return RecordResult(domain=domain, **_failure(exc))
        return RecordResult(
            status=outcome.action.value,
            domain=domain,
            index=outcome.index,
            record=_record_payload(outcome.record),
        )


@mcp.tool
async def edit_expertise(domain: str, identifier: str, updates: dict) -> EditResult:
    """Update fields of one record, keeping its position.

    Args:
        domain: Domain containing the record.
        identifier: Full id, unique id prefix, or 1-based position.
        updates: Field values to set; null values are ignored.
    """
    root = _get_root()
    with timed("mcp.edit_expertise"):
        try:
            updated = await asyncio.to_thread(
                operations.edit_record,
                root,
                domain,
                identifier,
                updates,
                lock_config=_lock_config,
            )
        except (MulchError, ValueError) as exc:
            return EditResult(domain=domain, **_failure(exc))
        return EditResult(status="applied", domain=domain, record=_record_payload(updated))


@mcp.tool
async def delete_expertise(domain: str, identifier: str) -> DeleteResult:
    """Delete one record.

    Args:
        domain: Domain containing the record.
        identifier: Full id, unique id prefix, or 1-based position.
    """
    root = _get_root()
    with timed("mcp.delete_expertise"):
        try:
            outcome = await asyncio.to_thread(
                operations.delete_record,
                root,
                domain,
                identifier,
                lock_config=_lock_config,
            )
        except (MulchError, ValueError) as exc:
            return DeleteResult(domain=domain, **_failure(exc))
        return DeleteResult(
            status="applied",
            domain=domain,
            index=outcome.index,
            record=_record_payload(outcome.record),
        )


@mcp.tool
async def compact_expertise(
    domain: str,
    identifiers: list[str],
    replacement: dict | None = None,
) -> CompactResult:
    """Replace two or more records with a single foundational record.

    Args:
        domain: Domain containing the records.
        identifiers: Ids, id prefixes or 1-based positions of the records.
        replacement: Optional record to use instead of the automatic merge.
    """
    root = _get_root()
    with timed("mcp.compact_expertise"):
        try:
            parsed = validate_record(replacement) if replacement is not None else None
            outcome = await asyncio.to_thread(
                operations.compact_records,
                root,
                domain,
                identifiers,
                replacement=parsed,
                lock_config=_lock_config,
            )
        except (MulchError, ValueError) as exc:
            return CompactResult(domain=domain, **_failure(exc))
        return CompactResult(
            status="applied",
            domain=domain,
            removed=outcome.removed,
            record=_record_payload(outcome.record),
        )


# ---------------------------------------------------------------------------
# Tools: retrieval
# ---------------------------------------------------------------------------


@mcp.tool
async def query_expertise(
    domains: list[str] | None = None,
    record_type: str | None = None,
    budget: int | None = DEFAULT_BUDGET,
) -> QueryResult:
    """Return expertise records, highest priority first within a token budget.

    Args:
        domains: Domains to include (default: all configured).
        record_type: Only return records of this type.
        budget: Approximate token budget; null returns everything.
    """
    root = _get_root()
    with timed("mcp.query_expertise"):
        try:
            result = await asyncio.to_thread(
                operations.query_expertise,
                root,
                domains,
                record_type=_record_type(record_type),
                budget=budget,
            )
        except (MulchError, ValueError) as exc:
            return QueryResult(**_failure(exc))
        summary = None
        if result.dropped_count:
            summary = format_budget_summary(result.dropped_count, result.dropped_domain_count)
        return QueryResult(
            domains=_entries(result.kept),
            dropped_count=result.dropped_count,
            dropped_domain_count=result.dropped_domain_count,
            summary=summary,
        )


@mcp.tool
async def search_expertise(
    query: str,
    domain: str | None = None,
    record_type: str | None = None,
) -> SearchResult:
    """Case-insensitive substring search across record fields.

    Args:
        query: Text to look for.
        domain: Restrict the search to one domain.
        record_type: Restrict the search to one record type.
    """
    root = _get_root()
    with timed("mcp.search_expertise"):
        try:
            groups = await asyncio.to_thread(
                operations.search_expertise,
                root,
                query,
                domain=domain,
                record_type=_record_type(record_type),
            )
        except (MulchError, ValueError) as exc:
            return SearchResult(query=query, **_failure(exc))
        return SearchResult(
            query=query,
            total=sum(len(g.records) for g in groups),
            domains=_entries(groups),
        )


# ---------------------------------------------------------------------------
# Tools: maintenance
# ---------------------------------------------------------------------------


@mcp.tool
async def analyze_compaction() -> CompactionAnalysisResult:
    """List same-type groups that are worth compacting, without changing anything."""
    root = _get_root()
    with timed("mcp.analyze_compaction"):
        try:
            candidates = await asyncio.to_thread(operations.analyze_compaction, root)
        except (MulchError, ValueError) as exc:
            return CompactionAnalysisResult(**_failure(exc))
        return CompactionAnalysisResult(groups=[_group(c) for c in candidates])


@mcp.tool
async def auto_compact() -> CompactionAnalysisResult:
    """Merge every compaction candidate group in every domain."""
    root = _get_root()
    with timed("mcp.auto_compact"):
        try:
            results = await asyncio.to_thread(
                operations.auto_compact, root, lock_config=_lock_config
            )
        except (MulchError, ValueError) as exc:
            return CompactionAnalysisResult(**_failure(exc))
        return CompactionAnalysisResult(
            status="applied",
            groups=[
                CompactionGroup(domain=r.domain, type=r.type.value, count=r.count)
                for r in results
            ],
        )


@mcp.tool
async def prune_expertise(dry_run: bool = False) -> PruneResult:
    """Remove tactical and observational records past their shelf life.

    Args:
        dry_run: Report what would be pruned without writing.
    """
    root = _get_root()
    with timed("mcp.prune_expertise"):
        try:
            results = await asyncio.to_thread(
                operations.prune_records, root, dry_run=dry_run, lock_config=_lock_config
            )
        except (MulchError, ValueError) as exc:
            return PruneResult(dry_run=dry_run, **_failure(exc))
        return PruneResult(
            status="ok" if dry_run else "applied",
            dry_run=dry_run,
            total_pruned=sum(r.pruned for r in results),
            domains=[
                PrunedDomain(domain=r.domain, before=r.before, pruned=r.pruned, after=r.after)
                for r in results
            ],
        )


@mcp.tool
async def status() -> StatusResult:
    """Record counts, last update time and governance level per domain."""
    root = _get_root()
    with timed("mcp.status"):
        try:
            statuses = await asyncio.to_thread(operations.domain_status, root)
        except (MulchError, ValueError) as exc:
            return StatusResult(**_failure(exc))
        return StatusResult(
            domains=[
                DomainStatusEntry(
                    domain=s.domain,
                    count=s.count,
                    last_updated=s.last_updated.isoformat() if s.last_updated else None,
                    governance=s.level.value,
                )
                for s in statuses
            ]
        )


@mcp.tool
async def doctor() -> DoctorResult:
    """Run the project health checks."""
    root = _get_root()
    with timed("mcp.doctor"):
        checks = await asyncio.to_thread(run_health_checks, root)
        return DoctorResult(
            passed=all(c.status is not CheckStatus.fail for c in checks),
            checks=[
                CheckEntry(
                    name=c.name,
                    status=c.status.value,
                    message=c.message,
                    details=c.details,
                )
                for c in checks
            ],
        )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="mulch-mcp",
        description="Serve a project's mulch expertise store over MCP (stdio).",
    )
    parser.add_argument("--root", default=".", help="Project root (default: current directory).")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure(args.root)
    logger.info("Serving mulch project at %s", _get_root())
    mcp.run()


if __name__ == "__main__":
    main()
