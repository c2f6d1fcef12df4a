"""Pydantic models for the MCP interface.

Every tool returns one of these.  Failures never raise through the
transport: they come back with ``status`` set to ``rejected`` (bad
input, missing domain, ambiguous id...) or ``error`` (lock timeout,
corrupt file), plus an ``error_code`` and a human readable ``message``.
Records are returned as their on-disk JSON objects.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import Field


class ToolResult(BaseModel):
    """Fields shared by every tool response."""

    status: str = Field(
        default="ok",
        description="Outcome status (ok, created, updated, skipped, applied, rejected, error).",
    )
    error_code: str | None = Field(
        default=None,
        description="Machine readable failure code when status is rejected or error.",
    )
    message: str | None = Field(
        default=None,
        description="Human readable explanation of a failure or notable outcome.",
    )


# ---------------------------------------------------------------------------
# Project and domains
# ---------------------------------------------------------------------------


class InitResult(ToolResult):
    """Response from init_project."""

    root: str = Field(description="Project root the .mulch/ directory lives in.")
    domains: list[str] = Field(
        default_factory=list,
        description="Domains configured after initialization.",
    )


class AddDomainResult(ToolResult):
    """Response from add_domain."""

    domain: str = Field(description="Name of the domain.")
    path: str | None = Field(
        default=None,
        description="Path of the domain's JSONL file.",
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class RecordResult(ToolResult):
    """Response from record_expertise.

    ``status`` is the write action: created, updated or skipped.
    """

    domain: str = Field(description="Domain the record was written to.")
    index: int | None = Field(
        default=None,
        description="1-based position of the stored (or duplicate) record.",
    )
    record: dict[str, Any] | None = Field(
        default=None,
        description="The record as stored, including its id.",
    )


class EditResult(ToolResult):
    """Response from edit_expertise."""

    domain: str = Field(description="Domain containing the record.")
    record: dict[str, Any] | None = Field(
        default=None,
        description="The record after the edit.",
    )


class DeleteResult(ToolResult):
    """Response from delete_expertise."""

    domain: str = Field(description="Domain the record was removed from.")
    index: int | None = Field(
        default=None,
        description="1-based position the record held before deletion.",
    )
    record: dict[str, Any] | None = Field(
        default=None,
        description="The removed record.",
    )


class CompactResult(ToolResult):
    """Response from compact_expertise."""

    domain: str = Field(description="Domain that was compacted.")
    removed: int = Field(default=0, description="Number of records replaced.")
    record: dict[str, Any] | None = Field(
        default=None,
        description="The foundational record appended in their place.",
    )


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


class DomainEntries(BaseModel):
    """Records of one domain, in output order."""

    domain: str
    records: list[dict[str, Any]] = Field(default_factory=list)


class QueryResult(ToolResult):
    """Response from query_expertise."""

    domains: list[DomainEntries] = Field(
        default_factory=list,
        description="Kept records grouped by domain, in requested domain order.",
    )
    dropped_count: int = Field(
        default=0,
        description="Records left out to fit the token budget.",
    )
    dropped_domain_count: int = Field(
        default=0,
        description="Domains that had records but lost all of them to the budget.",
    )
    summary: str | None = Field(
        default=None,
        description="Human readable note about dropped records, if any.",
    )


class SearchResult(ToolResult):
    """Response from search_expertise."""

    query: str = Field(description="The search string.")
    total: int = Field(default=0, description="Number of matching records.")
    domains: list[DomainEntries] = Field(
        default_factory=list,
        description="Matches grouped by domain; domains without matches are omitted.",
    )


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


class CompactionGroup(BaseModel):
    """A same-type group in one domain that was, or could be, merged."""

    domain: str
    type: str
    count: int
    ids: list[str] = Field(default_factory=list)


class CompactionAnalysisResult(ToolResult):
    """Response from analyze_compaction and auto_compact."""

    groups: list[CompactionGroup] = Field(default_factory=list)


class PrunedDomain(BaseModel):
    domain: str
    before: int
    pruned: int
    after: int


class PruneResult(ToolResult):
    """Response from prune_expertise."""

    dry_run: bool = False
    total_pruned: int = 0
    domains: list[PrunedDomain] = Field(default_factory=list)


class DomainStatusEntry(BaseModel):
    domain: str
    count: int
    last_updated: str | None = Field(
        default=None,
        description="ISO-8601 modification time of the domain file.",
    )
    governance: str = Field(description="ok, approaching, warn or over_hard_limit.")


class StatusResult(ToolResult):
    """Response from status."""

    domains: list[DomainStatusEntry] = Field(default_factory=list)


class CheckEntry(BaseModel):
    name: str
    status: str
    message: str
    details: list[str] = Field(default_factory=list)


class DoctorResult(ToolResult):
    """Response from doctor."""

    passed: bool = Field(
        default=True,
        description="False when any check failed.",
    )
    checks: list[CheckEntry] = Field(default_factory=list)
