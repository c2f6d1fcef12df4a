"""Engine domain — pure decision logic over in-memory record sequences."""

from mulch.engine.budget import apply_budget
from mulch.engine.budget import BudgetResult
from mulch.engine.budget import DEFAULT_BUDGET
from mulch.engine.budget import DomainRecords
from mulch.engine.budget import estimate_tokens
from mulch.engine.budget import format_budget_summary
from mulch.engine.budget import priority_key
from mulch.engine.compaction import compact
from mulch.engine.compaction import CompactionCandidate
from mulch.engine.compaction import CompactionError
from mulch.engine.compaction import find_compaction_candidates
from mulch.engine.compaction import merge_records
from mulch.engine.dedup import DuplicateMatch
from mulch.engine.dedup import find_duplicate
from mulch.engine.dedup import plan_write
from mulch.engine.dedup import WriteAction
from mulch.engine.dedup import WritePlan
from mulch.engine.formatting import format_record_compact
from mulch.engine.formatting import record_summary
from mulch.engine.health import CheckStatus
from mulch.engine.health import governance_level
from mulch.engine.health import GovernanceLevel
from mulch.engine.health import HealthCheck
from mulch.engine.health import run_health_checks
from mulch.engine.pruning import is_stale
from mulch.engine.pruning import split_stale
from mulch.engine.resolver import AmbiguousIdentifierError
from mulch.engine.resolver import RecordNotFoundError
from mulch.engine.resolver import resolve_identifier
from mulch.engine.resolver import resolve_record_id
from mulch.engine.search import filter_by_type
from mulch.engine.search import search_records

__all__ = [
    "AmbiguousIdentifierError",
    "BudgetResult",
    "CheckStatus",
    "CompactionCandidate",
    "CompactionError",
    "DEFAULT_BUDGET",
    "DomainRecords",
    "DuplicateMatch",
    "GovernanceLevel",
    "HealthCheck",
    "RecordNotFoundError",
    "WriteAction",
    "WritePlan",
    "apply_budget",
    "compact",
    "estimate_tokens",
    "filter_by_type",
    "find_compaction_candidates",
    "find_duplicate",
    "format_budget_summary",
    "format_record_compact",
    "governance_level",
    "is_stale",
    "merge_records",
    "plan_write",
    "priority_key",
    "record_summary",
    "resolve_identifier",
    "resolve_record_id",
    "run_health_checks",
    "search_records",
    "split_stale",
]
