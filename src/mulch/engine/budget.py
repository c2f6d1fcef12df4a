"""Token-budget allocation across domains.

Records from every domain are ranked by type, then classification, then
recency (newest first), and admitted greedily while the running cost
stays within the budget.  The walk is a single pass in priority order:
a record that does not fit is skipped and never revisited, and no
attempt is made to pack the remaining slack optimally.  Kept records are handed back in their
original domain and record order, never in priority order.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field

from mulch.models.records import AnyRecord
from mulch.models.records import Classification
from mulch.models.records import RecordType

DEFAULT_BUDGET = 4000

TYPE_PRIORITY: tuple[RecordType, ...] = (
    RecordType.convention,
    RecordType.decision,
    RecordType.pattern,
    RecordType.guide,
    RecordType.failure,
    RecordType.reference,
)

CLASSIFICATION_PRIORITY: tuple[Classification, ...] = (
    Classification.foundational,
    Classification.tactical,
    Classification.observational,
)

_TYPE_RANK = {t: i for i, t in enumerate(TYPE_PRIORITY)}
_CLASSIFICATION_RANK = {c: i for i, c in enumerate(CLASSIFICATION_PRIORITY)}

RecordRenderer = Callable[[AnyRecord, str], str]
TokenEstimator = Callable[[str], int]


@dataclass
class DomainRecords:
    """Records belonging to one domain, in file order."""

    domain: str
    records: list[AnyRecord] = field(default_factory=list)


@dataclass
class BudgetResult:
    kept: list[DomainRecords]
    dropped_count: int
    dropped_domain_count: int


def estimate_tokens(text: str) -> int:
    """Crude token estimate: characters divided by four, rounded up."""
    return math.ceil(len(text) / 4)


def priority_key(record: AnyRecord) -> tuple[int, int, float]:
    """Sort key; smaller sorts first."""
    recorded = record.recorded_at_datetime()
    timestamp = recorded.timestamp() if recorded is not None else 0.0
    return (
        _TYPE_RANK[record.record_type],
        _CLASSIFICATION_RANK[record.classification],
        -timestamp,
    )


def apply_budget(
    domains: list[DomainRecords],
    budget: int,
    render: RecordRenderer,
    *,
    estimator: TokenEstimator = estimate_tokens,
) -> BudgetResult:
    """Select the highest-priority records whose total cost fits *budget*.

    Each record is charged ``estimator(render(record, domain))``.  A
    domain with no kept records is left out of ``kept``; it counts
    towards ``dropped_domain_count`` only if it had records to drop.
    """
    tagged = [
        (d_index, r_index, record)
        for d_index, group in enumerate(domains)
        for r_index, record in enumerate(group.records)
    ]
    tagged.sort(key=lambda item: priority_key(item[2]))

    used = 0
    kept: set[tuple[int, int]] = set()
    for d_index, r_index, record in tagged:
        cost = estimator(render(record, domains[d_index].domain))
        if used + cost <= budget:
            used += cost
            kept.add((d_index, r_index))

    result: list[DomainRecords] = []
    dropped_domains = 0
    for d_index, group in enumerate(domains):
        records = [
            record
            for r_index, record in enumerate(group.records)
            if (d_index, r_index) in kept
        ]
        if records:
            result.append(DomainRecords(domain=group.domain, records=records))
        elif group.records:
            dropped_domains += 1

    return BudgetResult(
        kept=result,
        dropped_count=len(tagged) - len(kept),
        dropped_domain_count=dropped_domains,
    )


def format_budget_summary(dropped_count: int, dropped_domain_count: int) -> str:
    """Trailer shown under a truncated listing."""
    plural = "" if dropped_count == 1 else "s"
    domain_part = ""
    if dropped_domain_count > 0:
        domain_plural = "" if dropped_domain_count == 1 else "s"
        domain_part = f" across {dropped_domain_count} domain{domain_plural}"
    return (
        f"... and {dropped_count} more record{plural}{domain_part} "
        "(raise the budget to show more)"
    )
