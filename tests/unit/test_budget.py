"""Unit tests for token-budget allocation."""

from __future__ import annotations

from mulch.engine import apply_budget
from mulch.engine import DomainRecords
from mulch.engine import estimate_tokens
from mulch.engine import format_budget_summary
from mulch.engine import format_record_compact
from mulch.engine import priority_key
from mulch.models import ConventionRecord
from mulch.models import DecisionRecord
from mulch.models import FailureRecord
from mulch.models import GuideRecord
from mulch.models import PatternRecord
from mulch.models import ReferenceRecord

T1 = "2025-01-01T00:00:00.000Z"
T2 = "2025-03-01T00:00:00.000Z"


def _render(record, domain: str) -> str:
    return format_record_compact(record)


def _flat(_text: str) -> int:
    """Every record costs ten tokens."""
    return 10


def _convention(content: str, classification: str = "foundational", recorded_at: str = T1):
    return ConventionRecord(content=content, classification=classification, recorded_at=recorded_at)


def _reference(name: str, classification: str = "tactical"):
    return ReferenceRecord(
        name=name, description="d", classification=classification, recorded_at=T1
    )


# ---------------------------------------------------------------------------
# estimate_tokens
# ---------------------------------------------------------------------------


class TestEstimateTokens:
    def test_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2


# ---------------------------------------------------------------------------
# priority
# ---------------------------------------------------------------------------


class TestPriority:
    def test_type_order(self):
        records = [
            _reference("r"),
            FailureRecord(description="f", resolution="r", classification="tactical"),
            GuideRecord(name="g", description="d", classification="tactical"),
            PatternRecord(name="p", description="d", classification="tactical"),
            DecisionRecord(title="d", rationale="r", classification="tactical"),
            _convention("c", "tactical"),
        ]
        ordered = sorted(records, key=priority_key)
        assert [r.type for r in ordered] == [
            "convention",
            "decision",
            "pattern",
            "guide",
            "failure",
            "reference",
        ]

    def test_classification_then_recency(self):
        old_tactical = _convention("a", "tactical", T1)
        new_tactical = _convention("b", "tactical", T2)
        foundational = _convention("c", "foundational", T1)
        observational = _convention("d", "observational", T2)
        ordered = sorted(
            [observational, old_tactical, foundational, new_tactical], key=priority_key
        )
        assert ordered == [foundational, new_tactical, old_tactical, observational]


# ---------------------------------------------------------------------------
# apply_budget
# ---------------------------------------------------------------------------


class TestApplyBudget:
    def test_zero_budget_keeps_nothing(self):
        domains = [
            DomainRecords("cli", [_convention("a"), _convention("b")]),
            DomainRecords("api", [_reference("r")]),
        ]
        result = apply_budget(domains, 0, _render, estimator=_flat)
        assert result.kept == []
        assert result.dropped_count == 3
        assert result.dropped_domain_count == 2

    def test_ample_budget_keeps_everything_in_input_order(self):
        cli = [_reference("r"), _convention("a")]
        api = [_convention("b")]
        result = apply_budget(
            [DomainRecords("cli", cli), DomainRecords("api", api)], 1000, _render, estimator=_flat
        )
        assert [d.domain for d in result.kept] == ["cli", "api"]
        assert result.kept[0].records == cli
        assert result.kept[1].records == api
        assert result.dropped_count == 0
        assert result.dropped_domain_count == 0

    def test_domain_losing_all_records_is_dropped(self):
        cli = [
            _convention("Use tabs"),
            _reference("Old runbook", "observational"),
            DecisionRecord(title="Use click", rationale="r", classification="foundational", recorded_at=T1),
        ]
        api = [_reference("Endpoint list")]
        result = apply_budget(
            [DomainRecords("cli", cli), DomainRecords("api", api)], 20, _render, estimator=_flat
        )
        assert [d.domain for d in result.kept] == ["cli"]
        assert result.kept[0].records == [cli[0], cli[2]]
        assert result.dropped_count == 2
        assert result.dropped_domain_count == 1

    def test_kept_records_keep_file_order_not_priority_order(self):
        cli = [_reference("r"), _convention("a")]
        result = apply_budget([DomainRecords("cli", cli)], 20, _render, estimator=_flat)
        assert result.kept[0].records == cli

    def test_newest_wins_a_tight_budget(self):
        old = _convention("old", "tactical", T1)
        new = _convention("new", "tactical", T2)
        result = apply_budget([DomainRecords("cli", [old, new])], 10, _render, estimator=_flat)
        assert result.kept[0].records == [new]

    def test_oversized_record_is_skipped_and_walk_continues(self):
        big = _convention("big")
        small = _reference("r")

        def estimator(text: str) -> int:
            return 60 if text.startswith("- [convention]") else 5

        result = apply_budget(
            [DomainRecords("cli", [big, small])], 50, _render, estimator=estimator
        )
        assert result.kept[0].records == [small]
        assert result.dropped_count == 1

    def test_cost_is_charged_on_rendered_text(self):
        seen: list[str] = []

        def estimator(text: str) -> int:
            seen.append(text)
            return 1

        record = _convention("Use tabs")
        apply_budget([DomainRecords("cli", [record])], 10, _render, estimator=estimator)
        assert seen == ["- [convention] Use tabs"]

    def test_empty_domain_is_omitted_but_not_counted(self):
        result = apply_budget(
            [DomainRecords("cli", [_convention("a")]), DomainRecords("api", [])],
            100,
            _render,
            estimator=_flat,
        )
        assert [d.domain for d in result.kept] == ["cli"]
        assert result.dropped_domain_count == 0


# ---------------------------------------------------------------------------
# format_budget_summary
# ---------------------------------------------------------------------------


class TestFormatBudgetSummary:
    def test_singular(self):
        assert format_budget_summary(1, 0) == (
            "... and 1 more record (raise the budget to show more)"
        )

    def test_with_domains(self):
        assert format_budget_summary(5, 2) == (
            "... and 5 more records across 2 domains (raise the budget to show more)"
        )
