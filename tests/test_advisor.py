"""
ACH Engine - Optimization Advisor Tests

Tests for suggestion generation and application.
"""

import pytest

from ach_engine.advisor import OptimizationAdvisor
from ach_engine.exceptions import SuggestionError
from ach_engine.matrix import AnalysisManager
from ach_engine.models import Level, OptimizationSuggestion, SuggestionKind


# === Fixtures ===


@pytest.fixture
def advisor():
    return OptimizationAdvisor()


@pytest.fixture
def weak_snapshot(make_snapshot):
    """
    Two identically scored hypotheses, one unscored evidence column.

    Triggers every kind of suggestion.
    """
    return make_snapshot(["h1", "h2"], ["e1", "e2"], {("h1", "e1"): 2, ("h2", "e1"): 2})


# === Tests ===


class TestSuggest:
    """Tests for OptimizationAdvisor.suggest."""

    def test_order(self, advisor, weak_snapshot):
        """Removals, merges, then matrix-level advice."""
        kinds = [s.kind for s in advisor.suggest(weak_snapshot)]
        assert kinds == [
            SuggestionKind.REMOVE_EVIDENCE,
            SuggestionKind.MERGE_HYPOTHESES,
            SuggestionKind.REVIEW_SCORES,
            SuggestionKind.ADD_EVIDENCE,
        ]

    def test_remove_evidence(self, advisor, weak_snapshot):
        suggestion = advisor.suggest(weak_snapshot)[0]
        assert suggestion.id == "low-evidence-e2"
        assert suggestion.targets == ["e2"]
        assert suggestion.severity == Level.MEDIUM
        assert "0.40" in suggestion.reason

    def test_merge_hypotheses(self, advisor, weak_snapshot):
        suggestion = advisor.suggest(weak_snapshot)[1]
        assert suggestion.targets == ["h1", "h2"]
        assert suggestion.severity == Level.HIGH
        assert "100.0%" in suggestion.reason

    def test_matrix_advice(self, advisor, weak_snapshot):
        review, add = advisor.suggest(weak_snapshot)[2:]
        assert review.targets == []
        assert review.severity == Level.HIGH
        assert "50.0%" in review.reason
        assert add.severity == Level.MEDIUM

    def test_sample_only_merges(self, advisor, sample_snapshot):
        suggestions = advisor.suggest(sample_snapshot)
        assert [(s.kind, s.targets) for s in suggestions] == [
            (SuggestionKind.MERGE_HYPOTHESES, ["h2", "h3"]),
        ]

    def test_uses_precomputed_inputs(self, advisor, weak_snapshot):
        """Empty diagnostics and similarities suppress removals and merges."""
        kinds = [s.kind for s in advisor.suggest(weak_snapshot, diagnostics=[], similarities=[])]
        assert kinds == [SuggestionKind.REVIEW_SCORES, SuggestionKind.ADD_EVIDENCE]

    def test_long_text_is_truncated(self, advisor, make_snapshot):
        from dataclasses import replace

        snapshot = make_snapshot(["h1"], ["e1"])
        long_evidence = replace(snapshot.evidence[0], text="x" * 80)
        snapshot = replace(snapshot, evidence=(long_evidence,))

        suggestion = advisor.suggest(snapshot)[0]
        assert "x" * 50 + "..." in suggestion.description


class TestApply:
    """Tests for OptimizationAdvisor.apply."""

    def test_remove_evidence(self, advisor, weak_snapshot):
        manager = AnalysisManager.from_snapshot(weak_snapshot)
        suggestion = advisor.suggest(weak_snapshot)[0]

        assert OptimizationAdvisor.apply(manager, suggestion) is True
        assert manager.get_evidence("e2") is None

    def test_remove_missing_evidence(self, advisor, weak_snapshot):
        manager = AnalysisManager.from_snapshot(weak_snapshot)
        suggestion = advisor.suggest(weak_snapshot)[0]
        OptimizationAdvisor.apply(manager, suggestion)

        with pytest.raises(SuggestionError):
            OptimizationAdvisor.apply(manager, suggestion)

    def test_merge_default_text(self, advisor, weak_snapshot):
        manager = AnalysisManager.from_snapshot(weak_snapshot)
        suggestion = advisor.suggest(weak_snapshot)[1]

        merged = OptimizationAdvisor.apply(manager, suggestion)

        assert merged.text == "Merged: Hypothesis h1 / Hypothesis h2"
        assert [h.id for h in manager.hypotheses] == [merged.id]
        assert merged.confidence == 50
        # Rows of both originals are gone
        assert manager.snapshot().filled_cells == 0

    def test_merge_custom_text(self, advisor, weak_snapshot):
        manager = AnalysisManager.from_snapshot(weak_snapshot)
        suggestion = advisor.suggest(weak_snapshot)[1]

        merged = OptimizationAdvisor.apply(manager, suggestion, merged_text="  Combined  ")
        assert merged.text == "Combined"

    def test_merge_blank_text(self, advisor, weak_snapshot):
        manager = AnalysisManager.from_snapshot(weak_snapshot)
        suggestion = advisor.suggest(weak_snapshot)[1]

        with pytest.raises(SuggestionError):
            OptimizationAdvisor.apply(manager, suggestion, merged_text="   ")
        assert len(manager.hypotheses) == 2

    def test_merge_missing_target(self, advisor, weak_snapshot):
        manager = AnalysisManager.from_snapshot(weak_snapshot)
        suggestion = advisor.suggest(weak_snapshot)[1]
        manager.delete_hypothesis("h2")

        with pytest.raises(SuggestionError):
            OptimizationAdvisor.apply(manager, suggestion, merged_text="Combined")

    def test_advice_only(self, advisor, weak_snapshot):
        manager = AnalysisManager.from_snapshot(weak_snapshot)
        before = manager.snapshot().to_dict()
        for suggestion in advisor.suggest(weak_snapshot)[2:]:
            assert OptimizationAdvisor.apply(manager, suggestion) is False
        assert manager.snapshot().to_dict() == before

    def test_remove_without_target(self):
        suggestion = OptimizationSuggestion(
            id="bad",
            kind=SuggestionKind.REMOVE_EVIDENCE,
            title="Remove",
            description="",
        )
        with pytest.raises(SuggestionError):
            OptimizationAdvisor.apply(AnalysisManager(), suggestion)
