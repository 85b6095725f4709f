"""Optimization suggestions for refining an ACH matrix."""

import logging

from .config import DEFAULT_CONFIG, EngineConfig
from .diagnostics import DiagnosticAnalyzer
from .exceptions import SuggestionError
from .matrix import AnalysisManager
from .models import (
    AnalysisSnapshot,
    DiagnosticValue,
    Hypothesis,
    Level,
    OptimizationSuggestion,
    SimilarityPair,
    SuggestionKind,
)
from .scoring import ACHScorer
from .similarity import SimilarityAnalyzer

logger = logging.getLogger(__name__)


def _excerpt(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class OptimizationAdvisor:
    """
    Suggest ways to simplify or strengthen the matrix.

    Suggestions come out in a fixed order: evidence removals, hypothesis
    merges, then matrix-level advice.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config
        self.diagnostics = DiagnosticAnalyzer(config)
        self.similarity = SimilarityAnalyzer(config)

    def suggest(
        self,
        snapshot: AnalysisSnapshot,
        diagnostics: list[DiagnosticValue] | None = None,
        similarities: list[SimilarityPair] | None = None,
    ) -> list[OptimizationSuggestion]:
        """
        Generate suggestions for a snapshot.

        Precomputed diagnostics and similarities are reused when given.
        """
        if diagnostics is None:
            diagnostics = self.diagnostics.analyze(snapshot)
        if similarities is None:
            similarities = self.similarity.analyze(snapshot)

        suggestions: list[OptimizationSuggestion] = []

        # 1. Low-value evidence
        for item in diagnostics:
            if item.diagnostic_value >= self.config.diagnostic_low:
                continue
            evidence = snapshot.get_evidence(item.evidence_id)
            text = evidence.text if evidence else item.evidence_id
            suggestions.append(OptimizationSuggestion(
                id=f"low-evidence-{item.evidence_id}",
                kind=SuggestionKind.REMOVE_EVIDENCE,
                title="Remove low-value evidence",
                description=f'Evidence "{_excerpt(text, 50)}" has low diagnostic value',
                targets=[item.evidence_id],
                severity=Level.MEDIUM,
                reason=(
                    f"Diagnostic value: {item.diagnostic_value:.2f}/"
                    f"{self.config.diagnostic_max:.1f} - it barely separates the hypotheses"
                ),
            ))

        # 2. Near-duplicate hypotheses
        for pair in similarities:
            if pair.similarity <= self.config.similarity_high:
                continue
            first = snapshot.get_hypothesis(pair.id_a)
            second = snapshot.get_hypothesis(pair.id_b)
            first_text = first.text if first else pair.id_a
            second_text = second.text if second else pair.id_b
            suggestions.append(OptimizationSuggestion(
                id=f"similar-hypotheses-{pair.id_a}-{pair.id_b}",
                kind=SuggestionKind.MERGE_HYPOTHESES,
                title="Merge similar hypotheses",
                description=(
                    f'Hypotheses "{_excerpt(first_text, 30)}" and '
                    f'"{_excerpt(second_text, 30)}" are highly similar'
                ),
                targets=[pair.id_a, pair.id_b],
                severity=Level.HIGH,
                reason=(
                    f"Similarity: {pair.similarity * 100:.1f}% - "
                    f"they score alike against the evidence"
                ),
            ))

        # 3. Incomplete matrix
        completion = ACHScorer.completion_rate(snapshot)
        if completion < self.config.completion_target:
            suggestions.append(OptimizationSuggestion(
                id="incomplete-matrix",
                kind=SuggestionKind.REVIEW_SCORES,
                title="Complete the matrix",
                description="The matrix is not fully scored; fill in the missing cells",
                targets=[],
                severity=Level.HIGH,
                reason=f"Completion: {completion:.1f}% - an incomplete matrix skews the results",
            ))

        # 4. Too little evidence
        if len(snapshot.evidence) < self.config.min_evidence:
            suggestions.append(OptimizationSuggestion(
                id="insufficient-evidence",
                kind=SuggestionKind.ADD_EVIDENCE,
                title="Add more evidence",
                description="There is little evidence; add more to improve the analysis",
                targets=[],
                severity=Level.MEDIUM,
                reason=(
                    f"Evidence count: {len(snapshot.evidence)} - "
                    f"at least 5-7 items make for an effective analysis"
                ),
            ))

        logger.debug(f"Generated {len(suggestions)} optimization suggestions")
        return suggestions

    @staticmethod
    def default_merge_text(manager: AnalysisManager, suggestion: OptimizationSuggestion) -> str:
        """Name proposed for the hypothesis created by a merge."""
        first = manager.get_hypothesis(suggestion.targets[0])
        second = manager.get_hypothesis(suggestion.targets[1])
        if first is None or second is None:
            raise SuggestionError("Merge targets no longer exist")
        return f"Merged: {first.text[:30]} / {second.text[:30]}"

    @staticmethod
    def apply(
        manager: AnalysisManager,
        suggestion: OptimizationSuggestion,
        merged_text: str | None = None,
    ) -> Hypothesis | bool:
        """
        Apply a suggestion to the analysis.

        Evidence removal and hypothesis merges go through the manager so
        their matrix cells are cascade-deleted. Advice-only suggestions
        change nothing and return False.

        Returns:
            The merged hypothesis, or whether evidence was removed
        """
        if suggestion.kind == SuggestionKind.REMOVE_EVIDENCE:
            if not suggestion.targets:
                raise SuggestionError("remove_evidence suggestion has no target")
            removed = manager.delete_evidence(suggestion.targets[0])
            if not removed:
                raise SuggestionError(f"Evidence {suggestion.targets[0]} no longer exists")
            return True

        if suggestion.kind == SuggestionKind.MERGE_HYPOTHESES:
            if len(suggestion.targets) < 2:
                raise SuggestionError("merge_hypotheses suggestion needs two targets")
            if merged_text is None:
                merged_text = OptimizationAdvisor.default_merge_text(manager, suggestion)
            if not merged_text.strip():
                raise SuggestionError("Merged hypothesis text must not be blank")
            first_id, second_id = suggestion.targets[0], suggestion.targets[1]
            if manager.get_hypothesis(first_id) is None or manager.get_hypothesis(second_id) is None:
                raise SuggestionError("Merge targets no longer exist")
            return manager.merge_hypotheses(first_id, second_id, merged_text.strip())

        logger.debug(f"Suggestion {suggestion.id} acknowledged without changes")
        return False
