"""ACH scoring algorithms."""

import logging
from typing import Mapping

from .models import AnalysisSnapshot, CellKey, Evidence, HypothesisScore

logger = logging.getLogger(__name__)


class ACHScorer:
    """
    Calculate weighted scores for hypotheses and rank them.

    Only scored cells contribute; an unscored cell is not the same as a
    neutral score of 0 and is left out of the average.
    """

    @staticmethod
    def contribution(score: int, weight: float, reliability: float) -> float:
        """Weighted contribution of a single matrix cell."""
        return score * (weight / 100) * (reliability / 100)

    @staticmethod
    def calculate_scores(
        snapshot: AnalysisSnapshot,
        matrix_override: Mapping[CellKey, int] | None = None,
        weight_override: Mapping[str, float] | None = None,
        reliability_override: Mapping[str, float] | None = None,
    ) -> list[HypothesisScore]:
        """
        Calculate scores for all hypotheses and rank them.

        Scoring approach:
        1. Sum score * weight/100 * reliability/100 over scored cells
        2. Average over the number of scored cells
        3. Rank by total, highest first; ties keep input order

        Args:
            snapshot: The analysis to score
            matrix_override: Cell values to use instead of the stored ones
            weight_override: Evidence weights to use instead of the stored ones
            reliability_override: Evidence reliabilities to use instead

        Returns:
            List of HypothesisScore objects, sorted by rank
        """
        if not snapshot.hypotheses:
            return []

        scores = [
            ACHScorer._score_hypothesis(
                snapshot,
                hypothesis.id,
                matrix_override,
                weight_override,
                reliability_override,
            )
            for hypothesis in snapshot.hypotheses
        ]

        # list.sort is stable, so equal totals keep input order
        scores.sort(key=lambda s: s.total, reverse=True)

        for rank, score in enumerate(scores, start=1):
            score.rank = rank

        return scores

    @staticmethod
    def _score_hypothesis(
        snapshot: AnalysisSnapshot,
        hypothesis_id: str,
        matrix_override: Mapping[CellKey, int] | None,
        weight_override: Mapping[str, float] | None,
        reliability_override: Mapping[str, float] | None,
    ) -> HypothesisScore:
        """Calculate score for a single hypothesis."""
        total = 0.0
        count = 0

        for evidence in snapshot.evidence:
            key = (hypothesis_id, evidence.id)
            if matrix_override and key in matrix_override:
                score = matrix_override[key]
            else:
                score = snapshot.matrix.get(key)
            if score is None:
                continue

            weight, reliability = _effective_factors(
                evidence, weight_override, reliability_override
            )
            total += ACHScorer.contribution(score, weight, reliability)
            count += 1

        return HypothesisScore(
            hypothesis_id=hypothesis_id,
            total=total,
            average=total / count if count > 0 else 0.0,
            scored_count=count,
        )

    @staticmethod
    def completion_rate(snapshot: AnalysisSnapshot) -> float:
        """Percentage of hypothesis x evidence cells that have been scored."""
        total_cells = snapshot.total_cells
        if total_cells == 0:
            return 0.0
        return snapshot.filled_cells / total_cells * 100


def _effective_factors(
    evidence: Evidence,
    weight_override: Mapping[str, float] | None,
    reliability_override: Mapping[str, float] | None,
) -> tuple[float, float]:
    weight = evidence.weight
    reliability = evidence.reliability
    if weight_override and evidence.id in weight_override:
        weight = weight_override[evidence.id]
    if reliability_override and evidence.id in reliability_override:
        reliability = reliability_override[evidence.id]
    return weight, reliability
