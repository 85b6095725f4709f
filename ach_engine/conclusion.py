"""Tentative conclusion drawn from the hypothesis ranking."""

import logging

from .config import DEFAULT_CONFIG, EngineConfig
from .models import (
    AnalysisSnapshot,
    Conclusion,
    HypothesisScore,
    KeyEvidence,
    round_half_up,
)
from .scoring import ACHScorer

logger = logging.getLogger(__name__)


class ConclusionBuilder:
    """Summarize which hypothesis leads, why, and how confidently."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config

    def key_evidence(self, snapshot: AnalysisSnapshot, hypothesis_id: str) -> list[KeyEvidence]:
        """Evidence with the largest weighted impact on one hypothesis."""
        impacts = [
            KeyEvidence(
                evidence_id=e.id,
                impact=ACHScorer.contribution(
                    abs(snapshot.score_or_zero(hypothesis_id, e.id)),
                    e.weight,
                    e.reliability,
                ),
            )
            for e in snapshot.evidence
        ]
        impacts.sort(key=lambda k: k.impact, reverse=True)
        return impacts[: self.config.key_evidence_count]

    def overall_confidence(
        self,
        snapshot: AnalysisSnapshot,
        ranking: list[HypothesisScore] | None = None,
    ) -> float:
        """
        Confidence in the leading hypothesis, 0 to 100.

        Blends the lead over the runner-up, matrix completion and the
        amount of evidence. Zero with fewer than two hypotheses.
        """
        if ranking is None:
            ranking = ACHScorer.calculate_scores(snapshot)
        if len(ranking) < 2:
            return 0.0

        gap = ranking[0].total - ranking[1].total
        completion = ACHScorer.completion_rate(snapshot) / 100
        evidence_factor = len(snapshot.evidence) / 10

        confidence = min(
            ((gap / 2) * 0.4 + completion * 0.3 + evidence_factor * 0.3) * 100,
            100,
        )
        return max(confidence, 0.0)

    @staticmethod
    def confidence_label(confidence: float) -> str:
        if confidence >= 80:
            return "high"
        if confidence >= 60:
            return "medium"
        if confidence >= 40:
            return "low"
        return "very-low"

    def build(
        self,
        snapshot: AnalysisSnapshot,
        ranking: list[HypothesisScore] | None = None,
    ) -> Conclusion | None:
        """Conclusion for the current ranking, or None without hypotheses."""
        if ranking is None:
            ranking = ACHScorer.calculate_scores(snapshot)
        if not ranking:
            return None

        top = ranking[0]
        confidence = self.overall_confidence(snapshot, ranking)
        lead_margin = top.total - ranking[1].total if len(ranking) > 1 else None

        conclusion = Conclusion(
            primary_hypothesis_id=top.hypothesis_id,
            confidence=round_half_up(confidence),
            confidence_label=self.confidence_label(confidence),
            top_score=top.total,
            average=top.average,
            scored_count=top.scored_count,
            lead_margin=lead_margin,
            key_evidence=self.key_evidence(snapshot, top.hypothesis_id),
        )
        logger.debug(
            f"Conclusion: {top.hypothesis_id} leads with confidence {conclusion.confidence}%"
        )
        return conclusion
