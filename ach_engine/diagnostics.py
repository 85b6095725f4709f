"""Diagnostic value of evidence across hypotheses."""

import logging

from .config import DEFAULT_CONFIG, EngineConfig
from .matrix import numeric_matrix
from .models import AnalysisSnapshot, DiagnosticValue, Level

logger = logging.getLogger(__name__)

# Spread is measured around this score, not the sample mean
REFERENCE_SCORE = 1.0


class DiagnosticAnalyzer:
    """
    Score how well each evidence item discriminates between hypotheses.

    Uses the dense numeric matrix, so unscored cells count as 0 here even
    though scoring leaves them out.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config

    def analyze(self, snapshot: AnalysisSnapshot) -> list[DiagnosticValue]:
        """
        Diagnostic value of every evidence item, in evidence order.

        For each evidence E with s = |score(H, E)| over all hypotheses:
            variance  = mean((s - 1)^2)
            value     = clamp(0.4*variance + 0.3*max(s) + 0.3*mean(s), 0, 2)
        """
        if not snapshot.evidence:
            return []

        if not snapshot.hypotheses:
            return [
                DiagnosticValue(evidence_id=e.id, level=self._classify(0.0))
                for e in snapshot.evidence
            ]

        df = numeric_matrix(snapshot)
        magnitudes = df.abs()

        # Population statistics per evidence column
        spread = ((magnitudes - REFERENCE_SCORE) ** 2).mean(axis=0)
        max_scores = magnitudes.max(axis=0)
        avg_scores = magnitudes.mean(axis=0)
        signed_variance = df.var(axis=0, ddof=0)

        results = []
        for evidence in snapshot.evidence:
            variance = float(spread[evidence.id])
            max_score = float(max_scores[evidence.id])
            avg_score = float(avg_scores[evidence.id])

            raw = variance * 0.4 + max_score * 0.3 + avg_score * 0.3
            value = min(max(raw, 0.0), self.config.diagnostic_max)

            results.append(
                DiagnosticValue(
                    evidence_id=evidence.id,
                    variance=variance,
                    max_score=max_score,
                    avg_score=avg_score,
                    diagnostic_value=value,
                    score_variance=float(signed_variance[evidence.id]),
                    level=self._classify(value),
                )
            )

        logger.debug(
            f"Diagnostic values computed for {len(results)} evidence items "
            f"({sum(1 for r in results if r.is_low_value)} low)"
        )
        return results

    def ranked(self, snapshot: AnalysisSnapshot) -> list[DiagnosticValue]:
        """Diagnostic values sorted ascending, least useful evidence first."""
        return sorted(self.analyze(snapshot), key=lambda d: d.diagnostic_value)

    def low_value(self, snapshot: AnalysisSnapshot) -> list[DiagnosticValue]:
        """Evidence that barely separates the hypotheses."""
        return [d for d in self.analyze(snapshot) if d.is_low_value]

    def _classify(self, value: float) -> Level:
        if value < self.config.diagnostic_low:
            return Level.LOW
        if value >= self.config.diagnostic_high:
            return Level.HIGH
        return Level.MEDIUM
