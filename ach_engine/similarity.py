"""Correlation-based similarity between hypotheses."""

import logging
import math

import numpy as np

from .config import DEFAULT_CONFIG, EngineConfig
from .matrix import numeric_matrix
from .models import AnalysisSnapshot, Level, SimilarityPair

logger = logging.getLogger(__name__)


def pearson_similarity(v1: np.ndarray, v2: np.ndarray) -> float:
    """
    Absolute Pearson correlation of two score vectors.

    Returns 0 for empty vectors or when either vector has no variance.
    """
    n = len(v1)
    if n == 0:
        return 0.0

    sum1 = float(np.sum(v1))
    sum2 = float(np.sum(v2))
    sum1_sq = float(np.sum(v1 * v1))
    sum2_sq = float(np.sum(v2 * v2))
    p_sum = float(np.sum(v1 * v2))

    num = p_sum - (sum1 * sum2 / n)
    den_sq = (sum1_sq - sum1 * sum1 / n) * (sum2_sq - sum2 * sum2 / n)
    # Rounding can leave a tiny negative product for constant vectors
    if den_sq <= 0:
        return 0.0
    den = math.sqrt(den_sq)
    if den == 0:
        return 0.0

    # Clip float drift so identical profiles report exactly 1
    return min(abs(num / den), 1.0)


class SimilarityAnalyzer:
    """Flag hypotheses whose evidence profiles are nearly interchangeable."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config

    def analyze(self, snapshot: AnalysisSnapshot) -> list[SimilarityPair]:
        """
        Similarity of every unordered hypothesis pair.

        Pairs are generated in input order (i < j); there are no self-pairs.
        """
        hypotheses = snapshot.hypotheses
        if len(hypotheses) < 2:
            return []

        df = numeric_matrix(snapshot)
        vectors = {h.id: df.loc[h.id].to_numpy(dtype=float) for h in hypotheses}

        pairs = []
        for i in range(len(hypotheses)):
            for j in range(i + 1, len(hypotheses)):
                id_a, id_b = hypotheses[i].id, hypotheses[j].id
                similarity = pearson_similarity(vectors[id_a], vectors[id_b])
                pairs.append(
                    SimilarityPair(
                        id_a=id_a,
                        id_b=id_b,
                        similarity=similarity,
                        level=self._classify(similarity),
                    )
                )

        logger.debug(f"Computed similarity for {len(pairs)} hypothesis pairs")
        return pairs

    def similarity(self, snapshot: AnalysisSnapshot, id_a: str, id_b: str) -> float | None:
        """Similarity of one pair, or None for a self-pair."""
        if id_a == id_b:
            return None
        df = numeric_matrix(snapshot)
        return pearson_similarity(
            df.loc[id_a].to_numpy(dtype=float),
            df.loc[id_b].to_numpy(dtype=float),
        )

    def notable(self, snapshot: AnalysisSnapshot) -> list[SimilarityPair]:
        """Pairs above the moderate threshold, most similar first."""
        pairs = [
            p for p in self.analyze(snapshot)
            if p.similarity > self.config.similarity_moderate
        ]
        return sorted(pairs, key=lambda p: p.similarity, reverse=True)

    def highly_similar(self, snapshot: AnalysisSnapshot) -> list[SimilarityPair]:
        """Merge candidates, in generation order."""
        return [p for p in self.analyze(snapshot) if p.level == Level.HIGH]

    def _classify(self, similarity: float) -> Level:
        if similarity > self.config.similarity_high:
            return Level.HIGH
        if similarity > self.config.similarity_moderate:
            return Level.MEDIUM
        return Level.LOW
