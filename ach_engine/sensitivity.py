"""Sensitivity and stability analysis of the hypothesis ranking."""

import logging
from collections import Counter
from typing import Mapping

from .config import DEFAULT_CONFIG, EngineConfig
from .models import (
    AnalysisSnapshot,
    CellKey,
    HypothesisScore,
    Level,
    SensitivityFinding,
    SensitivityKind,
    SensitivityReport,
    SensitivityResult,
    StabilityLevel,
    StabilityMetrics,
)
from .scoring import ACHScorer

logger = logging.getLogger(__name__)


class SensitivityAnalyzer:
    """
    Measure how much the ranking moves when one input is perturbed.

    Three sweeps are run against a fixed baseline ranking:

    - single: every cell set to every other legal score
    - weight: every evidence weight set to every other candidate weight
    - reliability: the same for evidence reliability

    Each perturbation recomputes the whole ranking through ACHScorer.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config

    # --- Single tests ---

    def test_single_cell(
        self,
        snapshot: AnalysisSnapshot,
        hypothesis_id: str,
        evidence_id: str,
        new_score: int,
        baseline: list[HypothesisScore] | None = None,
    ) -> SensitivityFinding:
        """Re-rank with one matrix cell overridden."""
        original = snapshot.score_or_zero(hypothesis_id, evidence_id)
        override: dict[CellKey, int] = {(hypothesis_id, evidence_id): new_score}
        return self._finding(
            snapshot,
            SensitivityKind.SINGLE,
            evidence_id,
            original,
            new_score,
            baseline,
            hypothesis_id=hypothesis_id,
            matrix_override=override,
        )

    def test_weight(
        self,
        snapshot: AnalysisSnapshot,
        evidence_id: str,
        new_weight: int,
        baseline: list[HypothesisScore] | None = None,
    ) -> SensitivityFinding:
        """Re-rank with one evidence weight overridden."""
        evidence = snapshot.get_evidence(evidence_id)
        original = evidence.weight if evidence else 0
        return self._finding(
            snapshot,
            SensitivityKind.WEIGHT,
            evidence_id,
            original,
            new_weight,
            baseline,
            weight_override={evidence_id: new_weight},
        )

    def test_reliability(
        self,
        snapshot: AnalysisSnapshot,
        evidence_id: str,
        new_reliability: int,
        baseline: list[HypothesisScore] | None = None,
    ) -> SensitivityFinding:
        """Re-rank with one evidence reliability overridden."""
        evidence = snapshot.get_evidence(evidence_id)
        original = evidence.reliability if evidence else 0
        return self._finding(
            snapshot,
            SensitivityKind.RELIABILITY,
            evidence_id,
            original,
            new_reliability,
            baseline,
            reliability_override={evidence_id: new_reliability},
        )

    # --- Sweeps ---

    def sweep(self, snapshot: AnalysisSnapshot) -> list[SensitivityFinding]:
        """
        Run all three sweeps.

        Returns:
            Findings sorted by max change, largest first (stable)
        """
        baseline = ACHScorer.calculate_scores(snapshot)
        findings: list[SensitivityFinding] = []

        for hypothesis in snapshot.hypotheses:
            for evidence in snapshot.evidence:
                # An unscored cell behaves like 0 in every total
                current = snapshot.score_or_zero(hypothesis.id, evidence.id)
                for candidate in self.config.score_candidates:
                    if candidate != current:
                        findings.append(self.test_single_cell(
                            snapshot, hypothesis.id, evidence.id, candidate, baseline
                        ))

        for evidence in snapshot.evidence:
            for candidate in self.config.weight_candidates:
                if candidate != evidence.weight:
                    findings.append(
                        self.test_weight(snapshot, evidence.id, candidate, baseline)
                    )

        for evidence in snapshot.evidence:
            for candidate in self.config.reliability_candidates:
                if candidate != evidence.reliability:
                    findings.append(
                        self.test_reliability(snapshot, evidence.id, candidate, baseline)
                    )

        findings.sort(key=lambda f: f.max_change_percent, reverse=True)
        logger.debug(f"Sensitivity sweep ran {len(findings)} tests")
        return findings

    def analyze(self, snapshot: AnalysisSnapshot) -> SensitivityReport:
        """Full sweep plus stability of the leading hypothesis."""
        findings = self.sweep(snapshot)
        level_counts = Counter(f.sensitivity_level.value for f in findings)
        kind_counts = Counter(f.kind.value for f in findings)

        report = SensitivityReport(
            findings=findings,
            stability=self.stability(snapshot),
            level_counts={level.value: level_counts.get(level.value, 0) for level in Level},
            kind_counts={kind.value: kind_counts.get(kind.value, 0) for kind in SensitivityKind},
        )
        logger.info(
            f"Sensitivity analysis: {report.test_count} tests, "
            f"{report.level_counts[Level.HIGH.value]} highly sensitive"
        )
        return report

    def stability(
        self,
        snapshot: AnalysisSnapshot,
        ranking: list[HypothesisScore] | None = None,
    ) -> StabilityMetrics | None:
        """
        Compare the two leading hypotheses.

        relative_gap divides by the runner-up's raw total, so it goes
        negative when that total is negative. Returns None with fewer than
        two hypotheses.
        """
        if ranking is None:
            ranking = ACHScorer.calculate_scores(snapshot)
        if len(ranking) < 2:
            return None

        top, second = ranking[0], ranking[1]
        score_gap = top.total - second.total
        relative_gap = (score_gap / second.total) * 100 if second.total != 0 else 100.0

        return StabilityMetrics(
            top_hypothesis_id=top.hypothesis_id,
            second_hypothesis_id=second.hypothesis_id,
            score_gap=score_gap,
            relative_gap=relative_gap,
            min_score_change_to_flip=score_gap / 2,
            stability_level=self._stability_level(relative_gap),
        )

    # --- Internals ---

    def _finding(
        self,
        snapshot: AnalysisSnapshot,
        kind: SensitivityKind,
        evidence_id: str,
        original_value: int,
        tested_value: int,
        baseline: list[HypothesisScore] | None,
        hypothesis_id: str | None = None,
        matrix_override: Mapping[CellKey, int] | None = None,
        weight_override: Mapping[str, float] | None = None,
        reliability_override: Mapping[str, float] | None = None,
    ) -> SensitivityFinding:
        if baseline is None:
            baseline = ACHScorer.calculate_scores(snapshot)
        perturbed = ACHScorer.calculate_scores(
            snapshot,
            matrix_override=matrix_override,
            weight_override=weight_override,
            reliability_override=reliability_override,
        )
        results = compare_rankings(snapshot, baseline, perturbed)

        max_change = max((abs(r.change_percent) for r in results), default=0.0)
        ranking_changes = sum(1 for r in results if r.rank_change != 0)

        return SensitivityFinding(
            kind=kind,
            evidence_id=evidence_id,
            hypothesis_id=hypothesis_id,
            original_value=original_value,
            tested_value=tested_value,
            max_change_percent=max_change,
            ranking_changes_count=ranking_changes,
            sensitivity_level=self._sensitivity_level(max_change),
            results=results,
        )

    def _sensitivity_level(self, max_change: float) -> Level:
        if max_change > self.config.sensitivity_high:
            return Level.HIGH
        if max_change > self.config.sensitivity_medium:
            return Level.MEDIUM
        return Level.LOW

    def _stability_level(self, relative_gap: float) -> StabilityLevel:
        if relative_gap > self.config.stability_high:
            return StabilityLevel.HIGH
        if relative_gap > self.config.stability_medium:
            return StabilityLevel.MEDIUM
        if relative_gap > self.config.stability_low:
            return StabilityLevel.LOW
        return StabilityLevel.VERY_LOW


def compare_rankings(
    snapshot: AnalysisSnapshot,
    baseline: list[HypothesisScore],
    perturbed: list[HypothesisScore],
) -> list[SensitivityResult]:
    """Per-hypothesis change between two rankings, in input order."""
    before = {s.hypothesis_id: s for s in baseline}
    after = {s.hypothesis_id: s for s in perturbed}

    results = []
    for hypothesis in snapshot.hypotheses:
        old = before.get(hypothesis.id)
        new = after.get(hypothesis.id)
        original_score = old.total if old else 0.0
        new_score = new.total if new else 0.0
        change = new_score - original_score
        # A zero baseline has no meaningful relative change
        change_percent = (change / original_score) * 100 if original_score != 0 else 0.0
        original_rank = old.rank if old else 0
        new_rank = new.rank if new else 0

        results.append(
            SensitivityResult(
                hypothesis_id=hypothesis.id,
                original_score=original_score,
                new_score=new_score,
                change=change,
                change_percent=change_percent,
                original_rank=original_rank,
                new_rank=new_rank,
                rank_change=new_rank - original_rank,
            )
        )
    return results
