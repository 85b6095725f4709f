"""Quality metrics, completion checks and insights for an analysis."""

import logging

from .config import DEFAULT_CONFIG, EngineConfig
from .models import (
    AnalysisInsight,
    AnalysisSnapshot,
    CompletionCheck,
    EvidenceType,
    QualityBand,
    QualityMetrics,
    QualityReport,
    round_half_up,
)
from .scoring import ACHScorer

logger = logging.getLogger(__name__)

REPORT_SECTION_SCORES = {"summary": 33, "analysis": 33, "conclusions": 34}


class QualityAnalyzer:
    """
    Assess how complete and trustworthy an analysis is.

    Completeness is the mean of per-step completion checks; consistency,
    reliability and coverage come straight from the matrix and evidence.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config

    # --- Completion checks ---

    def completion_checks(self, snapshot: AnalysisSnapshot) -> list[CompletionCheck]:
        """Score each workflow step from 0 to 100."""
        matrix_check = self._check_matrix(snapshot)
        return [
            self._check_hypotheses(snapshot),
            self._check_evidence(snapshot),
            matrix_check,
            self._check_refine(matrix_check),
            self._check_conclusion(snapshot),
            self._check_sensitivity(snapshot),
            self._check_report(snapshot),
        ]

    def _check_hypotheses(self, snapshot: AnalysisSnapshot) -> CompletionCheck:
        count = len(snapshot.hypotheses)
        check = CompletionCheck(step="hypotheses", name="Hypotheses", completed=count >= 3)

        if count == 0:
            check.score = 0
            check.issues.append("No hypotheses added")
            check.recommendations.append("Add at least 3-5 mutually exclusive hypotheses")
        elif count < 3:
            check.score = 50
            check.issues.append("Few hypotheses")
            check.recommendations.append("Add more hypotheses to broaden the analysis")
        else:
            check.score = 100
            if count > 7:
                check.issues.append("Many hypotheses may slow the analysis down")
                check.recommendations.append("Consider merging similar hypotheses")
        return check

    def _check_evidence(self, snapshot: AnalysisSnapshot) -> CompletionCheck:
        evidence = snapshot.evidence
        check = CompletionCheck(step="evidence", name="Evidence", completed=len(evidence) >= 5)

        if not evidence:
            check.score = 0
            check.issues.append("No evidence collected")
            check.recommendations.append("Collect evidence for and against each hypothesis")
        elif len(evidence) < 5:
            check.score = 60
            check.issues.append("Little evidence")
            check.recommendations.append("Collect more evidence to make the analysis more reliable")
        else:
            check.score = 100

            # Evidence type is only inspected for balance, never scored
            types = {e.type for e in evidence}
            if EvidenceType.SUPPORTING not in types:
                check.issues.append("No supporting evidence")
                check.recommendations.append("Add supporting evidence")
            if EvidenceType.OPPOSING not in types:
                check.issues.append("No opposing evidence")
                check.recommendations.append("Add opposing evidence")

            if mean_reliability(snapshot) < 60:
                check.issues.append("Low average evidence reliability")
                check.recommendations.append("Improve the reliability of evidence sources")
        return check

    def _check_matrix(self, snapshot: AnalysisSnapshot) -> CompletionCheck:
        rate = ACHScorer.completion_rate(snapshot)
        check = CompletionCheck(
            step="matrix",
            name="Matrix",
            completed=rate >= self.config.completion_target,
            score=rate,
        )

        if rate == 0:
            check.issues.append("Matrix scoring has not started")
            check.recommendations.append("Score how each evidence item relates to each hypothesis")
        elif rate < 50:
            check.issues.append("Matrix is mostly unscored")
            check.recommendations.append("Score more matrix cells")
        elif rate < self.config.completion_target:
            check.issues.append("Matrix is partly unscored")
            check.recommendations.append("Score the remaining matrix cells")
        return check

    def _check_refine(self, matrix_check: CompletionCheck) -> CompletionCheck:
        check = CompletionCheck(
            step="refine",
            name="Refine",
            completed=matrix_check.completed,
            score=100 if matrix_check.completed else 0,
        )
        if not matrix_check.completed:
            check.issues.append("Matrix is incomplete and cannot be refined")
            check.recommendations.append("Finish scoring the matrix first")
        return check

    def _check_conclusion(self, snapshot: AnalysisSnapshot) -> CompletionCheck:
        has_conclusion = snapshot.progress.conclusion_count > 0
        check = CompletionCheck(
            step="conclusion",
            name="Conclusion",
            completed=has_conclusion,
            score=100 if has_conclusion else 0,
        )
        if not has_conclusion:
            check.issues.append("No conclusion drawn")
            check.recommendations.append("Draw a tentative conclusion from the matrix")
        return check

    def _check_sensitivity(self, snapshot: AnalysisSnapshot) -> CompletionCheck:
        ran = snapshot.progress.sensitivity_runs > 0
        check = CompletionCheck(
            step="sensitivity",
            name="Sensitivity",
            completed=ran,
            score=100 if ran else 0,
        )
        if not ran:
            check.issues.append("No sensitivity analysis performed")
            check.recommendations.append("Check how sensitive the conclusion is to key evidence")
        return check

    def _check_report(self, snapshot: AnalysisSnapshot) -> CompletionCheck:
        sections = snapshot.progress.report_sections
        score = sum(
            points for name, points in REPORT_SECTION_SCORES.items() if sections.get(name)
        )
        check = CompletionCheck(step="report", name="Report", completed=score >= 67, score=score)
        if score == 0:
            check.issues.append("No report generated")
            check.recommendations.append("Generate a complete analysis report")
        return check

    # --- Metrics ---

    def metrics(
        self,
        snapshot: AnalysisSnapshot,
        checks: list[CompletionCheck] | None = None,
    ) -> QualityMetrics:
        """
        Completeness, consistency, reliability and coverage, plus their mean.

        Values are unrounded; QualityMetrics.rounded() gives display values.
        """
        if checks is None:
            checks = self.completion_checks(snapshot)

        completeness = sum(c.score for c in checks) / len(checks)
        consistency = consistency_score(list(snapshot.matrix.values()))
        reliability = mean_reliability(snapshot)
        coverage = ACHScorer.completion_rate(snapshot)
        overall = (completeness + consistency + reliability + coverage) / 4

        return QualityMetrics(
            completeness=completeness,
            consistency=consistency,
            reliability=reliability,
            coverage=coverage,
            overall=overall,
        )

    def band(self, overall: float) -> QualityBand:
        """Quality band of an overall score, judged on its rounded value."""
        score = round_half_up(overall)
        bands = self.config.quality_bands
        if score >= bands["excellent"]:
            return QualityBand.EXCELLENT
        if score >= bands["good"]:
            return QualityBand.GOOD
        if score >= bands["medium"]:
            return QualityBand.MEDIUM
        if score >= bands["needs-improvement"]:
            return QualityBand.NEEDS_IMPROVEMENT
        return QualityBand.POOR

    # --- Insights ---

    def insights(
        self,
        snapshot: AnalysisSnapshot,
        metrics: QualityMetrics | None = None,
    ) -> list[AnalysisInsight]:
        """Strengths, weaknesses, opportunities and risks worth pointing out."""
        if metrics is None:
            metrics = self.metrics(snapshot)
        shown = metrics.rounded()
        insights = []

        if shown["reliability"] < 60:
            insights.append(AnalysisInsight(
                id="low-reliability",
                type="weakness",
                category="data",
                title="Low evidence reliability",
                description=f"Average evidence reliability is {shown['reliability']}%, below the recommended level",
                impact="high",
                recommendation="Re-assess evidence sources and the reliability of key evidence",
            ))

        if shown["coverage"] < self.config.completion_target:
            insights.append(AnalysisInsight(
                id="incomplete-matrix",
                type="risk",
                category="method",
                title="Incomplete matrix",
                description=f"Matrix coverage is {shown['coverage']}%, which may distort the results",
                impact="high",
                recommendation="Score every matrix cell to make the analysis comprehensive",
            ))

        if len(snapshot.hypotheses) >= 3 and len(snapshot.evidence) >= 5:
            insights.append(AnalysisInsight(
                id="good-foundation",
                type="strength",
                category="process",
                title="Solid foundation",
                description=(
                    f"{len(snapshot.hypotheses)} hypotheses and "
                    f"{len(snapshot.evidence)} evidence items give a good basis"
                ),
                impact="medium",
                recommendation="Keep collecting high-quality hypotheses and evidence",
            ))

        if snapshot.progress.conclusion_count > 0:
            insights.append(AnalysisInsight(
                id="conclusions-available",
                type="opportunity",
                category="conclusion",
                title="Conclusion available",
                description="A conclusion has been drawn and can support decisions",
                impact="medium",
                recommendation="Turn the conclusion into a concrete plan of action",
            ))

        return insights

    def analyze(self, snapshot: AnalysisSnapshot) -> QualityReport:
        checks = self.completion_checks(snapshot)
        metrics = self.metrics(snapshot, checks)
        report = QualityReport(
            metrics=metrics,
            band=self.band(metrics.overall),
            checks=checks,
            insights=self.insights(snapshot, metrics),
        )
        logger.debug(f"Quality: overall {metrics.overall:.1f} ({report.band.value})")
        return report


def consistency_score(values: list[int]) -> float:
    """
    100 - 25 * mean over every score v_i of mean_j((v_j - v_i)^2).

    Each score's spread is measured around itself rather than around the
    sample mean. Returns 0 for an empty matrix.
    """
    if not values:
        return 0.0

    n = len(values)
    total = 0.0
    for score in values:
        total += sum((v - score) ** 2 for v in values) / n
    return 100 - (total / n) * 25


def mean_reliability(snapshot: AnalysisSnapshot) -> float:
    if not snapshot.evidence:
        return 0.0
    return sum(e.reliability for e in snapshot.evidence) / len(snapshot.evidence)
