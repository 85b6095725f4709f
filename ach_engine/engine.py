"""ACH engine facade - runs every analyzer over one snapshot."""

import logging
from typing import Any

from .advisor import OptimizationAdvisor
from .conclusion import ConclusionBuilder
from .config import DEFAULT_CONFIG, EngineConfig, load_config
from .diagnostics import DiagnosticAnalyzer
from .export import ResultExporter
from .models import AnalysisReport, AnalysisSnapshot
from .quality import QualityAnalyzer
from .schemas import parse_snapshot
from .scoring import ACHScorer
from .sensitivity import SensitivityAnalyzer
from .similarity import SimilarityAnalyzer

logger = logging.getLogger(__name__)


class ACHEngine:
    """
    Analysis of Competing Hypotheses engine.

    Stateless apart from its configuration: the collaborator passes a fresh
    snapshot after every mutation and gets plain result objects back.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or DEFAULT_CONFIG
        self.scorer = ACHScorer()
        self.diagnostics = DiagnosticAnalyzer(self.config)
        self.similarity = SimilarityAnalyzer(self.config)
        self.sensitivity = SensitivityAnalyzer(self.config)
        self.quality = QualityAnalyzer(self.config)
        self.advisor = OptimizationAdvisor(self.config)
        self.conclusions = ConclusionBuilder(self.config)
        self.exporter = ResultExporter()

    @classmethod
    def from_config_file(cls, config_path: str | None = None) -> "ACHEngine":
        return cls(load_config(config_path))

    def analyze(self, snapshot: AnalysisSnapshot, include_sensitivity: bool = True) -> AnalysisReport:
        """
        Run the full pipeline.

        Scoring runs first; diagnostics, similarity and sensitivity each
        build on the snapshot and ranking; quality and suggestions come last.
        """
        ranking = self.scorer.calculate_scores(snapshot)
        diagnostics = self.diagnostics.analyze(snapshot)
        similarities = self.similarity.analyze(snapshot)

        report = AnalysisReport(
            ranking=ranking,
            completion_rate=self.scorer.completion_rate(snapshot),
            diagnostics=diagnostics,
            similarities=similarities,
            quality=self.quality.analyze(snapshot),
            suggestions=self.advisor.suggest(snapshot, diagnostics, similarities),
            conclusion=self.conclusions.build(snapshot, ranking),
        )
        if include_sensitivity:
            report.sensitivity = self.sensitivity.analyze(snapshot)
        else:
            report.sensitivity.stability = self.sensitivity.stability(snapshot, ranking)

        logger.info(
            f"Analyzed {len(snapshot.hypotheses)} hypotheses x {len(snapshot.evidence)} evidence: "
            f"leader={report.leading_hypothesis_id}, "
            f"{len(report.suggestions)} suggestions, "
            f"{report.sensitivity.test_count} sensitivity tests"
        )
        return report

    def analyze_payload(self, data: dict[str, Any], include_sensitivity: bool = True) -> AnalysisReport:
        """Validate a raw payload, then analyze it."""
        return self.analyze(parse_snapshot(data), include_sensitivity=include_sensitivity)

    def export(self, snapshot: AnalysisSnapshot, report: AnalysisReport, fmt: str = "json") -> str:
        return self.exporter.export(snapshot, report, fmt)
