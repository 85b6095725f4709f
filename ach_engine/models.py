"""Data models for the ACH engine."""

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Mapping

from .exceptions import InvalidScoreError, UnknownEvidenceError, UnknownHypothesisError

# Legal matrix cell values, from "strong oppose" to "strong support"
SCORE_VALUES = (-2, -1, 0, 1, 2)

CellKey = tuple[str, str]


class Priority(str, Enum):
    """Analyst priority of a hypothesis."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EvidenceType(str, Enum):
    """Descriptive evidence type. Never used by any scoring formula."""
    SUPPORTING = "supporting"
    OPPOSING = "opposing"
    NEUTRAL = "neutral"


class MatrixScore(int, Enum):
    """A single cell in the ACH matrix."""
    STRONG_OPPOSE = -2
    WEAK_OPPOSE = -1
    NEUTRAL = 0
    WEAK_SUPPORT = 1
    STRONG_SUPPORT = 2

    @property
    def symbol(self) -> str:
        return {
            -2: "--",
            -1: "-",
            0: "o",
            1: "+",
            2: "++",
        }[self.value]


class SensitivityKind(str, Enum):
    """Which input a sensitivity test perturbs."""
    SINGLE = "single"
    WEIGHT = "weight"
    RELIABILITY = "reliability"


class Level(str, Enum):
    """Three-step classification shared by several analyzers."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class StabilityLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very-low"


class QualityBand(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    MEDIUM = "medium"
    NEEDS_IMPROVEMENT = "needs-improvement"
    POOR = "poor"


class SuggestionKind(str, Enum):
    REMOVE_EVIDENCE = "remove_evidence"
    MERGE_HYPOTHESES = "merge_hypotheses"
    REVIEW_SCORES = "review_scores"
    ADD_EVIDENCE = "add_evidence"


def round_half_up(value: float) -> int:
    """Round .5 upwards, the way analyst-facing percentages are shown."""
    return int(math.floor(value + 0.5))


def validate_score(score) -> int:
    """Return score as an int, or raise InvalidScoreError."""
    # bool is an int subclass but never a meaningful score
    if isinstance(score, bool) or not isinstance(score, int) or score not in SCORE_VALUES:
        raise InvalidScoreError(score)
    return int(score)


def _plain(value: Any) -> Any:
    """Convert enums and tuples into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class _Serializable:
    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))


# === Input model ===


@dataclass
class Hypothesis(_Serializable):
    """A candidate explanation being evaluated."""
    id: str
    text: str
    confidence: int = 50
    priority: Priority = Priority.MEDIUM
    reasoning: str = ""


@dataclass
class Evidence(_Serializable):
    """An individual fact scored against each hypothesis."""
    id: str
    text: str
    type: EvidenceType = EvidenceType.NEUTRAL
    source: str = ""
    weight: int = 100
    reliability: int = 100
    notes: str = ""


@dataclass
class WorkflowProgress(_Serializable):
    """
    Workflow state owned by the collaborator.

    Only the completion checks read it; no formula that ranks hypotheses
    depends on it.
    """
    conclusion_count: int = 0
    sensitivity_runs: int = 0
    report_sections: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalysisSnapshot:
    """
    Immutable view of an analysis handed to every engine function.

    Every matrix cell must hold a legal score and name a hypothesis and an
    evidence item that are part of the snapshot.

    Raises:
        InvalidScoreError: a cell score outside -2..2
        UnknownHypothesisError / UnknownEvidenceError: dangling cell ids
    """
    hypotheses: tuple[Hypothesis, ...] = ()
    evidence: tuple[Evidence, ...] = ()
    matrix: Mapping[CellKey, int] = field(default_factory=dict)
    progress: WorkflowProgress = field(default_factory=WorkflowProgress)

    def __post_init__(self):
        hypothesis_ids = {h.id for h in self.hypotheses}
        evidence_ids = {e.id for e in self.evidence}
        for (hypothesis_id, evidence_id), score in self.matrix.items():
            validate_score(score)
            if hypothesis_id not in hypothesis_ids:
                raise UnknownHypothesisError(hypothesis_id)
            if evidence_id not in evidence_ids:
                raise UnknownEvidenceError(evidence_id)

    def score(self, hypothesis_id: str, evidence_id: str) -> int | None:
        """Score of a cell, or None when it has not been scored."""
        return self.matrix.get((hypothesis_id, evidence_id))

    def score_or_zero(self, hypothesis_id: str, evidence_id: str) -> int:
        return self.matrix.get((hypothesis_id, evidence_id), 0)

    def get_hypothesis(self, hypothesis_id: str) -> Hypothesis | None:
        for h in self.hypotheses:
            if h.id == hypothesis_id:
                return h
        return None

    def get_evidence(self, evidence_id: str) -> Evidence | None:
        for e in self.evidence:
            if e.id == evidence_id:
                return e
        return None

    @property
    def total_cells(self) -> int:
        return len(self.hypotheses) * len(self.evidence)

    @property
    def filled_cells(self) -> int:
        return len(self.matrix)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hypotheses": [h.to_dict() for h in self.hypotheses],
            "evidence": [e.to_dict() for e in self.evidence],
            "matrix": [
                {"hypothesis_id": h, "evidence_id": e, "score": s}
                for (h, e), s in self.matrix.items()
            ],
            "progress": self.progress.to_dict(),
        }


# === Derived results ===


@dataclass
class HypothesisScore(_Serializable):
    """Calculated score for a hypothesis."""
    hypothesis_id: str
    total: float = 0.0
    average: float = 0.0
    scored_count: int = 0
    rank: int = 0


@dataclass
class DiagnosticValue(_Serializable):
    """Discriminating power of one evidence item."""
    evidence_id: str
    variance: float = 0.0
    max_score: float = 0.0
    avg_score: float = 0.0
    diagnostic_value: float = 0.0
    score_variance: float = 0.0
    level: Level = Level.LOW

    @property
    def is_low_value(self) -> bool:
        return self.level == Level.LOW

    @property
    def is_high_value(self) -> bool:
        return self.level == Level.HIGH


@dataclass
class SimilarityPair(_Serializable):
    """Correlation-based closeness of two hypotheses."""
    id_a: str
    id_b: str
    similarity: float = 0.0
    level: Level = Level.LOW


@dataclass
class SensitivityResult(_Serializable):
    """Effect of one perturbation on one hypothesis."""
    hypothesis_id: str
    original_score: float
    new_score: float
    change: float
    change_percent: float
    original_rank: int
    new_rank: int
    rank_change: int


@dataclass
class SensitivityFinding(_Serializable):
    """Outcome of one perturbation across all hypotheses."""
    kind: SensitivityKind
    evidence_id: str
    original_value: int
    tested_value: int
    max_change_percent: float
    ranking_changes_count: int
    sensitivity_level: Level
    hypothesis_id: str | None = None
    results: list[SensitivityResult] = field(default_factory=list)


@dataclass
class StabilityMetrics(_Serializable):
    """How safely the leading hypothesis leads the runner-up."""
    top_hypothesis_id: str
    second_hypothesis_id: str
    score_gap: float
    relative_gap: float
    min_score_change_to_flip: float
    stability_level: StabilityLevel


@dataclass
class SensitivityReport(_Serializable):
    findings: list[SensitivityFinding] = field(default_factory=list)
    stability: StabilityMetrics | None = None
    level_counts: dict[str, int] = field(default_factory=dict)
    kind_counts: dict[str, int] = field(default_factory=dict)

    @property
    def test_count(self) -> int:
        return len(self.findings)


@dataclass
class CompletionCheck(_Serializable):
    """Completion score of one workflow step."""
    step: str
    name: str
    completed: bool = False
    score: float = 0.0
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class QualityMetrics(_Serializable):
    """Aggregate quality of an analysis. All values are percentages."""
    completeness: float = 0.0
    consistency: float = 0.0
    reliability: float = 0.0
    coverage: float = 0.0
    overall: float = 0.0

    def rounded(self) -> dict[str, int]:
        """Integer percentages as shown to the analyst."""
        return {k: round_half_up(v) for k, v in asdict(self).items()}


@dataclass
class AnalysisInsight(_Serializable):
    id: str
    type: str
    category: str
    title: str
    description: str
    impact: str
    recommendation: str


@dataclass
class QualityReport(_Serializable):
    metrics: QualityMetrics
    band: QualityBand
    checks: list[CompletionCheck] = field(default_factory=list)
    insights: list[AnalysisInsight] = field(default_factory=list)


@dataclass
class OptimizationSuggestion(_Serializable):
    """An action the analyst could take to refine the matrix."""
    id: str
    kind: SuggestionKind
    title: str
    description: str
    targets: list[str] = field(default_factory=list)
    severity: Level = Level.MEDIUM
    reason: str = ""


@dataclass
class KeyEvidence(_Serializable):
    evidence_id: str
    impact: float


@dataclass
class Conclusion(_Serializable):
    """Tentative conclusion drawn from the ranking."""
    primary_hypothesis_id: str
    confidence: int
    confidence_label: str
    top_score: float
    average: float
    scored_count: int
    lead_margin: float | None
    key_evidence: list[KeyEvidence] = field(default_factory=list)


@dataclass
class AnalysisReport(_Serializable):
    """Everything the engine derives from one snapshot."""
    ranking: list[HypothesisScore] = field(default_factory=list)
    completion_rate: float = 0.0
    diagnostics: list[DiagnosticValue] = field(default_factory=list)
    similarities: list[SimilarityPair] = field(default_factory=list)
    sensitivity: SensitivityReport = field(default_factory=SensitivityReport)
    quality: QualityReport | None = None
    suggestions: list[OptimizationSuggestion] = field(default_factory=list)
    conclusion: Conclusion | None = None

    @property
    def leading_hypothesis_id(self) -> str | None:
        if not self.ranking:
            return None
        return self.ranking[0].hypothesis_id
