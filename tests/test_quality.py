"""
ACH Engine - Quality Tests

Tests for completion checks, quality metrics, bands and insights.
"""

import pytest

from ach_engine.models import EvidenceType, QualityBand, WorkflowProgress
from ach_engine.quality import QualityAnalyzer, consistency_score, mean_reliability


# === Fixtures ===


@pytest.fixture
def analyzer():
    return QualityAnalyzer()


@pytest.fixture
def finished_snapshot(make_snapshot):
    """Three hypotheses, five evidence items, every cell scored +1, workflow done."""
    hypotheses = ["h1", "h2", "h3"]
    evidence = [
        ("e1", 100, 100, EvidenceType.SUPPORTING),
        ("e2", 100, 100, EvidenceType.OPPOSING),
        ("e3", 100, 100, EvidenceType.NEUTRAL),
        ("e4", 100, 100, EvidenceType.SUPPORTING),
        ("e5", 100, 100, EvidenceType.OPPOSING),
    ]
    matrix = {(h, e[0]): 1 for h in hypotheses for e in evidence}
    progress = WorkflowProgress(
        conclusion_count=1,
        sensitivity_runs=2,
        report_sections={"summary": True, "analysis": True, "conclusions": True},
    )
    return make_snapshot(hypotheses, evidence, matrix, progress)


# === Tests ===


class TestConsistencyScore:
    """Tests for consistency_score."""

    def test_empty(self):
        assert consistency_score([]) == 0

    def test_uniform_scores(self):
        assert consistency_score([1, 1, 1]) == 100

    def test_opposed_scores(self):
        """Each score sits 4 away from the other: mean squared spread 8."""
        assert consistency_score([2, -2]) == pytest.approx(-100.0)

    def test_sample_matrix(self, sample_snapshot):
        values = list(sample_snapshot.matrix.values())
        assert consistency_score(values) == pytest.approx(100 - 8500 / 81)


class TestCompletionChecks:
    """Tests for the seven workflow checks."""

    def test_step_order(self, analyzer, sample_snapshot):
        steps = [c.step for c in analyzer.completion_checks(sample_snapshot)]
        assert steps == ["hypotheses", "evidence", "matrix", "refine", "conclusion", "sensitivity", "report"]

    def test_sample_scores(self, analyzer, sample_snapshot):
        scores = {c.step: c.score for c in analyzer.completion_checks(sample_snapshot)}
        assert scores == {
            "hypotheses": 100,
            "evidence": 60,
            "matrix": pytest.approx(75.0),
            "refine": 100,
            "conclusion": 0,
            "sensitivity": 0,
            "report": 0,
        }

    @pytest.mark.parametrize("count,expected", [(0, 0), (2, 50), (3, 100)])
    def test_hypothesis_check(self, analyzer, make_snapshot, count, expected):
        snapshot = make_snapshot([f"h{i}" for i in range(count)], [])
        assert analyzer.completion_checks(snapshot)[0].score == expected

    def test_too_many_hypotheses_flagged(self, analyzer, make_snapshot):
        check = analyzer.completion_checks(make_snapshot([f"h{i}" for i in range(8)], []))[0]
        assert check.score == 100
        assert check.issues

    @pytest.mark.parametrize("count,expected", [(0, 0), (4, 60), (5, 100)])
    def test_evidence_check(self, analyzer, make_snapshot, count, expected):
        snapshot = make_snapshot([], [f"e{i}" for i in range(count)])
        assert analyzer.completion_checks(snapshot)[1].score == expected

    def test_evidence_balance_issues(self, analyzer, make_snapshot):
        """All-neutral, low-reliability evidence scores 100 but carries issues."""
        snapshot = make_snapshot([], [(f"e{i}", 100, 40) for i in range(5)])
        check = analyzer.completion_checks(snapshot)[1]

        assert check.score == 100
        assert "No supporting evidence" in check.issues
        assert "No opposing evidence" in check.issues
        assert "Low average evidence reliability" in check.issues

    def test_refine_follows_matrix(self, analyzer, make_snapshot):
        snapshot = make_snapshot(["h1", "h2"], ["e1", "e2"], {("h1", "e1"): 1, ("h2", "e2"): 1})
        checks = {c.step: c for c in analyzer.completion_checks(snapshot)}

        assert checks["matrix"].score == 50
        assert checks["refine"].score == 0
        assert not checks["refine"].completed

    def test_report_partial(self, analyzer, make_snapshot):
        progress = WorkflowProgress(report_sections={"summary": True, "analysis": True})
        check = analyzer.completion_checks(make_snapshot([], [], progress=progress))[6]
        assert check.score == 66
        assert not check.completed

    def test_workflow_progress(self, analyzer, finished_snapshot):
        checks = analyzer.completion_checks(finished_snapshot)
        assert all(c.score == 100 for c in checks)
        assert all(c.completed for c in checks)


class TestMetrics:
    """Tests for QualityAnalyzer.metrics."""

    def test_sample(self, analyzer, sample_snapshot):
        metrics = analyzer.metrics(sample_snapshot)

        assert metrics.completeness == pytest.approx(335 / 7)
        assert metrics.consistency == pytest.approx(100 - 8500 / 81)
        assert metrics.reliability == pytest.approx(82.5)
        assert metrics.coverage == pytest.approx(75.0)
        assert metrics.overall == pytest.approx(
            (335 / 7 + 100 - 8500 / 81 + 82.5 + 75.0) / 4
        )

    def test_finished(self, analyzer, finished_snapshot):
        metrics = analyzer.metrics(finished_snapshot)
        assert metrics.rounded() == {
            "completeness": 100,
            "consistency": 100,
            "reliability": 100,
            "coverage": 100,
            "overall": 100,
        }

    def test_empty(self, analyzer, make_snapshot):
        metrics = analyzer.metrics(make_snapshot([], []))
        assert metrics.consistency == 0
        assert metrics.reliability == 0
        assert metrics.coverage == 0
        assert metrics.overall == 0

    def test_coverage_in_bounds(self, analyzer, sample_snapshot, finished_snapshot, make_snapshot):
        for snapshot in (sample_snapshot, finished_snapshot, make_snapshot(["h1"], ["e1"])):
            assert 0 <= analyzer.metrics(snapshot).coverage <= 100

    def test_coverage_below_full_with_one_gap(self, analyzer, make_snapshot):
        """Coverage reaches 100 only when every pair is scored."""
        hypotheses = ["h1", "h2", "h3"]
        evidence = ["e1", "e2", "e3"]
        matrix = {(h, e): 1 for h in hypotheses for e in evidence}
        del matrix[("h3", "e3")]

        coverage = analyzer.metrics(make_snapshot(hypotheses, evidence, matrix)).coverage
        assert coverage == pytest.approx(800 / 9)
        assert coverage < 100

    def test_mean_reliability(self, sample_snapshot):
        assert mean_reliability(sample_snapshot) == pytest.approx(82.5)


class TestBands:
    """Tests for quality bands."""

    @pytest.mark.parametrize("overall,expected", [
        (100, QualityBand.EXCELLENT),
        (90, QualityBand.EXCELLENT),
        (89.5, QualityBand.EXCELLENT),
        (89.4, QualityBand.GOOD),
        (80, QualityBand.GOOD),
        (75, QualityBand.MEDIUM),
        (60, QualityBand.NEEDS_IMPROVEMENT),
        (59.49, QualityBand.POOR),
        (0, QualityBand.POOR),
    ])
    def test_band(self, analyzer, overall, expected):
        assert analyzer.band(overall) == expected


class TestInsights:
    """Tests for analysis insights."""

    def test_sample_has_none(self, analyzer, sample_snapshot):
        assert analyzer.insights(sample_snapshot) == []

    def test_finished(self, analyzer, finished_snapshot):
        ids = [i.id for i in analyzer.insights(finished_snapshot)]
        assert ids == ["good-foundation", "conclusions-available"]

    def test_weaknesses(self, analyzer, make_snapshot):
        snapshot = make_snapshot(["h1", "h2"], [("e1", 100, 30), ("e2", 100, 50)], {("h1", "e1"): 1})
        ids = [i.id for i in analyzer.insights(snapshot)]
        assert ids == ["low-reliability", "incomplete-matrix"]


class TestQualityReport:
    """Tests for QualityAnalyzer.analyze."""

    def test_sample(self, analyzer, sample_snapshot):
        report = analyzer.analyze(sample_snapshot)
        assert report.band == QualityBand.POOR
        assert len(report.checks) == 7
        assert report.metrics.rounded()["overall"] == 50

    def test_finished(self, analyzer, finished_snapshot):
        assert analyzer.analyze(finished_snapshot).band == QualityBand.EXCELLENT
