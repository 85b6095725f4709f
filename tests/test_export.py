"""
ACH Engine - Export Tests

Tests for JSON, CSV and text exports of analysis results.
"""

import json

import pytest

from ach_engine.engine import ACHEngine
from ach_engine.exceptions import ExportFormatError
from ach_engine.export import ResultExporter


# === Fixtures ===


@pytest.fixture
def engine():
    return ACHEngine()


@pytest.fixture
def opposed_report(engine, opposed_pair):
    return engine.analyze(opposed_pair)


# === Tests ===


class TestJsonExport:
    """Tests for JSON export."""

    def test_structure(self, opposed_pair, opposed_report):
        data = json.loads(ResultExporter.export_json(opposed_pair, opposed_report))

        assert data["counts"] == {"hypotheses": 2, "evidence": 1, "scored_cells": 2}
        assert data["ranking"][0]["hypothesis_id"] == "h1"
        assert data["ranking"][0]["text"] == "Hypothesis h1"
        assert data["completion_rate"] == 100.0
        assert data["stability"]["stability_level"] == "very-low"
        assert data["conclusion"]["primary_hypothesis_id"] == "h1"
        assert "generated_at" in data

    def test_quality_is_rounded(self, sample_snapshot, engine):
        report = engine.analyze(sample_snapshot, include_sensitivity=False)
        data = json.loads(ResultExporter.export_json(sample_snapshot, report))

        assert data["quality"]["metrics"]["overall"] == 50
        assert data["quality"]["band"] == "poor"
        assert len(data["quality"]["checks"]) == 7
        assert data["suggestions"][0]["kind"] == "merge_hypotheses"

    def test_empty_analysis(self, engine, make_snapshot):
        snapshot = make_snapshot([], [])
        data = json.loads(ResultExporter.export_json(snapshot, engine.analyze(snapshot)))
        assert data["ranking"] == []
        assert data["stability"] is None
        assert data["conclusion"] is None


class TestCsvExport:
    """Tests for CSV export."""

    def test_matrix_rows(self, sample_snapshot, engine):
        report = engine.analyze(sample_snapshot, include_sensitivity=False)
        lines = ResultExporter.export_csv(sample_snapshot, report).splitlines()

        assert lines[0] == "Hypothesis/Evidence,E1,E2,E3,E4"
        # Unscored cells are blank, neutral scores are 0
        assert lines[1] == "H1,2,1,1,"
        assert lines[2] == "H2,-1,2,0,-2"
        assert lines[3] == "H3,0,-2,,"

    def test_scores_table(self, opposed_pair, opposed_report):
        lines = ResultExporter.export_csv(opposed_pair, opposed_report).splitlines()

        assert "Scores" in lines
        start = lines.index("Scores")
        assert lines[start + 1] == "Hypothesis,Rank,Total,Average,Scored"
        assert lines[start + 2] == "H1,1,2.000,2.000,1"
        assert lines[start + 3] == "H2,2,-2.000,-2.000,1"


class TestTextExport:
    """Tests for the plain-text sensitivity report."""

    def test_stability_section(self, opposed_pair, opposed_report):
        text = ResultExporter.export_sensitivity_text(opposed_pair, opposed_report)

        assert text.startswith("Sensitivity Analysis Report")
        assert "Leading hypothesis: Hypothesis h1" in text
        assert "Score gap: 4.00" in text
        assert "Relative gap: -200.0%" in text
        assert "Stability level: very-low" in text

    def test_findings(self, opposed_pair, opposed_report):
        text = ResultExporter.export_sensitivity_text(opposed_pair, opposed_report)

        assert "Tests run: 14" in text
        assert "High: 14  Medium: 0  Low: 0" in text
        assert "[high] single e1 ++ -> --: 200.0% max change, 0 ranking changes" in text

    def test_not_enough_data(self, engine, make_snapshot):
        snapshot = make_snapshot(["h1"], ["e1"])
        text = ResultExporter.export_sensitivity_text(snapshot, engine.analyze(snapshot))
        assert "Not enough data" in text


class TestDispatch:
    """Tests for ResultExporter.export."""

    @pytest.mark.parametrize("fmt", ["json", "csv", "text", "JSON"])
    def test_supported(self, opposed_pair, opposed_report, fmt):
        assert ResultExporter.export(opposed_pair, opposed_report, fmt)

    def test_unsupported(self, opposed_pair, opposed_report):
        with pytest.raises(ExportFormatError):
            ResultExporter.export(opposed_pair, opposed_report, "pdf")
