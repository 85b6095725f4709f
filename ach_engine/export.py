"""Export ACH analysis results to various formats."""

import csv
import json
import logging
from datetime import datetime, timezone
from io import StringIO

from .exceptions import ExportFormatError
from .models import AnalysisReport, AnalysisSnapshot, MatrixScore

logger = logging.getLogger(__name__)


class ResultExporter:
    """Render engine output for reports and downloads."""

    FORMATS = ("json", "csv", "text")

    @staticmethod
    def export(snapshot: AnalysisSnapshot, report: AnalysisReport, fmt: str) -> str:
        """Dispatch to the exporter for fmt."""
        fmt = fmt.lower()
        if fmt == "json":
            return ResultExporter.export_json(snapshot, report)
        if fmt == "csv":
            return ResultExporter.export_csv(snapshot, report)
        if fmt == "text":
            return ResultExporter.export_sensitivity_text(snapshot, report)
        raise ExportFormatError(
            f"Unsupported export format {fmt!r}; expected one of {', '.join(ResultExporter.FORMATS)}"
        )

    @staticmethod
    def export_json(snapshot: AnalysisSnapshot, report: AnalysisReport) -> str:
        """Analysis summary as JSON."""
        quality = report.quality
        data = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "counts": {
                "hypotheses": len(snapshot.hypotheses),
                "evidence": len(snapshot.evidence),
                "scored_cells": snapshot.filled_cells,
            },
            "ranking": [
                {
                    **s.to_dict(),
                    "text": _hypothesis_text(snapshot, s.hypothesis_id),
                }
                for s in report.ranking
            ],
            "completion_rate": report.completion_rate,
            "quality": {
                "metrics": quality.metrics.rounded(),
                "band": quality.band.value,
                "checks": [c.to_dict() for c in quality.checks],
                "insights": [i.to_dict() for i in quality.insights],
            } if quality else None,
            "suggestions": [s.to_dict() for s in report.suggestions],
            "stability": report.sensitivity.stability.to_dict() if report.sensitivity.stability else None,
            "conclusion": report.conclusion.to_dict() if report.conclusion else None,
        }
        return json.dumps(data, indent=2)

    @staticmethod
    def export_csv(snapshot: AnalysisSnapshot, report: AnalysisReport) -> str:
        """Matrix as CSV (unscored cells left blank), followed by the scores."""
        output = StringIO()
        writer = csv.writer(output)

        writer.writerow(["Hypothesis/Evidence"] + [f"E{i}" for i in range(1, len(snapshot.evidence) + 1)])
        labels = {}
        for i, hypothesis in enumerate(snapshot.hypotheses, start=1):
            labels[hypothesis.id] = f"H{i}"
            row = [f"H{i}"]
            for evidence in snapshot.evidence:
                score = snapshot.score(hypothesis.id, evidence.id)
                row.append("" if score is None else score)
            writer.writerow(row)

        writer.writerow([])
        writer.writerow(["Scores"])
        writer.writerow(["Hypothesis", "Rank", "Total", "Average", "Scored"])
        for score in report.ranking:
            writer.writerow([
                labels.get(score.hypothesis_id, score.hypothesis_id),
                score.rank,
                f"{score.total:.3f}",
                f"{score.average:.3f}",
                score.scored_count,
            ])

        csv_content = output.getvalue()
        output.close()
        return csv_content

    @staticmethod
    def export_sensitivity_text(snapshot: AnalysisSnapshot, report: AnalysisReport) -> str:
        """Plain-text sensitivity report."""
        lines = ["Sensitivity Analysis Report", "===========================", ""]

        stability = report.sensitivity.stability
        lines += ["Stability", "---------"]
        if stability:
            lines += [
                f"Leading hypothesis: {_hypothesis_text(snapshot, stability.top_hypothesis_id)}",
                f"Runner-up: {_hypothesis_text(snapshot, stability.second_hypothesis_id)}",
                f"Score gap: {stability.score_gap:.2f}",
                f"Relative gap: {stability.relative_gap:.1f}%",
                f"Minimum change to flip: {stability.min_score_change_to_flip:.2f}",
                f"Stability level: {stability.stability_level.value}",
            ]
        else:
            lines.append("Not enough data")

        lines += ["", "Ranking", "-------"]
        for score in report.ranking:
            lines.append(
                f"{score.rank}. {_hypothesis_text(snapshot, score.hypothesis_id)} "
                f"(score: {score.total:.2f})"
            )

        counts = report.sensitivity.level_counts
        lines += [
            "",
            "Sensitivity tests",
            "-----------------",
            f"Tests run: {report.sensitivity.test_count}",
            f"High: {counts.get('high', 0)}  Medium: {counts.get('medium', 0)}  Low: {counts.get('low', 0)}",
        ]
        for finding in report.sensitivity.findings[:5]:
            if finding.kind.value == "single":
                tested = (
                    f"{MatrixScore(finding.original_value).symbol} -> "
                    f"{MatrixScore(finding.tested_value).symbol}"
                )
            else:
                tested = f"{finding.original_value} -> {finding.tested_value}"
            lines.append(
                f"[{finding.sensitivity_level.value}] {finding.kind.value} "
                f"{finding.evidence_id} {tested}: {finding.max_change_percent:.1f}% max change, "
                f"{finding.ranking_changes_count} ranking changes"
            )

        return "\n".join(lines)


def _hypothesis_text(snapshot: AnalysisSnapshot, hypothesis_id: str) -> str:
    hypothesis = snapshot.get_hypothesis(hypothesis_id)
    return hypothesis.text if hypothesis else hypothesis_id
