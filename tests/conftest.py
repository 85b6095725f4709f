"""Shared fixtures for the ACH engine tests."""

import pytest

from ach_engine.models import (
    AnalysisSnapshot,
    Evidence,
    EvidenceType,
    Hypothesis,
    WorkflowProgress,
)


def _build_snapshot(hypotheses, evidence, matrix=None, progress=None) -> AnalysisSnapshot:
    """
    Build a snapshot from compact test data.

    hypotheses: list of ids
    evidence: list of ids or (id, weight, reliability[, type]) tuples
    matrix: {(hypothesis_id, evidence_id): score}
    """
    evidence_items = []
    for item in evidence:
        if isinstance(item, str):
            evidence_items.append(Evidence(id=item, text=f"Evidence {item}"))
            continue
        evidence_id, weight, reliability, *rest = item
        evidence_items.append(Evidence(
            id=evidence_id,
            text=f"Evidence {evidence_id}",
            weight=weight,
            reliability=reliability,
            type=rest[0] if rest else EvidenceType.NEUTRAL,
        ))

    return AnalysisSnapshot(
        hypotheses=tuple(Hypothesis(id=h, text=f"Hypothesis {h}") for h in hypotheses),
        evidence=tuple(evidence_items),
        matrix=dict(matrix or {}),
        progress=progress or WorkflowProgress(),
    )


@pytest.fixture
def make_snapshot():
    """Factory for compact test snapshots."""
    return _build_snapshot


@pytest.fixture
def sample_snapshot():
    """
    Three hypotheses, four evidence items, 9 of 12 cells scored.

    Totals: h1 = 3.15, h2 = -1.2, h3 = -0.8
    """
    return _build_snapshot(
        ["h1", "h2", "h3"],
        [
            ("e1", 100, 100, EvidenceType.SUPPORTING),
            ("e2", 50, 80, EvidenceType.OPPOSING),
            ("e3", 75, 100, EvidenceType.NEUTRAL),
            ("e4", 100, 50, EvidenceType.SUPPORTING),
        ],
        {
            ("h1", "e1"): 2, ("h1", "e2"): 1, ("h1", "e3"): 1,
            ("h2", "e1"): -1, ("h2", "e2"): 2, ("h2", "e3"): 0, ("h2", "e4"): -2,
            ("h3", "e1"): 0, ("h3", "e2"): -2,
        },
    )


@pytest.fixture
def opposed_pair():
    """Two hypotheses, one full-weight evidence, opposite strong scores."""
    return _build_snapshot(
        ["h1", "h2"],
        [("e1", 100, 100)],
        {("h1", "e1"): 2, ("h2", "e1"): -2},
    )
