"""Validation of raw analysis payloads (e.g. parsed JSON) into snapshots."""

import logging
from typing import Any, Union

from pydantic import BaseModel, Field, ValidationError

from .exceptions import (
    SnapshotValidationError,
    UnknownEvidenceError,
    UnknownHypothesisError,
)
from .matrix import MatrixStore
from .models import (
    AnalysisSnapshot,
    Evidence,
    EvidenceType,
    Hypothesis,
    Priority,
    WorkflowProgress,
)

logger = logging.getLogger(__name__)


# --- Request Models ---


class HypothesisPayload(BaseModel):
    id: str = Field(min_length=1)
    text: str
    confidence: int = Field(default=50, ge=0, le=100)
    priority: Priority = Priority.MEDIUM
    reasoning: str = ""


class EvidencePayload(BaseModel):
    id: str = Field(min_length=1)
    text: str
    type: EvidenceType = EvidenceType.NEUTRAL
    source: str = ""
    weight: int = Field(default=100, ge=0, le=100)
    reliability: int = Field(default=100, ge=0, le=100)
    notes: str = ""


class CellPayload(BaseModel):
    hypothesis_id: str
    evidence_id: str
    # Range is checked by the matrix store so bad scores raise InvalidScoreError
    score: int


class ProgressPayload(BaseModel):
    conclusion_count: int = Field(default=0, ge=0)
    sensitivity_runs: int = Field(default=0, ge=0)
    report_sections: dict[str, bool] = Field(default_factory=dict)


class SnapshotPayload(BaseModel):
    """
    Raw analysis as supplied by the UI layer.

    The matrix may be a list of cells or a flat mapping keyed
    "<hypothesisId>-<evidenceId>", the browser storage layout.
    """
    hypotheses: list[HypothesisPayload] = Field(default_factory=list)
    evidence: list[EvidencePayload] = Field(default_factory=list)
    matrix: Union[list[CellPayload], dict[str, int]] = Field(default_factory=list)
    progress: ProgressPayload = Field(default_factory=ProgressPayload)


def _split_flat_key(key: str, hypothesis_ids: list[str], evidence_ids: set[str]) -> tuple[str, str]:
    """
    Split a "<hypothesisId>-<evidenceId>" key.

    Ids may themselves contain dashes, so the split is resolved against the
    known ids; the longest matching hypothesis id wins.
    """
    for hypothesis_id in sorted(hypothesis_ids, key=len, reverse=True):
        prefix = hypothesis_id + "-"
        if key.startswith(prefix) and key[len(prefix):] in evidence_ids:
            return hypothesis_id, key[len(prefix):]

    hypothesis_part, _, evidence_part = key.partition("-")
    if not any(key.startswith(h + "-") for h in hypothesis_ids):
        raise UnknownHypothesisError(hypothesis_part)
    raise UnknownEvidenceError(evidence_part)


def parse_snapshot(data: dict[str, Any]) -> AnalysisSnapshot:
    """
    Validate a raw payload and build an AnalysisSnapshot.

    Raises:
        SnapshotValidationError: malformed payload or duplicate ids
        InvalidScoreError: a cell score outside -2..2
        UnknownHypothesisError / UnknownEvidenceError: dangling cell ids
    """
    try:
        payload = SnapshotPayload.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Rejected analysis snapshot: {e.error_count()} validation errors")
        raise SnapshotValidationError(str(e)) from e

    hypothesis_ids = [h.id for h in payload.hypotheses]
    evidence_ids = [e.id for e in payload.evidence]
    if len(set(hypothesis_ids)) != len(hypothesis_ids):
        raise SnapshotValidationError("Duplicate hypothesis ids")
    if len(set(evidence_ids)) != len(evidence_ids):
        raise SnapshotValidationError("Duplicate evidence ids")

    store = MatrixStore(set(hypothesis_ids), set(evidence_ids))
    if isinstance(payload.matrix, dict):
        known_evidence = set(evidence_ids)
        for key, score in payload.matrix.items():
            hypothesis_id, evidence_id = _split_flat_key(key, hypothesis_ids, known_evidence)
            store.set(hypothesis_id, evidence_id, score)
    else:
        for cell in payload.matrix:
            store.set(cell.hypothesis_id, cell.evidence_id, cell.score)

    return AnalysisSnapshot(
        hypotheses=tuple(Hypothesis(**h.model_dump()) for h in payload.hypotheses),
        evidence=tuple(Evidence(**e.model_dump()) for e in payload.evidence),
        matrix=store.as_mapping(),
        progress=WorkflowProgress(**payload.progress.model_dump()),
    )
