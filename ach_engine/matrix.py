"""ACH matrix storage and analysis management."""

import logging
import uuid
from dataclasses import replace
from types import MappingProxyType
from typing import Iterable, Iterator

import pandas as pd

from .exceptions import (
    DuplicateIdError,
    InvalidScoreError,
    UnknownEvidenceError,
    UnknownHypothesisError,
)
from .models import (
    AnalysisSnapshot,
    CellKey,
    Evidence,
    EvidenceType,
    Hypothesis,
    Priority,
    WorkflowProgress,
    round_half_up,
    validate_score,
)

logger = logging.getLogger(__name__)


def _clamp_percent(value: int | float) -> int:
    return int(max(0, min(100, round(value))))


def _parse_evidence_type(evidence_type) -> EvidenceType:
    try:
        return EvidenceType(evidence_type)
    except ValueError:
        logger.warning(f"Unknown evidence type {evidence_type!r}, using neutral")
        return EvidenceType.NEUTRAL


class MatrixStore:
    """
    Sparse hypothesis x evidence score assignments.

    A missing key means "unscored", which is not the same as a score of 0.
    When id lookups are supplied, set() rejects ids that do not exist.
    """

    def __init__(self, hypothesis_ids=None, evidence_ids=None):
        self._cells: dict[CellKey, int] = {}
        self._hypothesis_ids = hypothesis_ids
        self._evidence_ids = evidence_ids

    def get(self, hypothesis_id: str, evidence_id: str) -> int | None:
        return self._cells.get((hypothesis_id, evidence_id))

    def set(self, hypothesis_id: str, evidence_id: str, score: int) -> None:
        score = validate_score(score)
        if self._hypothesis_ids is not None and hypothesis_id not in self._hypothesis_ids:
            raise UnknownHypothesisError(hypothesis_id)
        if self._evidence_ids is not None and evidence_id not in self._evidence_ids:
            raise UnknownEvidenceError(evidence_id)
        self._cells[(hypothesis_id, evidence_id)] = score

    def remove(self, hypothesis_id: str, evidence_id: str) -> bool:
        """Mark a cell as unscored again."""
        return self._cells.pop((hypothesis_id, evidence_id), None) is not None

    def clear(self) -> None:
        self._cells.clear()

    def delete_for_hypothesis(self, hypothesis_id: str) -> int:
        return self._delete_where(lambda key: key[0] == hypothesis_id)

    def delete_for_evidence(self, evidence_id: str) -> int:
        return self._delete_where(lambda key: key[1] == evidence_id)

    def _delete_where(self, predicate) -> int:
        doomed = [key for key in self._cells if predicate(key)]
        for key in doomed:
            del self._cells[key]
        return len(doomed)

    @property
    def filled_count(self) -> int:
        return len(self._cells)

    def items(self) -> Iterator[tuple[CellKey, int]]:
        return iter(list(self._cells.items()))

    def as_mapping(self) -> MappingProxyType:
        """Read-only copy of the current cells."""
        return MappingProxyType(dict(self._cells))

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, key: CellKey) -> bool:
        return key in self._cells


class _IdView:
    """Live membership test over the ids of a list of entities."""

    def __init__(self, items: list):
        self._items = items

    def __contains__(self, item_id: str) -> bool:
        return any(i.id == item_id for i in self._items)


class AnalysisManager:
    """
    Owns the mutable state of one analysis.

    Deleting a hypothesis or evidence item cascades to its matrix cells, so
    every snapshot it hands out is structurally consistent.
    """

    def __init__(self, progress: WorkflowProgress | None = None):
        self.hypotheses: list[Hypothesis] = []
        self.evidence: list[Evidence] = []
        self.store = MatrixStore(_IdView(self.hypotheses), _IdView(self.evidence))
        self.progress = progress or WorkflowProgress()

    @classmethod
    def from_snapshot(cls, snapshot: AnalysisSnapshot) -> "AnalysisManager":
        manager = cls(progress=_copy(snapshot.progress))
        manager.hypotheses.extend(_copy(h) for h in snapshot.hypotheses)
        manager.evidence.extend(_copy(e) for e in snapshot.evidence)
        for (hypothesis_id, evidence_id), score in snapshot.matrix.items():
            manager.store.set(hypothesis_id, evidence_id, score)
        return manager

    # --- Hypotheses ---

    def get_hypothesis(self, hypothesis_id: str) -> Hypothesis | None:
        for h in self.hypotheses:
            if h.id == hypothesis_id:
                return h
        return None

    def _require_hypothesis(self, hypothesis_id: str) -> Hypothesis:
        hypothesis = self.get_hypothesis(hypothesis_id)
        if hypothesis is None:
            raise UnknownHypothesisError(hypothesis_id)
        return hypothesis

    def add_hypothesis(
        self,
        text: str,
        confidence: int = 50,
        priority: Priority | str = Priority.MEDIUM,
        reasoning: str = "",
        hypothesis_id: str | None = None,
    ) -> Hypothesis:
        """Add a hypothesis at the end of the list. Explicit ids must be unused."""
        if hypothesis_id is not None and self.get_hypothesis(hypothesis_id) is not None:
            raise DuplicateIdError(hypothesis_id)

        hypothesis = Hypothesis(
            id=hypothesis_id or str(uuid.uuid4()),
            text=text,
            confidence=_clamp_percent(confidence),
            priority=Priority(priority),
            reasoning=reasoning,
        )
        self.hypotheses.append(hypothesis)
        logger.debug(f"Added hypothesis {hypothesis.id}")
        return hypothesis

    def update_hypothesis(
        self,
        hypothesis_id: str,
        text: str | None = None,
        confidence: int | None = None,
        priority: Priority | str | None = None,
        reasoning: str | None = None,
    ) -> Hypothesis:
        hypothesis = self._require_hypothesis(hypothesis_id)

        if text is not None:
            hypothesis.text = text
        if confidence is not None:
            hypothesis.confidence = _clamp_percent(confidence)
        if priority is not None:
            hypothesis.priority = Priority(priority)
        if reasoning is not None:
            hypothesis.reasoning = reasoning

        return hypothesis

    def delete_hypothesis(self, hypothesis_id: str) -> bool:
        """Remove a hypothesis and all of its matrix cells."""
        if self.get_hypothesis(hypothesis_id) is None:
            return False

        self.hypotheses[:] = [h for h in self.hypotheses if h.id != hypothesis_id]
        removed = self.store.delete_for_hypothesis(hypothesis_id)
        logger.info(f"Deleted hypothesis {hypothesis_id} ({removed} cells removed)")
        return True

    def reorder_hypotheses(self, ordered_ids: Iterable[str]) -> None:
        """Reorder hypotheses. Order affects tie-breaking, never scores."""
        ordered_ids = list(ordered_ids)
        if sorted(ordered_ids) != sorted(h.id for h in self.hypotheses):
            raise ValueError("ordered_ids must be a permutation of the hypothesis ids")
        by_id = {h.id: h for h in self.hypotheses}
        self.hypotheses[:] = [by_id[i] for i in ordered_ids]

    def merge_hypotheses(self, first_id: str, second_id: str, text: str) -> Hypothesis:
        """
        Replace two hypotheses with a single merged one.

        The merged hypothesis averages the two confidences, takes the first
        hypothesis's priority and starts with an empty row in the matrix.
        """
        first = self._require_hypothesis(first_id)
        second = self._require_hypothesis(second_id)
        if first_id == second_id:
            raise ValueError("Cannot merge a hypothesis with itself")

        merged = self.add_hypothesis(
            text=text,
            confidence=round_half_up((first.confidence + second.confidence) / 2),
            priority=first.priority,
            reasoning=f"Merged hypotheses: {first.text} and {second.text}",
        )
        self.delete_hypothesis(first_id)
        self.delete_hypothesis(second_id)
        logger.info(f"Merged hypotheses {first_id} and {second_id} into {merged.id}")
        return merged

    # --- Evidence ---

    def get_evidence(self, evidence_id: str) -> Evidence | None:
        for e in self.evidence:
            if e.id == evidence_id:
                return e
        return None

    def _require_evidence(self, evidence_id: str) -> Evidence:
        evidence = self.get_evidence(evidence_id)
        if evidence is None:
            raise UnknownEvidenceError(evidence_id)
        return evidence

    def add_evidence(
        self,
        text: str,
        evidence_type: EvidenceType | str = EvidenceType.NEUTRAL,
        source: str = "",
        weight: int = 100,
        reliability: int = 100,
        notes: str = "",
        evidence_id: str | None = None,
    ) -> Evidence:
        """Add an evidence item at the end of the list. Explicit ids must be unused."""
        if evidence_id is not None and self.get_evidence(evidence_id) is not None:
            raise DuplicateIdError(evidence_id)

        evidence = Evidence(
            id=evidence_id or str(uuid.uuid4()),
            text=text,
            type=_parse_evidence_type(evidence_type),
            source=source,
            weight=_clamp_percent(weight),
            reliability=_clamp_percent(reliability),
            notes=notes,
        )
        self.evidence.append(evidence)
        logger.debug(f"Added evidence {evidence.id}")
        return evidence

    def update_evidence(
        self,
        evidence_id: str,
        text: str | None = None,
        evidence_type: EvidenceType | str | None = None,
        source: str | None = None,
        weight: int | None = None,
        reliability: int | None = None,
        notes: str | None = None,
    ) -> Evidence:
        evidence = self._require_evidence(evidence_id)

        if text is not None:
            evidence.text = text
        if evidence_type is not None:
            evidence.type = _parse_evidence_type(evidence_type)
        if source is not None:
            evidence.source = source
        if weight is not None:
            evidence.weight = _clamp_percent(weight)
        if reliability is not None:
            evidence.reliability = _clamp_percent(reliability)
        if notes is not None:
            evidence.notes = notes

        return evidence

    def delete_evidence(self, evidence_id: str) -> bool:
        """Remove an evidence item and all of its matrix cells."""
        if self.get_evidence(evidence_id) is None:
            return False

        self.evidence[:] = [e for e in self.evidence if e.id != evidence_id]
        removed = self.store.delete_for_evidence(evidence_id)
        logger.info(f"Deleted evidence {evidence_id} ({removed} cells removed)")
        return True

    def reorder_evidence(self, ordered_ids: Iterable[str]) -> None:
        ordered_ids = list(ordered_ids)
        if sorted(ordered_ids) != sorted(e.id for e in self.evidence):
            raise ValueError("ordered_ids must be a permutation of the evidence ids")
        by_id = {e.id: e for e in self.evidence}
        self.evidence[:] = [by_id[i] for i in ordered_ids]

    # --- Matrix ---

    def set_score(self, hypothesis_id: str, evidence_id: str, score: int) -> None:
        try:
            self.store.set(hypothesis_id, evidence_id, score)
        except (InvalidScoreError, UnknownHypothesisError, UnknownEvidenceError) as e:
            logger.warning(f"Rejected matrix cell ({hypothesis_id}, {evidence_id}): {e}")
            raise

    def clear_score(self, hypothesis_id: str, evidence_id: str) -> bool:
        return self.store.remove(hypothesis_id, evidence_id)

    def clear_matrix(self) -> None:
        self.store.clear()
        logger.info("Cleared all matrix scores")

    def snapshot(self) -> AnalysisSnapshot:
        """Immutable copy of the current analysis."""
        return AnalysisSnapshot(
            hypotheses=tuple(_copy(h) for h in self.hypotheses),
            evidence=tuple(_copy(e) for e in self.evidence),
            matrix=self.store.as_mapping(),
            progress=_copy(self.progress),
        )


def _copy(item):
    return replace(item)


def numeric_matrix(snapshot: AnalysisSnapshot) -> pd.DataFrame:
    """
    Dense matrix of scores, one row per hypothesis and one column per evidence.

    Unscored cells become 0.0. Only the correlation and diagnostic analyzers
    use this view; scoring keeps unscored cells out of its aggregates.
    """
    hypothesis_ids = [h.id for h in snapshot.hypotheses]
    evidence_ids = [e.id for e in snapshot.evidence]
    df = pd.DataFrame(0.0, index=hypothesis_ids, columns=evidence_ids, dtype=float)
    for (hypothesis_id, evidence_id), score in snapshot.matrix.items():
        df.at[hypothesis_id, evidence_id] = float(score)
    return df
