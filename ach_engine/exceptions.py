"""Exceptions raised at the ACH engine boundary."""


class ACHEngineError(Exception):
    """Base exception for ACH engine errors."""
    pass


class InvalidScoreError(ACHEngineError, ValueError):
    """Matrix score outside the five legal values."""

    def __init__(self, score):
        self.score = score
        super().__init__(f"Invalid matrix score {score!r}; expected one of -2, -1, 0, 1, 2")


class UnknownHypothesisError(ACHEngineError, KeyError):
    """Reference to a hypothesis id that does not exist."""

    def __init__(self, hypothesis_id: str):
        self.hypothesis_id = hypothesis_id
        super().__init__(f"Unknown hypothesis: {hypothesis_id}")


class UnknownEvidenceError(ACHEngineError, KeyError):
    """Reference to an evidence id that does not exist."""

    def __init__(self, evidence_id: str):
        self.evidence_id = evidence_id
        super().__init__(f"Unknown evidence: {evidence_id}")


class DuplicateIdError(ACHEngineError, ValueError):
    """A hypothesis or evidence id that is already in use."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Duplicate id: {item_id}")


class SnapshotValidationError(ACHEngineError):
    """Raw snapshot payload failed validation."""
    pass


class SuggestionError(ACHEngineError):
    """Optimization suggestion cannot be applied."""
    pass


class ConfigError(ACHEngineError):
    """Invalid engine configuration."""
    pass


class ExportFormatError(ACHEngineError):
    """Invalid or unsupported export format."""
    pass
