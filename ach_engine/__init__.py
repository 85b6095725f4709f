"""ACH Engine - Analysis of Competing Hypotheses."""

from .engine import ACHEngine
from .matrix import AnalysisManager, MatrixStore
from .models import AnalysisSnapshot, Evidence, Hypothesis
from .config import EngineConfig, load_config

__version__ = "0.1.0"
__all__ = [
    "ACHEngine",
    "AnalysisManager",
    "MatrixStore",
    "AnalysisSnapshot",
    "Evidence",
    "Hypothesis",
    "EngineConfig",
    "load_config",
]
