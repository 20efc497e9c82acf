"""Urban heat island indicator package."""

from .config import CitySample, ClassificationThresholds, UHIConfig
from .pipeline import AnalysisOutputs, UHIResult, compute_uhi, run_analysis

__all__ = [
    "CitySample",
    "ClassificationThresholds",
    "UHIConfig",
    "AnalysisOutputs",
    "UHIResult",
    "compute_uhi",
    "run_analysis",
]
