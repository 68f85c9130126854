"""Agentic Refine - closed-loop generation, vision critique, and re-planning."""

from agentic_refine.core.models import (
    Artifact,
    ArtifactAnalysis,
    ArtifactKind,
    Dimensions,
    GenerationIntent,
    Iteration,
    RefinementConfig,
    RunMode,
    RunResult,
    Strategy,
    VerificationResult,
)
from agentic_refine.core.services.iteration_orchestrator import IterationOrchestrator
from agentic_refine.core.services.progress import RefinementCallbacks

__version__ = "0.3.0"

__all__ = [
    "Artifact",
    "ArtifactAnalysis",
    "ArtifactKind",
    "Dimensions",
    "GenerationIntent",
    "Iteration",
    "IterationOrchestrator",
    "RefinementCallbacks",
    "RefinementConfig",
    "RunMode",
    "RunResult",
    "Strategy",
    "VerificationResult",
]
