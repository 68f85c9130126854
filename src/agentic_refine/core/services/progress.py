"""Caller-supplied progress notifications for a refinement run."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from agentic_refine.core.models import Artifact, ArtifactAnalysis, Strategy, VerificationResult


@dataclass
class RefinementCallbacks:
    """Optional observers. Each is called synchronously and never awaited.

    on_iteration_start(iteration_number, prompt)
    on_artifact_produced(iteration_number, artifact)
    on_verification_complete(iteration_number, verification)
    on_analysis_complete(analysis)
    on_planning_complete(next_iteration_number, prompt, strategy)
    """
    on_iteration_start: Optional[Callable[[int, str], None]] = None
    on_artifact_produced: Optional[Callable[[int, Artifact], None]] = None
    on_verification_complete: Optional[Callable[[int, VerificationResult], None]] = None
    on_analysis_complete: Optional[Callable[[ArtifactAnalysis], None]] = None
    on_planning_complete: Optional[Callable[[int, str, Strategy], None]] = None


class ProgressNotifier:
    """Invokes callbacks inside their own error boundary."""

    def __init__(self, callbacks: Optional[RefinementCallbacks], logger=None):
        self.callbacks = callbacks or RefinementCallbacks()
        self.logger = logger or logging.getLogger(__name__)

    def notify(self, event: str, *args) -> None:
        callback = getattr(self.callbacks, event, None)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:  # observer errors never reach the control path
            self.logger.warning(f"Progress callback {event} failed: {e}")
