"""Iteration orchestration - drives generation, verification, and re-planning."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from agentic_refine.core.media import probe_dimensions
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
)
from agentic_refine.core.services.pre_analysis import PreAnalysisService
from agentic_refine.core.services.progress import ProgressNotifier, RefinementCallbacks
from agentic_refine.core.services.prompt_planner import PromptPlanner
from agentic_refine.core.services.verification_service import VerificationService
from agentic_refine.errors import RunCancelled


class IterationOrchestrator:
    """Runs the generate -> verify -> plan loop for one intent.

    The orchestrator holds no per-run state; every call to `run` is
    independent, and concurrent runs need no coordination.

    Collaborators:
      generator.generate(prompt, reference_artifacts=None, dimensions=None, model=None) -> Artifact
      vision_client.judge(artifacts, prompt, model=None) -> str
      vision_client.narrate(system_instruction, user_context, artifacts=None, model=None) -> str | Narration
    """

    def __init__(self, generator, vision_client, prompts, logger=None):
        self.logger = logger or logging.getLogger(__name__)
        self.generator = generator
        self.vision = vision_client
        self.prompts = prompts

    def run(
        self,
        intent: GenerationIntent,
        config: Optional[RefinementConfig] = None,
        callbacks: Optional[RefinementCallbacks] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunResult:
        """Refine until the verifier is satisfied or the budget runs out.

        Generator, verifier, and pre-analysis failures propagate and no
        partial result is returned. Setting `cancel_event` aborts the run
        with RunCancelled before the next service call.
        """
        config = config or RefinementConfig()
        notifier = ProgressNotifier(callbacks, logger=self.logger)
        mode = intent.mode
        references = intent.reference_artifacts

        if config.artifact_kind == ArtifactKind.VIDEO and mode != RunMode.EDIT:
            raise ValueError("A reference image is required for video refinement")

        self.logger.info(f"{'='*60}\nAgentic refinement ({mode.value}, {config.artifact_kind.value})\n{'='*60}")
        self.logger.info(f"Intent: {intent.text}")
        self.logger.info(f"Max iterations: {config.max_iterations}")

        verifier = VerificationService(self.logger, self.vision, self.prompts, model=config.verification_model)
        planner = PromptPlanner(
            self.logger,
            self.vision,
            self.prompts,
            model=config.planning_model,
            max_words=config.planner_max_words,
        )

        analysis: Optional[ArtifactAnalysis] = None
        dimensions: Optional[Dimensions] = None
        prompt = intent.text

        if mode == RunMode.EDIT:
            dimensions = intent.reference_dimensions or probe_dimensions(references[0])
            if dimensions:
                self.logger.info(f"Reference dimensions: {dimensions.width}x{dimensions.height}")

            self._check_cancelled(cancel_event)
            analyzer = PreAnalysisService(self.logger, self.vision, self.prompts, model=config.verification_model)
            analysis = analyzer.analyze(references, intent.text)
            notifier.notify("on_analysis_complete", analysis)

            self._check_cancelled(cancel_event)
            prompt = planner.plan(intent.text, None, analysis)
            self.logger.info(f"Initial edit prompt: {prompt}")

        iterations: List[Iteration] = []
        artifact: Optional[Artifact] = None

        for number in range(1, config.max_iterations + 1):
            self.logger.info(f"{'='*60}\nIteration {number}/{config.max_iterations}\n{'='*60}")
            self.logger.info(f"Prompt: {prompt}")
            notifier.notify("on_iteration_start", number, prompt)

            self._check_cancelled(cancel_event)
            if mode == RunMode.EDIT:
                # Always edit from the caller's originals, never from a previous output.
                artifact = self.generator.generate(
                    prompt,
                    reference_artifacts=list(references),
                    dimensions=dimensions,
                    model=config.generation_target_model,
                )
            else:
                artifact = self.generator.generate(prompt, model=config.generation_target_model)
            notifier.notify("on_artifact_produced", number, artifact)

            self._check_cancelled(cancel_event)
            judged = [*references, artifact] if mode == RunMode.EDIT else [artifact]
            verification = verifier.verify(judged, intent.text, reference_count=len(judged) - 1)
            notifier.notify("on_verification_complete", number, verification)

            iterations.append(Iteration(
                number=number,
                artifact=artifact,
                prompt_used=prompt,
                verification=verification,
                analysis=analysis,
            ))

            if verification.satisfied:
                self.logger.info(f"Satisfied after {number} iteration(s)")
                return RunResult(
                    final_artifact=artifact,
                    iterations=tuple(iterations),
                    success=True,
                    total_iterations=number,
                )

            if number < config.max_iterations:
                self._check_cancelled(cancel_event)
                prompt = planner.plan(intent.text, verification, analysis)
                strategy = verification.recommended_strategy
                self.logger.info(f"Strategy for iteration {number + 1}: {strategy.value}")
                notifier.notify("on_planning_complete", number + 1, prompt, strategy)

        self.logger.info(f"Budget of {config.max_iterations} iteration(s) exhausted without satisfaction")
        return RunResult(
            final_artifact=artifact,
            iterations=tuple(iterations),
            success=False,
            total_iterations=config.max_iterations,
        )

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RunCancelled("Refinement run cancelled")
