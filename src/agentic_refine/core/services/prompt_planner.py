"""Next-iteration prompt synthesis."""

from __future__ import annotations

from typing import Dict, Optional

from agentic_refine.core.constants import (
    PLANNER_HARD_MAX_WORDS,
    PLANNER_MAX_WORDS,
    PLANNER_REFUSAL_MARKERS,
    QUALITY_FALLBACK_SUFFIX,
)
from agentic_refine.core.models import ArtifactAnalysis, VerificationResult
from agentic_refine.core.streaming import to_narration


def is_refusal(text: str) -> bool:
    """True for empty, refusing, or apologetic planner output."""
    if not text or not text.strip():
        return True
    lowered = text.lower()
    return any(marker in lowered for marker in PLANNER_REFUSAL_MARKERS)


def quality_fallback_prompt(original_intent: str) -> str:
    intent = (original_intent or "").strip().rstrip(".")
    return f"{intent}. {QUALITY_FALLBACK_SUFFIX}" if intent else QUALITY_FALLBACK_SUFFIX


def _clean_prompt(text: str, hard_max_words: int = PLANNER_HARD_MAX_WORDS) -> str:
    """Keep the first paragraph, drop wrapping quotes and labels, cap length."""
    cleaned = text.strip()
    cleaned = cleaned.split("\n\n")[0].strip()
    for label in ("edit instruction:", "instruction:", "prompt:"):
        if cleaned.lower().startswith(label):
            cleaned = cleaned[len(label):].strip()
    cleaned = cleaned.strip("\"'` ")
    words = cleaned.split()
    if len(words) > hard_max_words:
        cleaned = " ".join(words[:hard_max_words])
    return cleaned


class PromptPlanner:
    """Writes the next instruction for the generator.

    `plan` never raises and never returns an empty string. Without a planning
    model it goes straight to the deterministic fallback.
    """

    def __init__(
        self,
        logger,
        vision_client,
        prompts: Dict[str, str],
        model: Optional[str] = None,
        max_words: int = PLANNER_MAX_WORDS,
    ):
        self.logger = logger
        self.vision = vision_client
        self.prompts = prompts
        self.model = model
        self.max_words = max_words

    def plan(
        self,
        original_intent: str,
        verification: Optional[VerificationResult] = None,
        analysis: Optional[ArtifactAnalysis] = None,
    ) -> str:
        """Return the next prompt.

        With `verification` None this plans the first iteration of an edit
        run from the pre-analysis alone.
        """
        if self.model and self.vision is not None:
            try:
                planned = self._request_plan(original_intent, verification, analysis)
            except Exception as e:
                self.logger.warning(f"Prompt planning failed, using fallback: {e}")
            else:
                if not is_refusal(planned):
                    return planned
                self.logger.warning(f"Planner returned an unusable prompt, using fallback: {planned[:80]!r}")

        return self.fallback(original_intent, verification, analysis)

    def fallback(
        self,
        original_intent: str,
        verification: Optional[VerificationResult] = None,
        analysis: Optional[ArtifactAnalysis] = None,
    ) -> str:
        if verification is not None and verification.suggested_edit:
            return verification.suggested_edit
        if verification is None and analysis is not None and analysis.preservation_instructions:
            return analysis.preservation_instructions
        return quality_fallback_prompt(original_intent)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _request_plan(
        self,
        original_intent: str,
        verification: Optional[VerificationResult],
        analysis: Optional[ArtifactAnalysis],
    ) -> str:
        system = self.prompts["plan_system"].format(max_words=self.max_words)
        analysis_context = ""
        if analysis is not None:
            analysis_context = f"MUST STAY UNCHANGED: {analysis.preservation_instructions}\n"

        if verification is None:
            context = self.prompts["plan_initial_context"].format(
                original_intent=original_intent,
                analysis_context=analysis_context,
            )
        else:
            context = self.prompts["plan_next_context"].format(
                original_intent=original_intent,
                issues="; ".join(verification.issues) or "none listed",
                suggested_edit=verification.suggested_edit or "none",
                analysis_context=analysis_context,
            )

        response = self.vision.narrate(system, context, model=self.model)
        return _clean_prompt(to_narration(response).text)
