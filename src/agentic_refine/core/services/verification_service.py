"""Vision-model judgment of produced artifacts."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from agentic_refine.core.models import Artifact, ArtifactKind, VerificationResult
from agentic_refine.core.parsing import extract_json_object
from agentic_refine.core.services.strategy_selector import explain_strategy


def _coerce_bool(value) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "y", "1", "pass", "passed"):
            return True
        if lowered in ("false", "no", "n", "0", "fail", "failed"):
            return False
    return None


def _coerce_issues(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(i).strip() for i in value if str(i).strip()]
    return [str(value)]


class VerificationService:
    """Sends artifacts plus the original intent to a judge and parses its verdict.

    Transport failures propagate. Output that cannot be decoded fails open:
    the artifact is accepted rather than blocking the run on a prose reply.
    """

    def __init__(self, logger, vision_client, prompts: Dict[str, str], model: Optional[str] = None):
        self.logger = logger
        self.vision = vision_client
        self.prompts = prompts
        self.model = model

    def verify(
        self,
        artifacts: Sequence[Artifact],
        original_intent: str,
        reference_count: int = 0,
    ) -> VerificationResult:
        """Judge the last artifact in `artifacts`.

        The first `reference_count` artifacts are the run's references, sent
        so the judge can compare before and after.
        """
        if not artifacts:
            raise ValueError("verify() needs at least one artifact")

        prompt = self.build_prompt(original_intent, artifacts[-1].kind, reference_count)
        self.logger.info("Verifying result with vision model...")
        raw = self.vision.judge(list(artifacts), prompt, model=self.model)
        return self.parse_verdict(raw)

    def build_prompt(self, original_intent: str, kind: ArtifactKind, reference_count: int) -> str:
        kind_name = ArtifactKind(kind).value
        comparison_note = ""
        if reference_count:
            comparison_note = self.prompts["verify_comparison_note"].format(
                reference_count=reference_count,
                kind=kind_name,
            )
        return self.prompts["verify"].format(
            original_intent=original_intent,
            kind=kind_name,
            comparison_note=comparison_note,
        )

    def parse_verdict(self, raw: str) -> VerificationResult:
        payload = extract_json_object(raw or "")
        satisfied = _coerce_bool(payload.get("satisfied")) if payload is not None else None
        if satisfied is None:
            self.logger.warning(
                "Could not decode verification output; accepting result. "
                f"Response (first 200 chars): {(raw or '')[:200]!r}"
            )
            return VerificationResult(satisfied=True)

        issues = [] if satisfied else _coerce_issues(payload.get("issues"))
        suggested = payload.get("suggested_edit", payload.get("suggestedEdit", ""))
        strategy, rule = explain_strategy(issues)

        result = VerificationResult(
            satisfied=satisfied,
            issues=tuple(issues),
            suggested_edit=str(suggested or ""),
            recommended_strategy=strategy,
        )
        if result.satisfied:
            self.logger.info("  Verdict: satisfied")
        else:
            self.logger.info(f"  Verdict: not satisfied ({len(result.issues)} issue(s))")
            for issue in result.issues:
                self.logger.info(f"    - {issue}")
            self.logger.debug(f"  Strategy {strategy.value} (rule: {rule})")
        return result
