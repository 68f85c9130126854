"""Prompt template loading utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import yaml


def _default_repo_root() -> Path:
    return Path(__file__).resolve().parents[4]


BASELINE_PROMPTS: Dict[str, str] = {
    "verify": "You are a strict visual reviewer checking whether a generated {kind} fulfils a request.\n\n"
    "ORIGINAL REQUEST:\n{original_intent}\n\n"
    "{comparison_note}"
    "Judge only against the original request. List every concrete problem you see "
    "(missing or wrong elements, changed identity, changed clothing or background, "
    "poor lighting, blur, artifacts).\n\n"
    "Respond with ONLY a JSON object, no prose:\n"
    "{{\n    \"satisfied\": <true|false>,\n    \"issues\": [\"issue1\", \"issue2\"],\n"
    "    \"suggested_edit\": \"<one instruction that fixes the issues, empty if satisfied>\"\n}}",
    "verify_comparison_note": "The first {reference_count} image(s) are the ORIGINAL reference. "
    "The last {kind} is the RESULT. The requested change must be visible in the RESULT and "
    "everything else must match the ORIGINAL.\n\n",
    "plan_system": "You write instructions for an image editing model. Reply with a single edit "
    "instruction of at most {max_words} words. Lead with the required change, then close with a "
    "short generic phrase such as 'keep everything else unchanged'. Do not explain, do not list "
    "options, do not use quotes.",
    "plan_next_context": "ORIGINAL REQUEST: {original_intent}\n"
    "PROBLEMS IN LAST RESULT: {issues}\n"
    "REVIEWER SUGGESTION: {suggested_edit}\n"
    "{analysis_context}"
    "Write the next edit instruction.",
    "plan_initial_context": "ORIGINAL REQUEST: {original_intent}\n"
    "{analysis_context}"
    "Write the first edit instruction.",
    "pre_analyze_system": "You describe a source image so that an edit can preserve everything "
    "that was not asked to change. Respond with ONLY a JSON object:\n"
    "{{\n    \"has_subjects\": <true|false>,\n"
    "    \"subjects\": [{{\"id\": \"person1\", \"location\": \"left\", \"description\": \"...\"}}],\n"
    "    \"attached_items\": [{{\"item\": \"jacket\", \"attribute\": \"red\", \"location\": \"person1\"}}],\n"
    "    \"background_description\": \"...\",\n"
    "    \"salient_objects\": [\"object1\", \"object2\"]\n}}",
    "pre_analyze_context": "Requested edit: {original_intent}\nDescribe the reference image(s).",
}


def load_prompt_templates(
    prompts_path: Optional[Path] = None,
    defaults_root: Optional[Path] = None,
    repo_root: Optional[Path] = None,
) -> Dict[str, str]:
    """Load prompt templates with layered fallbacks.

    Precedence:
      1. Baseline hardcoded prompts (ensures keys always exist)
      2. defaults/prompts.yaml (if present)
      3. repo root prompts.yaml (if present)
      4. Provided `prompts_path` (user overrides)
    """

    repo_root = Path(repo_root) if repo_root else _default_repo_root()
    defaults_root = Path(defaults_root) if defaults_root else repo_root / "defaults"
    defaults_prompts = defaults_root / "prompts.yaml"
    canonical_prompts = repo_root / "prompts.yaml"

    merged: Dict[str, str] = dict(BASELINE_PROMPTS)

    def _merge_file(path: Path) -> None:
        if not path.exists():
            return
        with open(path, "r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh) or {}
        if isinstance(loaded, dict):
            merged.update({k: str(v) for k, v in loaded.items() if v})

    _merge_file(defaults_prompts)
    _merge_file(canonical_prompts)

    if prompts_path:
        _merge_file(Path(prompts_path))

    return merged
