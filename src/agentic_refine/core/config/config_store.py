"""Configuration loading helpers."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from agentic_refine.core.constants import (
    API_DEFAULT_BASE_URL,
    API_DEFAULT_TIMEOUT,
    API_KEY_ENV,
    API_RETRY_ATTEMPTS,
    API_RETRY_DELAY,
    DEFAULT_GENERATION_MODEL,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_VERIFICATION_MODEL,
    MEDIA_DEFAULT_BASE_URL,
    MEDIA_DEFAULT_TIMEOUT,
    PLANNER_MAX_WORDS,
    VIDEO_DEFAULT_RESOLUTION,
)
from agentic_refine.core.models import RefinementConfig

BASELINE_CONFIG: Dict[str, Any] = {
    "api": {
        "base_url": API_DEFAULT_BASE_URL,
        "api_key": None,
        "timeout": API_DEFAULT_TIMEOUT,
        "retry_attempts": API_RETRY_ATTEMPTS,
        "retry_delay": API_RETRY_DELAY,
    },
    "media": {
        "base_url": MEDIA_DEFAULT_BASE_URL,
        "timeout": MEDIA_DEFAULT_TIMEOUT,
        "video_resolution": VIDEO_DEFAULT_RESOLUTION,
    },
    "models": {
        "generation": DEFAULT_GENERATION_MODEL,
        "verification": DEFAULT_VERIFICATION_MODEL,
        "planning": None,
    },
    "run": {
        "max_iterations": DEFAULT_MAX_ITERATIONS,
        "artifact_kind": "image",
        "planner_max_words": PLANNER_MAX_WORDS,
    },
    "prompts_path": None,
}


def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge `override` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigStore:
    """Handles the engine configuration files (defaults + user overrides)."""

    def __init__(self, defaults_root: Path | str = "defaults"):
        self.defaults_root = Path(defaults_root)

    def load(self, config_path: Optional[Path | str] = None) -> Dict:
        """Load baseline -> defaults/config/engine.yaml -> config_path."""
        config = copy.deepcopy(BASELINE_CONFIG)

        defaults_file = self.defaults_root / "config" / "engine.yaml"
        if defaults_file.exists():
            config = deep_merge(config, self._read_yaml(defaults_file))

        if config_path:
            user_file = Path(config_path)
            if not user_file.exists():
                raise FileNotFoundError(f"Config file not found: {user_file}")
            config = deep_merge(config, self._read_yaml(user_file))

        api_cfg = config["api"]
        if not api_cfg.get("api_key"):
            api_cfg["api_key"] = os.environ.get(API_KEY_ENV)
        return config

    @staticmethod
    def _read_yaml(path: Path) -> Dict:
        with open(path, "r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Expected a mapping at the top of {path}")
        return loaded


def build_refinement_config(config: Dict, **overrides: Any) -> RefinementConfig:
    """Create a RefinementConfig from a loaded config dict plus CLI overrides.

    Overrides whose value is None are ignored.
    """
    models = config.get("models") or {}
    run = config.get("run") or {}
    values: Dict[str, Any] = {
        "max_iterations": run.get("max_iterations", DEFAULT_MAX_ITERATIONS),
        "generation_target_model": models.get("generation") or DEFAULT_GENERATION_MODEL,
        "verification_model": models.get("verification") or DEFAULT_VERIFICATION_MODEL,
        "planning_model": models.get("planning"),
        "artifact_kind": run.get("artifact_kind", "image"),
        "planner_max_words": int(run.get("planner_max_words", PLANNER_MAX_WORDS)),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return RefinementConfig(**values)
