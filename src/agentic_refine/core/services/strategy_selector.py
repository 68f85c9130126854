"""Keyword classification of verifier issues into a continuation strategy."""

from __future__ import annotations

import re
from typing import Callable, Iterable, Pattern, Sequence, Tuple

from agentic_refine.core.models import Strategy

SUBJECT_TERMS = (
    "subject", "identity", "person", "people", "face", "facial", "man", "men",
    "woman", "women", "child", "children", "boy", "girl", "human", "character",
    "likeness", "expression", "skin", "hair", "body", "pose",
)
BACKGROUND_TERMS = (
    "background", "setting", "environment", "scene", "backdrop", "surroundings",
    "location", "landscape", "room",
)
CLOTHING_TERMS = (
    "clothing", "clothes", "outfit", "garment", "shirt", "t-shirt", "dress",
    "jacket", "coat", "pants", "trousers", "jeans", "skirt", "sweater", "hoodie",
    "suit", "uniform", "shoes", "attire",
)
CLOTHING_CHANGE_TERMS = (
    "changed", "change", "wrong", "different", "altered", "modified", "replaced",
    "missing", "incorrect",
)
QUALITY_TERMS = (
    "quality", "lighting", "light", "lit", "color", "colour", "colors", "colours",
    "brightness", "bright", "dark", "darker", "dim", "contrast", "sharpness",
    "sharp", "blurry", "blur", "noise", "noisy", "grainy", "exposure",
    "overexposed", "underexposed", "saturation", "saturated", "washed",
    "detail", "details", "resolution", "artifact", "artifacts",
)


def _compile(terms: Sequence[str]) -> Pattern:
    alternatives = "|".join(re.escape(t) for t in sorted(terms, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})s?\b", re.IGNORECASE)


_SUBJECT_RE = _compile(SUBJECT_TERMS)
_BACKGROUND_RE = _compile(BACKGROUND_TERMS)
_CLOTHING_RE = _compile(CLOTHING_TERMS)
_CLOTHING_CHANGE_RE = _compile(CLOTHING_CHANGE_TERMS)
_QUALITY_RE = _compile(QUALITY_TERMS)


def _is_clothing_change(issue: str) -> bool:
    return bool(_CLOTHING_RE.search(issue) and _CLOTHING_CHANGE_RE.search(issue))


# Evaluated top to bottom; the first rule matching any issue wins.
RULES: Tuple[Tuple[str, Callable[[str], object], Strategy], ...] = (
    ("subject", _SUBJECT_RE.search, Strategy.FRESH),
    ("background", _BACKGROUND_RE.search, Strategy.FRESH),
    ("clothing", _is_clothing_change, Strategy.FRESH),
    ("quality", _QUALITY_RE.search, Strategy.PROGRESSIVE),
)

DEFAULT_STRATEGY = Strategy.FRESH


def explain_strategy(issues: Iterable[str]) -> Tuple[Strategy, str]:
    """Return (strategy, name of the matching rule or 'default')."""
    issue_list = [str(i) for i in issues or () if str(i).strip()]
    for name, matches, strategy in RULES:
        if any(matches(issue) for issue in issue_list):
            return strategy, name
    return DEFAULT_STRATEGY, "default"


def select_strategy(issues: Iterable[str]) -> Strategy:
    """Classify verifier issues. Pure function of its input."""
    return explain_strategy(issues)[0]
