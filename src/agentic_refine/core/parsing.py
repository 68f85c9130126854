"""Tolerant JSON extraction from model output.

Model responses wrap JSON in prose, code fences, or reasoning spans. Each
strategy below takes raw text and returns a dict or None ("no match");
`extract_json_object` tries them in order and stops at the first hit.
"""

from __future__ import annotations

import json
import re
from typing import Callable, Dict, Iterable, Optional

from agentic_refine.core.constants import THINK_CLOSE, THINK_OPEN

ParseStrategy = Callable[[str], Optional[Dict]]

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_THINK_RE = re.compile(re.escape(THINK_OPEN) + r".*?(?:" + re.escape(THINK_CLOSE) + r"|$)", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    if not text:
        return ""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    stripped = text.strip()
    # Unterminated fence: drop the opening marker line.
    if stripped.startswith("```"):
        lines = stripped.split("\n")[1:]
        return "\n".join(lines).strip()
    return stripped


def strip_reasoning(text: str) -> str:
    """Remove <think>...</think> spans (an unterminated span runs to the end)."""
    if not text:
        return ""
    cleaned = _THINK_RE.sub("", text)
    return cleaned.replace(THINK_CLOSE, "").strip()


def find_balanced_object(text: str) -> Optional[str]:
    """Return the first brace-balanced `{...}` substring, honouring JSON strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            ch = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:idx + 1]
        start = text.find("{", start + 1)
    return None


def _loads_dict(text: str) -> Optional[Dict]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


# ----------------------------------------------------------------------
# Strategies
# ----------------------------------------------------------------------
def parse_direct(text: str) -> Optional[Dict]:
    return _loads_dict(strip_code_fence(strip_reasoning(text)))


def parse_balanced_object(text: str) -> Optional[Dict]:
    body = strip_code_fence(strip_reasoning(text))
    candidate = find_balanced_object(body)
    if candidate is None:
        # The object may sit inside prose next to a fence we already stripped.
        candidate = find_balanced_object(text or "")
    if candidate is None:
        return None
    parsed = _loads_dict(candidate)
    if parsed is not None:
        return parsed
    # Trailing commas are the most common defect in model-written JSON.
    return _loads_dict(re.sub(r",\s*([}\]])", r"\1", candidate))


DEFAULT_STRATEGIES = (parse_direct, parse_balanced_object)


def extract_json_object(
    text: str,
    strategies: Iterable[ParseStrategy] = DEFAULT_STRATEGIES,
) -> Optional[Dict]:
    """Try each strategy in order; None when no strategy matched."""
    if not text or not text.strip():
        return None
    for strategy in strategies:
        result = strategy(text)
        if result is not None:
            return result
    return None
