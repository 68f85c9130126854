"""Structured description of edit-run reference artifacts."""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from agentic_refine.core.constants import MAX_EXTRACTED_SUBJECTS, PRESERVATION_SUFFIX
from agentic_refine.core.models import (
    Artifact,
    ArtifactAnalysis,
    AttachedItem,
    Narration,
    Subject,
)
from agentic_refine.core.parsing import extract_json_object
from agentic_refine.core.streaming import to_narration
from agentic_refine.errors import PreAnalysisError

# ----------------------------------------------------------------------
# Vocabulary for the regex fallback tier
# ----------------------------------------------------------------------
NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "single": 1, "lone": 1,
    "two": 2, "pair": 2, "couple": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}
SUBJECT_NOUNS = (
    "people", "persons", "person", "men", "man", "women", "woman", "children",
    "child", "kids", "kid", "boys", "boy", "girls", "girl", "individuals",
    "individual", "subjects", "subject", "figures", "figure",
)
COLORS = (
    "red", "blue", "green", "yellow", "orange", "purple", "pink", "black",
    "white", "gray", "grey", "brown", "beige", "navy", "teal", "maroon",
    "gold", "silver", "cream", "khaki", "olive", "striped", "plaid", "denim",
)
CLOTHING_ITEMS = (
    "t-shirt", "shirt", "blouse", "dress", "jacket", "coat", "hoodie",
    "sweater", "cardigan", "pants", "trousers", "jeans", "shorts", "skirt",
    "suit", "vest", "scarf", "hat", "cap", "beanie", "tie", "shoes", "boots",
    "sneakers", "gloves", "uniform", "top", "glasses", "sunglasses",
)
OBJECT_NOUNS = (
    "table", "chair", "sofa", "couch", "bed", "lamp", "window", "door",
    "car", "bicycle", "bike", "tree", "trees", "plant", "flowers", "flower",
    "building", "house", "cup", "mug", "glass", "bottle", "book", "laptop",
    "phone", "bag", "backpack", "umbrella", "dog", "cat", "bird", "horse",
    "fence", "bench", "sign", "clock", "painting", "mirror", "desk",
    "mountain", "mountains", "river", "lake", "beach", "road", "street",
)

_NUMBER_PATTERN = "|".join(sorted(NUMBER_WORDS, key=len, reverse=True))
_SUBJECT_PATTERN = "|".join(SUBJECT_NOUNS)
_SUBJECT_COUNT_RE = re.compile(
    rf"\b(\d+|{_NUMBER_PATTERN})\s+(?:of\s+)?(?:[a-z-]+\s+)?({_SUBJECT_PATTERN})\b",
    re.IGNORECASE,
)
_SUBJECT_MENTION_RE = re.compile(rf"\b({_SUBJECT_PATTERN})\b", re.IGNORECASE)
_CLOTHING_RE = re.compile(
    r"\b(" + "|".join(COLORS) + r")\s+(" + "|".join(re.escape(c) for c in CLOTHING_ITEMS) + r")s?\b",
    re.IGNORECASE,
)
_OBJECT_RE = re.compile(r"\b(" + "|".join(OBJECT_NOUNS) + r")\b", re.IGNORECASE)
_BACKGROUND_RE = re.compile(
    r"\b(?:background|setting|backdrop)\b\s*(?:is|shows|features|consists of|of|:|-)?\s*([^.\n]{3,160})",
    re.IGNORECASE,
)


def _first_key(payload: Dict, *names: str):
    for name in names:
        if name in payload and payload[name] is not None:
            return payload[name]
    return None


def _as_list(value) -> List:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _subjects_from(value) -> Tuple[Subject, ...]:
    subjects = []
    for idx, entry in enumerate(_as_list(value), 1):
        if isinstance(entry, dict):
            subjects.append(Subject(
                id=str(entry.get("id") or f"subject{idx}"),
                location=str(entry.get("location") or ""),
                description=str(entry.get("description") or ""),
            ))
        elif str(entry).strip():
            subjects.append(Subject(id=f"subject{idx}", description=str(entry).strip()))
    return tuple(subjects)


def _items_from(value) -> Tuple[AttachedItem, ...]:
    items = []
    for entry in _as_list(value):
        if isinstance(entry, dict):
            name = entry.get("item") or entry.get("name")
            if not name:
                continue
            items.append(AttachedItem(
                item=str(name),
                attribute=str(entry.get("attribute") or entry.get("color") or ""),
                location=str(entry.get("location") or entry.get("subject") or ""),
            ))
        elif str(entry).strip():
            items.append(AttachedItem(item=str(entry).strip()))
    return tuple(items)


# ----------------------------------------------------------------------
# Parse tiers
# ----------------------------------------------------------------------
ANALYSIS_KEYS = (
    "has_subjects", "hasSubjects", "subjects", "attached_items", "attachedItems",
    "clothing", "background_description", "backgroundDescription", "background",
    "salient_objects", "salientObjects", "objects",
)


def analysis_fields_from_payload(payload: Optional[Dict]) -> Optional[Dict]:
    """Map a decoded JSON object onto analysis fields; None if it is not one."""
    if not payload or not any(k in payload for k in ANALYSIS_KEYS):
        return None
    subjects = _subjects_from(_first_key(payload, "subjects"))
    has_subjects = _first_key(payload, "has_subjects", "hasSubjects")
    if not isinstance(has_subjects, bool):
        has_subjects = bool(subjects)
    return {
        "has_subjects": has_subjects,
        "subjects": subjects,
        "attached_items": _items_from(_first_key(payload, "attached_items", "attachedItems", "clothing")),
        "background_description": str(
            _first_key(payload, "background_description", "backgroundDescription", "background") or ""
        ),
        "salient_objects": tuple(
            str(o).strip() for o in _as_list(_first_key(payload, "salient_objects", "salientObjects", "objects"))
            if str(o).strip()
        ),
    }


CROWD_SUBJECT_ID = "crowd"


def _counted_subjects(count: int) -> Tuple[Subject, ...]:
    if count > MAX_EXTRACTED_SUBJECTS:
        return (Subject(id=CROWD_SUBJECT_ID, description=f"a group of about {count} people"),)
    return tuple(Subject(id=f"subject{i}") for i in range(1, count + 1))


def analysis_fields_from_text(text: str) -> Optional[Dict]:
    """Best-effort extraction from unstructured prose; None if nothing found."""
    if not text or not text.strip():
        return None

    # Each count phrase ("a man", "two women") names different people; a later
    # "the women" is not a count phrase and adds nothing.
    count = 0
    for match in _SUBJECT_COUNT_RE.finditer(text):
        raw = match.group(1).lower()
        count += int(raw) if raw.isdigit() else NUMBER_WORDS.get(raw, 0)
    if count == 0 and _SUBJECT_MENTION_RE.search(text):
        count = 1

    items: List[AttachedItem] = []
    seen_items = set()
    for match in _CLOTHING_RE.finditer(text):
        key = (match.group(1).lower(), match.group(2).lower())
        if key in seen_items:
            continue
        seen_items.add(key)
        items.append(AttachedItem(item=key[1], attribute=key[0]))

    objects: List[str] = []
    for match in _OBJECT_RE.finditer(text):
        name = match.group(1).lower()
        if name not in objects:
            objects.append(name)

    background_match = _BACKGROUND_RE.search(text)
    background = background_match.group(1).strip() if background_match else ""

    if not (count or items or objects or background):
        return None

    return {
        "has_subjects": count > 0,
        "subjects": _counted_subjects(count),
        "attached_items": tuple(items),
        "background_description": background,
        "salient_objects": tuple(objects),
    }


def _tier_direct(narration: Narration) -> Optional[Dict]:
    return analysis_fields_from_payload(extract_json_object(narration.text))


def _tier_reasoning(narration: Narration) -> Optional[Dict]:
    if narration.text.strip():
        return None
    return analysis_fields_from_payload(extract_json_object(narration.reasoning))


def _tier_regex(narration: Narration) -> Optional[Dict]:
    return analysis_fields_from_text(narration.text or narration.reasoning)


PARSE_TIERS: Tuple[Tuple[str, Callable[[Narration], Optional[Dict]]], ...] = (
    ("json", _tier_direct),
    ("reasoning-json", _tier_reasoning),
    ("regex", _tier_regex),
)


def minimal_analysis_fields() -> Dict:
    return {
        "has_subjects": True,
        "subjects": (Subject(id="subject1", location="center", description="main subject"),),
        "attached_items": (),
        "background_description": "",
        "salient_objects": (),
    }


def build_preservation_instructions(original_intent: str, subjects: Sequence[Subject]) -> str:
    """Edit instruction that names what must stay unchanged."""
    intent = (original_intent or "").strip().rstrip(".")
    text = f"{intent}. {PRESERVATION_SUFFIX}"
    if len(subjects) > MAX_EXTRACTED_SUBJECTS or any(s.id == CROWD_SUBJECT_ID for s in subjects):
        crowd = subjects[0].description if len(subjects) == 1 else f"{len(subjects)} subjects"
        text += (
            f" The image contains {crowd}. Keep every person the request does not mention "
            "unchanged, including face, clothing, and position."
        )
    elif len(subjects) > 1:
        described = []
        for subject in subjects:
            parts = [subject.id]
            if subject.location:
                parts.append(f"({subject.location})")
            label = " ".join(parts)
            described.append(f"{label}: {subject.description}" if subject.description else label)
        text += (
            f" The image contains {len(subjects)} subjects: {'; '.join(described)}. "
            "Keep every subject the request does not mention unchanged, including face, "
            "clothing, and position."
        )
    return text


class PreAnalysisService:
    """Runs once per edit run to describe the reference artifacts."""

    def __init__(self, logger, vision_client, prompts: Dict[str, str], model: Optional[str] = None):
        self.logger = logger
        self.vision = vision_client
        self.prompts = prompts
        self.model = model

    def analyze(self, reference_artifacts: Sequence[Artifact], original_intent: str) -> ArtifactAnalysis:
        """Describe the references. Service failures raise PreAnalysisError."""
        if not reference_artifacts:
            raise PreAnalysisError("Pre-analysis needs at least one reference artifact")

        self.logger.info(f"Analysing {len(reference_artifacts)} reference artifact(s)...")
        system = self.prompts["pre_analyze_system"]
        context = self.prompts["pre_analyze_context"].format(original_intent=original_intent)
        try:
            response = self.vision.narrate(system, context, artifacts=list(reference_artifacts), model=self.model)
        except Exception as e:
            raise PreAnalysisError(f"Failed to analyse reference artifact: {e}") from e

        return self.parse_analysis(to_narration(response), original_intent)

    def parse_analysis(self, narration: Narration, original_intent: str) -> ArtifactAnalysis:
        fields = None
        for name, tier in PARSE_TIERS:
            fields = tier(narration)
            if fields is not None:
                self.logger.info(f"  Reference analysis parsed ({name})")
                break
        if fields is None:
            self.logger.warning("  Could not parse reference analysis; assuming a single subject")
            fields = minimal_analysis_fields()

        analysis = ArtifactAnalysis(
            preservation_instructions=build_preservation_instructions(original_intent, fields["subjects"]),
            **fields,
        )
        self.logger.debug(
            f"  Subjects: {len(analysis.subjects)}, items: {len(analysis.attached_items)}, "
            f"objects: {list(analysis.salient_objects)}"
        )
        return analysis
