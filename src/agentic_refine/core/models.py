"""Data model shared by the refinement services.

Every record here is created and consumed inside a single run. Records are
frozen; the iteration trace is only ever appended to by the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from agentic_refine.core.constants import (
    DEFAULT_GENERATION_MODEL,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_VERIFICATION_MODEL,
    MAX_ITERATIONS,
    MIN_ITERATIONS,
    PLANNER_MAX_WORDS,
)


class ArtifactKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class RunMode(str, Enum):
    """Whether a run creates from text or edits the caller's references."""
    CREATE = "create"
    EDIT = "edit"


class Strategy(str, Enum):
    """Continuation strategy derived from verifier issues."""
    FRESH = "fresh"
    PROGRESSIVE = "progressive"
    TARGETED = "targeted"


@dataclass(frozen=True)
class Artifact:
    """A generated or supplied visual object.

    `uri` is a data URL, an http(s) URL, or a local file path.
    """
    uri: str
    kind: ArtifactKind = ArtifactKind.IMAGE
    mime_type: Optional[str] = None

    @property
    def is_data_url(self) -> bool:
        return self.uri.startswith("data:")

    @property
    def is_remote(self) -> bool:
        return self.uri.startswith(("http://", "https://"))


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 1.0


@dataclass(frozen=True)
class GenerationIntent:
    """The caller's original request. Every iteration is judged against it."""
    text: str
    reference_artifacts: Tuple[Artifact, ...] = ()
    reference_dimensions: Optional[Dimensions] = None

    def __post_init__(self):
        # Accept any iterable from callers but store an immutable tuple.
        object.__setattr__(self, "reference_artifacts", tuple(self.reference_artifacts))

    @property
    def mode(self) -> RunMode:
        return RunMode.EDIT if self.reference_artifacts else RunMode.CREATE


@dataclass(frozen=True)
class VerificationResult:
    """Structured judgment of one artifact.

    A satisfied result never carries issues or a suggested edit; both are
    cleared at construction time.
    """
    satisfied: bool
    issues: Tuple[str, ...] = ()
    suggested_edit: str = ""
    recommended_strategy: Strategy = Strategy.FRESH

    def __post_init__(self):
        if self.satisfied:
            object.__setattr__(self, "issues", ())
            object.__setattr__(self, "suggested_edit", "")
        else:
            issues = tuple(str(i).strip() for i in self.issues if str(i).strip())
            object.__setattr__(self, "issues", issues)
            object.__setattr__(self, "suggested_edit", (self.suggested_edit or "").strip())

    def to_dict(self) -> dict:
        return {
            "satisfied": self.satisfied,
            "issues": list(self.issues),
            "suggested_edit": self.suggested_edit,
            "recommended_strategy": self.recommended_strategy.value,
        }


@dataclass(frozen=True)
class Subject:
    id: str
    location: str = ""
    description: str = ""


@dataclass(frozen=True)
class AttachedItem:
    item: str
    attribute: str = ""
    location: str = ""


@dataclass(frozen=True)
class ArtifactAnalysis:
    """Description of a source artifact used to build preservation constraints."""
    has_subjects: bool
    subjects: Tuple[Subject, ...] = ()
    attached_items: Tuple[AttachedItem, ...] = ()
    background_description: str = ""
    salient_objects: Tuple[str, ...] = ()
    preservation_instructions: str = ""

    def to_dict(self) -> dict:
        return {
            "has_subjects": self.has_subjects,
            "subjects": [
                {"id": s.id, "location": s.location, "description": s.description}
                for s in self.subjects
            ],
            "attached_items": [
                {"item": a.item, "attribute": a.attribute, "location": a.location}
                for a in self.attached_items
            ],
            "background_description": self.background_description,
            "salient_objects": list(self.salient_objects),
            "preservation_instructions": self.preservation_instructions,
        }


@dataclass(frozen=True)
class Iteration:
    number: int
    artifact: Artifact
    prompt_used: str
    verification: VerificationResult
    analysis: Optional[ArtifactAnalysis] = None


@dataclass(frozen=True)
class RunResult:
    final_artifact: Artifact
    iterations: Tuple[Iteration, ...]
    success: bool
    total_iterations: int


@dataclass
class RefinementConfig:
    """Per-run settings. Validated on construction."""
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    generation_target_model: str = DEFAULT_GENERATION_MODEL
    verification_model: str = DEFAULT_VERIFICATION_MODEL
    planning_model: Optional[str] = None
    artifact_kind: ArtifactKind = ArtifactKind.IMAGE
    planner_max_words: int = PLANNER_MAX_WORDS

    def __post_init__(self):
        try:
            self.max_iterations = int(self.max_iterations)
        except (TypeError, ValueError):
            raise ValueError(f"max_iterations must be an integer, got {self.max_iterations!r}")
        if not MIN_ITERATIONS <= self.max_iterations <= MAX_ITERATIONS:
            raise ValueError(
                f"max_iterations must be between {MIN_ITERATIONS} and {MAX_ITERATIONS}, "
                f"got {self.max_iterations}"
            )
        self.artifact_kind = ArtifactKind(self.artifact_kind)
        if not self.planning_model:
            self.planning_model = None


@dataclass(frozen=True)
class Narration:
    """Text from a narration call, with any reasoning channel kept apart."""
    text: str
    reasoning: str = ""
