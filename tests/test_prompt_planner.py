import pytest

from agentic_refine.core.config.prompt_library import BASELINE_PROMPTS
from agentic_refine.core.models import ArtifactAnalysis, Narration, VerificationResult
from agentic_refine.core.services.prompt_planner import PromptPlanner, is_refusal, quality_fallback_prompt
from agentic_refine.errors import TransportError

from fakes import FakeVision, RecordingLogger

FAILED = VerificationResult(satisfied=False, issues=("hat missing",), suggested_edit="Add a red hat")
FAILED_NO_EDIT = VerificationResult(satisfied=False, issues=("too dark",))
ANALYSIS = ArtifactAnalysis(has_subjects=True, preservation_instructions="add a hat. Preserve everything.")


def make_planner(narrations=(), model="planner", max_words=60):
    vision = FakeVision(narrations=narrations)
    return PromptPlanner(RecordingLogger(), vision, BASELINE_PROMPTS, model=model, max_words=max_words), vision


def test_planner_output_is_cleaned():
    planner, vision = make_planner(['Prompt: "Add a red hat, keep everything else unchanged"\n\nWhy: because'])
    assert planner.plan("add a hat", FAILED, ANALYSIS) == "Add a red hat, keep everything else unchanged"

    call = vision.narrate_calls[0]
    assert call["model"] == "planner"
    assert "at most 60 words" in call["system"]
    assert "hat missing" in call["context"]
    assert "MUST STAY UNCHANGED: add a hat. Preserve everything." in call["context"]


def test_reasoning_is_stripped_from_planner_output():
    planner, _ = make_planner([Narration(text="<think>consider hats</think>Add a hat", reasoning="r")])
    assert planner.plan("add a hat", FAILED) == "Add a hat"


@pytest.mark.parametrize("reply", ["", "   ", "I'm sorry, I cannot help with that.", "As an AI I won't"])
def test_refusals_fall_back_to_suggested_edit(reply):
    planner, _ = make_planner([reply])
    assert planner.plan("add a hat", FAILED) == "Add a red hat"


def test_transport_failure_falls_back():
    planner, _ = make_planner([TransportError("down")])
    assert planner.plan("add a hat", FAILED) == "Add a red hat"


def test_fallback_order_without_model():
    planner, vision = make_planner(model=None)
    assert planner.plan("add a hat", FAILED, ANALYSIS) == "Add a red hat"
    assert planner.plan("add a hat", None, ANALYSIS) == "add a hat. Preserve everything."
    assert planner.plan("add a hat.", FAILED_NO_EDIT, ANALYSIS) == (
        "add a hat. Enhance visual quality: improve lighting, composition, detail, color."
    )
    assert vision.narrate_calls == []


def test_never_returns_empty():
    planner, _ = make_planner(model=None)
    assert planner.plan("", FAILED_NO_EDIT) == quality_fallback_prompt("")
    assert planner.plan("", FAILED_NO_EDIT)


def test_long_replies_are_truncated():
    planner, _ = make_planner([" ".join(["word"] * 200)])
    assert len(planner.plan("x", FAILED).split()) == 120


def test_is_refusal():
    assert is_refusal("Unable to comply")
    assert not is_refusal("Make the sky orange")


MALFORMED_REPLIES = [
    "Prompt:",
    "<think>the user wants a hat, maybe red</think>",
    None,
    Narration(text="", reasoning="x"),
    '""',
]


@pytest.mark.parametrize("reply", MALFORMED_REPLIES)
def test_malformed_reply_uses_suggested_edit(reply):
    planner, _ = make_planner([reply])
    assert planner.plan("add a hat", FAILED) == "Add a red hat"


@pytest.mark.parametrize("reply", MALFORMED_REPLIES)
def test_malformed_reply_without_suggestion_uses_quality_prompt(reply):
    planner, _ = make_planner([reply])
    assert planner.plan("add a hat", FAILED_NO_EDIT) == quality_fallback_prompt("add a hat")
