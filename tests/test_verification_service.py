import pytest

from agentic_refine.core.config.prompt_library import BASELINE_PROMPTS
from agentic_refine.core.models import Artifact, ArtifactKind, Strategy
from agentic_refine.core.services.verification_service import VerificationService

from fakes import FakeVision, RecordingLogger, verdict


def make_service(vision=None, logger=None):
    return VerificationService(logger or RecordingLogger(), vision or FakeVision(), BASELINE_PROMPTS, model="judge")


def test_unsatisfied_verdict_is_parsed():
    vision = FakeVision(verdicts=[verdict(False, ["Lighting too dim"], "brighten the scene")])
    result = make_service(vision).verify([Artifact("out.png")], "a sunny park")

    assert result.satisfied is False
    assert result.issues == ("Lighting too dim",)
    assert result.suggested_edit == "brighten the scene"
    assert result.recommended_strategy == Strategy.PROGRESSIVE
    assert vision.judge_calls[0]["model"] == "judge"
    assert "a sunny park" in vision.judge_calls[0]["prompt"]


def test_comparison_note_only_with_references():
    vision = FakeVision(verdicts=[verdict(True), verdict(True)])
    service = make_service(vision)
    service.verify([Artifact("out.png")], "x")
    service.verify([Artifact("ref.png"), Artifact("out.png")], "x", reference_count=1)

    assert "ORIGINAL reference" not in vision.judge_calls[0]["prompt"]
    assert "The first 1 image(s) are the ORIGINAL reference" in vision.judge_calls[1]["prompt"]


@pytest.mark.parametrize(
    "raw",
    [
        "The picture looks great.",
        "",
        '{"issues": ["no verdict key"]}',
        '{"satisfied": "perhaps"}',
    ],
)
def test_undecodable_output_fails_open(raw):
    logger = RecordingLogger()
    result = make_service(logger=logger).parse_verdict(raw)

    assert result.satisfied is True
    assert result.issues == ()
    assert any("accepting result" in m for m in logger.messages("warning"))


def test_tolerant_field_shapes():
    service = make_service()
    result = service.parse_verdict('```json\n{"satisfied": "no", "issues": "hat missing", "suggestedEdit": "add hat"}\n```')
    assert result.satisfied is False
    assert result.issues == ("hat missing",)
    assert result.suggested_edit == "add hat"


def test_satisfied_verdict_ignores_issues():
    result = make_service().parse_verdict('{"satisfied": true, "issues": ["minor"], "suggested_edit": "x"}')
    assert result.satisfied is True
    assert result.issues == ()
    assert result.suggested_edit == ""


def test_verify_requires_an_artifact():
    with pytest.raises(ValueError):
        make_service().verify([], "x")


def test_prompt_names_the_artifact_kind():
    prompt = make_service().build_prompt("waves", ArtifactKind.VIDEO, 1)
    assert "generated video" in prompt
    assert "The last video is the RESULT" in prompt
