import json

from agentic_refine.core.media import bytes_to_data_url
from agentic_refine.core.models import (
    Artifact,
    ArtifactAnalysis,
    GenerationIntent,
    Iteration,
    RunResult,
    VerificationResult,
)
from agentic_refine.run_recorder import RunRecorder


def test_save_writes_run_and_inline_artifacts(tmp_path):
    inline = Artifact(bytes_to_data_url(b"png-bytes", "image/png"))
    remote = Artifact("https://cdn.example/second.jpg")
    analysis = ArtifactAnalysis(has_subjects=False, background_description="beach")
    iterations = (
        Iteration(1, inline, "add a hat", VerificationResult(False, ("no hat",)), analysis),
        Iteration(2, remote, "add a red hat", VerificationResult(True), analysis),
    )
    result = RunResult(final_artifact=remote, iterations=iterations, success=True, total_iterations=2)
    intent = GenerationIntent(text="add a hat", reference_artifacts=[Artifact("https://cdn.example/ref.png")])

    run_file = RunRecorder(tmp_path / "out").save(intent, result)

    record = json.loads(run_file.read_text(encoding="utf-8"))
    assert record["mode"] == "edit"
    assert record["success"] is True
    assert record["final_artifact"] == "https://cdn.example/second.jpg"
    assert record["analysis"]["background_description"] == "beach"
    assert record["iterations"][0]["artifact"] == "iteration_1.png"
    assert record["iterations"][0]["verification"]["issues"] == ["no hat"]
    assert (tmp_path / "out" / "iteration_1.png").read_bytes() == b"png-bytes"


def test_inline_final_artifact_is_written(tmp_path):
    final = Artifact(bytes_to_data_url(b"jpeg", "image/jpeg"))
    result = RunResult(
        final_artifact=final,
        iterations=(Iteration(1, final, "a fox", VerificationResult(False)),),
        success=False,
        total_iterations=1,
    )
    RunRecorder(tmp_path).save(GenerationIntent(text="a fox"), result)

    record = json.loads((tmp_path / "run.json").read_text(encoding="utf-8"))
    assert record["final_artifact"] == "final.jpg"
    assert record["analysis"] is None
    assert (tmp_path / "final.jpg").read_bytes() == b"jpeg"
