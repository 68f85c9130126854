"""Persist a finished run to disk (caller-side; the engine keeps nothing)."""

from __future__ import annotations

import json
import mimetypes
import time
from pathlib import Path
from typing import Dict, Optional

from agentic_refine.core.media import split_data_url
from agentic_refine.core.models import Artifact, ArtifactKind, GenerationIntent, RunResult

_EXTENSION_OVERRIDES = {"image/jpeg": ".jpg", "video/quicktime": ".mov"}


def _extension_for(mime_type: str, kind: ArtifactKind) -> str:
    ext = _EXTENSION_OVERRIDES.get(mime_type) or mimetypes.guess_extension(mime_type or "")
    if ext:
        return ext
    return ".mp4" if kind == ArtifactKind.VIDEO else ".png"


class RunRecorder:
    """Writes run.json plus one file per inline artifact."""

    def __init__(self, output_dir: Path | str):
        self.output_dir = Path(output_dir)

    def artifact_path(self, stem: str, artifact: Artifact) -> Optional[Path]:
        if not artifact.is_data_url:
            return None
        mime_type, _ = split_data_url(artifact.uri)
        return self.output_dir / f"{stem}{_extension_for(mime_type, artifact.kind)}"

    def _write_artifact(self, stem: str, artifact: Artifact) -> str:
        """Write an inline artifact and return where it lives."""
        path = self.artifact_path(stem, artifact)
        if path is None:
            return artifact.uri
        _, data = split_data_url(artifact.uri)
        with open(path, "wb") as f:
            f.write(data)
        return path.name

    def save(self, intent: GenerationIntent, result: RunResult) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)

        iterations = []
        for iteration in result.iterations:
            iterations.append({
                "iteration": iteration.number,
                "artifact": self._write_artifact(f"iteration_{iteration.number}", iteration.artifact),
                "prompt_used": iteration.prompt_used,
                "verification": iteration.verification.to_dict(),
            })

        analysis = next((it.analysis for it in result.iterations if it.analysis is not None), None)
        record: Dict = {
            "timestamp": time.time(),
            "intent": intent.text,
            "mode": intent.mode.value,
            "references": [a.uri if not a.is_data_url else "<inline>" for a in intent.reference_artifacts],
            "success": result.success,
            "total_iterations": result.total_iterations,
            "final_artifact": self._write_artifact("final", result.final_artifact),
            "analysis": analysis.to_dict() if analysis else None,
            "iterations": iterations,
        }

        run_file = self.output_dir / "run.json"
        with open(run_file, "w", encoding="utf-8") as f:
            json.dump(record, f, indent=2)
        return run_file
