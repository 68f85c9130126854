"""Scripted stand-ins for the generation and vision services."""

import json

from agentic_refine.core.models import Artifact, ArtifactKind


def verdict(satisfied, issues=(), suggested_edit=""):
    return json.dumps({"satisfied": satisfied, "issues": list(issues), "suggested_edit": suggested_edit})


class ScriptedGenerator:
    """Returns artifact-1, artifact-2, ... and records every call."""

    def __init__(self, kind=ArtifactKind.IMAGE, error=None):
        self.kind = kind
        self.error = error
        self.calls = []

    def generate(self, prompt, reference_artifacts=None, dimensions=None, model=None):
        self.calls.append({
            "prompt": prompt,
            "reference_artifacts": reference_artifacts,
            "dimensions": dimensions,
            "model": model,
        })
        if self.error is not None:
            raise self.error
        return Artifact(uri=f"https://cdn.example/artifact-{len(self.calls)}.png", kind=self.kind)


class FakeVision:
    """Judge answers come from `verdicts`; narrate answers from `narrations`.

    An Exception instance in either list is raised instead of returned.
    """

    def __init__(self, verdicts=(), narrations=()):
        self.verdicts = list(verdicts)
        self.narrations = list(narrations)
        self.judge_calls = []
        self.narrate_calls = []

    def judge(self, artifacts, prompt, model=None):
        self.judge_calls.append({"artifacts": list(artifacts), "prompt": prompt, "model": model})
        answer = self.verdicts.pop(0) if self.verdicts else verdict(True)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def narrate(self, system_instruction, user_context, artifacts=None, model=None):
        self.narrate_calls.append({
            "system": system_instruction,
            "context": user_context,
            "artifacts": artifacts,
            "model": model,
        })
        answer = self.narrations.pop(0) if self.narrations else ""
        if isinstance(answer, Exception):
            raise answer
        return answer


class RecordingLogger:
    """Minimal logger capturing messages by level."""

    def __init__(self):
        self.records = []

    def _log(self, level, msg, *args):
        self.records.append((level, msg % args if args else msg))

    def debug(self, msg, *args):
        self._log("debug", msg, *args)

    def info(self, msg, *args):
        self._log("info", msg, *args)

    def warning(self, msg, *args):
        self._log("warning", msg, *args)

    def error(self, msg, *args):
        self._log("error", msg, *args)

    def messages(self, level):
        return [m for lvl, m in self.records if lvl == level]
