"""Pydantic models for push requests and batch results."""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel

# Length of the one-line diagnostic summary kept on each result
SUMMARY_LENGTH = 100


class PushRequest(BaseModel):
    """A compiled document handed to the push boundary."""

    document_name: str
    document: dict[str, Any]
    artifact_path: Path
    activate: bool = False


class PushOutcome(BaseModel):
    """What the push boundary reported back."""

    success: bool
    output: str = ""
    diagnostics: str = ""


class PushStage(str, Enum):
    """Pipeline stage a document reached."""

    COMPILE = "compile"
    VALIDATE = "validate"
    PUSH = "push"
    DONE = "done"


class PushResult(BaseModel):
    """Per-document result of a batch push."""

    path: str
    document_name: str
    success: bool
    stage: PushStage
    summary: str = ""
    diagnostics: str = ""
    warnings: list[str] = []
    ledger_recorded: bool = False

    @classmethod
    def failed(
        cls,
        path: str,
        document_name: str,
        stage: PushStage,
        diagnostics: str,
        warnings: list[str] | None = None,
    ) -> "PushResult":
        return cls(
            path=path,
            document_name=document_name,
            success=False,
            stage=stage,
            summary=summarize(diagnostics),
            diagnostics=diagnostics,
            warnings=warnings or [],
        )


class BatchPushReport(BaseModel):
    """Results of one batch push, one entry per document."""

    results: list[PushResult] = []

    @property
    def succeeded(self) -> list[PushResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[PushResult]:
        return [r for r in self.results if not r.success]

    def format(self) -> str:
        """Human-readable summary."""
        lines = [f"Deployed {len(self.succeeded)}/{len(self.results)} workflows"]
        for result in self.succeeded:
            note = "" if result.ledger_recorded else " (changed during push, still pending)"
            lines.append(f"  ok   {result.document_name}{note}")
        for result in self.failed:
            lines.append(f"  FAIL {result.document_name} [{result.stage.value}]: {result.summary}")
        return "\n".join(lines)


def summarize(diagnostics: str, length: int = SUMMARY_LENGTH) -> str:
    """First non-empty line of a diagnostic text, truncated."""
    for line in diagnostics.splitlines():
        if line.strip():
            return line.strip()[:length]
    return ""
