"""Batch push of changed flows.

For every dirty flow: compile a transient copy, auto-fix and validate it,
write it to a short-lived artifact file, hand it to the push boundary and
record the result in the change ledger. Flows are pushed concurrently up to
a fixed limit, and a failing flow never stops the others.
"""

import asyncio
import logging
import uuid
from pathlib import Path

from flowsmith.boundary.base import PushBoundary
from flowsmith.config import ProjectLayout
from flowsmith.errors import (
    FlowsmithError,
    ParameterContractViolation,
    PushBoundaryFailure,
    StructuralError,
)
from flowsmith.models.push import BatchPushReport, PushRequest, PushResult, PushStage, summarize
from flowsmith.services.change_ledger import ChangeLedger
from flowsmith.services.compiler import CompiledDocument, ContentCompiler
from flowsmith.services.contract_validator import ContractValidator
from flowsmith.services.structural_validator import StructuralValidator
from flowsmith.storage.files import unlink, write_json

logger = logging.getLogger(__name__)

ARTIFACT_MODE = 0o600


class Deployer:
    """Pushes flows of one project through a push boundary."""

    def __init__(
        self,
        layout: ProjectLayout,
        ledger: ChangeLedger,
        boundary: PushBoundary,
        artifact_dir: Path,
        concurrency: int = 4,
        timeout: float = 60.0,
        activate: bool = False,
        compiler: ContentCompiler | None = None,
        structural: StructuralValidator | None = None,
        contract: ContractValidator | None = None,
    ):
        self.layout = layout
        self.ledger = ledger
        self.boundary = boundary
        self.artifact_dir = Path(artifact_dir)
        self.concurrency = max(1, concurrency)
        self.timeout = timeout
        self.activate = activate
        self.compiler = compiler or ContentCompiler(layout)
        self.structural = structural or StructuralValidator()
        self.contract = contract or ContractValidator()

    def _prepare(self, compiled: CompiledDocument) -> list[str]:
        """Auto-fix and validate a compiled copy.

        Returns:
            Warnings to report alongside the push result.

        Raises:
            StructuralError: If structural errors remain after auto-fix.
            ParameterContractViolation: If contract violations remain after auto-fix.
        """
        structural = self.structural.auto_fix(compiled.document)
        structural.report.raise_for_structure(compiled.name)
        contract = self.contract.auto_fix(compiled.document)
        contract.report.raise_for_contract(compiled.name)

        warnings = list(compiled.warnings)
        warnings.extend(structural.changes)
        warnings.extend(contract.changes)
        warnings.extend(issue.format() for issue in structural.report.warnings)
        return warnings

    def _result_key(self, path: Path) -> str:
        try:
            return self.ledger.key(path)
        except ValueError:
            return Path(path).as_posix()

    def _artifact_path(self, compiled: CompiledDocument) -> Path:
        return self.artifact_dir / f"flowsmith-{compiled.path.stem}-{uuid.uuid4().hex[:8]}.json"

    async def deploy_file(self, path: Path) -> PushResult:
        """Compile, validate and push one flow file, then record it in the ledger."""
        path = Path(path)
        try:
            key = self.ledger.key(path)
        except ValueError:
            message = f"{path} is outside the project root {self.layout.root}"
            logger.error(message)
            return PushResult.failed(path.as_posix(), path.stem, PushStage.COMPILE, message)

        try:
            compiled = await self.compiler.compile_file(path)
        except (FlowsmithError, OSError) as e:
            logger.error(f"Compile failed for {key}: {e}")
            return PushResult.failed(key, path.stem, PushStage.COMPILE, str(e))

        try:
            warnings = self._prepare(compiled)
        except (StructuralError, ParameterContractViolation) as e:
            details = "\n".join(issue.format() for issue in e.report.errors) if e.report else ""
            logger.error(f"Validation failed for {key}: {e}")
            return PushResult.failed(
                key, compiled.name, PushStage.VALIDATE, f"{e}\n{details}".strip(), compiled.warnings
            )

        artifact = self._artifact_path(compiled)
        request = PushRequest(
            document_name=compiled.name,
            document=compiled.document,
            artifact_path=artifact,
            activate=self.activate,
        )
        try:
            await write_json(artifact, compiled.document, mode=ARTIFACT_MODE)
            outcome = await asyncio.wait_for(self.boundary.push(request), self.timeout)
        except TimeoutError:
            message = f"Push of '{compiled.name}' timed out after {self.timeout:g}s"
            logger.error(message)
            return PushResult.failed(key, compiled.name, PushStage.PUSH, message, warnings)
        except PushBoundaryFailure as e:
            logger.error(f"Push failed for {key}: {e}")
            return PushResult.failed(
                key, compiled.name, PushStage.PUSH, e.diagnostics or str(e), warnings
            )
        except OSError as e:
            logger.error(f"Cannot write artifact for {key}: {e}")
            return PushResult.failed(key, compiled.name, PushStage.PUSH, str(e), warnings)
        finally:
            await unlink(artifact)

        if not outcome.success:
            logger.error(f"Engine rejected {key}: {summarize(outcome.diagnostics)}")
            return PushResult.failed(
                key, compiled.name, PushStage.PUSH, outcome.diagnostics, warnings
            )

        recorded = await self.ledger.mark_deployed(path, compiled.source_fingerprint)
        logger.info(f"Deployed {key}")
        return PushResult(
            path=key,
            document_name=compiled.name,
            success=True,
            stage=PushStage.DONE,
            summary=summarize(outcome.output),
            diagnostics=outcome.diagnostics,
            warnings=warnings,
            ledger_recorded=recorded,
        )

    async def deploy_paths(self, paths: list[Path]) -> BatchPushReport:
        """Push the given flow files with bounded concurrency."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(path: Path) -> PushResult:
            async with semaphore:
                try:
                    return await self.deploy_file(path)
                except Exception as e:
                    logger.exception(f"Unexpected failure deploying {path}")
                    return PushResult.failed(
                        self._result_key(path), Path(path).stem, PushStage.PUSH, repr(e)
                    )

        results = await asyncio.gather(*(run(p) for p in paths))
        report = BatchPushReport(results=list(results))
        logger.info(f"Batch push finished: {len(report.succeeded)}/{len(results)} succeeded")
        return report

    async def deploy_changed(self, include_all: bool = False) -> BatchPushReport:
        """Push every dirty flow, or every flow when include_all is set."""
        if include_all:
            paths = self.layout.flow_files()
        else:
            paths = await self.ledger.dirty_paths()
        if not paths:
            logger.info("No flows to deploy")
        return await self.deploy_paths(paths)
