"""Push through the engine's command line tool."""

import asyncio
import logging

from flowsmith.boundary.base import PushBoundary, has_real_error
from flowsmith.errors import PushBoundaryFailure
from flowsmith.models.push import PushOutcome, PushRequest

logger = logging.getLogger(__name__)


class CliPushBoundary(PushBoundary):
    """Runs ``<cli> import:workflow --input=<artifact>`` for each document."""

    name = "cli"

    def __init__(self, executable: str = "n8n"):
        self.executable = executable

    async def _run(self, *args: str) -> tuple[int, str, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PushBoundaryFailure(
                f"Cannot run {self.executable}: {e}", diagnostics=str(e)
            ) from e
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise
        return (
            process.returncode or 0,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def push(self, request: PushRequest) -> PushOutcome:
        logger.info(f"Importing '{request.document_name}' via {self.executable}")
        code, stdout, stderr = await self._run(
            "import:workflow", f"--input={request.artifact_path}"
        )
        if code != 0 or has_real_error(stderr, stdout):
            diagnostics = stderr.strip() or stdout.strip() or f"exit code {code}"
            return PushOutcome(success=False, output=stdout, diagnostics=diagnostics)

        if request.activate and request.document.get("id"):
            code, act_out, act_err = await self._run(
                "update:workflow", f"--id={request.document['id']}", "--active=true"
            )
            if code != 0 or has_real_error(act_err, act_out):
                diagnostics = act_err.strip() or f"activation exit code {code}"
                return PushOutcome(success=False, output=stdout + act_out, diagnostics=diagnostics)
        return PushOutcome(success=True, output=stdout, diagnostics=stderr)
