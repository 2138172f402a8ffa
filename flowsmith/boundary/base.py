"""Push boundary interface.

A push boundary hands a compiled document to the automation engine. The
engine is reached either through its command line tool or its REST API; both
report back a PushOutcome.
"""

from abc import ABC, abstractmethod

from flowsmith.models.push import PushOutcome, PushRequest

# Output that means the engine accepted the document
SUCCESS_MARKERS = ("Successfully imported", "Successfully exported")

# Diagnostic lines the engine prints on every run that are not failures
BENIGN_PATTERNS = (
    "deprecation",
    "Permissions",
    "N8N_RUNNERS_ENABLED",
    "N8N_ENFORCE_SETTINGS_FILE_PERMISSIONS",
    "There is a deprecation",
    "Learn more:",
)

# Words that mark a remaining diagnostic line as a failure
FAILURE_WORDS = ("error", "failed", "invalid")


def has_real_error(diagnostics: str, output: str = "") -> bool:
    """Whether diagnostic output reports a genuine failure.

    Text on the diagnostic channel alone is not a failure. A success marker
    on either channel wins; otherwise benign notices are dropped and any
    remaining line naming an error fails the push.

    Args:
        diagnostics: Text the engine wrote to its diagnostic channel (stderr).
        output: Text the engine wrote to its regular output (stdout).
    """
    if not diagnostics.strip():
        return False
    if any(marker in output or marker in diagnostics for marker in SUCCESS_MARKERS):
        return False

    for line in diagnostics.splitlines():
        if not line.strip() or any(pattern in line for pattern in BENIGN_PATTERNS):
            continue
        lowered = line.lower()
        if any(word in lowered for word in FAILURE_WORDS):
            return True
    return False


class PushBoundary(ABC):
    """Where compiled documents are sent."""

    name: str = "push"

    @abstractmethod
    async def push(self, request: PushRequest) -> PushOutcome:
        """Push one compiled document.

        Args:
            request: Compiled document and the transient artifact holding it.

        Returns:
            PushOutcome describing whether the engine accepted the document.

        Raises:
            PushBoundaryFailure: If the engine could not be reached at all.
        """
        ...
